"""ThorEye audit engine backend."""
