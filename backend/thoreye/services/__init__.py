"""Domain services: form engines, scoring, rebuttal workflow, ATA and stores."""
