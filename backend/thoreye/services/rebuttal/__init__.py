"""ThorEye Audit Engine - Rebuttal workflow"""
from .state_machine import (
    RebuttalStateMachine,
    RebuttalWorkflowError,
    RebuttalTextRequiredError,
    StaleReportStatusError,
    BOD_RESPONSE,
)
from .rebuttal_service import RebuttalService

__all__ = [
    "RebuttalStateMachine",
    "RebuttalWorkflowError",
    "RebuttalTextRequiredError",
    "StaleReportStatusError",
    "BOD_RESPONSE",
    "RebuttalService",
]
