"""ThorEye Audit Engine - ATA (master auditor) reconciliation"""
from .ata_service import ATAService
from .reconciliation import (
    ATAReconciliationEngine,
    AnswerAssessment,
    ATAReviewError,
    reconcile,
    attach_review,
    compute_accuracy,
    has_fatal_answer,
    effective_original_score,
    variance_band,
)

__all__ = [
    "ATAService",
    "ATAReconciliationEngine",
    "AnswerAssessment",
    "ATAReviewError",
    "reconcile",
    "attach_review",
    "compute_accuracy",
    "has_fatal_answer",
    "effective_original_score",
    "variance_band",
]
