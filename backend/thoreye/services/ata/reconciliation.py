"""
ATA Reconciliation Engine

Compares a master auditor's re-answers against the original auditor's answers.
Produces per-question ratings, aggregate accuracy metrics and the score
variance between the original report and the master rating.

Output (ATAReview) is immutable. A later review replaces it.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional

from ...models.ssot import (
    AuditReport, ATAReview, AccuracyMetrics, QuestionRating, Identity,
    EditHistoryEntry, FATAL_OPTION, now_ms,
)
from ..scoring.calculator import round_half_up

logger = logging.getLogger(__name__)

MIN_MASTER_RATING = 1
MAX_MASTER_RATING = 10
ATA_REVIEW_ACTION = "added ATA review"

# Upper bounds (inclusive) of the variance display bands
VARIANCE_BANDS = [
    (5, "low"),
    (10, "moderate"),
    (20, "high"),
]


class ATAReviewError(Exception):
    """Raised when a master review is incomplete or out of range."""
    pass


# =============================================================================
# PER-QUESTION ASSESSMENT
# =============================================================================

@dataclass(frozen=True)
class AnswerAssessment:
    """
    Master auditor's judgement of one original answer.

    CE (critical error) and NCE (non-critical error) are mutually exclusive;
    either one makes the answer incorrect.
    """
    is_correct: bool = True
    is_ce: bool = False
    is_nce: bool = False
    comments: str = ""

    def mark_correct(self) -> "AnswerAssessment":
        return replace(self, is_correct=True, is_ce=False, is_nce=False)

    def mark_incorrect(self) -> "AnswerAssessment":
        return replace(self, is_correct=False)

    def mark_ce(self) -> "AnswerAssessment":
        return replace(self, is_correct=False, is_ce=True, is_nce=False)

    def mark_nce(self) -> "AnswerAssessment":
        return replace(self, is_correct=False, is_ce=False, is_nce=True)

    def normalized(self) -> "AnswerAssessment":
        if self.is_ce and self.is_nce:
            raise ATAReviewError("An answer cannot be both a critical and a non-critical error")
        if self.is_ce or self.is_nce:
            return replace(self, is_correct=False)
        return self


# =============================================================================
# HELPERS
# =============================================================================

def has_fatal_answer(report: AuditReport) -> bool:
    """True if any fatal question in the report snapshot is answered "Fatal"."""
    return any(a.is_fatal and a.answer == FATAL_OPTION for _, a in report.iter_answers())


def effective_original_score(report: AuditReport) -> int:
    """Stored score with the fatal override re-applied."""
    if report.has_fatal or has_fatal_answer(report):
        return 0
    return report.score


def variance_band(variance: int) -> str:
    for upper, label in VARIANCE_BANDS:
        if variance <= upper:
            return label
    return "critical"


def compute_accuracy(ratings: List[QuestionRating]) -> AccuracyMetrics:
    total = len(ratings)
    correct = sum(1 for r in ratings if r.is_correct)
    incorrect = total - correct
    ce_errors = sum(1 for r in ratings if not r.is_correct and r.is_ce)
    nce_errors = sum(1 for r in ratings if not r.is_correct and r.is_nce)
    overall = round_half_up(correct / total * 100) if total > 0 else 100

    return AccuracyMetrics(
        total_questions=total,
        correct_answers=correct,
        incorrect_answers=incorrect,
        ce_errors=ce_errors,
        nce_errors=nce_errors,
        overall_accuracy=overall,
    )


# =============================================================================
# ENGINE
# =============================================================================

class ATAReconciliationEngine:
    """Builds ATAReview values from a completed report and a master pass."""

    def reconcile(
        self,
        report: AuditReport,
        master_answers: Mapping[str, str],
        assessments: Mapping[str, AnswerAssessment],
        master_auditor: Identity,
        master_rating: int,
        feedback: str,
        timestamp: Optional[int] = None,
    ) -> ATAReview:
        """
        Pair every original answer with the master's answer and assessment.

        Args:
            report: Submitted report (its section snapshot is the source of answers)
            master_answers: questionId -> master's substitute answer; defaults to the original
            assessments: questionId -> AnswerAssessment; defaults to correct
            master_auditor: Reviewing identity (stamped only)
            master_rating: 1-10; the ATA score is rating * 10
            feedback: Required review comment
        """
        if not feedback or not feedback.strip():
            raise ATAReviewError("Feedback is required for an ATA review")
        if not MIN_MASTER_RATING <= master_rating <= MAX_MASTER_RATING:
            raise ATAReviewError(
                f"Master rating must be between {MIN_MASTER_RATING} and {MAX_MASTER_RATING}, got {master_rating}"
            )

        ratings: List[QuestionRating] = []
        for _, answer in report.iter_answers():
            assessment = assessments.get(answer.question_id, AnswerAssessment()).normalized()
            ratings.append(QuestionRating(
                question_id=answer.question_id,
                question_text=answer.question_text or answer.question_id,
                auditor_answer=answer.answer,
                ata_answer=master_answers.get(answer.question_id, answer.answer),
                is_correct=assessment.is_correct,
                is_ce=assessment.is_ce,
                is_nce=assessment.is_nce,
                comments=assessment.comments,
            ))

        metrics = compute_accuracy(ratings)
        original_score = effective_original_score(report)
        ata_score = master_rating * 10
        variance = abs(original_score - ata_score)

        review = ATAReview(
            audit_report_id=report.id,
            master_auditor=master_auditor,
            question_ratings=tuple(ratings),
            accuracy_metrics=metrics,
            master_rating=master_rating,
            original_score=original_score,
            ata_score=ata_score,
            variance=variance,
            feedback=feedback.strip(),
            timestamp=timestamp if timestamp is not None else now_ms(),
        )

        logger.info(
            f"ATA review for report {report.id}: accuracy {metrics.overall_accuracy}%, "
            f"original {original_score}, ata {ata_score}, variance {variance} ({variance_band(variance)})"
        )
        return review


def attach_review(report: AuditReport, review: ATAReview) -> AuditReport:
    """New report value carrying `review` (replacing any earlier one) and a history entry."""
    history = list(report.edit_history) + [
        EditHistoryEntry(editor=review.master_auditor.username, action=ATA_REVIEW_ACTION, timestamp=review.timestamp)
    ]
    return replace(report, ata_review=review, edit_history=history)


def reconcile(
    report: AuditReport,
    master_answers: Mapping[str, str],
    assessments: Mapping[str, AnswerAssessment],
    master_auditor: Identity,
    master_rating: int,
    feedback: str,
) -> ATAReview:
    """Factory function for a one-off reconciliation."""
    return ATAReconciliationEngine().reconcile(
        report, master_answers, assessments, master_auditor, master_rating, feedback
    )
