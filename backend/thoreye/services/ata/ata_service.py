"""
ATA Service

Stores master-auditor reviews. One review per report: a new review replaces
the earlier one and appends an "added ATA review" entry to the report history.
"""
import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from ...models.ssot import ATAReview, Identity, ReportStatus
from ..report_store import ReportStore
from .reconciliation import ATAReconciliationEngine, AnswerAssessment, ATAReviewError, attach_review

logger = logging.getLogger(__name__)


class ATAService:
    """Master auditor review service."""

    def __init__(self, db: Session):
        self.db = db
        self.store = ReportStore(db)
        self.engine = ATAReconciliationEngine()

    def submit_review(
        self,
        report_id: str,
        master_answers: Mapping[str, str],
        assessments: Mapping[str, AnswerAssessment],
        master_auditor: Identity,
        master_rating: int,
        feedback: str,
    ) -> ATAReview:
        """
        Reconcile and store a review of a submitted report.

        Raises:
            ReportNotFoundError: Unknown or deleted report
            ATAReviewError: Draft report, bad rating or empty feedback
        """
        report = self.store.load_report(report_id)
        if report.status == ReportStatus.DRAFT:
            raise ATAReviewError(f"Report {report_id} is a draft and cannot be reviewed")

        review = self.engine.reconcile(
            report, master_answers, assessments, master_auditor, master_rating, feedback
        )
        updated = attach_review(report, review)

        try:
            self.store.replace_ata_review(review)
            self.store.save_report(updated)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Stored ATA review for report {report_id} by {master_auditor.username}")
        return review

    def get_review(self, report_id: str) -> Optional[ATAReview]:
        return self.store.load_report(report_id).ata_review
