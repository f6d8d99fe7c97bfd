"""
Rebuttal Service

Orchestrates the rebuttal workflow against the database:
- Load the current report value
- Ask the state machine for the next value (pure)
- Compare-and-set the stored status, then persist the rebuttal records

Nothing is written when the state machine rejects the action or when another
actor changed the status first.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ...models.ssot import AuditReport, RebuttalAction, RebuttalRecord, Identity, ReportStatus
from ..report_store import ReportStore
from .state_machine import RebuttalStateMachine, StaleReportStatusError

logger = logging.getLogger(__name__)


class RebuttalService:
    """Rebuttal workflow service."""

    def __init__(self, db: Session):
        self.db = db
        self.store = ReportStore(db)
        self.state_machine = RebuttalStateMachine()

    # =========================================================================
    # ACTIONS (STATE CHANGE)
    # =========================================================================

    def apply_action(
        self,
        report_id: str,
        action: RebuttalAction,
        actor: Identity,
        rebuttal_text: Optional[str] = None,
        handler_response: Optional[str] = None,
    ) -> AuditReport:
        """
        Apply a rebuttal action to a stored report.

        Raises:
            ReportNotFoundError: Unknown or deleted report
            RebuttalWorkflowError: Illegal action (incl. missing text)
            StaleReportStatusError: Status changed concurrently
        """
        report = self.store.load_report(report_id)
        updated = self.state_machine.transition(
            report, action, actor,
            rebuttal_text=rebuttal_text,
            handler_response=handler_response,
        )

        try:
            if not self.store.update_status(report.id, report.status, updated.status):
                raise StaleReportStatusError(
                    f"Report {report.id} is no longer {report.status.value}",
                    current_status=report.status, action=action, actor=actor.actor_class,
                )
            changed = [r for r in updated.rebuttals if r not in report.rebuttals]
            self.store.save_rebuttals(changed)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Rebuttal action {action.value} on {report.id} by {actor.username} ({actor.role})")
        return self.store.load_report(report.id)

    # =========================================================================
    # QUERIES (READ-ONLY)
    # =========================================================================

    def rebuttals_for_report(self, report_id: str) -> List[RebuttalRecord]:
        self.store.load_row(report_id)
        return self.store.list_rebuttals(report_id=report_id)

    def rebuttals_for_partner(self, partner_id: str) -> List[RebuttalRecord]:
        return self.store.list_rebuttals(partner_id=partner_id)

    def available_actions(self, report_id: str, actor: Identity) -> List[RebuttalAction]:
        report = self.store.load_report(report_id)
        return self.state_machine.available_actions(report.status, actor.actor_class)

    def is_closed(self, status: ReportStatus) -> bool:
        return self.state_machine.is_terminal(status)
