"""
Rebuttal State Machine

Single ReportStatus enum is the source of truth.
State transitions:
    COMPLETED → UNDER_REBUTTAL → REBUTTAL_REJECTED → UNDER_RE_REBUTTAL → ACCEPTED
ACCEPTED is also reachable from COMPLETED / UNDER_REBUTTAL (concurrence) and
from every disputed state via management Benefit of Doubt (BOD).

Record rules:
- Opening a dispute (partner reject, re-rebuttal) appends a pending RebuttalRecord.
- Resolving actions (accept, BOD, management reject) close the latest pending
  record, stamping the handler.
- BOD with nothing pending (after a management rejection) appends its own
  accepted record; the rejection and its response stay as written.
- A rejected action leaves the report untouched.
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from ...models.ssot import (
    AuditReport, ReportStatus, RebuttalAction, RebuttalType, RebuttalStatus,
    RebuttalRecord, ActorClass, Identity, now_ms,
)

logger = logging.getLogger(__name__)

BOD_RESPONSE = "Benefit of Doubt applied"


class RebuttalWorkflowError(Exception):
    """Raised when a rebuttal action is not legal from the report's status."""

    def __init__(self, message: str, current_status: Optional[ReportStatus] = None,
                 action: Optional[RebuttalAction] = None, actor: Optional[ActorClass] = None):
        self.current_status = current_status
        self.action = action
        self.actor = actor
        super().__init__(message)


class RebuttalTextRequiredError(RebuttalWorkflowError):
    """Raised when a dispute or a management rejection carries no text."""
    pass


class StaleReportStatusError(RebuttalWorkflowError):
    """Raised when the stored status changed between read and write."""
    pass


PARTNER = ActorClass.PARTNER
MANAGEMENT = ActorClass.MANAGEMENT


class RebuttalStateMachine:
    """
    Rebuttal/re-rebuttal workflow over ReportStatus.

    Transitions are deterministic on (current status, action, actor class).
    """

    # (current_status, action, actor) -> new_status
    TRANSITIONS: Dict[Tuple[ReportStatus, RebuttalAction, ActorClass], ReportStatus] = {
        (ReportStatus.COMPLETED, RebuttalAction.ACCEPT, PARTNER): ReportStatus.ACCEPTED,
        (ReportStatus.COMPLETED, RebuttalAction.ACCEPT, MANAGEMENT): ReportStatus.ACCEPTED,
        (ReportStatus.COMPLETED, RebuttalAction.REJECT, PARTNER): ReportStatus.UNDER_REBUTTAL,

        (ReportStatus.UNDER_REBUTTAL, RebuttalAction.ACCEPT, PARTNER): ReportStatus.ACCEPTED,
        (ReportStatus.UNDER_REBUTTAL, RebuttalAction.ACCEPT, MANAGEMENT): ReportStatus.ACCEPTED,
        (ReportStatus.UNDER_REBUTTAL, RebuttalAction.BOD, MANAGEMENT): ReportStatus.ACCEPTED,
        (ReportStatus.UNDER_REBUTTAL, RebuttalAction.REJECT, MANAGEMENT): ReportStatus.REBUTTAL_REJECTED,

        (ReportStatus.REBUTTAL_REJECTED, RebuttalAction.ACCEPT, PARTNER): ReportStatus.ACCEPTED,
        (ReportStatus.REBUTTAL_REJECTED, RebuttalAction.BOD, MANAGEMENT): ReportStatus.ACCEPTED,
        (ReportStatus.REBUTTAL_REJECTED, RebuttalAction.RE_REBUTTAL, PARTNER): ReportStatus.UNDER_RE_REBUTTAL,

        (ReportStatus.UNDER_RE_REBUTTAL, RebuttalAction.ACCEPT, PARTNER): ReportStatus.ACCEPTED,
        (ReportStatus.UNDER_RE_REBUTTAL, RebuttalAction.BOD, MANAGEMENT): ReportStatus.ACCEPTED,
    }

    # Actions that open a new dispute record
    DISPUTE_TYPES = {
        (ReportStatus.COMPLETED, RebuttalAction.REJECT): RebuttalType.REBUTTAL,
        (ReportStatus.REBUTTAL_REJECTED, RebuttalAction.RE_REBUTTAL): RebuttalType.RE_REBUTTAL,
    }

    def can_transition(
        self,
        current_status: ReportStatus,
        action: RebuttalAction,
        actor: ActorClass,
        rebuttal_text: Optional[str] = None,
        handler_response: Optional[str] = None,
    ) -> Tuple[bool, Optional[str]]:
        """
        Check if a transition is allowed.

        Returns:
            Tuple of (is_allowed, error_message)
        """
        if (current_status, action, actor) not in self.TRANSITIONS:
            return False, f"Invalid transition: {current_status.value} + {action.value} by {actor.value}"

        if (current_status, action) in self.DISPUTE_TYPES and not (rebuttal_text or "").strip():
            return False, "Rebuttal text is required for rebuttal and re-rebuttal actions"

        if action == RebuttalAction.REJECT and actor == MANAGEMENT and not (handler_response or "").strip():
            return False, "A handler response is required to reject a rebuttal"

        return True, None

    def next_status(
        self,
        current_status: ReportStatus,
        action: RebuttalAction,
        actor: ActorClass,
        rebuttal_text: Optional[str] = None,
        handler_response: Optional[str] = None,
    ) -> ReportStatus:
        """
        Resolve the next status.

        Raises:
            RebuttalTextRequiredError: Legal transition but missing text
            RebuttalWorkflowError: Transition not in the table
        """
        allowed, error = self.can_transition(current_status, action, actor, rebuttal_text, handler_response)
        if not allowed:
            error_cls = RebuttalTextRequiredError if (current_status, action, actor) in self.TRANSITIONS \
                else RebuttalWorkflowError
            raise error_cls(error, current_status=current_status, action=action, actor=actor)
        return self.TRANSITIONS[(current_status, action, actor)]

    def transition(
        self,
        report: AuditReport,
        action: RebuttalAction,
        actor: Identity,
        rebuttal_text: Optional[str] = None,
        handler_response: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> AuditReport:
        """
        Apply an action to a report value and return the updated value.

        The input report is not modified.
        """
        current = report.status
        new_status = self.next_status(current, action, actor.actor_class, rebuttal_text, handler_response)
        at = timestamp if timestamp is not None else now_ms()
        records = list(report.rebuttals)

        dispute_type = self.DISPUTE_TYPES.get((current, action))
        if dispute_type is not None:
            records.append(RebuttalRecord(
                audit_report_id=report.id,
                partner=actor,
                rebuttal_text=rebuttal_text.strip(),
                rebuttal_type=dispute_type,
                status=RebuttalStatus.PENDING,
                created_at=at,
            ))
        else:
            pending = self._resolution_target(records)
            if action == RebuttalAction.BOD:
                response = (handler_response or "").strip() or BOD_RESPONSE
            else:
                response = (handler_response or "").strip() or None

            if pending is None and action == RebuttalAction.BOD:
                latest = records[-1] if records else None
                records.append(RebuttalRecord(
                    audit_report_id=report.id,
                    partner=latest.partner if latest else actor,
                    rebuttal_text=BOD_RESPONSE,
                    rebuttal_type=latest.rebuttal_type if latest else RebuttalType.REBUTTAL,
                    status=RebuttalStatus.ACCEPTED,
                    created_at=at,
                    handled_by=actor,
                    handler_response=response,
                    handled_at=at,
                ))
            elif pending is not None:
                records[pending] = replace(
                    records[pending],
                    status=RebuttalStatus.REJECTED if action == RebuttalAction.REJECT else RebuttalStatus.ACCEPTED,
                    handled_by=actor,
                    handler_response=response,
                    handled_at=at,
                )

        logger.info(
            f"Report {report.id}: {current.value} --{action.value} by {actor.username}--> {new_status.value}"
        )
        return replace(report, status=new_status, rebuttals=records)

    def available_actions(self, current_status: ReportStatus, actor: ActorClass) -> List[RebuttalAction]:
        """Actions the given actor may take from current_status (text checks not applied)."""
        return [
            action for (status, action, who) in self.TRANSITIONS
            if status == current_status and who == actor
        ]

    def is_terminal(self, status: ReportStatus) -> bool:
        """No further transitions from ACCEPTED (or from a draft, which is outside the workflow)."""
        return not any(s == status for (s, _, _) in self.TRANSITIONS)

    @staticmethod
    def _resolution_target(records: List[RebuttalRecord]) -> Optional[int]:
        """Index of the record a resolving action closes: the latest pending one."""
        for index in range(len(records) - 1, -1, -1):
            if records[index].status == RebuttalStatus.PENDING:
                return index
        return None
