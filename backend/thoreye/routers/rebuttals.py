"""
ThorEye Audit Engine - Rebuttals API Router

Partner disputes and management decisions on submitted reports.
Legality of each action is decided by the rebuttal state machine; this
router only maps its errors onto HTTP responses.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB
from ..models.ssot import RebuttalAction
from ..services.rebuttal import (
    RebuttalService, RebuttalWorkflowError, RebuttalTextRequiredError, StaleReportStatusError,
)
from ..services.report_store import ReportNotFoundError
from ..auth import get_current_user, identity_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rebuttals", tags=["rebuttals"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class RebuttalActionRequest(BaseModel):
    report_id: str
    action: str
    rebuttal_text: Optional[str] = None
    handler_response: Optional[str] = None

    @field_validator('action')
    @classmethod
    def validate_action(cls, v):
        valid = [a.value for a in RebuttalAction]
        if v not in valid:
            raise ValueError(f'Invalid action. Must be one of: {", ".join(valid)}')
        return v


def _check_partner_access(service: RebuttalService, report_id: str, current_user: UserDB):
    """Partners may only see and act on reports assigned to them."""
    if current_user.role != "partner":
        return
    report = service.store.load_report(report_id)
    if report.partner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Report is not assigned to you")


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("")
async def apply_action(
    request: RebuttalActionRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Apply a workflow action (accept, reject, re_rebuttal, bod) to a report.

    - 400: rebuttal text / handler response missing
    - 403: the caller's role may never take this action, or a partner acts on another partner's report
    - 409: action not legal from the current status, or status changed concurrently
    """
    service = RebuttalService(db)
    actor = identity_of(current_user)
    try:
        _check_partner_access(service, request.report_id, current_user)
        report = service.apply_action(
            request.report_id,
            RebuttalAction(request.action),
            actor,
            rebuttal_text=request.rebuttal_text,
            handler_response=request.handler_response,
        )
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RebuttalTextRequiredError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StaleReportStatusError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RebuttalWorkflowError as e:
        actor_allowed = any(
            action == RebuttalAction(request.action) and who == actor.actor_class
            for (_, action, who) in service.state_machine.TRANSITIONS
        )
        raise HTTPException(status_code=409 if actor_allowed else 403, detail=str(e))

    return report.to_dict()


@router.get("/report/{report_id}")
async def list_report_rebuttals(
    report_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Rebuttal records of a report, newest first."""
    service = RebuttalService(db)
    try:
        _check_partner_access(service, report_id, current_user)
        records = service.rebuttals_for_report(report_id)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [r.to_dict() for r in records]


@router.get("/partner/{partner_id}")
async def list_partner_rebuttals(
    partner_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Rebuttal records raised by a partner, newest first."""
    if current_user.role == "partner" and current_user.id != partner_id:
        raise HTTPException(status_code=403, detail="Partners can only list their own rebuttals")
    return [r.to_dict() for r in RebuttalService(db).rebuttals_for_partner(partner_id)]


@router.get("/report/{report_id}/actions")
async def available_actions(
    report_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Actions the caller may take on the report right now."""
    service = RebuttalService(db)
    try:
        _check_partner_access(service, report_id, current_user)
        report = service.store.load_report(report_id)
        actions = service.available_actions(report_id, identity_of(current_user))
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "reportId": report_id,
        "status": report.status.value,
        "terminal": service.is_closed(report.status),
        "actions": [a.value for a in actions],
    }
