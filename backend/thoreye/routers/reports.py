"""
ThorEye Audit Engine - Reports API Router

Submission, drafts, editing and soft deletion of audit reports.
All endpoints require authentication.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB
from ..models.ssot import Answer, Section
from ..services.audit_service import AuditService, AuditServiceError
from ..services.form_store import FormNotFoundError
from ..services.report_store import ReportNotFoundError
from ..services.forms import MandatoryValidationError
from ..auth import get_current_user, require_auditor, require_roles, identity_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class AnswerIn(BaseModel):
    question_id: str
    answer: str = ""
    remarks: Optional[str] = None
    rating: Optional[int] = None


class SubmitRequest(BaseModel):
    form_name: str
    agent: str
    agent_id: str
    answers: List[AnswerIn] = []
    spawned_sections: List[Dict[str, Any]] = []
    partner_id: Optional[str] = None
    report_id: Optional[str] = None  # complete an existing draft


class EditRequest(BaseModel):
    answers: List[AnswerIn]


def _answers(items: List[AnswerIn]) -> Dict[str, Answer]:
    return {
        a.question_id: Answer(question_id=a.question_id, answer=a.answer, remarks=a.remarks, rating=a.rating)
        for a in items
    }


def _missing_detail(e: MandatoryValidationError) -> Dict[str, Any]:
    return {"message": str(e), "missing": [ref.to_dict() for ref in e.missing]}


def _store(db: Session, request: SubmitRequest, current_user: UserDB, draft: bool):
    service = AuditService(db)
    save = service.save_draft if draft else service.submit
    try:
        report = save(
            form_name=request.form_name,
            agent=request.agent,
            agent_id=request.agent_id,
            auditor=identity_of(current_user),
            answers=_answers(request.answers),
            spawned=[Section.from_dict(s) for s in request.spawned_sections],
            partner_id=request.partner_id,
            report_id=request.report_id,
        )
    except MandatoryValidationError as e:
        raise HTTPException(status_code=400, detail=_missing_detail(e))
    except (FormNotFoundError, ReportNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AuditServiceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return report.to_dict()


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_report(
    request: SubmitRequest,
    current_user: UserDB = Depends(require_auditor),
    db: Session = Depends(get_db),
):
    """
    Submit a completed audit.

    Fails with 400 and the list of missing questions when a visible
    mandatory question is unanswered; nothing is stored in that case.
    """
    return _store(db, request, current_user, draft=False)


@router.post("/drafts", status_code=status.HTTP_201_CREATED)
async def save_draft(
    request: SubmitRequest,
    current_user: UserDB = Depends(require_auditor),
    db: Session = Depends(get_db),
):
    """Save (or update) a draft without mandatory validation."""
    return _store(db, request, current_user, draft=True)


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a report. Partners only see reports assigned to them."""
    try:
        report = AuditService(db).get_report(report_id)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if current_user.role == "partner" and report.partner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Report is not assigned to you")
    return report.to_dict()


@router.put("/{report_id}")
async def edit_report(
    report_id: str,
    request: EditRequest,
    current_user: UserDB = Depends(require_auditor),
    db: Session = Depends(get_db),
):
    """Replace a report's answers and re-score it."""
    try:
        report = AuditService(db).edit_report(report_id, _answers(request.answers), identity_of(current_user))
    except MandatoryValidationError as e:
        raise HTTPException(status_code=400, detail=_missing_detail(e))
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return report.to_dict()


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: str,
    current_user: UserDB = Depends(require_roles("manager", "teamleader")),
    db: Session = Depends(get_db),
):
    """Soft-delete a report (kept in deleted_audits)."""
    try:
        AuditService(db).delete_report(report_id, identity_of(current_user))
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
