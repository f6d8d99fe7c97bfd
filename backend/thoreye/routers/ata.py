"""
ThorEye Audit Engine - ATA API Router

Master auditor reviews of submitted reports.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB
from ..services.ata import ATAService, AnswerAssessment, ATAReviewError, variance_band
from ..services.report_store import ReportNotFoundError
from ..auth import get_current_user, require_master_auditor, identity_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ata", tags=["ata"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class AssessmentIn(BaseModel):
    question_id: str
    ata_answer: Optional[str] = None  # defaults to the original answer
    is_correct: bool = True
    is_ce: bool = False
    is_nce: bool = False
    comments: str = ""


class ReviewRequest(BaseModel):
    report_id: str
    master_rating: int
    feedback: str
    assessments: List[AssessmentIn] = []


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/reviews", status_code=status.HTTP_201_CREATED)
async def submit_review(
    request: ReviewRequest,
    current_user: UserDB = Depends(require_master_auditor),
    db: Session = Depends(get_db),
):
    """Store a master review of a report, replacing any earlier one."""
    master_answers = {a.question_id: a.ata_answer for a in request.assessments if a.ata_answer is not None}
    assessments = {
        a.question_id: AnswerAssessment(
            is_correct=a.is_correct, is_ce=a.is_ce, is_nce=a.is_nce, comments=a.comments,
        )
        for a in request.assessments
    }

    try:
        review = ATAService(db).submit_review(
            request.report_id,
            master_answers,
            assessments,
            identity_of(current_user),
            request.master_rating,
            request.feedback,
        )
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ATAReviewError as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = review.to_dict()
    data["varianceBand"] = variance_band(review.variance)
    return data


@router.get("/reviews/{report_id}")
async def get_review(
    report_id: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the master review of a report."""
    try:
        review = ATAService(db).get_review(report_id)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if review is None:
        raise HTTPException(status_code=404, detail="No ATA review for this report")

    data = review.to_dict()
    data["varianceBand"] = variance_band(review.variance)
    return data
