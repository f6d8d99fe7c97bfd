"""
ThorEye Audit Engine - Forms API Router

Form definitions plus the runtime helpers a form renderer calls while an
auditor fills in an audit: visibility evaluation and interaction spawning.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB
from ..models.ssot import FormDefinition, Section
from ..services.form_store import FormStore, FormNotFoundError, DuplicateFormError
from ..services.forms import FormState, apply_answer, visible_layout, parse_options
from ..auth import get_current_user, require_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms", tags=["forms"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class FormRequest(BaseModel):
    name: str
    sections: List[Dict[str, Any]]


class VisibilityRequest(BaseModel):
    answers: Dict[str, str] = {}
    spawned_sections: List[Dict[str, Any]] = []


class SpawnRequest(BaseModel):
    question_id: str
    value: str
    answers: Dict[str, str] = {}
    spawned_sections: List[Dict[str, Any]] = []


class SpawnResponse(BaseModel):
    answers: Dict[str, str]
    spawned_sections: List[Dict[str, Any]]
    spawned: Optional[Dict[str, Any]] = None
    active_section: Optional[str] = None


def _load_form(db: Session, name: str) -> FormDefinition:
    try:
        return FormStore(db).get_form(name)
    except FormNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _state(form: FormDefinition, answers: Dict[str, str], spawned: List[Dict[str, Any]]) -> FormState:
    return FormState(
        form=form,
        answers=dict(answers),
        spawned_sections=[Section.from_dict(s) for s in spawned],
    )


# =============================================================================
# FORM DEFINITIONS
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_form(
    request: FormRequest,
    current_user: UserDB = Depends(require_roles("manager", "teamleader")),
    db: Session = Depends(get_db),
):
    """Create a form definition. Names are unique."""
    try:
        form = FormDefinition.from_dict({"name": request.name, "sections": request.sections})
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid form definition: {e}")

    try:
        FormStore(db).create_form(form, created_by=current_user.id)
    except DuplicateFormError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return form.to_dict()


@router.get("")
async def list_forms(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List form definitions."""
    return [f.to_dict() for f in FormStore(db).list_forms()]


@router.get("/{name}")
async def get_form(
    name: str,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a form definition with each question's selectable options."""
    form = _load_form(db, name)
    data = form.to_dict()
    for section_data, section in zip(data["sections"], form.sections):
        for question_data, question in zip(section_data["questions"], section.questions):
            question_data["parsedOptions"] = parse_options(question)
    return data


# =============================================================================
# RUNTIME
# =============================================================================

@router.post("/{name}/visibility")
async def evaluate_visibility(
    name: str,
    request: VisibilityRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Visible sections and their visible question ids for the given answers."""
    state = _state(_load_form(db, name), request.answers, request.spawned_sections)
    return {"sections": visible_layout(state.sections(), state.answers)}


@router.post("/{name}/spawn", response_model=SpawnResponse)
async def record_answer(
    name: str,
    request: SpawnRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record one answer and return the updated working state (spawning or pruning interactions)."""
    state = _state(_load_form(db, name), request.answers, request.spawned_sections)
    new_state, spawned = apply_answer(state, request.question_id, request.value)
    return SpawnResponse(
        answers=new_state.answers,
        spawned_sections=[s.to_dict() for s in new_state.spawned_sections],
        spawned=spawned.to_dict() if spawned is not None else None,
        active_section=new_state.active_section,
    )
