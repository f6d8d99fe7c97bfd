"""
Form Store

Read/write access to form definitions. The engines only ever receive
FormDefinition snapshots from here and never mutate them.
"""
import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..models.db_models import AuditFormDB
from ..models.ssot import FormDefinition

logger = logging.getLogger(__name__)


class FormNotFoundError(Exception):
    """Raised when no form exists under the requested name."""
    pass


class DuplicateFormError(Exception):
    """Raised when a form name is already taken."""
    pass


class FormStore:
    """SQLAlchemy-backed form definition store."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_form(self, name: str) -> FormDefinition:
        row = self.db.query(AuditFormDB).filter(AuditFormDB.name == name).first()
        if row is None:
            raise FormNotFoundError(f"Form '{name}' not found")
        return FormDefinition.from_dict({"name": row.name, "sections": row.sections or []})

    def list_forms(self) -> List[FormDefinition]:
        rows = self.db.query(AuditFormDB).order_by(AuditFormDB.name).all()
        return [FormDefinition.from_dict({"name": r.name, "sections": r.sections or []}) for r in rows]

    def create_form(self, form: FormDefinition, created_by: Optional[str] = None) -> FormDefinition:
        existing = self.db.query(AuditFormDB).filter(AuditFormDB.name == form.name).first()
        if existing is not None:
            raise DuplicateFormError(f"Form '{form.name}' already exists")

        row = AuditFormDB(
            id=str(uuid4()),
            name=form.name,
            sections=form.to_dict()["sections"],
            created_by=created_by,
        )
        self.db.add(row)
        self.db.commit()
        logger.info(f"Created form '{form.name}' with {len(form.sections)} sections")
        return form
