"""
ThorEye Audit Engine - Admin Router
User administration: listing accounts and granting roles that
public registration does not hand out.
"""
from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import UserDB, USER_ROLES
from ..auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class AdminUserResponse(BaseModel):
    id: str
    email: str
    username: str
    role: str
    is_inactive: bool


class RoleUpdateRequest(BaseModel):
    role: str

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        if v not in USER_ROLES:
            raise ValueError(f'Invalid role. Must be one of: {", ".join(USER_ROLES)}')
        return v


def _to_response(user: UserDB) -> AdminUserResponse:
    return AdminUserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        role=user.role,
        is_inactive=bool(user.is_inactive),
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("/users", response_model=List[AdminUserResponse])
async def list_users(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """List all user accounts, newest first."""
    users = db.query(UserDB).order_by(UserDB.created_at.desc()).all()
    return [_to_response(u) for u in users]


@router.put("/users/{user_id}/role", response_model=AdminUserResponse)
async def update_user_role(
    user_id: str,
    request: RoleUpdateRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin)
):
    """Grant a role (manager, teamleader, master_auditor, ...) to an account."""
    user = db.query(UserDB).filter(UserDB.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    previous = user.role
    user.role = request.role
    db.commit()

    logger.info(f"Role of {user.username} changed {previous} -> {request.role} by {admin.username}")
    return _to_response(user)
