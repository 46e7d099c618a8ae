from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..database import get_db
from ..models import User
from ..schemas.user import RoleUpdate, UserResponse
from ..dependencies import get_current_user
from ..services.users import update_role

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/sync-user", response_model=UserResponse)
def sync_user(current_user: User = Depends(get_current_user)):
    """Sync the authenticated identity with the local user table"""
    return current_user


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user"""
    return current_user


@router.put("/role", response_model=UserResponse)
def set_role(
    body: RoleUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Choose a role during onboarding"""
    return update_role(db, current_user, body.role)
