from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..database import get_db
from ..models import User
from ..schemas.user import ProfileUpdate, UserResponse, UserStats
from ..dependencies import get_current_user
from ..errors import ValidationError
from ..services.users import get_user_stats

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    """Get the current user's profile"""
    return current_user


@router.patch("/me/profile", response_model=UserResponse)
def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update name and avatar"""
    if body.name is not None:
        if not body.name.strip():
            raise ValidationError("Name must not be blank")
        current_user.name = body.name.strip()
    if body.image is not None:
        current_user.image = body.image or None
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/me/stats", response_model=UserStats)
def get_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Submission statistics and rank for the current user"""
    return get_user_stats(db, current_user)
