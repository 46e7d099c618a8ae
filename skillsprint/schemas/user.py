from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import List, Optional

from ..models import UserRole
from .submission import SubmissionResponse


class UserResponse(BaseModel):
    user_id: str
    email: EmailStr
    name: Optional[str] = None
    image: Optional[str] = None
    role: UserRole
    points: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None


class RoleUpdate(BaseModel):
    role: str


class UserStats(BaseModel):
    total_submissions: int
    accepted_submissions: int
    challenges_completed: int
    challenges_attempted: int
    average_score: int
    points: int
    rank: int
    total_users: int
    recent_submissions: List[SubmissionResponse] = []
