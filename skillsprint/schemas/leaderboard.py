from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from ..models import UserRole


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    name: Optional[str] = None
    image: Optional[str] = None
    role: UserRole
    points: int
    total_submissions: int
    accepted_submissions: int
    success_rate: int


class TopPerformer(BaseModel):
    rank: int
    user_id: str
    name: Optional[str] = None
    image: Optional[str] = None
    points: int
    accepted_submissions: int


class ChallengeLeaderboardEntry(BaseModel):
    position: int
    submission_id: int
    user_id: str
    name: Optional[str] = None
    score: int
    submitted_at: Optional[datetime] = None


class GlobalStats(BaseModel):
    total_users: int
    total_challenges: int
    total_submissions: int
    active_users: int


class UserRank(BaseModel):
    user_id: str
    rank: int


class PointsDrift(BaseModel):
    user_id: str
    stored: int
    expected: int


class ReconcileResult(BaseModel):
    reconciled: int
    users: List[PointsDrift]
