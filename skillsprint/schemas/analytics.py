from pydantic import BaseModel
from typing import List


class StatusCount(BaseModel):
    status: str
    count: int


class DayCount(BaseModel):
    date: str
    count: int


class DifficultyMetrics(BaseModel):
    average_attempts: float
    success_rate: float


class ChallengeAnalytics(BaseModel):
    total_submissions: int
    unique_participants: int
    accepted_submissions: int
    average_score: float
    status_distribution: List[StatusCount]
    submissions_by_day: List[DayCount]
    difficulty_metrics: DifficultyMetrics
