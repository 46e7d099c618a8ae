from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, timezone
from typing import List, Optional

from ..models import ChallengeStatus, Difficulty


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TestCaseIn(BaseModel):
    input: str
    expected_output: str
    is_public: bool = False

    @field_validator("input", "expected_output")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class TestCaseResponse(BaseModel):
    test_case_id: int
    input: str
    expected_output: str
    is_public: bool

    class Config:
        from_attributes = True


class ChallengeCreate(BaseModel):
    title: str
    description: str
    difficulty: Difficulty
    points: int = Field(gt=0)
    time_limit: int = Field(gt=0)
    start_date: datetime
    end_date: datetime
    status: ChallengeStatus = ChallengeStatus.DRAFT
    test_cases: List[TestCaseIn] = Field(min_length=1)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, v):
        return _naive_utc(v)

    @field_validator("status")
    @classmethod
    def creatable_status(cls, v):
        if v not in (ChallengeStatus.DRAFT, ChallengeStatus.ACTIVE):
            raise ValueError("a new challenge must be DRAFT or ACTIVE")
        return v

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class ChallengeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    points: Optional[int] = Field(default=None, gt=0)
    time_limit: Optional[int] = Field(default=None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[ChallengeStatus] = None
    test_cases: Optional[List[TestCaseIn]] = Field(default=None, min_length=1)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v.strip() if v is not None else v

    @field_validator("start_date", "end_date")
    @classmethod
    def to_utc(cls, v):
        return _naive_utc(v)


class ChallengeStatusUpdate(BaseModel):
    status: ChallengeStatus


class ChallengeResponse(BaseModel):
    challenge_id: int
    title: str
    description: str
    difficulty: Difficulty
    points: int
    time_limit: int
    status: ChallengeStatus
    start_date: datetime
    end_date: datetime
    creator_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChallengeDetail(ChallengeResponse):
    test_cases: List[TestCaseResponse] = []
    submission_count: int = 0
    test_case_count: int = 0


class ChallengeSummary(ChallengeResponse):
    submission_count: int = 0
    test_case_count: int = 0


class PaginatedChallenges(BaseModel):
    total: int
    limit: int
    offset: int
    items: List[ChallengeResponse]
