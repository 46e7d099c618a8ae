from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from ..models import ReviewAction, SubmissionStatus


class SubmissionCreate(BaseModel):
    code: Optional[str] = None
    language: Optional[str] = None
    file_url: Optional[str] = None


class ReviewRequest(BaseModel):
    action: ReviewAction
    score: Optional[int] = None
    feedback: Optional[str] = None


class FeedbackCreate(BaseModel):
    comment: str
    rating: int = Field(ge=1, le=5)


class FeedbackResponse(BaseModel):
    feedback_id: int
    submission_id: int
    reviewer_id: str
    comment: str
    rating: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubmissionResponse(BaseModel):
    submission_id: int
    challenge_id: int
    user_id: str
    code: Optional[str] = None
    language: Optional[str] = None
    file_url: Optional[str] = None
    status: SubmissionStatus
    score: Optional[int] = None
    is_draft: bool
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by_id: Optional[str] = None
    execution_time: Optional[int] = None
    memory: Optional[int] = None

    class Config:
        from_attributes = True


class SubmissionDetail(SubmissionResponse):
    challenge_title: Optional[str] = None
    file_name: Optional[str] = None
    download_url: Optional[str] = None
    feedbacks: List[FeedbackResponse] = []


class UploadResponse(SubmissionResponse):
    file_name: str
    file_size: int


class CodeRunRequest(BaseModel):
    code: Optional[str] = None
    language: Optional[str] = None


class CaseResult(BaseModel):
    test_case: int
    passed: bool
    input: str
    expected_output: str
    actual_output: str
    execution_time: Optional[int] = None


class CodeRunResponse(BaseModel):
    success: bool
    passed_tests: int
    total_tests: int
    results: List[CaseResult]
