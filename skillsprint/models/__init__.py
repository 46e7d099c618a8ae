from .models import (
    Challenge,
    ChallengeStatus,
    Difficulty,
    Feedback,
    ReviewAction,
    Submission,
    SubmissionStatus,
    TestCase,
    User,
    UserRole,
)

__all__ = [
    "Challenge",
    "ChallengeStatus",
    "Difficulty",
    "Feedback",
    "ReviewAction",
    "Submission",
    "SubmissionStatus",
    "TestCase",
    "User",
    "UserRole",
]
