import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ..database import Base


class UserRole(str, enum.Enum):
    PARTICIPANT = "PARTICIPANT"
    CREATOR = "CREATOR"
    ADMIN = "ADMIN"
    JUDGE = "JUDGE"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ChallengeStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SubmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WRONG_ANSWER = "WRONG_ANSWER"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    COMPILATION_ERROR = "COMPILATION_ERROR"
    TIME_LIMIT_EXCEEDED = "TIME_LIMIT_EXCEEDED"


class ReviewAction(str, enum.Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


class User(Base):
    __tablename__ = "users"

    # Identifier issued by the external auth provider
    user_id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=True)
    image = Column(String(512), nullable=True)
    role = Column(
        Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.PARTICIPANT,
    )
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    challenges = relationship("Challenge", back_populates="creator")
    submissions = relationship(
        "Submission",
        back_populates="user",
        foreign_keys="Submission.user_id",
    )

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_user_points_non_negative"),
    )


class Challenge(Base):
    __tablename__ = "challenges"

    challenge_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    difficulty = Column(Enum(Difficulty, name="difficulty"), nullable=False)
    points = Column(Integer, nullable=False)
    time_limit = Column(Integer, nullable=False)  # minutes, advisory
    status = Column(
        Enum(ChallengeStatus, name="challenge_status"),
        nullable=False,
        default=ChallengeStatus.DRAFT,
    )
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    creator_id = Column(String(64), ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("User", back_populates="challenges")
    test_cases = relationship(
        "TestCase",
        back_populates="challenge",
        cascade="all, delete-orphan",
        order_by="TestCase.test_case_id",
    )
    submissions = relationship(
        "Submission", back_populates="challenge", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("points > 0", name="ck_challenge_points_positive"),
    )


class TestCase(Base):
    __tablename__ = "test_cases"

    test_case_id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(
        Integer,
        ForeignKey("challenges.challenge_id", ondelete="CASCADE"),
        nullable=False,
    )
    input = Column(Text, nullable=False)
    expected_output = Column(Text, nullable=False)
    is_public = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    challenge = relationship("Challenge", back_populates="test_cases")


class Submission(Base):
    __tablename__ = "submissions"

    submission_id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(
        Integer,
        ForeignKey("challenges.challenge_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(String(64), ForeignKey("users.user_id"), nullable=False)
    code = Column(Text, nullable=True)
    language = Column(String(50), nullable=True)
    file_url = Column(String(1024), nullable=True)
    status = Column(
        Enum(SubmissionStatus, name="submission_status"),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )
    score = Column(Integer, nullable=True)
    is_draft = Column(Boolean, nullable=False, default=True)
    submitted_at = Column(DateTime, server_default=func.now())
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by_id = Column(String(64), ForeignKey("users.user_id"), nullable=True)
    execution_time = Column(Integer, nullable=True)  # ms, advisory
    memory = Column(Integer, nullable=True)  # KB, advisory

    user = relationship(
        "User", back_populates="submissions", foreign_keys=[user_id]
    )
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
    challenge = relationship("Challenge", back_populates="submissions")
    feedbacks = relationship(
        "Feedback",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="Feedback.created_at.desc()",
    )

    __table_args__ = (
        UniqueConstraint(
            "challenge_id", "user_id", name="unique_challenge_user"
        ),
    )


class Feedback(Base):
    __tablename__ = "feedbacks"

    feedback_id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(
        Integer,
        ForeignKey("submissions.submission_id", ondelete="CASCADE"),
        nullable=False,
    )
    reviewer_id = Column(String(64), ForeignKey("users.user_id"), nullable=False)
    comment = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    submission = relationship("Submission", back_populates="feedbacks")
    reviewer = relationship("User")

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating_range"),
    )
