"""Submission lifecycle.

A submission row is unique per (challenge, user). It starts as a draft
(``is_draft=True``, PENDING), becomes a final submission (``is_draft=False``,
PENDING) and is then moved exactly once into a terminal status, either by a
grading backend or by a reviewer. Terminal statuses are never left.

Every transition is a single transaction. Leaving PENDING is a conditional
UPDATE on ``status = PENDING``, so of two concurrent transitions on the same
submission only one can win; the other fails with ``InvalidState`` and the
points ledger is credited at most once.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import atomic
from ..errors import (
    ChallengeNotActive,
    ChallengeWindowClosed,
    DuplicateSubmission,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationError,
)
from ..models import (
    Challenge,
    ChallengeStatus,
    Feedback,
    ReviewAction,
    Submission,
    SubmissionStatus,
    User,
    UserRole,
)
from .grading import GradingBackend, decide
from .points import apply_acceptance

logger = logging.getLogger(__name__)


@dataclass
class SubmissionPayload:
    code: Optional[str] = None
    language: Optional[str] = None
    file_url: Optional[str] = None

    def has_content(self) -> bool:
        return bool(self.code and self.code.strip()) or bool(self.file_url)


def get_challenge(db: Session, challenge_id: int) -> Challenge:
    challenge = (
        db.query(Challenge).filter(Challenge.challenge_id == challenge_id).first()
    )
    if not challenge:
        raise NotFound("Challenge not found")
    return challenge


def get_submission(db: Session, submission_id: int) -> Submission:
    submission = (
        db.query(Submission)
        .filter(Submission.submission_id == submission_id)
        .first()
    )
    if not submission:
        raise NotFound("Submission not found")
    return submission


def find_user_submission(
    db: Session, challenge_id: int, user_id: str
) -> Optional[Submission]:
    return (
        db.query(Submission)
        .filter(
            Submission.challenge_id == challenge_id,
            Submission.user_id == user_id,
        )
        .first()
    )


def is_reviewer(user: User, challenge: Challenge) -> bool:
    return challenge.creator_id == user.user_id or user.role == UserRole.JUDGE


def can_view_submission(user: User, submission: Submission) -> bool:
    return submission.user_id == user.user_id or is_reviewer(user, submission.challenge)


def feedback_rating(action: ReviewAction, score: int, max_points: int) -> int:
    """1..5 rating for feedback written alongside a review action."""
    if action == ReviewAction.REJECT:
        return 1
    # A zero-point acceptance still rates 1
    return max(1, min(5, math.ceil(score / max_points * 5)))


def _require_active(challenge: Challenge) -> None:
    if challenge.status != ChallengeStatus.ACTIVE:
        raise ChallengeNotActive("Challenge is not active")


def _require_not_ended(challenge: Challenge, now: datetime) -> None:
    if now > challenge.end_date:
        raise ChallengeWindowClosed("Challenge has ended")


def _require_open_window(challenge: Challenge, now: datetime) -> None:
    if now < challenge.start_date:
        raise ChallengeWindowClosed("Challenge has not started yet")
    _require_not_ended(challenge, now)


def check_can_submit(
    db: Session, challenge_id: int, user_id: str, now: Optional[datetime] = None
) -> Challenge:
    """Fast-path check of every precondition of ``submit_final`` but content."""
    now = now or datetime.utcnow()
    challenge = get_challenge(db, challenge_id)
    _require_active(challenge)
    _require_open_window(challenge, now)
    existing = find_user_submission(db, challenge_id, user_id)
    if existing and not existing.is_draft:
        raise DuplicateSubmission(
            "You have already submitted a solution for this challenge"
        )
    return challenge


def save_draft(
    db: Session,
    challenge_id: int,
    user_id: str,
    payload: SubmissionPayload,
    now: Optional[datetime] = None,
) -> Submission:
    """Create or overwrite the user's draft for a challenge."""
    now = now or datetime.utcnow()
    challenge = get_challenge(db, challenge_id)
    _require_active(challenge)
    _require_not_ended(challenge, now)

    try:
        submission = _write_draft(db, challenge_id, user_id, payload, now)
    except IntegrityError:
        # Another request created the row first; overwrite it instead
        db.rollback()
        submission = _write_draft(db, challenge_id, user_id, payload, now)

    db.refresh(submission)
    logger.info("Saved draft %s for challenge %s", submission.submission_id, challenge_id)
    return submission


def _write_draft(db, challenge_id, user_id, payload, now) -> Submission:
    with atomic(db):
        submission = find_user_submission(db, challenge_id, user_id)
        if submission is None:
            submission = Submission(
                challenge_id=challenge_id,
                user_id=user_id,
                status=SubmissionStatus.PENDING,
                is_draft=True,
            )
            db.add(submission)
        elif not submission.is_draft:
            raise InvalidState(
                "A final solution has already been submitted; drafts can no longer be saved"
            )
        submission.code = payload.code
        submission.language = payload.language
        submission.file_url = payload.file_url
        submission.submitted_at = now
        db.flush()
    return submission


def submit_final(
    db: Session,
    challenge_id: int,
    user_id: str,
    payload: SubmissionPayload,
    now: Optional[datetime] = None,
) -> Submission:
    """Submit the user's final solution, converting an existing draft in place.

    Fields missing from ``payload`` are taken from the draft, so a file
    uploaded on top of a saved code draft keeps the code.
    """
    now = now or datetime.utcnow()
    challenge = get_challenge(db, challenge_id)
    _require_active(challenge)
    _require_open_window(challenge, now)

    try:
        submission = _write_final(db, challenge_id, user_id, payload, now)
    except IntegrityError:
        # Lost a race creating the row; the winner decides what happens
        db.rollback()
        submission = _write_final(db, challenge_id, user_id, payload, now)

    db.refresh(submission)
    logger.info(
        "User %s submitted final solution %s for challenge %s",
        user_id, submission.submission_id, challenge_id,
    )
    return submission


def _write_final(db, challenge_id, user_id, payload, now) -> Submission:
    with atomic(db):
        existing = find_user_submission(db, challenge_id, user_id)
        if existing is not None and not existing.is_draft:
            raise DuplicateSubmission(
                "You have already submitted a solution for this challenge"
            )

        merged = SubmissionPayload(
            code=payload.code if payload.code is not None else getattr(existing, "code", None),
            language=payload.language if payload.language is not None else getattr(existing, "language", None),
            file_url=payload.file_url if payload.file_url is not None else getattr(existing, "file_url", None),
        )
        if not merged.has_content():
            raise ValidationError("Either code or a file is required")
        if merged.code and merged.code.strip() and not merged.language:
            raise ValidationError("Language is required")

        values = {
            Submission.code: merged.code,
            Submission.language: merged.language,
            Submission.file_url: merged.file_url,
            Submission.status: SubmissionStatus.PENDING,
            Submission.score: None,
            Submission.is_draft: False,
            Submission.submitted_at: now,
        }
        if existing is None:
            submission = Submission(
                challenge_id=challenge_id, user_id=user_id,
                **{column.key: value for column, value in values.items()},
            )
            db.add(submission)
            db.flush()
            return submission

        # Only a row that is still a draft may be converted
        converted = (
            db.query(Submission)
            .filter(
                Submission.submission_id == existing.submission_id,
                Submission.is_draft.is_(True),
            )
            .update(values, synchronize_session=False)
        )
        if converted != 1:
            raise DuplicateSubmission(
                "You have already submitted a solution for this challenge"
            )
        return existing


def _leave_pending(db: Session, submission: Submission, values: dict) -> None:
    """Conditionally move a final PENDING submission into a terminal status."""
    updated = (
        db.query(Submission)
        .filter(
            Submission.submission_id == submission.submission_id,
            Submission.status == SubmissionStatus.PENDING,
            Submission.is_draft.is_(False),
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        raise InvalidState("Submission is not pending review")


def _require_pending_final(submission: Submission) -> None:
    if submission.is_draft:
        raise InvalidState("Drafts cannot be graded")
    if submission.status != SubmissionStatus.PENDING:
        raise InvalidState("Submission is not pending review")


def auto_grade(
    db: Session,
    submission_id: int,
    backend: GradingBackend,
    now: Optional[datetime] = None,
) -> Submission:
    """Grade a PENDING final submission through ``backend``."""
    now = now or datetime.utcnow()
    submission = get_submission(db, submission_id)
    _require_pending_final(submission)
    challenge = submission.challenge

    report = backend.evaluate(submission, challenge)
    status, score = decide(report, challenge.points)

    with atomic(db):
        _leave_pending(db, submission, {
            Submission.status: status,
            Submission.score: score,
            Submission.execution_time: report.execution_time,
            Submission.memory: report.memory,
        })
        if status == SubmissionStatus.ACCEPTED:
            apply_acceptance(db, submission.user_id, score)

    db.refresh(submission)
    logger.info(
        "Submission %s graded by %s: %s (%s/%s)",
        submission_id, backend.name, status.value, score, challenge.points,
    )
    return submission


def review(
    db: Session,
    submission_id: int,
    reviewer: User,
    action: ReviewAction,
    score: Optional[int] = None,
    feedback: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Submission:
    """Accept or reject a PENDING final submission."""
    now = now or datetime.utcnow()
    action = ReviewAction(action)
    submission = get_submission(db, submission_id)
    challenge = submission.challenge

    if not is_reviewer(reviewer, challenge):
        logger.warning(
            "User %s attempted to review submission %s", reviewer.user_id, submission_id
        )
        raise Forbidden("Only the challenge creator or a judge can review submissions")
    _require_pending_final(submission)

    if action == ReviewAction.ACCEPT:
        requested = challenge.points if score is None else score
        final_score = max(0, min(requested, challenge.points))
        status = SubmissionStatus.ACCEPTED
    else:
        final_score = 0
        status = SubmissionStatus.REJECTED

    with atomic(db):
        _leave_pending(db, submission, {
            Submission.status: status,
            Submission.score: final_score,
            Submission.reviewed_at: now,
            Submission.reviewed_by_id: reviewer.user_id,
        })
        if status == SubmissionStatus.ACCEPTED:
            apply_acceptance(db, submission.user_id, final_score)
        if feedback and feedback.strip():
            db.add(Feedback(
                submission_id=submission.submission_id,
                reviewer_id=reviewer.user_id,
                comment=feedback.strip(),
                rating=feedback_rating(action, final_score, challenge.points),
            ))

    db.refresh(submission)
    logger.info(
        "Submission %s %s by %s with score %s",
        submission_id, status.value, reviewer.user_id, final_score,
    )
    return submission


def add_feedback(
    db: Session,
    submission_id: int,
    reviewer: User,
    comment: str,
    rating: int,
) -> Feedback:
    submission = get_submission(db, submission_id)
    if not is_reviewer(reviewer, submission.challenge):
        raise Forbidden("Only the challenge creator or a judge can leave feedback")
    if not comment or not comment.strip():
        raise ValidationError("Feedback comment is required")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    feedback = Feedback(
        submission_id=submission.submission_id,
        reviewer_id=reviewer.user_id,
        comment=comment.strip(),
        rating=rating,
    )
    with atomic(db):
        db.add(feedback)
    db.refresh(feedback)
    return feedback


def run_public_tests(
    db: Session,
    challenge_id: int,
    code: Optional[str],
    language: Optional[str],
    backend: GradingBackend,
) -> dict:
    """Try ``code`` against the challenge's public test cases.

    Nothing is stored; private test cases are never run or reported.
    """
    challenge = get_challenge(db, challenge_id)
    _require_active(challenge)
    if not code or not code.strip():
        raise ValidationError("Code is required")
    if not language or not language.strip():
        raise ValidationError("Language is required")

    public_cases = [tc for tc in challenge.test_cases if tc.is_public]
    results = []
    for number, test_case in enumerate(public_cases, start=1):
        outcome = backend.run_case(code, language, test_case)
        results.append({
            "test_case": number,
            "passed": outcome.passed,
            "input": test_case.input,
            "expected_output": test_case.expected_output,
            "actual_output": outcome.actual_output,
            "execution_time": outcome.execution_time,
        })

    passed = sum(1 for result in results if result["passed"])
    logger.info(
        "Ran %s public tests for challenge %s: %s passed", len(results), challenge_id, passed
    )
    return {
        "success": passed == len(results),
        "passed_tests": passed,
        "total_tests": len(results),
        "results": results,
    }
