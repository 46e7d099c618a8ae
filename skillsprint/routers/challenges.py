import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import List, Optional
from ..database import atomic, get_db
from ..models import (
    Challenge,
    ChallengeStatus,
    Difficulty,
    Submission,
    SubmissionStatus,
    TestCase,
    User,
    UserRole,
)
from ..schemas.analytics import ChallengeAnalytics
from ..schemas.challenge import (
    ChallengeCreate,
    ChallengeDetail,
    ChallengeResponse,
    ChallengeStatusUpdate,
    ChallengeSummary,
    ChallengeUpdate,
    PaginatedChallenges,
    TestCaseResponse,
)
from ..schemas.leaderboard import ChallengeLeaderboardEntry
from ..schemas.submission import SubmissionResponse
from ..dependencies import get_current_user, require_role
from ..errors import Forbidden, InvalidState, NotFound, ValidationError
from ..services.analytics import get_challenge_analytics
from ..services.leaderboard import get_challenge_leaderboard
from ..services.submissions import get_challenge

router = APIRouter(prefix="/challenges", tags=["Challenges"])

logger = logging.getLogger(__name__)

PUBLIC_STATUSES = (ChallengeStatus.ACTIVE, ChallengeStatus.COMPLETED)


def _get_owned_challenge(db: Session, challenge_id: int, user: User) -> Challenge:
    challenge = get_challenge(db, challenge_id)
    if challenge.creator_id != user.user_id:
        raise Forbidden("Only the challenge creator can modify this challenge")
    return challenge


def _counts(db: Session, challenge_id: int):
    submission_count = (
        db.query(func.count(Submission.submission_id))
        .filter(Submission.challenge_id == challenge_id)
        .scalar()
    )
    test_case_count = (
        db.query(func.count(TestCase.test_case_id))
        .filter(TestCase.challenge_id == challenge_id)
        .scalar()
    )
    return submission_count, test_case_count


def _count_submissions(db: Session, challenge_id: int, *criteria) -> int:
    return (
        db.query(func.count(Submission.submission_id))
        .filter(Submission.challenge_id == challenge_id, *criteria)
        .scalar()
    )


def _test_cases_from(body) -> List[TestCase]:
    return [
        TestCase(
            input=test_case.input,
            expected_output=test_case.expected_output,
            is_public=test_case.is_public,
        )
        for test_case in body.test_cases
    ]


@router.post("", response_model=ChallengeResponse, status_code=201)
def create_challenge(
    body: ChallengeCreate,
    current_user: User = Depends(require_role(UserRole.CREATOR)),
    db: Session = Depends(get_db),
):
    """Create a challenge together with its test cases"""
    challenge = Challenge(
        title=body.title,
        description=body.description,
        difficulty=body.difficulty,
        points=body.points,
        time_limit=body.time_limit,
        start_date=body.start_date,
        end_date=body.end_date,
        status=body.status,
        creator_id=current_user.user_id,
    )
    challenge.test_cases = _test_cases_from(body)
    with atomic(db):
        db.add(challenge)
    db.refresh(challenge)

    logger.info(
        "Challenge %s %s by %s",
        challenge.challenge_id,
        "saved as draft" if challenge.status == ChallengeStatus.DRAFT else "published",
        current_user.user_id,
    )
    return challenge


@router.get("", response_model=PaginatedChallenges)
def list_challenges(
    status: Optional[ChallengeStatus] = None,
    difficulty: Optional[Difficulty] = None,
    search: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List public challenges, optionally filtered"""
    query = db.query(Challenge)

    if status is not None:
        if status not in PUBLIC_STATUSES:
            return {"total": 0, "limit": limit, "offset": offset, "items": []}
        query = query.filter(Challenge.status == status)
    else:
        query = query.filter(Challenge.status.in_(PUBLIC_STATUSES))

    if difficulty is not None:
        query = query.filter(Challenge.difficulty == difficulty)

    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(Challenge.title.ilike(like), Challenge.description.ilike(like))
        )

    total = query.count()
    items = (
        query.order_by(Challenge.end_date.asc(), Challenge.challenge_id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"total": total, "limit": limit, "offset": offset, "items": items}


@router.get("/manage", response_model=List[ChallengeSummary])
def list_my_challenges(
    current_user: User = Depends(require_role(UserRole.CREATOR)),
    db: Session = Depends(get_db),
):
    """List the current creator's challenges with counts"""
    challenges = (
        db.query(Challenge)
        .filter(Challenge.creator_id == current_user.user_id)
        .order_by(Challenge.created_at.desc(), Challenge.challenge_id.desc())
        .all()
    )
    summaries = []
    for challenge in challenges:
        submission_count, test_case_count = _counts(db, challenge.challenge_id)
        summary = ChallengeSummary.model_validate(challenge)
        summary.submission_count = submission_count
        summary.test_case_count = test_case_count
        summaries.append(summary)
    return summaries


@router.get("/{challenge_id}", response_model=ChallengeDetail)
def get_challenge_detail(
    challenge_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a challenge; only its creator sees private test cases"""
    challenge = (
        db.query(Challenge).filter(Challenge.challenge_id == challenge_id).first()
    )
    is_owner = challenge is not None and challenge.creator_id == current_user.user_id
    if not challenge or (not is_owner and challenge.status not in PUBLIC_STATUSES):
        raise NotFound("Challenge not found")

    test_cases = challenge.test_cases
    if not is_owner:
        test_cases = [tc for tc in test_cases if tc.is_public]

    submission_count, test_case_count = _counts(db, challenge_id)
    detail = ChallengeDetail.model_validate(challenge)
    detail.test_cases = [TestCaseResponse.model_validate(tc) for tc in test_cases]
    detail.submission_count = submission_count
    detail.test_case_count = test_case_count
    return detail


@router.patch("/{challenge_id}", response_model=ChallengeResponse)
def update_challenge(
    challenge_id: int,
    body: ChallengeUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a challenge; test cases, if given, replace the existing set"""
    challenge = _get_owned_challenge(db, challenge_id, current_user)

    changes = body.model_dump(exclude_unset=True, exclude={"test_cases"})
    if changes.get("points") not in (None, challenge.points) and _count_submissions(
        db, challenge_id, Submission.is_draft.is_(False)
    ):
        # Stored scores and credited points are bounded by the old value
        raise InvalidState("Cannot change points once solutions have been submitted")
    for field, value in changes.items():
        if value is None:
            raise ValidationError(f"{field} must not be null")
        setattr(challenge, field, value)

    if challenge.end_date <= challenge.start_date:
        db.rollback()
        raise ValidationError("End date must be after start date")

    with atomic(db):
        if body.test_cases is not None:
            challenge.test_cases = _test_cases_from(body)
    db.refresh(challenge)
    return challenge


@router.patch("/{challenge_id}/status", response_model=ChallengeResponse)
def update_challenge_status(
    challenge_id: int,
    body: ChallengeStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Move a challenge to another status"""
    challenge = _get_owned_challenge(db, challenge_id, current_user)
    challenge.status = body.status
    db.commit()
    db.refresh(challenge)
    logger.info("Challenge %s status set to %s", challenge_id, body.status.value)
    return challenge


@router.delete("/{challenge_id}", status_code=204)
def delete_challenge(
    challenge_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a challenge with its test cases and submissions"""
    challenge = _get_owned_challenge(db, challenge_id, current_user)

    accepted = _count_submissions(
        db, challenge_id, Submission.status == SubmissionStatus.ACCEPTED
    )
    if accepted:
        # Their scores are part of the submitters' points
        raise InvalidState(
            "Cannot delete challenge with accepted submissions. "
            "Consider marking it as cancelled instead."
        )

    final_submissions = _count_submissions(
        db, challenge_id, Submission.is_draft.is_(False)
    )
    if challenge.status != ChallengeStatus.DRAFT and final_submissions > 0:
        raise InvalidState(
            "Cannot delete challenge with existing submissions. "
            "Consider marking it as cancelled instead."
        )

    with atomic(db):
        db.delete(challenge)
    logger.info("Challenge %s deleted by %s", challenge_id, current_user.user_id)


@router.get("/{challenge_id}/submissions", response_model=List[SubmissionResponse])
def list_challenge_submissions(
    challenge_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Final submissions for a challenge, newest first"""
    challenge = get_challenge(db, challenge_id)
    if (
        challenge.creator_id != current_user.user_id
        and current_user.role != UserRole.JUDGE
    ):
        raise Forbidden("Only the challenge creator or a judge can list submissions")

    return (
        db.query(Submission)
        .filter(
            Submission.challenge_id == challenge_id,
            Submission.is_draft.is_(False),
        )
        .order_by(Submission.submitted_at.desc(), Submission.submission_id.desc())
        .all()
    )


@router.get("/{challenge_id}/analytics", response_model=ChallengeAnalytics)
def challenge_analytics(
    challenge_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Submission analytics for the challenge creator"""
    return get_challenge_analytics(db, challenge_id, current_user)


@router.get(
    "/{challenge_id}/leaderboard",
    response_model=List[ChallengeLeaderboardEntry],
)
def challenge_leaderboard(
    challenge_id: int,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Accepted submissions ranked by score, earliest first on ties"""
    get_challenge(db, challenge_id)
    return get_challenge_leaderboard(db, challenge_id, limit=limit)
