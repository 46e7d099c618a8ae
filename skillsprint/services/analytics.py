"""Per-challenge submission analytics."""

from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import Forbidden
from ..models import Submission, SubmissionStatus, User
from .submissions import get_challenge


def aggregate(
    submissions: Iterable[Submission],
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
) -> dict:
    """Summarise a challenge's final submissions.

    ``average_attempts`` and ``success_rate`` are per unique participant, not
    per submission. All rates are 0 when nobody has submitted.
    """
    now = now or datetime.utcnow()
    if window_days is None:
        window_days = settings.recent_window_days
    since = now - timedelta(days=window_days)
    submissions = list(submissions)

    total = len(submissions)
    unique_participants = len({s.user_id for s in submissions})
    accepted = sum(1 for s in submissions if s.status == SubmissionStatus.ACCEPTED)

    scores = [s.score for s in submissions if s.score is not None]
    average_score = sum(scores) / len(scores) if scores else 0

    status_counts = Counter(SubmissionStatus(s.status).value for s in submissions)
    by_day = Counter(
        s.submitted_at.date().isoformat()
        for s in submissions
        if s.submitted_at is not None and s.submitted_at >= since
    )

    return {
        "total_submissions": total,
        "unique_participants": unique_participants,
        "accepted_submissions": accepted,
        "average_score": average_score,
        "status_distribution": [
            {"status": status, "count": count}
            for status, count in status_counts.items()
        ],
        "submissions_by_day": [
            {"date": date, "count": by_day[date]}
            for date in sorted(by_day, reverse=True)
        ],
        "difficulty_metrics": {
            "average_attempts": total / unique_participants if unique_participants else 0,
            "success_rate": accepted / unique_participants * 100 if unique_participants else 0,
        },
    }


def get_challenge_analytics(
    db: Session, challenge_id: int, requesting_user: User, now: Optional[datetime] = None
) -> dict:
    challenge = get_challenge(db, challenge_id)
    if challenge.creator_id != requesting_user.user_id:
        raise Forbidden("Only the challenge creator can view analytics")

    submissions = (
        db.query(Submission)
        .filter(
            Submission.challenge_id == challenge_id,
            Submission.is_draft.is_(False),
        )
        .all()
    )
    return aggregate(submissions, now=now)
