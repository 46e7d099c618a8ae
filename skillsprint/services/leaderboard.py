"""Leaderboard views.

A user's rank is one plus the number of users with strictly more points, so
users tied on points share a rank number.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFound
from ..models import Challenge, ChallengeStatus, Submission, SubmissionStatus, User


def assign_ranks(points: List[int]) -> List[int]:
    """Competition ranks for a list of point totals sorted descending."""
    ranks = []
    for index, value in enumerate(points):
        if index and value == points[index - 1]:
            ranks.append(ranks[-1])
        else:
            ranks.append(index + 1)
    return ranks


def get_user_rank(db: Session, user_id: str) -> int:
    user_points = db.query(User.points).filter(User.user_id == user_id).scalar()
    if user_points is None:
        raise NotFound("User not found")
    ahead = db.query(func.count(User.user_id)).filter(User.points > user_points).scalar()
    return ahead + 1


def _submission_counts(db: Session, user_ids: List[str]) -> Dict[str, Dict[str, int]]:
    counts = {user_id: {"total": 0, "accepted": 0} for user_id in user_ids}
    if not user_ids:
        return counts
    rows = (
        db.query(Submission.user_id, Submission.status, func.count(Submission.submission_id))
        .filter(Submission.user_id.in_(user_ids), Submission.is_draft.is_(False))
        .group_by(Submission.user_id, Submission.status)
        .all()
    )
    for user_id, status, count in rows:
        counts[user_id]["total"] += count
        if status == SubmissionStatus.ACCEPTED:
            counts[user_id]["accepted"] += count
    return counts


def get_leaderboard(db: Session, limit: Optional[int] = None) -> List[dict]:
    if limit is None:
        limit = settings.leaderboard_limit
    users = (
        db.query(User)
        .order_by(User.points.desc(), User.created_at.asc(), User.user_id.asc())
        .limit(limit)
        .all()
    )
    # Every user with more points than a listed user is listed before it
    ranks = assign_ranks([user.points for user in users])
    counts = _submission_counts(db, [user.user_id for user in users])

    entries = []
    for user, rank in zip(users, ranks):
        total = counts[user.user_id]["total"]
        accepted = counts[user.user_id]["accepted"]
        entries.append({
            "user_id": user.user_id,
            "name": user.name,
            "image": user.image,
            "role": user.role,
            "points": user.points,
            "rank": rank,
            "total_submissions": total,
            "accepted_submissions": accepted,
            "success_rate": round(accepted / total * 100) if total else 0,
        })
    return entries


def get_top_performers(
    db: Session,
    limit: int = 10,
    days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[dict]:
    """Users ranked by ACCEPTED submissions within the trailing window."""
    now = now or datetime.utcnow()
    if days is None:
        days = settings.recent_window_days
    since = now - timedelta(days=days)
    accepted = func.count(Submission.submission_id).label("accepted")
    rows = (
        db.query(User, accepted)
        .join(Submission, Submission.user_id == User.user_id)
        .filter(
            Submission.status == SubmissionStatus.ACCEPTED,
            Submission.submitted_at >= since,
        )
        .group_by(User.user_id)
        .order_by(accepted.desc(), User.points.desc(), User.user_id.asc())
        .limit(limit)
        .all()
    )
    ranks = assign_ranks([count for _, count in rows])
    return [
        {
            "user_id": user.user_id,
            "name": user.name,
            "image": user.image,
            "points": user.points,
            "accepted_submissions": count,
            "rank": rank,
        }
        for (user, count), rank in zip(rows, ranks)
    ]


def get_challenge_leaderboard(db: Session, challenge_id: int, limit: int = 50) -> List[dict]:
    """ACCEPTED submissions of one challenge: best score first, earliest wins ties."""
    rows = (
        db.query(Submission, User)
        .join(User, Submission.user_id == User.user_id)
        .filter(
            Submission.challenge_id == challenge_id,
            Submission.status == SubmissionStatus.ACCEPTED,
        )
        .order_by(Submission.score.desc(), Submission.submitted_at.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "position": position,
            "submission_id": submission.submission_id,
            "user_id": user.user_id,
            "name": user.name,
            "score": submission.score,
            "submitted_at": submission.submitted_at,
        }
        for position, (submission, user) in enumerate(rows, start=1)
    ]


def get_global_stats(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    since = now - timedelta(days=settings.recent_window_days)
    active_users = (
        db.query(func.count(func.distinct(Submission.user_id)))
        .filter(Submission.submitted_at >= since)
        .scalar()
    )
    return {
        "total_users": db.query(func.count(User.user_id)).scalar(),
        "total_challenges": db.query(func.count(Challenge.challenge_id))
        .filter(Challenge.status == ChallengeStatus.ACTIVE)
        .scalar(),
        "total_submissions": db.query(func.count(Submission.submission_id)).scalar(),
        "active_users": active_users,
    }
