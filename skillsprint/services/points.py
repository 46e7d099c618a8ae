"""Points ledger.

``User.points`` is a materialised sum of ``score`` over the user's ACCEPTED
submissions. It is only ever changed by ``apply_acceptance``, inside the
transaction that moves a submission into ACCEPTED, and can be rebuilt from
the submission rows with ``reconcile_points``.
"""

import logging
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Submission, SubmissionStatus, User

logger = logging.getLogger(__name__)


def apply_acceptance(db: Session, user_id: str, score_delta: int) -> None:
    """Credit ``score_delta`` points to ``user_id``.

    Issued as ``points = points + delta`` so concurrent credits to the same
    user never overwrite each other. Does not commit.
    """
    if score_delta < 0:
        raise ValueError("score_delta must be non-negative")
    updated = (
        db.query(User)
        .filter(User.user_id == user_id)
        .update({User.points: User.points + score_delta}, synchronize_session=False)
    )
    if updated != 1:
        raise NotFound("User not found")
    logger.info("Credited %s points to user %s", score_delta, user_id)


def accepted_points(db: Session, user_id: str) -> int:
    total = (
        db.query(func.coalesce(func.sum(Submission.score), 0))
        .filter(
            Submission.user_id == user_id,
            Submission.status == SubmissionStatus.ACCEPTED,
        )
        .scalar()
    )
    return int(total or 0)


def reconcile_points(db: Session) -> List[Dict]:
    """Recompute every user's points from ACCEPTED submissions.

    Returns the users whose stored total differed, with the old and new
    values. Commits when anything changed.
    """
    totals = dict(
        db.query(Submission.user_id, func.sum(Submission.score))
        .filter(Submission.status == SubmissionStatus.ACCEPTED)
        .group_by(Submission.user_id)
        .all()
    )

    drifted = []
    for user in db.query(User).order_by(User.user_id).all():
        expected = int(totals.get(user.user_id) or 0)
        if user.points != expected:
            drifted.append(
                {"user_id": user.user_id, "stored": user.points, "expected": expected}
            )
            user.points = expected

    if drifted:
        db.commit()
        logger.warning("Reconciled points for %d users", len(drifted))
    return drifted
