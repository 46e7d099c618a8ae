import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import Submission, SubmissionStatus, User, UserRole
from ..utils.security import AuthIdentity
from .leaderboard import get_user_rank

logger = logging.getLogger(__name__)

SELF_ASSIGNABLE_ROLES = (UserRole.CREATOR, UserRole.PARTICIPANT)


def _initial_role(identity: AuthIdentity) -> UserRole:
    try:
        role = UserRole(identity.requested_role)
    except ValueError:
        return UserRole.PARTICIPANT
    return role if role in SELF_ASSIGNABLE_ROLES else UserRole.PARTICIPANT


def sync_user(db: Session, identity: AuthIdentity) -> User:
    """Upsert the local user row for an authenticated identity."""
    user = db.query(User).filter(User.user_id == identity.user_id).first()
    if user is None:
        user = db.query(User).filter(User.email == identity.email).first()

    if user is not None:
        changed = False
        if not user.name:
            user.name = identity.display_name
            changed = True
        if identity.avatar_url and user.image != identity.avatar_url:
            user.image = identity.avatar_url
            changed = True
        if changed:
            db.commit()
            db.refresh(user)
        return user

    user = User(
        user_id=identity.user_id,
        email=identity.email,
        name=identity.display_name,
        image=identity.avatar_url,
        role=_initial_role(identity),
        points=0,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Created concurrently by another request
        db.rollback()
        return db.query(User).filter(User.user_id == identity.user_id).one()
    db.refresh(user)
    logger.info("Created user %s (%s) as %s", user.user_id, user.email, user.role.value)
    return user


def update_role(db: Session, user: User, role: str) -> User:
    try:
        new_role = UserRole(role)
    except ValueError:
        new_role = None
    if new_role not in SELF_ASSIGNABLE_ROLES:
        raise ValidationError("Invalid role. Must be CREATOR or PARTICIPANT")
    user.role = new_role
    db.commit()
    db.refresh(user)
    logger.info("Updated user %s role to %s", user.user_id, new_role.value)
    return user


def get_user_stats(db: Session, user: User) -> dict:
    submissions = (
        db.query(Submission)
        .filter(Submission.user_id == user.user_id)
        .order_by(Submission.submitted_at.desc())
        .all()
    )
    accepted = [s for s in submissions if s.status == SubmissionStatus.ACCEPTED]
    scored = [s.score for s in submissions if s.score is not None]

    return {
        "total_submissions": len(submissions),
        "accepted_submissions": len(accepted),
        "challenges_completed": len({s.challenge_id for s in accepted}),
        "challenges_attempted": len({s.challenge_id for s in submissions}),
        "average_score": round(sum(scored) / len(scored)) if scored else 0,
        "points": user.points,
        "rank": get_user_rank(db, user.user_id),
        "total_users": db.query(User).count(),
        "recent_submissions": submissions[:10],
    }
