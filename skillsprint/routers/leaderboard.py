from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from ..database import get_db
from ..models import User, UserRole
from ..schemas.leaderboard import (
    GlobalStats,
    LeaderboardEntry,
    ReconcileResult,
    TopPerformer,
    UserRank,
)
from ..dependencies import get_current_user, require_role
from ..services import leaderboard
from ..services.points import reconcile_points

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])


@router.get("", response_model=List[LeaderboardEntry])
def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Global leaderboard ordered by points"""
    return leaderboard.get_leaderboard(db, limit=limit)


@router.get("/top-performers", response_model=List[TopPerformer])
def get_top_performers(
    limit: int = Query(10, ge=1, le=100),
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
):
    """Users with the most accepted submissions in the recent window"""
    return leaderboard.get_top_performers(db, limit=limit, days=days)


@router.get("/stats", response_model=GlobalStats)
def get_stats(db: Session = Depends(get_db)):
    """Platform-wide counts"""
    return leaderboard.get_global_stats(db)


@router.get("/users/{user_id}/rank", response_model=UserRank)
def get_rank(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"user_id": user_id, "rank": leaderboard.get_user_rank(db, user_id)}


@router.post("/reconcile", response_model=ReconcileResult)
def reconcile(
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    """Rebuild stored points from accepted submissions"""
    drifted = reconcile_points(db)
    return {"reconciled": len(drifted), "users": drifted}
