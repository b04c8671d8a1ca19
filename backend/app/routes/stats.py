"""
Account API routes - the caller's identity and game statistics.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth_dependencies import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas import MeResponse, Stats, StatsResponse, serialize_user
from app.services.authorization import is_admin
from app.services.stats import compute_stats

router = APIRouter()


@router.get("/api/me", response_model=MeResponse)
def get_me(user: User = Depends(get_current_user)):
    """Return the signed-in user and whether they have admin rights."""
    return MeResponse(user=serialize_user(user), role=user.role, is_admin=is_admin(user))


@router.get("/api/stats/me", response_model=StatsResponse)
def get_my_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Flags owned, captures made and flags requested by the caller."""
    return StatsResponse(stats=Stats(**compute_stats(db, user.id)))
