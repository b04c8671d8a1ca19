"""
Stats Service - per-user game statistics.

All figures are derived with COUNT queries at read time; nothing is
stored, so stats can never drift from the ledger.
"""

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.capture import Capture
from app.models.flag import Flag


def compute_stats(db: Session, user_id: str) -> dict:
    """
    Compute game statistics for a user.

    Returns:
        Dict with:
        - flags_owned: flags the user currently holds
        - total_captures: captures the user has made
        - flags_requested: flags minted from the user's approved requests
    """
    flags_owned = db.query(func.count(Flag.id)).filter(
        Flag.current_owner_id == user_id
    ).scalar()
    total_captures = db.query(func.count(Capture.id)).filter(
        Capture.captured_by_user_id == user_id
    ).scalar()
    flags_requested = db.query(func.count(Flag.id)).filter(
        Flag.original_requester_id == user_id
    ).scalar()

    return {
        "flags_owned": flags_owned or 0,
        "total_captures": total_captures or 0,
        "flags_requested": flags_requested or 0,
    }
