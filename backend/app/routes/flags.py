"""
Flag API routes - looking up flags and their capture history.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload

from app.auth_dependencies import get_current_user
from app.database import get_db
from app.errors import FlagNotFound
from app.models.flag import Flag
from app.models.user import User
from app.services import ledger
from app.schemas import (
    FlagDetail, FlagList, FlagOut, serialize_user, serialize_capture_entry
)

router = APIRouter()


@router.get("/api/flags/mine", response_model=FlagList)
def list_my_flags(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List flags the caller currently holds, most recently captured first."""
    flags = db.query(Flag).filter(
        Flag.current_owner_id == user.id
    ).order_by(
        Flag.last_captured_at.desc().nulls_last(),
        Flag.flag_number.desc()
    ).all()
    return FlagList(flags=[FlagOut.model_validate(f) for f in flags])


@router.get("/api/flags/{flag_number}", response_model=FlagDetail)
def get_flag(flag_number: int, user: User = Depends(get_current_user),
             db: Session = Depends(get_db)):
    """Get a flag by number with its current owner and capture history (newest first)."""
    flag = db.query(Flag).options(
        joinedload(Flag.current_owner)
    ).filter(Flag.flag_number == flag_number).first()

    if not flag:
        raise FlagNotFound("Flag not found")

    history = ledger.capture_history(db, flag.id)

    return FlagDetail(
        flag=FlagOut.model_validate(flag),
        current_owner=serialize_user(flag.current_owner),
        capture_history=[serialize_capture_entry(c) for c in history]
    )
