"""
Capture API routes - recording that a user took a flag, and per-flag history.
"""

import time
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth_dependencies import get_current_user
from app.database import get_db
from app.errors import FlagNotFound
from app.models.flag import Flag
from app.models.user import User
from app.schemas import (
    CaptureCreate, CaptureHistoryList, FlagNumberResponse, serialize_capture_entry
)
from app.services import ledger
from app.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


@router.post("/api/captures", response_model=FlagNumberResponse, status_code=201)
def record_capture(body: CaptureCreate, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    """
    Record a capture of a flag by the caller.

    The caller becomes the flag's owner. Capturing a flag you already hold
    is rejected.
    """
    start_time = time.time()

    ledger.record_capture(
        db,
        flag_number=body.flag_number,
        captured_by_user_id=user.id,
        captured_at=body.captured_at,
        notes=body.notes,
        photo_url=body.photo_url
    )

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Capture recorded for flag #{}".format(body.flag_number),
        context={"user_id": user.id},
        extra_data={"duration_ms": round(duration_ms, 2)})

    return FlagNumberResponse(flag_number=body.flag_number)


@router.get("/api/captures/{flag_id}", response_model=CaptureHistoryList)
def list_flag_captures(flag_id: str, user: User = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    """Capture history of a flag looked up by its id, newest first."""
    if db.get(Flag, flag_id) is None:
        raise FlagNotFound("Flag not found")

    history = ledger.capture_history(db, flag_id)
    return CaptureHistoryList(captures=[serialize_capture_entry(c) for c in history])
