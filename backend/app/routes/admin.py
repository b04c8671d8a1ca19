"""
Admin API routes - deciding requests and moderating flags and captures.

Every endpoint requires a user whose role grants admin rights.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload

from app.auth_dependencies import require_admin
from app.database import get_db
from app.models.capture import Capture
from app.models.flag import Flag
from app.models.flag_request import FlagRequest
from app.models.user import User
from app.schemas import (
    AdminFlagRequestList, AdminFlagList, AdminCaptureList,
    FlagNumberResponse, SuccessResponse,
    serialize_admin_request, serialize_admin_flag, serialize_admin_capture
)
from app.services import ledger
from app.logging_config import get_logger, log_with_context

router = APIRouter(prefix="/api/admin")
logger = get_logger("http")


@router.get("/flag-requests", response_model=AdminFlagRequestList)
def list_all_requests(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """All flag requests with requester info, newest first."""
    requests = db.query(FlagRequest).options(
        joinedload(FlagRequest.user)
    ).order_by(FlagRequest.requested_at.desc()).all()
    return AdminFlagRequestList(requests=[serialize_admin_request(r) for r in requests])


@router.post("/flag-requests/{request_id}/approve", response_model=FlagNumberResponse)
def approve_request(request_id: str, admin: User = Depends(require_admin),
                    db: Session = Depends(get_db)):
    """Approve a pending request and mint the next flag for its requester."""
    flag_number = ledger.approve_request(db, request_id, admin.id)
    return FlagNumberResponse(flag_number=flag_number)


@router.post("/flag-requests/{request_id}/reject", response_model=SuccessResponse)
def reject_request(request_id: str, admin: User = Depends(require_admin),
                   db: Session = Depends(get_db)):
    """Reject a pending request."""
    ledger.reject_request(db, request_id, admin.id)
    return SuccessResponse()


@router.get("/flags", response_model=AdminFlagList)
def list_all_flags(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """All flags with their current owner, highest number first."""
    flags = db.query(Flag).options(
        joinedload(Flag.current_owner)
    ).order_by(Flag.flag_number.desc()).all()
    return AdminFlagList(flags=[serialize_admin_flag(f) for f in flags])


@router.delete("/flags/{flag_id}", response_model=SuccessResponse)
def delete_flag(flag_id: str, admin: User = Depends(require_admin),
                db: Session = Depends(get_db)):
    """Delete a flag and all of its captures."""
    ledger.delete_flag(db, flag_id)
    log_with_context(logger, "INFO", "Flag {} deleted by admin".format(flag_id),
        context={"flag_id": flag_id, "admin_id": admin.id})
    return SuccessResponse()


@router.get("/captures", response_model=AdminCaptureList)
def list_all_captures(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """All captures with capturer and flag number, newest first."""
    captures = db.query(Capture).options(
        joinedload(Capture.captured_by),
        joinedload(Capture.flag)
    ).order_by(
        Capture.captured_at.desc(),
        Capture.created_at.desc()
    ).all()
    return AdminCaptureList(captures=[serialize_admin_capture(c) for c in captures])


@router.delete("/captures/{capture_id}", response_model=SuccessResponse)
def delete_capture(capture_id: str, admin: User = Depends(require_admin),
                   db: Session = Depends(get_db)):
    """Delete a capture; the flag reverts to its previous holder."""
    ledger.delete_capture(db, capture_id)
    log_with_context(logger, "INFO", "Capture {} deleted by admin".format(capture_id),
        context={"capture_id": capture_id, "admin_id": admin.id})
    return SuccessResponse()
