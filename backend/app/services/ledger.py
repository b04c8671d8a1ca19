"""
Ledger Service - ownership transfer operations over requests, flags and captures.

Each public function runs exactly one database transaction on the given
session: it commits on success and rolls back before raising, so a
failed call never leaves a partial change behind.

Ownership invariant maintained by every operation:
    flag.current_owner_id == capturer of the latest capture
    (by captured_at, then created_at), or flag.original_requester_id
    when the flag has no captures.

Concurrency:
- Request decisions use a conditional UPDATE (status = 'pending') so two
  admins deciding the same request cannot both win.
- Flag numbers come from the counters table (atomic increment) and are
  guarded by the unique constraint on flags.flag_number. A collision
  rolls the whole approval back and re-runs it, up to
  FLAG_APPROVAL_MAX_ATTEMPTS times.
- Capture insert/delete and the flag ownership update share one
  transaction, with the flag row locked where the store supports it.
"""

import time
from datetime import datetime
from typing import List, Optional
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.config import FLAG_APPROVAL_MAX_ATTEMPTS
from app.errors import (
    LedgerError, RequestNotFound, FlagNotFound, CaptureNotFound,
    DuplicatePendingRequest, RequestNotPending, SelfCaptureRejected,
    CaptureOutOfOrder, FlagNumberConflict
)
from app.models.capture import Capture
from app.models.counter import Counter, FLAG_NUMBER_COUNTER
from app.models.flag import Flag
from app.models.flag_request import (
    FlagRequest, STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED
)
from app.utils.datetime_utils import utcnow, to_naive_utc
from app.logging_config import get_logger, log_with_context

# Channel logger for ledger operations
logger = get_logger("ledger")


# ──────────────────────────────────────────────────────────────
# Flag requests
# ──────────────────────────────────────────────────────────────

def _has_pending_request(db: Session, user_id: str) -> bool:
    return db.query(FlagRequest.id).filter(
        FlagRequest.user_id == user_id,
        FlagRequest.status == STATUS_PENDING
    ).first() is not None


def submit_request(db: Session, user_id: str) -> FlagRequest:
    """
    Create a pending flag request for a user.

    Raises:
        DuplicatePendingRequest: the user already has a pending request.
            Also raised when a concurrent submit wins the partial unique
            index on (user_id) WHERE status = 'pending'.
    """
    if _has_pending_request(db, user_id):
        db.rollback()
        raise DuplicatePendingRequest("You already have a pending flag request")

    flag_request = FlagRequest(
        user_id=user_id,
        status=STATUS_PENDING,
        requested_at=utcnow()
    )
    db.add(flag_request)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicatePendingRequest("You already have a pending flag request")
    db.refresh(flag_request)

    log_with_context(logger, "INFO", "Flag request submitted",
        context={"flag_request_id": flag_request.id, "user_id": user_id})
    return flag_request


def _load_request(db: Session, request_id: str) -> FlagRequest:
    flag_request = db.query(FlagRequest).filter(
        FlagRequest.id == request_id
    ).with_for_update().first()
    if not flag_request:
        raise RequestNotFound("Request not found")
    if not flag_request.is_pending:
        raise RequestNotPending("Request is not pending")
    return flag_request


def _decide_request(db: Session, request_id: str, admin_id: str, new_status: str) -> None:
    """
    Move a request from pending to new_status inside the open transaction.

    The UPDATE only matches while the row is still pending, so of two
    concurrent decisions exactly one affects a row.
    """
    result = db.execute(
        update(FlagRequest)
        .where(FlagRequest.id == request_id, FlagRequest.status == STATUS_PENDING)
        .values(status=new_status, processed_at=utcnow(), processed_by_admin_id=admin_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise RequestNotPending("Request is not pending")


def _next_flag_number(db: Session) -> int:
    """
    Draw the next flag number from the counter.

    The increment is a single UPDATE, which row-locks the counter until
    the surrounding transaction ends. If the counter is missing or behind
    the highest existing flag number it is advanced past it, so numbers
    keep increasing even after flags are deleted.
    """
    result = db.execute(
        update(Counter)
        .where(Counter.name == FLAG_NUMBER_COUNTER)
        .values(value=Counter.value + 1)
        .execution_options(synchronize_session=False)
    )
    highest_existing = db.query(func.max(Flag.flag_number)).scalar() or 0

    if result.rowcount == 0:
        next_number = highest_existing + 1
        db.add(Counter(name=FLAG_NUMBER_COUNTER, value=next_number))
        db.flush()
        return next_number

    next_number = db.query(Counter.value).filter(
        Counter.name == FLAG_NUMBER_COUNTER
    ).scalar()
    if next_number <= highest_existing:
        next_number = highest_existing + 1
        db.execute(
            update(Counter)
            .where(Counter.name == FLAG_NUMBER_COUNTER)
            .values(value=next_number)
            .execution_options(synchronize_session=False)
        )
    return next_number


# Constraint names as reported by SQLite ("table.column") and PostgreSQL
# (default constraint names) when two approvals draw the same number.
FLAG_NUMBER_CONSTRAINTS = (
    "flags.flag_number",
    "counters.name",
    "flags_flag_number_key",
    "counters_pkey",
)


def _is_flag_number_collision(error: IntegrityError) -> bool:
    """True if the violated constraint guards flag numbering."""
    message = str(error.orig)
    return any(name in message for name in FLAG_NUMBER_CONSTRAINTS)


def _approve_once(db: Session, request_id: str, admin_id: str) -> int:
    flag_request = _load_request(db, request_id)
    requester_id = flag_request.user_id

    _decide_request(db, request_id, admin_id, STATUS_APPROVED)

    flag_number = _next_flag_number(db)
    db.add(Flag(
        flag_number=flag_number,
        current_owner_id=requester_id,
        original_requester_id=requester_id,
        created_at=utcnow()
    ))
    db.flush()
    return flag_number


def approve_request(db: Session, request_id: str, admin_id: str) -> int:
    """
    Approve a pending request and mint a flag for its requester.

    Args:
        db: Database session
        request_id: Request to approve
        admin_id: Admin making the decision

    Returns:
        The new flag's number

    Raises:
        RequestNotFound: no such request
        RequestNotPending: request was already approved or rejected
        FlagNumberConflict: every attempt collided on flag_number; nothing
            was changed and the caller may retry
    """
    start_time = time.time()

    for attempt_no in range(1, FLAG_APPROVAL_MAX_ATTEMPTS + 1):
        try:
            flag_number = _approve_once(db, request_id, admin_id)
            db.commit()
        except LedgerError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            if not _is_flag_number_collision(e):
                raise
            log_with_context(logger, "WARNING",
                "Flag number collision on approval attempt {}/{}".format(
                    attempt_no, FLAG_APPROVAL_MAX_ATTEMPTS),
                context={"flag_request_id": request_id, "admin_id": admin_id},
                extra_data={"error": str(e.orig)})
            continue
        except Exception:
            db.rollback()
            raise

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "INFO",
            "Flag request approved, minted flag #{}".format(flag_number),
            context={"flag_request_id": request_id, "admin_id": admin_id,
                     "flag_number": flag_number},
            extra_data={"duration_ms": round(duration_ms, 2), "attempts": attempt_no})
        return flag_number

    raise FlagNumberConflict(
        "Could not assign a flag number after {} attempts, please retry".format(
            FLAG_APPROVAL_MAX_ATTEMPTS))


def reject_request(db: Session, request_id: str, admin_id: str) -> None:
    """
    Reject a pending request. No flag is created.

    Raises:
        RequestNotFound, RequestNotPending
    """
    try:
        _load_request(db, request_id)
        _decide_request(db, request_id, admin_id, STATUS_REJECTED)
        db.commit()
    except Exception:
        db.rollback()
        raise

    log_with_context(logger, "INFO", "Flag request rejected",
        context={"flag_request_id": request_id, "admin_id": admin_id})


# ──────────────────────────────────────────────────────────────
# Captures
# ──────────────────────────────────────────────────────────────

def _clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


def record_capture(db: Session, flag_number: int, captured_by_user_id: str,
                   captured_at: datetime, notes: Optional[str] = None,
                   photo_url: Optional[str] = None) -> Capture:
    """
    Record a capture and hand the flag to the capturing user.

    captured_at is supplied by the caller and may lie in the past, but not
    before the capture that set the current owner.

    Raises:
        FlagNotFound: no flag with this number
        SelfCaptureRejected: the capturer already holds the flag
        CaptureOutOfOrder: captured_at precedes the flag's last capture
    """
    captured_at = to_naive_utc(captured_at)

    try:
        flag = db.query(Flag).filter(
            Flag.flag_number == flag_number
        ).with_for_update().first()
        if not flag:
            raise FlagNotFound("Flag not found")

        if flag.current_owner_id == captured_by_user_id:
            raise SelfCaptureRejected("You cannot capture your own flag")

        if flag.last_captured_at and captured_at < flag.last_captured_at:
            raise CaptureOutOfOrder(
                "Capture time is earlier than the flag's last capture ({})".format(
                    flag.last_captured_at.isoformat()))

        capture = Capture(
            flag_id=flag.id,
            captured_by_user_id=captured_by_user_id,
            captured_at=captured_at,
            notes=_clean_notes(notes),
            photo_url=photo_url or None,
            created_at=utcnow()
        )
        db.add(capture)

        previous_owner_id = flag.current_owner_id
        flag.current_owner_id = captured_by_user_id
        flag.last_captured_at = captured_at

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(capture)

    log_with_context(logger, "INFO", "Flag #{} captured".format(flag_number),
        context={"flag_id": flag.id, "capture_id": capture.id,
                 "user_id": captured_by_user_id},
        extra_data={"previous_owner_id": previous_owner_id,
                    "captured_at": captured_at.isoformat()})
    return capture


def latest_capture(db: Session, flag_id: str) -> Optional[Capture]:
    """Most recent capture of a flag by captured_at, then recording order."""
    return db.query(Capture).filter(
        Capture.flag_id == flag_id
    ).order_by(
        Capture.captured_at.desc(),
        Capture.created_at.desc()
    ).first()


def capture_history(db: Session, flag_id: str) -> List[Capture]:
    """All captures of a flag with their capturer loaded, newest first."""
    return db.query(Capture).options(
        joinedload(Capture.captured_by)
    ).filter(
        Capture.flag_id == flag_id
    ).order_by(
        Capture.captured_at.desc(),
        Capture.created_at.desc()
    ).all()


def recompute_ownership(db: Session, flag: Flag) -> None:
    """
    Reset a flag's owner and last_captured_at from its remaining captures.

    Does not commit; callers run it inside their own transaction.
    """
    previous = latest_capture(db, flag.id)
    if previous:
        flag.current_owner_id = previous.captured_by_user_id
        flag.last_captured_at = previous.captured_at
    else:
        flag.current_owner_id = flag.original_requester_id
        flag.last_captured_at = None


def delete_capture(db: Session, capture_id: str) -> None:
    """
    Delete a capture and revert its flag's ownership accordingly.

    Raises:
        CaptureNotFound
    """
    try:
        capture = db.query(Capture).filter(Capture.id == capture_id).first()
        if not capture:
            raise CaptureNotFound("Capture not found")

        flag = db.query(Flag).filter(Flag.id == capture.flag_id).with_for_update().one()

        db.delete(capture)
        db.flush()
        recompute_ownership(db, flag)
        db.commit()
    except Exception:
        db.rollback()
        raise

    log_with_context(logger, "INFO", "Capture deleted, flag #{} now held by {}".format(
            flag.flag_number, flag.current_owner_id),
        context={"capture_id": capture_id, "flag_id": flag.id})


# ──────────────────────────────────────────────────────────────
# Flags
# ──────────────────────────────────────────────────────────────

def delete_flag(db: Session, flag_id: str) -> None:
    """
    Delete a flag together with all of its captures.

    The flag's number stays consumed in the counter.

    Raises:
        FlagNotFound
    """
    try:
        flag = db.query(Flag).filter(Flag.id == flag_id).first()
        if not flag:
            raise FlagNotFound("Flag not found")
        flag_number = flag.flag_number
        capture_count = len(flag.captures)
        db.delete(flag)
        db.commit()
    except Exception:
        db.rollback()
        raise

    log_with_context(logger, "INFO", "Flag #{} deleted".format(flag_number),
        context={"flag_id": flag_id},
        extra_data={"captures_deleted": capture_count})
