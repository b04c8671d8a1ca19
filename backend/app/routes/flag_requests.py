"""
Flag request API routes - users asking for a new physical flag.

Provides endpoints for:
- Submitting a flag request (at most one pending per user)
- Listing the caller's own requests, newest first
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth_dependencies import get_current_user
from app.database import get_db
from app.models.flag_request import FlagRequest
from app.models.user import User
from app.schemas import FlagRequestEnvelope, FlagRequestList, FlagRequestOut
from app.services import ledger
from app.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


@router.post("/api/flag-requests", response_model=FlagRequestEnvelope, status_code=201)
def submit_flag_request(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Submit a request for a new flag."""
    flag_request = ledger.submit_request(db, user.id)
    return FlagRequestEnvelope(request=FlagRequestOut.model_validate(flag_request))


@router.get("/api/flag-requests", response_model=FlagRequestList)
def list_my_requests(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """List the caller's flag requests, newest first."""
    requests = db.query(FlagRequest).filter(
        FlagRequest.user_id == user.id
    ).order_by(FlagRequest.requested_at.desc()).all()

    log_with_context(logger, "DEBUG", "Listed {} flag requests".format(len(requests)),
        context={"user_id": user.id})

    return FlagRequestList(requests=[FlagRequestOut.model_validate(r) for r in requests])
