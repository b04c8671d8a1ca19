"""
Pydantic schemas for API request and response bodies.

Route handlers never return ORM objects or ad-hoc dicts; every payload is
one of the models below, built by the serialize_* helpers.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from app.models.capture import Capture
from app.models.flag import Flag
from app.models.flag_request import FlagRequest
from app.models.user import User


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ── Users ────────────────────────────────────────────────────

class UserSummary(ORMModel):
    id: str
    name: str
    email: str


class MeResponse(BaseModel):
    user: UserSummary
    role: str
    is_admin: bool


# ── Flag requests ────────────────────────────────────────────

class FlagRequestOut(ORMModel):
    id: str
    user_id: str
    status: str
    requested_at: datetime
    processed_at: Optional[datetime] = None
    processed_by_admin_id: Optional[str] = None


class AdminFlagRequestOut(FlagRequestOut):
    requested_by: Optional[UserSummary] = None


class FlagRequestEnvelope(BaseModel):
    request: FlagRequestOut


class FlagRequestList(BaseModel):
    requests: List[FlagRequestOut]


class AdminFlagRequestList(BaseModel):
    requests: List[AdminFlagRequestOut]


# ── Flags ────────────────────────────────────────────────────

class FlagOut(ORMModel):
    id: str
    flag_number: int
    current_owner_id: str
    original_requester_id: str
    created_at: datetime
    last_captured_at: Optional[datetime] = None


class AdminFlagOut(FlagOut):
    current_owner: Optional[UserSummary] = None


class FlagList(BaseModel):
    flags: List[FlagOut]


class AdminFlagList(BaseModel):
    flags: List[AdminFlagOut]


# ── Captures ─────────────────────────────────────────────────

class CaptureCreate(BaseModel):
    """Body of POST /api/captures."""
    flag_number: int = Field(..., ge=1, description="Number printed on the captured flag")
    captured_at: datetime = Field(..., description="When the capture happened (ISO 8601)")
    notes: Optional[str] = Field(None, max_length=2000, description="Optional capture notes")
    photo_url: Optional[str] = Field(None, max_length=2048, description="URL returned by POST /api/photos")


class CaptureOut(ORMModel):
    id: str
    flag_id: str
    captured_by_user_id: str
    captured_at: datetime
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: datetime


class CaptureHistoryEntry(CaptureOut):
    captured_by: Optional[UserSummary] = None


class CaptureHistoryList(BaseModel):
    captures: List[CaptureHistoryEntry]


class AdminCaptureOut(CaptureHistoryEntry):
    flag_number: Optional[int] = None


class AdminCaptureList(BaseModel):
    captures: List[AdminCaptureOut]


class FlagDetail(BaseModel):
    flag: FlagOut
    current_owner: Optional[UserSummary] = None
    capture_history: List[CaptureHistoryEntry]


# ── Misc ─────────────────────────────────────────────────────

class FlagNumberResponse(BaseModel):
    flag_number: int


class SuccessResponse(BaseModel):
    success: bool = True


class Stats(BaseModel):
    flags_owned: int
    total_captures: int
    flags_requested: int


class StatsResponse(BaseModel):
    stats: Stats


class PhotoUploadResponse(BaseModel):
    photo_url: str


# ── Serializers ──────────────────────────────────────────────

def serialize_user(user: Optional[User]) -> Optional[UserSummary]:
    return UserSummary.model_validate(user) if user else None


def serialize_admin_request(flag_request: FlagRequest) -> AdminFlagRequestOut:
    return AdminFlagRequestOut(
        **FlagRequestOut.model_validate(flag_request).model_dump(),
        requested_by=serialize_user(flag_request.user)
    )


def serialize_admin_flag(flag: Flag) -> AdminFlagOut:
    return AdminFlagOut(
        **FlagOut.model_validate(flag).model_dump(),
        current_owner=serialize_user(flag.current_owner)
    )


def serialize_capture_entry(capture: Capture) -> CaptureHistoryEntry:
    return CaptureHistoryEntry(
        **CaptureOut.model_validate(capture).model_dump(),
        captured_by=serialize_user(capture.captured_by)
    )


def serialize_admin_capture(capture: Capture) -> AdminCaptureOut:
    return AdminCaptureOut(
        **CaptureOut.model_validate(capture).model_dump(),
        captured_by=serialize_user(capture.captured_by),
        flag_number=capture.flag.flag_number if capture.flag else None
    )
