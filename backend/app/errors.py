"""
Ledger error hierarchy.

Every failure of a ledger operation is raised as a LedgerError subclass
carrying a stable code, a category and the HTTP status the API answers
with. Operations raise before or during their transaction and roll back,
so a raised error always means nothing was changed.

Categories:
- not_found: the referenced request/flag/capture does not exist
- invalid_state: the operation is not allowed in the current state
- conflict: lost a race with a concurrent writer; safe to retry
- upstream_failure: a backing service (object storage) is unavailable
"""

CATEGORY_NOT_FOUND = "not_found"
CATEGORY_INVALID_STATE = "invalid_state"
CATEGORY_CONFLICT = "conflict"
CATEGORY_UPSTREAM = "upstream_failure"


class LedgerError(Exception):
    """Base exception for all flag ledger errors."""

    code = "LEDGER_ERROR"
    category = CATEGORY_INVALID_STATE
    http_status = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        """Convert to the REST error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category,
                "retryable": self.retryable,
            }
        }


# ── Not found ────────────────────────────────────────────────

class NotFoundError(LedgerError):
    category = CATEGORY_NOT_FOUND
    http_status = 404


class RequestNotFound(NotFoundError):
    code = "REQUEST_NOT_FOUND"


class FlagNotFound(NotFoundError):
    code = "FLAG_NOT_FOUND"


class CaptureNotFound(NotFoundError):
    code = "CAPTURE_NOT_FOUND"


# ── Invalid state ────────────────────────────────────────────

class InvalidStateError(LedgerError):
    category = CATEGORY_INVALID_STATE
    http_status = 409


class DuplicatePendingRequest(InvalidStateError):
    code = "DUPLICATE_PENDING_REQUEST"


class RequestNotPending(InvalidStateError):
    code = "REQUEST_NOT_PENDING"


class SelfCaptureRejected(InvalidStateError):
    code = "SELF_CAPTURE_REJECTED"


class CaptureOutOfOrder(InvalidStateError):
    """captured_at is earlier than the capture that set the current owner."""
    code = "CAPTURE_OUT_OF_ORDER"


class InvalidPhoto(InvalidStateError):
    code = "INVALID_PHOTO"
    http_status = 400


# ── Conflict ─────────────────────────────────────────────────

class FlagNumberConflict(LedgerError):
    """Approval kept colliding on flag_number; the caller may retry."""
    code = "FLAG_NUMBER_CONFLICT"
    category = CATEGORY_CONFLICT
    http_status = 409
    retryable = True


# ── Upstream ─────────────────────────────────────────────────

class PhotoStorageUnavailable(LedgerError):
    code = "PHOTO_STORAGE_UNAVAILABLE"
    category = CATEGORY_UPSTREAM
    http_status = 503
