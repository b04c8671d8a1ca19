"""
Tests for the ownership ledger: requests, approvals, captures and deletions.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.errors import (
    CaptureNotFound, CaptureOutOfOrder, DuplicatePendingRequest, FlagNotFound,
    FlagNumberConflict, RequestNotFound, RequestNotPending, SelfCaptureRejected
)
from app.models.capture import Capture
from app.models.counter import Counter, FLAG_NUMBER_COUNTER
from app.models.flag import Flag
from app.models.flag_request import FlagRequest, STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED
from app.services import ledger

T1 = datetime(2024, 1, 1, 12, 0, 0)
T2 = datetime(2024, 1, 2, 12, 0, 0)
T3 = datetime(2024, 1, 3, 12, 0, 0)


def mint_flag(db, owner_id, admin_id):
    """Submit and approve a request; return the new flag number."""
    flag_request = ledger.submit_request(db, owner_id)
    return ledger.approve_request(db, flag_request.id, admin_id)


def get_flag(db, flag_number):
    db.expire_all()
    return db.query(Flag).filter(Flag.flag_number == flag_number).one()


def assert_ownership_invariant(db):
    """current_owner_id matches the latest capture, or the requester when there is none."""
    db.expire_all()
    for flag in db.query(Flag).all():
        latest = ledger.latest_capture(db, flag.id)
        if latest:
            assert flag.current_owner_id == latest.captured_by_user_id
            assert flag.last_captured_at == latest.captured_at
        else:
            assert flag.current_owner_id == flag.original_requester_id
            assert flag.last_captured_at is None


# ============================================================================
# Flag requests
# ============================================================================

def test_submit_request_creates_pending(db, alice):
    flag_request = ledger.submit_request(db, alice.id)

    assert flag_request.status == STATUS_PENDING
    assert flag_request.user_id == alice.id
    assert flag_request.requested_at is not None
    assert flag_request.processed_at is None
    assert flag_request.processed_by_admin_id is None


def test_submit_request_rejects_second_pending(db, alice):
    ledger.submit_request(db, alice.id)

    with pytest.raises(DuplicatePendingRequest):
        ledger.submit_request(db, alice.id)

    assert db.query(FlagRequest).filter(FlagRequest.user_id == alice.id).count() == 1


def test_submit_request_allowed_after_decision(db, alice, admin):
    first = ledger.submit_request(db, alice.id)
    ledger.reject_request(db, first.id, admin.id)

    second = ledger.submit_request(db, alice.id)

    assert second.status == STATUS_PENDING
    assert second.id != first.id


def test_pending_uniqueness_enforced_by_store(db, alice):
    """The partial unique index catches writers that skip the pending check."""
    db.add(FlagRequest(user_id=alice.id, status=STATUS_PENDING))
    db.commit()

    db.add(FlagRequest(user_id=alice.id, status=STATUS_PENDING))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

    db.add(FlagRequest(user_id=alice.id, status=STATUS_APPROVED))
    db.commit()


def test_pending_requests_of_different_users_are_independent(db, alice, bob):
    ledger.submit_request(db, alice.id)
    ledger.submit_request(db, bob.id)

    assert db.query(FlagRequest).filter(FlagRequest.status == STATUS_PENDING).count() == 2


# ============================================================================
# Approval and rejection
# ============================================================================

def test_approve_request_mints_first_flag(db, alice, admin):
    flag_request = ledger.submit_request(db, alice.id)

    flag_number = ledger.approve_request(db, flag_request.id, admin.id)

    assert flag_number == 1
    flag = get_flag(db, 1)
    assert flag.current_owner_id == alice.id
    assert flag.original_requester_id == alice.id
    assert flag.last_captured_at is None

    flag_request = db.get(FlagRequest, flag_request.id)
    assert flag_request.status == STATUS_APPROVED
    assert flag_request.processed_by_admin_id == admin.id
    assert flag_request.processed_at is not None


def test_approve_assigns_sequential_numbers(db, alice, bob, carol, admin):
    numbers = [mint_flag(db, player.id, admin.id) for player in (alice, bob, carol)]

    assert numbers == [1, 2, 3]


def test_approve_twice_fails_without_side_effects(db, alice, admin):
    flag_request = ledger.submit_request(db, alice.id)
    ledger.approve_request(db, flag_request.id, admin.id)
    db.expire_all()
    processed_at = db.get(FlagRequest, flag_request.id).processed_at

    with pytest.raises(RequestNotPending):
        ledger.approve_request(db, flag_request.id, admin.id)

    db.expire_all()
    assert db.query(Flag).count() == 1
    assert db.get(FlagRequest, flag_request.id).processed_at == processed_at


def test_reject_request(db, alice, admin):
    flag_request = ledger.submit_request(db, alice.id)

    ledger.reject_request(db, flag_request.id, admin.id)

    db.expire_all()
    flag_request = db.get(FlagRequest, flag_request.id)
    assert flag_request.status == STATUS_REJECTED
    assert flag_request.processed_by_admin_id == admin.id
    assert flag_request.processed_at is not None
    assert db.query(Flag).count() == 0


def test_rejected_request_cannot_be_approved_or_rejected_again(db, alice, admin):
    flag_request = ledger.submit_request(db, alice.id)
    ledger.reject_request(db, flag_request.id, admin.id)

    with pytest.raises(RequestNotPending):
        ledger.approve_request(db, flag_request.id, admin.id)
    with pytest.raises(RequestNotPending):
        ledger.reject_request(db, flag_request.id, admin.id)

    db.expire_all()
    assert db.get(FlagRequest, flag_request.id).status == STATUS_REJECTED
    assert db.query(Flag).count() == 0


def test_approved_request_cannot_be_rejected(db, alice, admin):
    flag_request = ledger.submit_request(db, alice.id)
    ledger.approve_request(db, flag_request.id, admin.id)

    with pytest.raises(RequestNotPending):
        ledger.reject_request(db, flag_request.id, admin.id)

    db.expire_all()
    assert db.get(FlagRequest, flag_request.id).status == STATUS_APPROVED


def test_approve_and_reject_unknown_request(db, admin):
    with pytest.raises(RequestNotFound):
        ledger.approve_request(db, "missing", admin.id)
    with pytest.raises(RequestNotFound):
        ledger.reject_request(db, "missing", admin.id)


def test_concurrent_decision_loser_sees_not_pending(db, alice, admin, session_factory):
    """A decision that lands after another admin's is refused by the status guard."""
    flag_request = ledger.submit_request(db, alice.id)

    other_admin_session = session_factory()
    try:
        ledger.reject_request(other_admin_session, flag_request.id, admin.id)
    finally:
        other_admin_session.close()

    with pytest.raises(RequestNotPending):
        ledger._decide_request(db, flag_request.id, admin.id, STATUS_APPROVED)
    db.rollback()

    db.expire_all()
    assert db.get(FlagRequest, flag_request.id).status == STATUS_REJECTED


# ============================================================================
# Flag numbering
# ============================================================================

def test_flag_numbers_not_reused_after_delete(db, alice, bob, admin):
    mint_flag(db, alice.id, admin.id)
    second = mint_flag(db, bob.id, admin.id)
    ledger.delete_flag(db, get_flag(db, second).id)

    third = mint_flag(db, alice.id, admin.id)

    assert third == 3


def test_counter_catches_up_with_existing_flags(db, alice, bob, admin):
    """Flags inserted outside the ledger never lead to a duplicate number."""
    db.add(Flag(flag_number=5, current_owner_id=bob.id, original_requester_id=bob.id))
    db.commit()

    assert mint_flag(db, alice.id, admin.id) == 6
    db.expire_all()
    assert db.get(Counter, FLAG_NUMBER_COUNTER).value == 6


def test_flag_number_conflict_leaves_state_unchanged(db, alice, bob, admin, monkeypatch):
    mint_flag(db, bob.id, admin.id)
    flag_request = ledger.submit_request(db, alice.id)
    calls = []

    def colliding_number(session):
        calls.append(1)
        return 1

    monkeypatch.setattr(ledger, "_next_flag_number", colliding_number)

    with pytest.raises(FlagNumberConflict) as exc_info:
        ledger.approve_request(db, flag_request.id, admin.id)

    assert exc_info.value.retryable is True
    assert len(calls) == ledger.FLAG_APPROVAL_MAX_ATTEMPTS
    db.expire_all()
    flag_request = db.get(FlagRequest, flag_request.id)
    assert flag_request.status == STATUS_PENDING
    assert flag_request.processed_at is None
    assert db.query(Flag).count() == 1


def test_flag_number_conflict_retries_then_succeeds(db, alice, bob, admin, monkeypatch):
    mint_flag(db, bob.id, admin.id)
    flag_request = ledger.submit_request(db, alice.id)
    real_next_flag_number = ledger._next_flag_number
    calls = []

    def collide_once(session):
        calls.append(1)
        if len(calls) == 1:
            return 1
        return real_next_flag_number(session)

    monkeypatch.setattr(ledger, "_next_flag_number", collide_once)

    assert ledger.approve_request(db, flag_request.id, admin.id) == 2
    assert len(calls) == 2


def test_unrelated_integrity_error_is_not_retried(db, alice, monkeypatch):
    flag_request = ledger.submit_request(db, alice.id)
    real_approve_once = ledger._approve_once
    calls = []

    def counting_approve_once(session, request_id, admin_id):
        calls.append(1)
        return real_approve_once(session, request_id, admin_id)

    monkeypatch.setattr(ledger, "_approve_once", counting_approve_once)

    # processed_by_admin_id must reference an existing user
    with pytest.raises(IntegrityError):
        ledger.approve_request(db, flag_request.id, "no-such-admin")

    assert len(calls) == 1
    db.expire_all()
    assert db.get(FlagRequest, flag_request.id).status == STATUS_PENDING
    assert db.query(Flag).count() == 0


# ============================================================================
# Captures
# ============================================================================

def test_capture_transfers_ownership(db, alice, bob, admin):
    flag_number = mint_flag(db, alice.id, admin.id)

    capture = ledger.record_capture(db, flag_number, bob.id, T1, notes="  found it  ")

    flag = get_flag(db, flag_number)
    assert flag.current_owner_id == bob.id
    assert flag.original_requester_id == alice.id
    assert flag.last_captured_at == T1
    assert capture.notes == "found it"
    assert capture.flag_id == flag.id


def test_blank_notes_and_photo_are_stored_as_null(db, alice, bob, admin):
    flag_number = mint_flag(db, alice.id, admin.id)

    capture = ledger.record_capture(db, flag_number, bob.id, T1, notes="   ", photo_url="")

    assert capture.notes is None
    assert capture.photo_url is None


def test_self_capture_rejected(db, alice, bob, admin):
    flag_number = mint_flag(db, alice.id, admin.id)

    with pytest.raises(SelfCaptureRejected):
        ledger.record_capture(db, flag_number, alice.id, T1)

    ledger.record_capture(db, flag_number, bob.id, T1)
    with pytest.raises(SelfCaptureRejected):
        ledger.record_capture(db, flag_number, bob.id, T2)

    assert db.query(Capture).count() == 1


def test_original_requester_can_recapture(db, alice, bob, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    ledger.record_capture(db, flag_number, bob.id, T1)

    ledger.record_capture(db, flag_number, alice.id, T2)

    assert get_flag(db, flag_number).current_owner_id == alice.id


def test_capture_unknown_flag(db, bob):
    with pytest.raises(FlagNotFound):
        ledger.record_capture(db, 99, bob.id, T1)


def test_backdated_capture_accepted(db, alice, bob, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    last_year = datetime.now(timezone.utc) - timedelta(days=365)

    ledger.record_capture(db, flag_number, bob.id, last_year)

    assert get_flag(db, flag_number).last_captured_at == last_year.replace(tzinfo=None)


def test_capture_before_last_capture_rejected(db, alice, bob, carol, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    ledger.record_capture(db, flag_number, bob.id, T2)

    with pytest.raises(CaptureOutOfOrder):
        ledger.record_capture(db, flag_number, carol.id, T1)

    flag = get_flag(db, flag_number)
    assert flag.current_owner_id == bob.id
    assert db.query(Capture).count() == 1


def test_capture_time_normalized_to_utc(db, alice, bob, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    plus_two = timezone(timedelta(hours=2))

    ledger.record_capture(db, flag_number, bob.id, datetime(2024, 1, 1, 14, 0, tzinfo=plus_two))

    assert get_flag(db, flag_number).last_captured_at == datetime(2024, 1, 1, 12, 0)


def test_capture_scenario(db, alice, bob, admin):
    """U1 requests, admin approves, U2 captures, U1 recaptures, U2 cannot self-capture after losing."""
    flag_request = ledger.submit_request(db, alice.id)
    assert ledger.approve_request(db, flag_request.id, admin.id) == 1

    ledger.record_capture(db, 1, bob.id, datetime(2024, 1, 1))
    flag = get_flag(db, 1)
    assert flag.current_owner_id == bob.id
    assert flag.last_captured_at == datetime(2024, 1, 1)

    with pytest.raises(SelfCaptureRejected):
        ledger.record_capture(db, 1, bob.id, datetime(2024, 1, 2))

    ledger.record_capture(db, 1, alice.id, datetime(2024, 1, 2))
    assert get_flag(db, 1).current_owner_id == alice.id
    assert_ownership_invariant(db)


# ============================================================================
# Capture deletion
# ============================================================================

def test_delete_capture_reverts_ownership_step_by_step(db, alice, bob, carol, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    first = ledger.record_capture(db, flag_number, bob.id, T1)
    second = ledger.record_capture(db, flag_number, carol.id, T2)

    ledger.delete_capture(db, second.id)

    flag = get_flag(db, flag_number)
    assert flag.current_owner_id == bob.id
    assert flag.last_captured_at == T1

    ledger.delete_capture(db, first.id)

    flag = get_flag(db, flag_number)
    assert flag.current_owner_id == alice.id
    assert flag.last_captured_at is None
    assert_ownership_invariant(db)


def test_delete_older_capture_keeps_current_owner(db, alice, bob, carol, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    first = ledger.record_capture(db, flag_number, bob.id, T1)
    ledger.record_capture(db, flag_number, carol.id, T2)

    ledger.delete_capture(db, first.id)

    flag = get_flag(db, flag_number)
    assert flag.current_owner_id == carol.id
    assert flag.last_captured_at == T2
    assert_ownership_invariant(db)


def test_delete_capture_with_equal_timestamps_uses_recording_order(db, alice, bob, carol, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    ledger.record_capture(db, flag_number, bob.id, T1)
    ledger.record_capture(db, flag_number, carol.id, T1)
    third = ledger.record_capture(db, flag_number, alice.id, T3)

    ledger.delete_capture(db, third.id)

    assert get_flag(db, flag_number).current_owner_id == carol.id
    assert_ownership_invariant(db)


def test_delete_unknown_capture(db):
    with pytest.raises(CaptureNotFound):
        ledger.delete_capture(db, "missing")


def test_delete_capture_only_touches_its_flag(db, alice, bob, carol, admin):
    first_flag = mint_flag(db, alice.id, admin.id)
    second_flag = mint_flag(db, bob.id, admin.id)
    capture = ledger.record_capture(db, first_flag, carol.id, T1)
    ledger.record_capture(db, second_flag, carol.id, T2)

    ledger.delete_capture(db, capture.id)

    assert get_flag(db, first_flag).current_owner_id == alice.id
    assert get_flag(db, second_flag).current_owner_id == carol.id
    assert_ownership_invariant(db)


# ============================================================================
# Flag deletion
# ============================================================================

def test_delete_flag_cascades_to_captures(db, alice, bob, carol, admin):
    flag_number = mint_flag(db, alice.id, admin.id)
    other_number = mint_flag(db, bob.id, admin.id)
    ledger.record_capture(db, flag_number, bob.id, T1)
    ledger.record_capture(db, flag_number, carol.id, T2)
    ledger.record_capture(db, other_number, carol.id, T1)

    ledger.delete_flag(db, get_flag(db, flag_number).id)

    db.expire_all()
    assert db.query(Flag).filter(Flag.flag_number == flag_number).count() == 0
    assert db.query(Capture).count() == 1


def test_delete_unknown_flag(db):
    with pytest.raises(FlagNotFound):
        ledger.delete_flag(db, "missing")
