"""
Migration tests: the Alembic schema behaves like the ORM metadata schema.
"""

import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.orm import sessionmaker

from app.database import set_sqlite_pragma
from app.errors import DuplicatePendingRequest
from app.models.user import ROLE_ADMIN
from app.services import ledger, user_service

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")


@pytest.fixture
def migrated_engine(tmp_path):
    """SQLite file database built by `alembic upgrade head`."""
    url = "sqlite:///{}".format(tmp_path / "migrated.db")
    cfg = Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")

    engine = create_engine(url)
    event.listen(engine, "connect", set_sqlite_pragma)
    yield engine
    engine.dispose()


@pytest.fixture
def migrated_db(migrated_engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=migrated_engine)()
    yield session
    session.close()


def test_upgrade_creates_all_tables(migrated_engine):
    tables = set(inspect(migrated_engine).get_table_names())

    assert {"users", "user_sessions", "flag_requests", "flags", "captures", "counters"} <= tables


def test_user_can_request_again_after_decision(migrated_db):
    admin = user_service.create_user(migrated_db, "Admin", "admin@example.com", ROLE_ADMIN)
    alice = user_service.create_user(migrated_db, "Alice", "alice@example.com")

    first = ledger.submit_request(migrated_db, alice.id)
    assert ledger.approve_request(migrated_db, first.id, admin.id) == 1

    second = ledger.submit_request(migrated_db, alice.id)
    assert second.status == "pending"

    ledger.reject_request(migrated_db, second.id, admin.id)
    third = ledger.submit_request(migrated_db, alice.id)
    assert third.id not in (first.id, second.id)


def test_second_pending_request_still_blocked(migrated_db):
    alice = user_service.create_user(migrated_db, "Alice", "alice@example.com")
    ledger.submit_request(migrated_db, alice.id)

    with pytest.raises(DuplicatePendingRequest):
        ledger.submit_request(migrated_db, alice.id)
