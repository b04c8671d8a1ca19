"""
Shared pytest configuration.

Every test gets a fresh in-memory SQLite database. StaticPool keeps a
single connection so the schema survives across sessions, and the API's
get_db dependency is overridden to use the same engine.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from collections import namedtuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db, set_sqlite_pragma
from app.main import app
from app.models.user import ROLE_ADMIN, ROLE_USER
from app.services import user_service

Player = namedtuple("Player", ["id", "headers"])


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", set_sqlite_pragma)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Database session for setting up and inspecting state."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    """TestClient whose requests use the test database."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_player(db, name, role=ROLE_USER):
    user = user_service.create_user(db, name, f"{name.lower()}@example.com", role)
    token = user_service.create_session(db, user.id)
    return Player(id=user.id, headers={"Authorization": f"Bearer {token}"})


@pytest.fixture
def admin(db):
    return make_player(db, "Admin", ROLE_ADMIN)


@pytest.fixture
def alice(db):
    return make_player(db, "Alice")


@pytest.fixture
def bob(db):
    return make_player(db, "Bob")


@pytest.fixture
def carol(db):
    return make_player(db, "Carol")
