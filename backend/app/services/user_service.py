"""
User Service - user accounts and session tokens.

Sign-up and sign-in belong to the auth provider. These helpers create the
rows the provider would create, for seeding and tests, and look sessions
up for request authentication.
"""

import secrets
from datetime import timedelta
from typing import Optional
from sqlalchemy.orm import Session, joinedload

from app.config import SESSION_TTL_DAYS
from app.models.user import User, UserSession, ROLE_USER, ROLE_ADMIN
from app.utils.datetime_utils import utcnow
from app.logging_config import get_logger, log_with_context

logger = get_logger("auth")

VALID_ROLES = {ROLE_USER, ROLE_ADMIN}


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(db: Session, name: str, email: str, role: str = ROLE_USER) -> User:
    """Create a user; the email is stored lowercased."""
    if role not in VALID_ROLES:
        raise ValueError("Unknown role: {}".format(role))

    user = User(name=name.strip(), email=email.strip().lower(), role=role, created_at=utcnow())
    db.add(user)
    db.commit()
    db.refresh(user)

    log_with_context(logger, "INFO", "Created user {}".format(user.email),
        context={"user_id": user.id}, extra_data={"role": role})
    return user


def create_session(db: Session, user_id: str, ttl_days: int = SESSION_TTL_DAYS) -> str:
    """Issue a new session token for a user and return it."""
    now = utcnow()
    token = secrets.token_urlsafe(32)
    db.add(UserSession(
        token=token,
        user_id=user_id,
        created_at=now,
        expires_at=now + timedelta(days=ttl_days)
    ))
    db.commit()
    return token


def get_user_for_token(db: Session, token: str) -> Optional[User]:
    """Resolve a bearer token to its user; None if unknown or expired."""
    session = db.query(UserSession).options(
        joinedload(UserSession.user)
    ).filter(UserSession.token == token).first()

    if not session:
        return None
    if session.expires_at <= utcnow():
        log_with_context(logger, "INFO", "Rejected expired session",
            context={"user_id": session.user_id})
        return None
    return session.user
