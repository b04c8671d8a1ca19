"""
User model - players of the flag capture game.

Accounts are created by the external auth provider; this table mirrors
the fields the game needs to join user info into listings, plus the
per-user role that the authorization policy checks.
"""

import uuid
from sqlalchemy import Column, Text, DateTime, String, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.datetime_utils import utcnow

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base):
    """
    SQLAlchemy model for the users table.

    role is either "user" or "admin"; admin rights come from this column,
    never from a configured email address.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique user identifier")
    name = Column(Text, nullable=False,
                  doc="Display name")
    email = Column(String(320), nullable=False, unique=True,
                   doc="Login email, unique per user")
    role = Column(String(16), nullable=False, default=ROLE_USER,
                  doc="Authorization role: user | admin")
    created_at = Column(DateTime, default=utcnow,
                        doc="Timestamp when the account was created")

    sessions = relationship("UserSession", back_populates="user",
                            cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class UserSession(Base):
    """
    SQLAlchemy model for the user_sessions table.

    Opaque bearer tokens issued by the auth provider. The API only looks
    tokens up and checks expiry.
    """
    __tablename__ = "user_sessions"

    token = Column(String(128), primary_key=True,
                   doc="Opaque session token sent as a Bearer credential")
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
                     doc="Owner of the session")
    created_at = Column(DateTime, default=utcnow,
                        doc="When the session was issued")
    expires_at = Column(DateTime, nullable=False,
                        doc="Session is rejected at or after this instant (naive UTC)")

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index("ix_user_sessions_user_id", "user_id"),
    )

    def __repr__(self):
        return f"<UserSession(user={self.user_id}, expires_at={self.expires_at})>"
