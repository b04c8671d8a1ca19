"""
Flag model - a physical, numbered flag and its current holder.

A flag is minted when an admin approves a request. Its number is drawn
from the flag_number counter and is never reused, even after deletion.
"""

import uuid
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.datetime_utils import utcnow


class Flag(Base):
    """
    SQLAlchemy model for the flags table.

    current_owner_id always equals the capturer of the latest capture,
    or original_requester_id when the flag has never been captured.
    """
    __tablename__ = "flags"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique flag identifier")
    flag_number = Column(Integer, nullable=False, unique=True,
                         doc="Sequential public number printed on the flag")
    current_owner_id = Column(String(36), ForeignKey("users.id"), nullable=False,
                              doc="User currently holding the flag")
    original_requester_id = Column(String(36), ForeignKey("users.id"), nullable=False,
                                   doc="User whose request minted the flag (immutable)")
    created_at = Column(DateTime, default=utcnow,
                        doc="When the flag was minted")
    last_captured_at = Column(DateTime, nullable=True,
                              doc="captured_at of the capture that set the current owner")

    current_owner = relationship("User", foreign_keys=[current_owner_id])
    original_requester = relationship("User", foreign_keys=[original_requester_id])
    captures = relationship("Capture", back_populates="flag",
                            cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_flags_current_owner_id", "current_owner_id"),
        Index("ix_flags_original_requester_id", "original_requester_id"),
    )

    def __repr__(self):
        return f"<Flag(number={self.flag_number}, owner={self.current_owner_id})>"
