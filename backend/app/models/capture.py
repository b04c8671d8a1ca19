"""
Capture model - one transfer of a flag to a new holder.

Captures are immutable once recorded; admins may delete them, which
reverts the flag's ownership to the previous holder.
"""

import uuid
from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.datetime_utils import utcnow


class Capture(Base):
    """SQLAlchemy model for the captures table."""
    __tablename__ = "captures"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique capture identifier")
    flag_id = Column(String(36), ForeignKey("flags.id", ondelete="CASCADE"), nullable=False,
                     doc="Captured flag")
    captured_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=False,
                                 doc="User who captured the flag")
    captured_at = Column(DateTime, nullable=False,
                         doc="When the capture happened (caller supplied, may be backdated)")
    notes = Column(Text, nullable=True,
                   doc="Free-form notes from the capturer")
    photo_url = Column(Text, nullable=True,
                       doc="URL of an uploaded photo of the capture")
    created_at = Column(DateTime, default=utcnow,
                        doc="When the capture was recorded")

    flag = relationship("Flag", back_populates="captures")
    captured_by = relationship("User")

    __table_args__ = (
        Index("ix_captures_flag_id_captured_at", "flag_id", "captured_at"),
        Index("ix_captures_captured_by_user_id", "captured_by_user_id"),
    )

    def __repr__(self):
        return f"<Capture(id={self.id}, flag={self.flag_id}, by={self.captured_by_user_id})>"
