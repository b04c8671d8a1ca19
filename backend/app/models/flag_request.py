"""
FlagRequest model - a user's ask for a new physical flag.

Requests start as pending and are decided exactly once by an admin.
"""

import uuid
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.datetime_utils import utcnow

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


class FlagRequest(Base):
    """
    SQLAlchemy model for the flag_requests table.

    Status transitions are one-way:
    - pending -> approved (a flag is minted for the requester)
    - pending -> rejected

    A partial unique index keeps at most one pending request per user.
    """
    __tablename__ = "flag_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique request identifier")
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False,
                     doc="User asking for a flag")
    status = Column(String(16), nullable=False, default=STATUS_PENDING,
                    doc="pending | approved | rejected")
    requested_at = Column(DateTime, nullable=False, default=utcnow,
                          doc="When the request was submitted")
    processed_at = Column(DateTime, nullable=True,
                          doc="When an admin approved or rejected the request")
    processed_by_admin_id = Column(String(36), ForeignKey("users.id"), nullable=True,
                                   doc="Admin who decided the request")

    user = relationship("User", foreign_keys=[user_id])
    processed_by = relationship("User", foreign_keys=[processed_by_admin_id])

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')",
                        name="ck_flag_requests_status"),
        Index("ix_flag_requests_user_id", "user_id"),
        Index("ix_flag_requests_requested_at", "requested_at"),
        Index(
            "uq_flag_requests_one_pending_per_user", "user_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    @property
    def is_pending(self):
        return self.status == STATUS_PENDING

    def __repr__(self):
        return f"<FlagRequest(id={self.id}, user={self.user_id}, status='{self.status}')>"
