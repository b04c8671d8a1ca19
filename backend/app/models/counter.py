"""
Counter model - named monotonic sequences kept in the database.

Used for flag numbers so that a deleted flag's number is never handed
out again. Values only ever increase.
"""

from sqlalchemy import Column, Integer, String
from app.database import Base

FLAG_NUMBER_COUNTER = "flag_number"


class Counter(Base):
    """SQLAlchemy model for the counters table."""
    __tablename__ = "counters"

    name = Column(String(64), primary_key=True,
                  doc="Sequence name")
    value = Column(Integer, nullable=False, default=0,
                   doc="Last value handed out")

    def __repr__(self):
        return f"<Counter(name='{self.name}', value={self.value})>"
