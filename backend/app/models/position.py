"""
Position model: a bookable ATC role such as XMMM_APP.

Key design decisions:
- The human-assigned code is the primary key, so uniqueness is enforced by the store
- Bookings reference the code directly (not a surrogate id)
- `version` column is bumped by every booking write on the position, which
  serialises concurrent booking creation for the same position
"""

from sqlalchemy import Boolean, Column, Index, Integer, String

from app.db.base import Base, TimestampMixin


class Position(Base, TimestampMixin):
    __tablename__ = "positions"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_positions_active_name", "is_active", "name"),
    )

    def __repr__(self) -> str:
        return f"<Position(id={self.id}, name={self.name}, active={self.is_active})>"
