"""
Booking model: a reserved time interval on one position and calendar day.

Key design decisions:
- `date` is an ISO `YYYY-MM-DD` string and times are zero-padded `HH:MM`
  strings, so plain string comparison orders them chronologically and month
  filters are simple range predicates
- Composite index (position, date, status) backs the overlap query
- Index (status, updated_at) backs the sweeper's bulk statements
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String

from app.db.base import Base, TimestampMixin


class BookingStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingType(str, Enum):
    CONTROLLING = "controlling"
    TRAINING = "training"
    EXAM = "exam"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    position = Column(
        String(32),
        ForeignKey("positions.id", ondelete="CASCADE"),
        nullable=False,
    )
    date = Column(String(10), nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.ACTIVE.value)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_booking_end_after_start"),
        CheckConstraint(
            "status IN ('active', 'completed', 'cancelled')", name="check_booking_status"
        ),
        CheckConstraint(
            "type IN ('controlling', 'training', 'exam')", name="check_booking_type"
        ),
        Index("ix_bookings_position_date_status", "position", "date", "status"),
        Index("ix_bookings_date", "date"),
        Index("ix_bookings_status_updated", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, position={self.position}, date={self.date}, "
            f"{self.start_time}-{self.end_time}, status={self.status})>"
        )
