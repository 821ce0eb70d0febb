"""
Per-user controlling statistics.

`controlling_per_month` is a cached read-time figure: it is recomputed from
completed bookings on every stats read and may be stale in between.
"""

from sqlalchemy import Column, DateTime, Float, Integer, String

from app.db.base import Base, TimestampMixin, utcnow


class UserStats(Base, TimestampMixin):
    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    controlling_hours = Column(Float, nullable=False, default=0.0)
    booking_hours = Column(Float, nullable=False, default=0.0)
    controlling_per_month = Column(Float, nullable=False, default=0.0)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<UserStats(user={self.user_id}, month={self.controlling_per_month})>"
