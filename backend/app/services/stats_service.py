"""
Usage aggregator: per-user controlling hours.

The monthly figure is recomputed from completed bookings on every read and
written back as a cache; lifetime counters are only changed by explicit
sync calls.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.db.base import utcnow
from app.models.booking import Booking, BookingStatus
from app.models.user_stats import UserStats
from app.services.booking_rules import safe_duration_hours

logger = get_logger(__name__)
settings = get_settings()


def month_window(now: datetime) -> tuple[datetime, datetime]:
    """[first instant of now's month, first instant of next month) in UTC."""
    local = now.astimezone(ZoneInfo(settings.BOOKING_TIMEZONE))
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


async def _get_or_create(db: AsyncSession, user_id: str) -> UserStats:
    result = await db.execute(select(UserStats).where(UserStats.user_id == user_id))
    stats = result.scalar_one_or_none()
    if stats is None:
        stats = UserStats(
            user_id=user_id,
            controlling_hours=0.0,
            booking_hours=0.0,
            controlling_per_month=0.0,
        )
        db.add(stats)
        try:
            await db.flush()
        except IntegrityError:
            # another request created the row first
            await db.rollback()
            result = await db.execute(select(UserStats).where(UserStats.user_id == user_id))
            return result.scalar_one()
        logger.info("user_stats_created", user_id=user_id)
    return stats


async def monthly_controlling_hours(db: AsyncSession, user_id: str, now: datetime) -> float:
    month_start, next_month = month_window(now)
    result = await db.execute(
        select(Booking.start_time, Booking.end_time).where(
            Booking.user_id == user_id,
            Booking.status == BookingStatus.COMPLETED.value,
            Booking.updated_at >= month_start,
            Booking.updated_at < next_month,
        )
    )
    return sum(safe_duration_hours(start, end) for start, end in result.all())


async def get_user_stats(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> UserStats:
    if not user_id or not user_id.strip():
        raise ValidationError("User ID is required")
    now = now or datetime.now(timezone.utc)

    stats = await _get_or_create(db, user_id)
    stats.controlling_per_month = await monthly_controlling_hours(db, user_id, now)
    stats.last_updated = utcnow()
    await db.flush()
    await db.refresh(stats)

    logger.debug("user_stats_read", user_id=user_id, controlling_per_month=stats.controlling_per_month)
    return stats


async def set_user_stats(
    db: AsyncSession,
    user_id: str,
    controlling_hours: Optional[float] = None,
    booking_hours: Optional[float] = None,
) -> UserStats:
    """Upsert lifetime counters. Leaves controlling_per_month alone."""
    if not user_id or not user_id.strip():
        raise ValidationError("User ID is required")
    for field, value in (("controlling_hours", controlling_hours), ("booking_hours", booking_hours)):
        if value is not None and value < 0:
            raise ValidationError(f"{field} cannot be negative")

    stats = await _get_or_create(db, user_id)
    if controlling_hours is not None:
        stats.controlling_hours = controlling_hours
    if booking_hours is not None:
        stats.booking_hours = booking_hours
    stats.last_updated = utcnow()
    await db.flush()
    await db.refresh(stats)

    logger.info(
        "user_stats_synced",
        user_id=user_id,
        controlling_hours=stats.controlling_hours,
        booking_hours=stats.booking_hours,
    )
    return stats
