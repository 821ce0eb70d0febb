"""
Lifecycle sweeper: advances ended bookings and purges old history.

Both steps are single bulk statements whose WHERE clause carries the status
predicate, so running them twice (or concurrently) cannot double count:
the second run matches nothing. Already-committed bookings are not
re-validated against the overlap rule.

Each step commits on its own. A failing step is logged, rolled back and
reported as zero; the sweeper never raises to its caller.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_sweep, sweep_failures
from app.models.audit_log import SYSTEM_ACTOR, AuditAction
from app.models.booking import Booking, BookingStatus
from app.services import audit_service

logger = get_logger(__name__)
settings = get_settings()


def _utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _wall_clock(now: datetime) -> str:
    """`now` as a `YYYY-MM-DD HH:MM` string in the booking timezone."""
    return now.astimezone(ZoneInfo(settings.BOOKING_TIMEZONE)).strftime("%Y-%m-%d %H:%M")


async def sweep_completions(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Mark every active booking whose (date, end_time) is at or before now as completed."""
    now = _utc(now)
    cutoff = _wall_clock(now)

    result = await db.execute(
        update(Booking)
        .where(
            Booking.status == BookingStatus.ACTIVE.value,
            (Booking.date + " " + Booking.end_time) <= cutoff,
        )
        .values(status=BookingStatus.COMPLETED.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0

    if count > 0:
        await audit_service.record(
            db,
            AuditAction.SYSTEM,
            SYSTEM_ACTOR,
            f"System automatically marked {count} booking(s) as completed",
            booking_id="multiple",
            changes={"completed": count, "cutoff": cutoff},
        )

    record_sweep("completed", count)
    logger.info("sweep_completions", completed=count, cutoff=cutoff)
    return count


async def sweep_expired(
    db: AsyncSession,
    now: Optional[datetime] = None,
    retention_days: Optional[int] = None,
) -> int:
    """Permanently delete completed bookings last updated more than retention_days ago."""
    now = _utc(now)
    if retention_days is None:
        retention_days = settings.BOOKING_RETENTION_DAYS
    threshold = now - timedelta(days=retention_days)

    result = await db.execute(
        delete(Booking)
        .where(
            Booking.status == BookingStatus.COMPLETED.value,
            Booking.updated_at < threshold,
        )
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0

    if count > 0:
        await audit_service.record(
            db,
            AuditAction.SYSTEM,
            SYSTEM_ACTOR,
            f"System automatically deleted {count} completed booking(s) older than {retention_days} days",
            booking_id="multiple",
            changes={"deleted": count, "retention_days": retention_days},
        )

    record_sweep("deleted", count)
    logger.info("sweep_expired", deleted=count, retention_days=retention_days)
    return count


async def _run_step(db: AsyncSession, step: str, sweep, **kwargs) -> int:
    try:
        count = await sweep(db, **kwargs)
        await db.commit()
        return count
    except Exception as e:
        await db.rollback()
        sweep_failures.labels(step=step).inc()
        logger.error("sweep_failed", step=step, error=str(e), exc_info=True)
        return 0


async def run_cleanup(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    """One cleanup cycle: completions first, then expiry."""
    now = _utc(now)
    completed = await _run_step(db, "completed", sweep_completions, now=now)
    deleted = await _run_step(db, "deleted", sweep_expired, now=now)

    logger.info("cleanup_cycle_finished", completed=completed, deleted=deleted)
    return {"completed": completed, "deleted": deleted, "timestamp": now}
