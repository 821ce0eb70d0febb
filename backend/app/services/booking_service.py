"""
Booking service with concurrency-safe slot reservation.

CONCURRENCY STRATEGY: Optimistic Locking on the Position Row
============================================================

Problem:
  Two controllers request overlapping slots on XMMM_APP for the same day at
  the same moment. Both run the overlap query, both see a free calendar,
  both insert. Result: two active bookings holding the same instant.

Solution:
  Every booking write on a position bumps `positions.version`:

  1. Read the position (and its current version)
  2. Query active bookings on (position, date) overlapping [start, end)
  3. UPDATE positions SET version = version + 1
     WHERE id = :position AND version = :current_version AND is_active
  4. If rows_affected == 0, another writer on this position committed
     first -> roll back and retry from step 1
  5. INSERT the booking and its audit entry in the same transaction

  Under PostgreSQL READ COMMITTED the second writer blocks on the row lock
  taken in step 3, and once the first commits its WHERE no longer matches.
  The retry then sees the committed booking in step 2 and gets a conflict.

  Contention is per position, so bookings on different positions never
  wait on each other.

Overlap test:
  [s1, e1) and [s2, e2) overlap iff s1 < e2 AND s2 < e1. Touching slots
  (10:00-12:00 and 12:00-13:00) do not overlap.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.metrics import booking_latency, db_retries, record_booking_attempt
from app.models.audit_log import AuditAction
from app.models.booking import Booking, BookingStatus, BookingType
from app.models.position import Position
from app.schemas.identity import CurrentUser
from app.services import audit_service
from app.services.booking_rules import month_bounds, validate_slot

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = 3

BOOKING_FIELDS = ("user_id", "position", "date", "start_time", "end_time", "type", "status")
SLOT_FIELDS = ("position", "date", "start_time", "end_time")
REQUIRED_FIELDS = ("user_id", "position", "date", "start_time", "end_time", "type")


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


async def find_conflicting_booking(
    db: AsyncSession,
    position: str,
    booking_date: str,
    start_time: str,
    end_time: str,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    """First active booking on (position, date) overlapping [start_time, end_time)."""
    query = select(Booking).where(
        Booking.position == position,
        Booking.date == booking_date,
        Booking.status == BookingStatus.ACTIVE.value,
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    result = await db.execute(query.order_by(Booking.start_time).limit(1))
    return result.scalar_one_or_none()


async def _get_bookable_position(db: AsyncSession, position_id: str) -> Position:
    result = await db.execute(
        select(Position)
        .where(Position.id == position_id, Position.is_active.is_(True))
        .execution_options(populate_existing=True)
    )
    position = result.scalar_one_or_none()
    if not position:
        raise NotFoundError(f"Position {position_id} not found or inactive")
    return position


async def _get_existing_position(db: AsyncSession, position_id: str) -> Position:
    result = await db.execute(select(Position).where(Position.id == position_id))
    position = result.scalar_one_or_none()
    if not position:
        raise NotFoundError(f"Position {position_id} not found")
    return position


async def _reserve_slot(
    db: AsyncSession,
    position_id: str,
    booking_date: str,
    start_time: str,
    end_time: str,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """
    Check the slot is free and claim the position's version so that no
    concurrent writer on the same position can commit in between.
    Retries up to MAX_RETRY_ATTEMPTS on version conflicts.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        position = await _get_bookable_position(db, position_id)

        conflict = await find_conflicting_booking(
            db, position_id, booking_date, start_time, end_time, exclude_booking_id
        )
        if conflict:
            logger.warning(
                "booking_conflict",
                position=position_id,
                date=booking_date,
                requested=f"{start_time}-{end_time}",
                existing_booking_id=conflict.id,
                existing=f"{conflict.start_time}-{conflict.end_time}",
            )
            raise ConflictError(
                f"Time slot {start_time}-{end_time} on {booking_date} overlaps an existing "
                f"booking for {position_id} ({conflict.start_time}-{conflict.end_time})"
            )

        current_version = position.version
        update_result = await db.execute(
            update(Position)
            .where(
                Position.id == position_id,
                Position.version == current_version,
                Position.is_active.is_(True),
            )
            .values(version=Position.version + 1)
            .execution_options(synchronize_session=False)
        )

        if update_result.rowcount == 1:
            return

        # Version conflict - another transaction wrote to this position
        logger.info(
            "booking_retry",
            position=position_id,
            attempt=attempt,
            reason="version_conflict",
        )
        db_retries.inc()
        await db.rollback()

    raise ConflictError(
        f"Booking failed due to concurrent requests on {position_id}. Please try again."
    )


def _validate_required(values: dict) -> None:
    for field in REQUIRED_FIELDS:
        value = values.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"Missing required field: {field}")


def _validate_type(value) -> str:
    try:
        return BookingType(_enum_value(value)).value
    except ValueError:
        raise ValidationError(f"Invalid booking type '{value}'")


async def create_booking(
    db: AsyncSession,
    actor: CurrentUser,
    position: str,
    date: str,
    start_time: str,
    end_time: str,
    type: str,
    user_id: Optional[str] = None,
) -> Booking:
    """
    Reserve [start_time, end_time) on a position for one calendar day.

    A non-staff actor can only book for themselves.
    """
    values = {
        "user_id": user_id or actor.id,
        "position": position,
        "date": date,
        "start_time": start_time,
        "end_time": end_time,
        "type": type,
    }

    with booking_latency.time():
        try:
            _validate_required(values)
            values["type"] = _validate_type(values["type"])

            if values["user_id"] != actor.id and not actor.is_staff:
                raise AuthorizationError("Only staff can book on behalf of another user")

            await _get_bookable_position(db, position)
            validate_slot(date, start_time, end_time, settings.MIN_BOOKING_MINUTES)

            await _reserve_slot(db, position, date, start_time, end_time)
        except ConflictError:
            record_booking_attempt("conflict")
            raise
        except (ValidationError, NotFoundError, AuthorizationError):
            record_booking_attempt("rejected")
            raise

        booking = Booking(status=BookingStatus.ACTIVE.value, **values)
        db.add(booking)
        await db.flush()
        await db.refresh(booking)

        await audit_service.record(
            db,
            AuditAction.CREATE,
            actor.id,
            f"Created booking for {position} on {date} from {start_time} to {end_time}",
            booking_id=booking.id,
            position_id=position,
            changes=audit_service.snapshot(booking, BOOKING_FIELDS),
        )

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=booking.user_id,
        position=position,
        date=date,
        slot=f"{start_time}-{end_time}",
        actor=actor.id,
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()

    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


def _ensure_owner_or_staff(actor: CurrentUser, booking: Booking) -> None:
    if not actor.is_staff and booking.user_id != actor.id:
        raise AuthorizationError("You can only modify your own bookings")


async def update_booking(
    db: AsyncSession,
    actor: CurrentUser,
    booking_id: int,
    updates: dict,
) -> Booking:
    """
    Apply a partial update to a booking.

    Any change to the slot is checked for format, duration and an existing
    position. When the booking stays (or becomes) active, overlap is also
    re-validated against the other active bookings.
    Non-staff owners may edit their own active bookings and cancel them;
    staff may force any field, including status.
    """
    booking = await get_booking(db, booking_id)
    _ensure_owner_or_staff(actor, booking)

    unknown = set(updates) - set(BOOKING_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    updates = {field: _enum_value(value) for field, value in updates.items()}
    for field, value in updates.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{field} cannot be empty")
    if "type" in updates:
        updates["type"] = _validate_type(updates["type"])
    if "status" in updates:
        try:
            BookingStatus(updates["status"])
        except ValueError:
            raise ValidationError(f"Invalid booking status '{updates['status']}'")

    before = audit_service.snapshot(booking, BOOKING_FIELDS)
    target = {**before, **updates}

    if not actor.is_staff:
        if booking.status != BookingStatus.ACTIVE.value:
            raise ValidationError(f"Booking {booking_id} is {booking.status} and can no longer be edited")
        if target["user_id"] != booking.user_id:
            raise AuthorizationError("Only staff can reassign a booking")
        if target["status"] not in (BookingStatus.ACTIVE.value, BookingStatus.CANCELLED.value):
            raise AuthorizationError("Only staff can force a booking status")

    slot_moved = any(target[field] != before[field] for field in SLOT_FIELDS)
    reactivated = (
        target["status"] == BookingStatus.ACTIVE.value
        and before["status"] != BookingStatus.ACTIVE.value
    )

    # History rows are still checked for shape and a real position,
    # only active ones compete for the slot.
    if slot_moved or reactivated:
        validate_slot(target["date"], target["start_time"], target["end_time"], settings.MIN_BOOKING_MINUTES)
    if target["position"] != before["position"]:
        await _get_existing_position(db, target["position"])

    if target["status"] == BookingStatus.ACTIVE.value and (slot_moved or reactivated):
        await _reserve_slot(
            db,
            target["position"],
            target["date"],
            target["start_time"],
            target["end_time"],
            exclude_booking_id=booking_id,
        )
        # _reserve_slot may have rolled back and expired the instance
        booking = await get_booking(db, booking_id)

    for field, value in updates.items():
        setattr(booking, field, value)
    changes = audit_service.diff(before, {field: getattr(booking, field) for field in BOOKING_FIELDS})

    await db.flush()
    await db.refresh(booking)

    await audit_service.record(
        db,
        AuditAction.UPDATE,
        actor.id,
        f"Updated booking {booking_id}: {', '.join(sorted(changes)) or 'no changes'}",
        booking_id=booking_id,
        position_id=booking.position,
        changes=changes,
    )

    logger.info("booking_updated", booking_id=booking_id, fields=sorted(changes), actor=actor.id)
    return booking


async def cancel_booking(
    db: AsyncSession,
    actor: CurrentUser,
    booking_id: int,
) -> Booking:
    """Explicit active -> cancelled transition."""
    booking = await get_booking(db, booking_id)
    _ensure_owner_or_staff(actor, booking)

    if booking.status != BookingStatus.ACTIVE.value:
        raise ValidationError(f"Booking is already {booking.status}")

    booking.status = BookingStatus.CANCELLED.value
    await db.flush()
    await db.refresh(booking)

    await audit_service.record(
        db,
        AuditAction.UPDATE,
        actor.id,
        f"Cancelled booking for {booking.position} on {booking.date} "
        f"from {booking.start_time} to {booking.end_time}",
        booking_id=booking_id,
        position_id=booking.position,
        changes={"status": {"old": BookingStatus.ACTIVE.value, "new": BookingStatus.CANCELLED.value}},
    )

    logger.info("booking_cancelled", booking_id=booking_id, position=booking.position, actor=actor.id)
    return booking


async def delete_booking(db: AsyncSession, actor: CurrentUser, booking_id: int) -> None:
    if not actor.is_staff:
        raise AuthorizationError("Only staff can delete bookings")

    booking = await get_booking(db, booking_id)
    record = audit_service.snapshot(booking, BOOKING_FIELDS)

    await db.delete(booking)
    await db.flush()

    await audit_service.record(
        db,
        AuditAction.DELETE,
        actor.id,
        f"Deleted booking for {record['position']} on {record['date']} (deleted by {actor.id})",
        booking_id=booking_id,
        position_id=record["position"],
        changes=record,
    )

    logger.info("booking_deleted", booking_id=booking_id, position=record["position"], actor=actor.id)


async def list_bookings(
    db: AsyncSession,
    position: Optional[str] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    user_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[Booking]:
    """
    List bookings, newest created first.
    Month filtering uses the ix_bookings_date index with inclusive
    first/last-day string bounds.
    """
    query = select(Booking)

    if position:
        query = query.where(Booking.position == position)
    if user_id:
        query = query.where(Booking.user_id == user_id)
    if status:
        query = query.where(Booking.status == _enum_value(status))

    bounds = month_bounds(month, year)
    if bounds:
        first_day, last_day = bounds
        query = query.where(Booking.date >= first_day, Booking.date <= last_day)

    result = await db.execute(query.order_by(Booking.created_at.desc(), Booking.id.desc()))
    return list(result.scalars().all())
