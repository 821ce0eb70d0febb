"""
Position registry: CRUD over bookable positions.

Deletion policy: a position cannot be deleted while it still has active
bookings (ConflictError). Once only history remains, the completed and
cancelled bookings are deleted with it so no booking ever points at a
missing position.

The delete claims the position version first, the same guard booking
writes take, so a booking committed between the active count and the
delete cannot be swept away by the cascade.
"""

from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.audit_log import AuditAction
from app.models.booking import Booking, BookingStatus
from app.models.position import Position
from app.schemas.identity import CurrentUser
from app.services import audit_service

logger = get_logger(__name__)

POSITION_FIELDS = ("id", "name", "description", "is_active")
EDITABLE_FIELDS = ("name", "description", "is_active")


def _require_text(field: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing required field: {field}")
    return str(value).strip()


async def list_positions(db: AsyncSession, active_only: bool = False) -> list[Position]:
    query = select(Position)
    if active_only:
        query = query.where(Position.is_active.is_(True))
    result = await db.execute(query.order_by(Position.name.asc()))
    return list(result.scalars().all())


async def get_position(db: AsyncSession, position_id: str) -> Position:
    result = await db.execute(
        select(Position)
        .where(Position.id == position_id)
        .execution_options(populate_existing=True)
    )
    position = result.scalar_one_or_none()

    if not position:
        raise NotFoundError(f"Position {position_id} not found")
    return position


async def _position_exists(db: AsyncSession, position_id: str) -> bool:
    result = await db.execute(select(Position.id).where(Position.id == position_id))
    return result.scalar_one_or_none() is not None


async def create_position(
    db: AsyncSession,
    actor: CurrentUser,
    position_id: str,
    name: str,
    description: str,
    is_active: bool = True,
) -> Position:
    position_id = _require_text("id", position_id)
    name = _require_text("name", name)
    description = _require_text("description", description)

    if await _position_exists(db, position_id):
        logger.warning("position_create_failed", reason="duplicate_id", position_id=position_id)
        raise ConflictError(f"Position ID {position_id} already exists")

    position = Position(
        id=position_id,
        name=name,
        description=description,
        is_active=is_active,
    )
    db.add(position)
    try:
        await db.flush()
    except IntegrityError:
        # a concurrent create committed the same id after our check
        await db.rollback()
        logger.warning("position_create_failed", reason="duplicate_id_race", position_id=position_id)
        raise ConflictError(f"Position ID {position_id} already exists")
    await db.refresh(position)

    await audit_service.record(
        db,
        AuditAction.CREATE,
        actor.id,
        f"Created position: {name} ({position_id})",
        position_id=position_id,
        changes=audit_service.snapshot(position, POSITION_FIELDS),
    )

    logger.info("position_created", position_id=position_id, actor=actor.id)
    return position


async def update_position(
    db: AsyncSession,
    actor: CurrentUser,
    position_id: str,
    updates: dict,
) -> Position:
    position = await get_position(db, position_id)

    unknown = set(updates) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    for field in ("name", "description"):
        if field in updates:
            updates[field] = _require_text(field, updates[field])
    if "is_active" in updates and updates["is_active"] is None:
        raise ValidationError("is_active cannot be null")

    before = audit_service.snapshot(position, EDITABLE_FIELDS)
    for field, value in updates.items():
        setattr(position, field, value)
    changes = audit_service.diff(before, {field: getattr(position, field) for field in EDITABLE_FIELDS})

    await db.flush()
    await db.refresh(position)

    await audit_service.record(
        db,
        AuditAction.UPDATE,
        actor.id,
        f"Updated position {position_id}: {', '.join(sorted(changes)) or 'no changes'}",
        position_id=position_id,
        changes=changes,
    )

    logger.info("position_updated", position_id=position_id, fields=sorted(changes), actor=actor.id)
    return position


async def delete_position(db: AsyncSession, actor: CurrentUser, position_id: str) -> int:
    """Delete a position and its booking history. Returns the number of bookings removed."""
    position = await get_position(db, position_id)

    claimed = await db.execute(
        update(Position)
        .where(Position.id == position_id, Position.version == position.version)
        .values(version=Position.version + 1)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        logger.warning("position_delete_failed", position_id=position_id, reason="version_conflict")
        raise ConflictError(
            f"Position {position_id} was modified by a concurrent request. Please try again."
        )

    active_count = (
        await db.execute(
            select(func.count())
            .select_from(Booking)
            .where(
                Booking.position == position_id,
                Booking.status == BookingStatus.ACTIVE.value,
            )
        )
    ).scalar()
    if active_count:
        logger.warning("position_delete_blocked", position_id=position_id, active_bookings=active_count)
        raise ConflictError(
            f"Position {position_id} still has {active_count} active booking(s); "
            "cancel or delete them first"
        )

    purged = await db.execute(
        delete(Booking)
        .where(Booking.position == position_id)
        .execution_options(synchronize_session=False)
    )
    deleted_bookings = purged.rowcount or 0

    name = position.name
    await db.delete(position)
    await db.flush()

    await audit_service.record(
        db,
        AuditAction.DELETE,
        actor.id,
        f"Deleted position: {name} ({position_id}), removed {deleted_bookings} historical booking(s)",
        position_id=position_id,
        changes={"position": {"id": position_id, "name": name}, "deleted_bookings": deleted_bookings},
    )

    logger.info(
        "position_deleted",
        position_id=position_id,
        deleted_bookings=deleted_bookings,
        actor=actor.id,
    )
    return deleted_bookings
