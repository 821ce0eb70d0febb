"""
Audit recorder: append-only trail of booking and position mutations.

Entries are added to the caller's session so they commit (or roll back)
together with the mutation they describe.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditLog
from app.core.logging import get_logger

logger = get_logger(__name__)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(obj, fields: tuple[str, ...]) -> dict:
    return {field: _plain(getattr(obj, field)) for field in fields}


def diff(before: dict, after: dict) -> dict:
    """Fields whose value changed, as `{field: {"old": ..., "new": ...}}`."""
    changes = {}
    for field, new in after.items():
        old = before.get(field)
        if _plain(old) != _plain(new):
            changes[field] = {"old": _plain(old), "new": _plain(new)}
    return changes


async def record(
    db: AsyncSession,
    action: AuditAction,
    actor_id: str,
    details: str,
    booking_id: Optional[Any] = None,
    position_id: Optional[str] = None,
    changes: Optional[dict] = None,
) -> AuditLog:
    entry = AuditLog(
        action=action.value,
        user_id=actor_id,
        booking_id=str(booking_id) if booking_id is not None else None,
        position_id=position_id,
        details=details,
        changes=changes,
    )
    db.add(entry)
    await db.flush()

    logger.info(
        "audit_recorded",
        audit_id=entry.id,
        action=entry.action,
        actor=actor_id,
        booking_id=entry.booking_id,
        position_id=position_id,
    )
    return entry


async def list_audit_logs(
    db: AsyncSession,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    """Newest first."""
    total = (await db.execute(select(func.count()).select_from(AuditLog))).scalar()
    result = await db.execute(
        select(AuditLog)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total
