"""
Append-only audit trail for booking and position mutations.

Invariants:
- Once written, never edited or deleted
- `details` is for humans, `changes` keeps the structured diff machine-parseable
"""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, event

from app.db.base import Base, utcnow

SYSTEM_ACTOR = "system"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SYSTEM = "system"


class AuditLogImmutableError(RuntimeError):
    """Raised when something tries to flush an UPDATE or DELETE of an audit row."""


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(20), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    booking_id = Column(String(64), nullable=True, index=True)
    position_id = Column(String(32), nullable=True, index=True)
    details = Column(Text, nullable=False)
    changes = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, user={self.user_id})>"


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} is append-only")


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} is append-only")
