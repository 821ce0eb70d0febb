from app.models.position import Position
from app.models.booking import Booking, BookingStatus, BookingType
from app.models.audit_log import AuditLog, AuditAction
from app.models.user_stats import UserStats

__all__ = [
    "Position",
    "Booking", "BookingStatus", "BookingType",
    "AuditLog", "AuditAction",
    "UserStats",
]
