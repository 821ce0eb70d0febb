from app.schemas.position import (
    PositionCreate, PositionUpdate, PositionResponse,
    PositionEnvelope, PositionListResponse, PositionDeleteResponse,
)
from app.schemas.booking import (
    BookingCreate, BookingUpdate, BookingResponse,
    BookingEnvelope, BookingListResponse,
)
from app.schemas.audit import AuditLogResponse, AuditLogListResponse
from app.schemas.stats import UserStatsUpdate, UserStatsResponse, UserStatsEnvelope
from app.schemas.cleanup import CleanupResponse
from app.schemas.identity import IdentityUser, CurrentUserResponse

__all__ = [
    "PositionCreate", "PositionUpdate", "PositionResponse",
    "PositionEnvelope", "PositionListResponse", "PositionDeleteResponse",
    "BookingCreate", "BookingUpdate", "BookingResponse",
    "BookingEnvelope", "BookingListResponse",
    "AuditLogResponse", "AuditLogListResponse",
    "UserStatsUpdate", "UserStatsResponse", "UserStatsEnvelope",
    "CleanupResponse",
    "IdentityUser", "CurrentUserResponse",
]
