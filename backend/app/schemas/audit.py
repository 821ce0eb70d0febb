from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: int
    action: str
    user_id: str
    booking_id: Optional[str]
    position_id: Optional[str]
    details: str
    changes: Optional[Any]
    timestamp: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    success: bool = True
    logs: list[AuditLogResponse]
    total: int
