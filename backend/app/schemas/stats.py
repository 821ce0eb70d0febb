from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class UserStatsUpdate(BaseModel):
    controlling_hours: Optional[float] = Field(None, ge=0)
    booking_hours: Optional[float] = Field(None, ge=0)


class UserStatsResponse(BaseModel):
    user_id: str
    controlling_hours: float
    booking_hours: float
    controlling_per_month: float
    last_updated: datetime

    model_config = {"from_attributes": True}


class UserStatsEnvelope(BaseModel):
    success: bool = True
    user_stats: UserStatsResponse
