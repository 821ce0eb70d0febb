"""
Pydantic schemas for position-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class PositionCreate(BaseModel):
    id: str = Field(..., max_length=32)
    name: str = Field(..., max_length=255)
    description: str = Field(..., max_length=1000)
    is_active: bool = True


class PositionUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}


class PositionResponse(BaseModel):
    id: str
    name: str
    description: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PositionEnvelope(BaseModel):
    success: bool = True
    position: PositionResponse


class PositionListResponse(BaseModel):
    success: bool = True
    positions: list[PositionResponse]
    cached: bool = False


class PositionDeleteResponse(BaseModel):
    success: bool = True
    position_id: str
    deleted_bookings: int
