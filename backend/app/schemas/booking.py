"""
Pydantic schemas for booking-related request/response validation.

Format checks on date and time strings live in the booking service so that
the same rules apply to every caller, not only HTTP requests.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models.booking import BookingStatus, BookingType


class BookingCreate(BaseModel):
    user_id: Optional[str] = Field(None, max_length=64)
    position: str = Field(..., max_length=32)
    date: str = Field(..., max_length=10)
    start_time: str = Field(..., max_length=5)
    end_time: str = Field(..., max_length=5)
    type: BookingType


class BookingUpdate(BaseModel):
    user_id: Optional[str] = Field(None, max_length=64)
    position: Optional[str] = Field(None, max_length=32)
    date: Optional[str] = Field(None, max_length=10)
    start_time: Optional[str] = Field(None, max_length=5)
    end_time: Optional[str] = Field(None, max_length=5)
    type: Optional[BookingType] = None
    status: Optional[BookingStatus] = None

    model_config = {"extra": "forbid"}


class BookingResponse(BaseModel):
    id: int
    user_id: str
    position: str
    date: str
    start_time: str
    end_time: str
    type: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingEnvelope(BaseModel):
    success: bool = True
    booking: BookingResponse


class BookingListResponse(BaseModel):
    success: bool = True
    bookings: list[BookingResponse]
