"""
Booking endpoints with concurrency-safe slot reservation.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.booking import BookingStatus
from app.schemas.booking import (
    BookingCreate,
    BookingEnvelope,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
)
from app.schemas.identity import CurrentUser
from app.services import booking_service
from app.services.notification_service import BookingNotification, notify_booking_created
from app.core.security import get_current_user, require_staff
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("", response_model=BookingListResponse)
async def list_bookings_endpoint(
    position: Optional[str] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    user_id: Optional[str] = Query(None),
    status: Optional[BookingStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List bookings newest first, optionally filtered by position, calendar month, user or status."""
    bookings = await booking_service.list_bookings(
        db, position=position, month=month, year=year, user_id=user_id, status=status
    )
    return BookingListResponse(bookings=[BookingResponse.model_validate(b) for b in bookings])


@router.get("/{booking_id}", response_model=BookingEnvelope)
async def get_booking_endpoint(booking_id: int, db: AsyncSession = Depends(get_db)):
    booking = await booking_service.get_booking(db, booking_id)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.post("", response_model=BookingEnvelope, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    payload: BookingCreate,
    background_tasks: BackgroundTasks,
    actor: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a slot on a position.

    The overlap check and insert are serialised per position, so of two
    simultaneous overlapping requests only one succeeds; the other gets a
    409. A webhook notification is sent after the booking is committed and
    never affects the response.
    """
    booking = await booking_service.create_booking(
        db,
        actor,
        position=payload.position,
        date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        type=payload.type,
        user_id=payload.user_id,
    )
    await db.commit()
    background_tasks.add_task(notify_booking_created, BookingNotification.from_booking(booking))
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.patch("/{booking_id}", response_model=BookingEnvelope)
async def update_booking_endpoint(
    booking_id: int,
    payload: BookingUpdate,
    actor: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Partial update. Owner or staff; moving the slot re-runs the overlap check."""
    booking = await booking_service.update_booking(
        db, actor, booking_id, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.post("/{booking_id}/cancel", response_model=BookingEnvelope)
async def cancel_booking_endpoint(
    booking_id: int,
    actor: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an active booking. Owner or staff."""
    booking = await booking_service.cancel_booking(db, actor, booking_id)
    await db.commit()
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.delete("/{booking_id}")
async def delete_booking_endpoint(
    booking_id: int,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Permanently delete a booking. Staff only."""
    await booking_service.delete_booking(db, actor, booking_id)
    await db.commit()
    return {"success": True, "booking_id": booking_id}
