"""
Booking notifications to a Discord webhook.

Delivery is fire-and-forget: callers schedule `notify_booking_created` as a
background task after the booking has been committed. Every failure is
logged and counted, never raised.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_notification

logger = get_logger(__name__)

EMBED_COLOR = 0x3498DB
EMBED_FOOTER = "XM Booking System"


@dataclass(frozen=True)
class BookingNotification:
    booking_id: int
    position: str
    date: str
    start_time: str
    end_time: str
    type: str
    user_id: str

    @classmethod
    def from_booking(cls, booking) -> "BookingNotification":
        return cls(
            booking_id=booking.id,
            position=booking.position,
            date=booking.date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            type=booking.type,
            user_id=booking.user_id,
        )


def build_booking_embed(notification: BookingNotification) -> dict:
    return {
        "title": "New ATC Booking",
        "color": EMBED_COLOR,
        "fields": [
            {"name": "Position", "value": notification.position, "inline": True},
            {"name": "Date", "value": notification.date, "inline": True},
            {
                "name": "Time",
                "value": f"{notification.start_time} - {notification.end_time}",
                "inline": True,
            },
            {"name": "Type", "value": notification.type.capitalize(), "inline": True},
            {"name": "User", "value": f"VID: {notification.user_id}", "inline": True},
        ],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "footer": {"text": EMBED_FOOTER},
    }


async def notify_booking_created(
    notification: BookingNotification,
    webhook_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Post the booking embed. Returns True if the webhook accepted it."""
    settings = get_settings()
    webhook_url = webhook_url or settings.DISCORD_WEBHOOK_URL

    if not webhook_url:
        logger.debug("notification_skipped", reason="webhook_not_configured")
        record_notification("skipped")
        return False

    payload = {"embeds": [build_booking_embed(notification)]}
    try:
        async with httpx.AsyncClient(
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS, transport=transport
        ) as client:
            response = await client.post(webhook_url, json=payload)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(
            "notification_failed",
            booking_id=notification.booking_id,
            error=str(e),
        )
        record_notification("failed")
        return False

    logger.info("notification_sent", booking_id=notification.booking_id, position=notification.position)
    record_notification("sent")
    return True
