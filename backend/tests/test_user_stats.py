"""
Tests for per-user controlling statistics.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.core.exceptions import ValidationError
from app.models.user_stats import UserStats
from app.services.stats_service import get_user_stats, month_window, set_user_stats
from conftest import OTHER_ID, USER_ID, add_booking, utc


def test_month_window_wraps_year():
    start, end = month_window(utc(2024, 12, 15, 18, 30))
    assert start == utc(2024, 12, 1)
    assert end == utc(2025, 1, 1)


@pytest.mark.asyncio
async def test_monthly_hours_sum_completed_bookings_in_month(db_session, approach_position):
    """Only completed bookings of the user whose completion falls in the month count."""
    await add_booking(db_session, start_time="10:00", end_time="12:00", status="completed",
                      updated_at=utc(2024, 1, 10, 12, 0))
    await add_booking(db_session, start_time="10:00", end_time="11:30", status="completed",
                      updated_at=utc(2024, 1, 31, 23, 0))
    # outside the month
    await add_booking(db_session, start_time="08:00", end_time="12:00", status="completed",
                      updated_at=utc(2024, 2, 1, 0, 0))
    await add_booking(db_session, start_time="08:00", end_time="12:00", status="completed",
                      updated_at=utc(2023, 12, 31, 23, 59))
    # not completed, or someone else's
    await add_booking(db_session, start_time="13:00", end_time="17:00", updated_at=utc(2024, 1, 12))
    await add_booking(db_session, start_time="13:00", end_time="17:00", status="cancelled",
                      updated_at=utc(2024, 1, 12))
    await add_booking(db_session, start_time="13:00", end_time="17:00", status="completed",
                      user_id=OTHER_ID, updated_at=utc(2024, 1, 12))

    stats = await get_user_stats(db_session, USER_ID, now=utc(2024, 1, 20, 12, 0))

    assert stats.controlling_per_month == pytest.approx(3.5)
    assert stats.controlling_hours == 0.0


@pytest.mark.asyncio
async def test_unparseable_times_count_as_zero(db_session, approach_position):
    await add_booking(db_session, start_time="10:00", end_time="12:00", status="completed",
                      updated_at=utc(2024, 1, 10))
    await add_booking(db_session, start_time="1:00", end_time="3:00", status="completed",
                      updated_at=utc(2024, 1, 11))

    stats = await get_user_stats(db_session, USER_ID, now=utc(2024, 1, 20))
    assert stats.controlling_per_month == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_stats_created_lazily_once(db_session):
    await get_user_stats(db_session, "555555", now=utc(2024, 1, 20))
    await get_user_stats(db_session, "555555", now=utc(2024, 1, 21))

    count = (
        await db_session.execute(
            select(func.count()).select_from(UserStats).where(UserStats.user_id == "555555")
        )
    ).scalar()
    assert count == 1


@pytest.mark.asyncio
async def test_set_stats_keeps_monthly_figure(db_session):
    stats = await set_user_stats(db_session, USER_ID, controlling_hours=120.5, booking_hours=140)
    assert stats.controlling_hours == 120.5
    assert stats.booking_hours == 140
    assert stats.controlling_per_month == 0.0

    partial = await set_user_stats(db_session, USER_ID, booking_hours=150)
    assert partial.controlling_hours == 120.5
    assert partial.booking_hours == 150


@pytest.mark.asyncio
async def test_negative_hours_rejected(db_session):
    with pytest.raises(ValidationError):
        await set_user_stats(db_session, USER_ID, controlling_hours=-1)


@pytest.mark.asyncio
async def test_user_stats_endpoint_self_or_staff(
    client: AsyncClient, user_headers, other_headers, staff_headers
):
    own = await client.get(f"/api/v1/user-stats/{USER_ID}", headers=user_headers)
    assert own.status_code == 200
    assert own.json()["user_stats"]["user_id"] == USER_ID

    someone_else = await client.get(f"/api/v1/user-stats/{USER_ID}", headers=other_headers)
    assert someone_else.status_code == 403

    as_staff = await client.get(f"/api/v1/user-stats/{USER_ID}", headers=staff_headers)
    assert as_staff.status_code == 200


@pytest.mark.asyncio
async def test_sync_stats_endpoint_staff_only(client: AsyncClient, user_headers, staff_headers):
    payload = {"controlling_hours": 10, "booking_hours": 12}

    as_user = await client.put(f"/api/v1/user-stats/{USER_ID}", json=payload, headers=user_headers)
    assert as_user.status_code == 403

    as_staff = await client.put(f"/api/v1/user-stats/{USER_ID}", json=payload, headers=staff_headers)
    assert as_staff.status_code == 200
    assert as_staff.json()["user_stats"]["controlling_hours"] == 10

    negative = await client.put(
        f"/api/v1/user-stats/{USER_ID}", json={"booking_hours": -3}, headers=staff_headers
    )
    assert negative.status_code == 422
