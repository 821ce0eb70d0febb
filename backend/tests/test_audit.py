"""
Tests for the audit trail: one entry per mutation, append-only, newest first.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.core.exceptions import ConflictError
from app.models.audit_log import AuditLog, AuditLogImmutableError
from app.services import booking_service
from conftest import STAFF_ID, USER_ID


@pytest.mark.asyncio
async def test_every_mutation_leaves_one_entry(
    client: AsyncClient, user_headers, staff_headers
):
    """Create position, create/update/cancel/delete booking: five entries, newest first."""
    await client.post(
        "/api/v1/positions",
        json={"id": "XMMM_APP", "name": "XMMM Approach", "description": "Approach Control"},
        headers=staff_headers,
    )
    created = await client.post(
        "/api/v1/bookings",
        json={
            "position": "XMMM_APP",
            "date": "2024-01-15",
            "start_time": "10:00",
            "end_time": "12:00",
            "type": "training",
        },
        headers=user_headers,
    )
    booking_id = created.json()["booking"]["id"]
    await client.patch(f"/api/v1/bookings/{booking_id}", json={"type": "exam"}, headers=user_headers)
    await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=user_headers)
    await client.delete(f"/api/v1/bookings/{booking_id}", headers=staff_headers)

    response = await client.get("/api/v1/audit", headers=staff_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 5

    logs = data["logs"]
    assert [log["action"] for log in logs] == ["delete", "update", "update", "create", "create"]
    assert [log["user_id"] for log in logs] == [STAFF_ID, USER_ID, USER_ID, USER_ID, STAFF_ID]
    assert logs[2]["changes"] == {"type": {"old": "training", "new": "exam"}}
    assert logs[3]["booking_id"] == str(booking_id)
    assert logs[4]["position_id"] == "XMMM_APP"


@pytest.mark.asyncio
async def test_rejected_mutation_leaves_no_entry(
    db_session, approach_position, user_actor, other_actor
):
    await booking_service.create_booking(
        db_session, user_actor, position="XMMM_APP", date="2024-01-15",
        start_time="10:00", end_time="12:00", type="controlling",
    )
    await db_session.commit()

    with pytest.raises(ConflictError):
        await booking_service.create_booking(
            db_session, other_actor, position="XMMM_APP", date="2024-01-15",
            start_time="11:00", end_time="13:00", type="controlling",
        )
    await db_session.rollback()

    entries = (await db_session.execute(select(AuditLog))).scalars().all()
    assert len(entries) == 1


@pytest.mark.asyncio
async def test_audit_entries_cannot_be_edited(db_session, approach_position, user_actor):
    await booking_service.create_booking(
        db_session, user_actor, position="XMMM_APP", date="2024-01-15",
        start_time="10:00", end_time="12:00", type="controlling",
    )
    await db_session.commit()

    entry = (await db_session.execute(select(AuditLog))).scalar_one()
    entry.details = "rewritten history"
    with pytest.raises(AuditLogImmutableError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_audit_entries_cannot_be_deleted(db_session, approach_position, user_actor):
    await booking_service.create_booking(
        db_session, user_actor, position="XMMM_APP", date="2024-01-15",
        start_time="10:00", end_time="12:00", type="controlling",
    )
    await db_session.commit()

    entry = (await db_session.execute(select(AuditLog))).scalar_one()
    await db_session.delete(entry)
    with pytest.raises(AuditLogImmutableError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_audit_listing_staff_only(client: AsyncClient, user_headers):
    response = await client.get("/api/v1/audit", headers=user_headers)
    assert response.status_code == 403
