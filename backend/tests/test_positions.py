"""
Tests for position registry endpoints.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError
from app.models.booking import Booking
from app.models.position import Position
from app.services import booking_service, position_service
from conftest import add_booking


def position_payload(**overrides) -> dict:
    payload = {"id": "XMMM_APP", "name": "XMMM Approach", "description": "Approach Control"}
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_position(client: AsyncClient, staff_headers):
    response = await client.post("/api/v1/positions", json=position_payload(), headers=staff_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["position"]["id"] == "XMMM_APP"
    assert data["position"]["is_active"] is True


@pytest.mark.asyncio
async def test_duplicate_position_id_conflicts(client: AsyncClient, staff_headers):
    """Second create with the same id is a conflict and changes nothing."""
    first = await client.post("/api/v1/positions", json=position_payload(), headers=staff_headers)
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/positions",
        json=position_payload(name="Something Else"),
        headers=staff_headers,
    )
    assert second.status_code == 409
    assert second.json()["error_kind"] == "conflict"

    listed = await client.get("/api/v1/positions")
    positions = listed.json()["positions"]
    assert len(positions) == 1
    assert positions[0]["name"] == "XMMM Approach"


@pytest.mark.asyncio
async def test_create_position_requires_staff(client: AsyncClient, user_headers):
    anonymous = await client.post("/api/v1/positions", json=position_payload())
    as_user = await client.post("/api/v1/positions", json=position_payload(), headers=user_headers)
    assert anonymous.status_code == 401
    assert as_user.status_code == 403
    assert as_user.json()["error_kind"] == "authorization_error"


@pytest.mark.asyncio
async def test_blank_position_name_rejected(client: AsyncClient, staff_headers):
    response = await client.post(
        "/api/v1/positions", json=position_payload(name="   "), headers=staff_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_positions_ordered_by_name(client: AsyncClient, staff_headers):
    for position_id, name, active in (
        ("XMMM_CTR", "Mexico Control", True),
        ("XMMM_APP", "XMMM Approach", True),
        ("XMMM_GND", "Ground", False),
    ):
        response = await client.post(
            "/api/v1/positions",
            json=position_payload(id=position_id, name=name, is_active=active),
            headers=staff_headers,
        )
        assert response.status_code == 201

    everything = await client.get("/api/v1/positions")
    assert [p["name"] for p in everything.json()["positions"]] == [
        "Ground",
        "Mexico Control",
        "XMMM Approach",
    ]

    active = await client.get("/api/v1/positions", params={"active": True})
    assert [p["id"] for p in active.json()["positions"]] == ["XMMM_CTR", "XMMM_APP"]


@pytest.mark.asyncio
async def test_update_position(client: AsyncClient, staff_headers, approach_position):
    response = await client.patch(
        "/api/v1/positions/XMMM_APP",
        json={"name": "Mexico Approach", "is_active": False},
        headers=staff_headers,
    )
    assert response.status_code == 200
    position = response.json()["position"]
    assert position["name"] == "Mexico Approach"
    assert position["is_active"] is False

    active = await client.get("/api/v1/positions", params={"active": True})
    assert active.json()["positions"] == []


@pytest.mark.asyncio
async def test_update_position_id_is_immutable(client: AsyncClient, staff_headers, approach_position):
    response = await client.patch(
        "/api/v1/positions/XMMM_APP", json={"id": "XMMM_DEP"}, headers=staff_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_missing_position_not_found(client: AsyncClient, staff_headers):
    response = await client.patch(
        "/api/v1/positions/NOPE", json={"name": "Nope"}, headers=staff_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_position_blocked_by_active_booking(
    client: AsyncClient, db_session, staff_headers, approach_position
):
    """An active booking blocks deletion; once cancelled, history goes with the position."""
    booking = await add_booking(db_session)
    await add_booking(db_session, date="2024-01-10", status="completed")

    blocked = await client.delete("/api/v1/positions/XMMM_APP", headers=staff_headers)
    assert blocked.status_code == 409

    cancelled = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=staff_headers)
    assert cancelled.status_code == 200

    deleted = await client.delete("/api/v1/positions/XMMM_APP", headers=staff_headers)
    assert deleted.status_code == 200
    assert deleted.json()["deleted_bookings"] == 2

    bookings = await client.get("/api/v1/bookings", params={"position": "XMMM_APP"})
    assert bookings.json()["bookings"] == []

    positions = await client.get("/api/v1/positions")
    assert positions.json()["positions"] == []


@pytest.mark.asyncio
async def test_delete_missing_position_not_found(client: AsyncClient, staff_headers):
    response = await client.delete("/api/v1/positions/NOPE", headers=staff_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_concurrent_duplicate_create_is_a_conflict(client: AsyncClient, staff_headers, monkeypatch):
    """Both creates pass the existence check; the store's key rejects the second as a 409."""

    async def never_seen(db, position_id):
        return False

    monkeypatch.setattr(position_service, "_position_exists", never_seen)

    first = await client.post("/api/v1/positions", json=position_payload(), headers=staff_headers)
    second = await client.post(
        "/api/v1/positions", json=position_payload(name="Other Name"), headers=staff_headers
    )

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error_kind"] == "conflict"

    positions = (await client.get("/api/v1/positions")).json()["positions"]
    assert [p["name"] for p in positions] == ["XMMM Approach"]


@pytest.mark.asyncio
async def test_unhandled_integrity_error_maps_to_conflict(client: AsyncClient, monkeypatch):
    async def violating(db, active_only=False):
        raise IntegrityError("INSERT INTO positions", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(position_service, "list_positions", violating)

    response = await client.get("/api/v1/positions")
    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error_kind": "conflict",
        "message": "The request conflicts with a concurrent change",
    }


@pytest.mark.asyncio
async def test_delete_position_racing_new_booking_is_refused(
    db_session, session_factory, approach_position, staff_actor, other_actor, monkeypatch
):
    """A booking committed after the delete loaded the position bumps its version and wins."""
    real_get = position_service.get_position

    async def racing_get(db, position_id):
        position = await real_get(db, position_id)
        async with session_factory() as rival:
            await booking_service.create_booking(
                rival, other_actor, position=position_id, date="2024-01-15",
                start_time="10:00", end_time="12:00", type="controlling",
            )
            await rival.commit()
        return position

    monkeypatch.setattr(position_service, "get_position", racing_get)

    with pytest.raises(ConflictError):
        await position_service.delete_position(db_session, staff_actor, "XMMM_APP")
    await db_session.rollback()

    async with session_factory() as fresh:
        position = await fresh.get(Position, "XMMM_APP")
        bookings = (await fresh.execute(select(Booking))).scalars().all()
    assert position is not None
    assert [(b.user_id, b.status) for b in bookings] == [(other_actor.id, "active")]
