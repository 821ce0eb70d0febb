"""
Position endpoints with Redis caching on list operations.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.position import (
    PositionCreate,
    PositionDeleteResponse,
    PositionEnvelope,
    PositionListResponse,
    PositionResponse,
    PositionUpdate,
)
from app.schemas.identity import CurrentUser
from app.services import position_service
from app.services.cache_service import get_cached_positions, invalidate_position_cache, set_cached_positions
from app.core.security import require_staff
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/positions", tags=["Positions"])


@router.get("", response_model=PositionListResponse)
async def list_positions_endpoint(
    active: bool = Query(False, description="Only return active positions"),
    db: AsyncSession = Depends(get_db),
):
    """
    List positions ordered by name.
    Results are cached in Redis and invalidated on any position change.
    """
    cached = await get_cached_positions(active)
    if cached is not None:
        logger.info("positions_list_cache_hit", active_only=active)
        return PositionListResponse(positions=cached, cached=True)

    positions = await position_service.list_positions(db, active_only=active)
    data = [PositionResponse.model_validate(p).model_dump(mode="json") for p in positions]
    await set_cached_positions(active, data)
    return PositionListResponse(positions=data)


@router.post("", response_model=PositionEnvelope, status_code=status.HTTP_201_CREATED)
async def create_position_endpoint(
    payload: PositionCreate,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Create a position. Staff only."""
    position = await position_service.create_position(
        db,
        actor,
        position_id=payload.id,
        name=payload.name,
        description=payload.description,
        is_active=payload.is_active,
    )
    await db.commit()
    await invalidate_position_cache()
    return PositionEnvelope(position=PositionResponse.model_validate(position))


@router.patch("/{position_id}", response_model=PositionEnvelope)
async def update_position_endpoint(
    position_id: str,
    payload: PositionUpdate,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Update name, description or active flag. Staff only."""
    position = await position_service.update_position(
        db, actor, position_id, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    await invalidate_position_cache()
    return PositionEnvelope(position=PositionResponse.model_validate(position))


@router.delete("/{position_id}", response_model=PositionDeleteResponse)
async def delete_position_endpoint(
    position_id: str,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a position. Staff only.
    Refused while the position has active bookings; its booking history is removed with it.
    """
    deleted = await position_service.delete_position(db, actor, position_id)
    await db.commit()
    await invalidate_position_cache()
    return PositionDeleteResponse(position_id=position_id, deleted_bookings=deleted)
