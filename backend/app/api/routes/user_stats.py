"""
Per-user controlling statistics.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.exceptions import AuthorizationError
from app.core.security import get_current_user, require_staff
from app.schemas.identity import CurrentUser
from app.schemas.stats import UserStatsEnvelope, UserStatsResponse, UserStatsUpdate
from app.services import stats_service

router = APIRouter(prefix="/user-stats", tags=["User Stats"])


@router.get("/{user_id}", response_model=UserStatsEnvelope)
async def get_user_stats_endpoint(
    user_id: str,
    actor: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Stats for a user, with this month's controlling hours recomputed. Self or staff."""
    if user_id != actor.id and not actor.is_staff:
        raise AuthorizationError("You can only view your own statistics")
    stats = await stats_service.get_user_stats(db, user_id)
    await db.commit()
    return UserStatsEnvelope(user_stats=UserStatsResponse.model_validate(stats))


@router.put("/{user_id}", response_model=UserStatsEnvelope)
async def set_user_stats_endpoint(
    user_id: str,
    payload: UserStatsUpdate,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Sync lifetime counters. Staff only."""
    stats = await stats_service.set_user_stats(
        db,
        user_id,
        controlling_hours=payload.controlling_hours,
        booking_hours=payload.booking_hours,
    )
    await db.commit()
    return UserStatsEnvelope(user_stats=UserStatsResponse.model_validate(stats))
