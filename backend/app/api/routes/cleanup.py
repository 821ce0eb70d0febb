"""
On-demand cleanup cycle, for staff or an external cron presenting the cleanup token.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.cleanup import CleanupResponse
from app.services.cleanup_service import run_cleanup
from app.core.security import authorize_cleanup
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/cleanup", tags=["Cleanup"])


@router.post("", response_model=CleanupResponse)
async def run_cleanup_endpoint(
    triggered_by: str = Depends(authorize_cleanup),
    db: AsyncSession = Depends(get_db),
):
    """Complete ended bookings and purge expired ones. Safe to call repeatedly."""
    logger.info("cleanup_triggered", triggered_by=triggered_by)
    result = await run_cleanup(db)
    return CleanupResponse(**result)
