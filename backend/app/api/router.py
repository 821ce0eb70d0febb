"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import auth, positions, bookings, cleanup, user_stats, audit

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(positions.router)
api_router.include_router(bookings.router)
api_router.include_router(cleanup.router)
api_router.include_router(user_stats.router)
api_router.include_router(audit.router)
