"""
Identity endpoint: who am I and am I staff.
The OAuth sign-in flow itself is handled by the front end and the provider.
"""

from fastapi import APIRouter, Depends

from app.core.security import get_current_user
from app.schemas.identity import CurrentUser, CurrentUserResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=CurrentUserResponse)
async def me(user: CurrentUser = Depends(get_current_user)):
    """Identity record and staff flag for the presented bearer credential."""
    return CurrentUserResponse(user=user.identity, is_staff=user.is_staff, name=user.identity.full_name)
