"""
Request authentication dependencies.

The bearer credential is resolved against the identity provider on every
request and the result is passed explicitly into service calls as the
acting user.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import get_settings
from app.core.exceptions import AuthorizationError
from app.core.logging import bind_actor
from app.schemas.identity import CurrentUser
from app.services.identity_service import IdentityProvider, get_identity_provider

bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Optional[CurrentUser]:
    if credentials is None or not credentials.credentials:
        return None

    identity = await provider.fetch_user(credentials.credentials)
    is_staff = await provider.is_staff(identity.id, credentials.credentials)
    bind_actor(identity.id, is_staff)
    return CurrentUser(identity=identity, is_staff=is_staff)


async def get_current_user(
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> CurrentUser:
    if user is None:
        raise AuthorizationError("Authentication required", status_code=401)
    return user


async def require_staff(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_staff:
        raise AuthorizationError("Staff access required")
    return user


async def authorize_cleanup(
    x_cleanup_token: Optional[str] = Header(None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> str:
    """A scheduler may present the shared cleanup token; people must be staff."""
    token = get_settings().CLEANUP_TOKEN
    if token and x_cleanup_token and hmac.compare_digest(x_cleanup_token, token):
        return "scheduler"
    if user is None:
        raise AuthorizationError("Authentication required", status_code=401)
    if not user.is_staff:
        raise AuthorizationError("Staff access required")
    return user.id
