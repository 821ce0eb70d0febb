"""
Identity provider boundary (IVAO).

The OAuth redirect flow lives outside this service; here a bearer credential
is turned into an identity record and a staff yes/no answer. The core trusts
the provider completely.

Identity records are cached in Redis for `cache_ttl` seconds, keyed by a
hash of the credential, never the credential itself.

Failure policy:
  - User lookup is on the critical path of every authenticated request:
    network errors and unexpected payloads raise DependencyError, a
    rejected credential raises AuthorizationError (401).
  - Staff lookup only gates privileged actions: any failure is logged and
    the caller is treated as "not staff".
"""

import hashlib
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.config import get_settings
from app.core.exceptions import AuthorizationError, DependencyError
from app.core.logging import get_logger
from app.core.metrics import record_identity_lookup
from app.schemas.identity import IdentityUser
from app.services.cache_service import (
    get_cached_identity,
    get_cached_staff_roster,
    set_cached_identity,
    set_cached_staff_roster,
)

logger = get_logger(__name__)


class IdentityProvider:
    """HTTP client for the identity provider's user and staff endpoints."""

    def __init__(
        self,
        base_url: str,
        staff_token: Optional[str] = None,
        timeout: float = 10.0,
        cache_ttl: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.staff_token = staff_token
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _cache_key(credential: str) -> str:
        return hashlib.sha256(credential.encode()).hexdigest()

    async def fetch_user(self, credential: str) -> IdentityUser:
        key = self._cache_key(credential)
        cached = await get_cached_identity(key)
        if cached is not None:
            try:
                user = IdentityUser.model_validate(cached)
            except PydanticValidationError:
                logger.warning("identity_cache_entry_invalid")
            else:
                record_identity_lookup("user", "cached")
                return user

        try:
            async with self._client() as client:
                response = await client.get(
                    "/api/user",
                    headers={"Authorization": f"Bearer {credential}"},
                )
        except httpx.HTTPError as e:
            record_identity_lookup("user", "error")
            logger.error("identity_user_lookup_failed", error=str(e))
            raise DependencyError("Identity provider unreachable")

        if response.status_code in (401, 403):
            record_identity_lookup("user", "rejected")
            raise AuthorizationError("Invalid or expired credential", status_code=401)
        if response.status_code != 200:
            record_identity_lookup("user", "error")
            logger.error("identity_user_lookup_failed", status_code=response.status_code)
            raise DependencyError(f"Identity provider returned HTTP {response.status_code}")

        try:
            user = IdentityUser.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            record_identity_lookup("user", "error")
            logger.error("identity_user_payload_invalid", error=str(e))
            raise DependencyError("Identity provider returned an unexpected user record")

        await set_cached_identity(key, user.model_dump(mode="json", by_alias=True), self.cache_ttl)
        record_identity_lookup("user", "ok")
        return user

    async def fetch_staff_ids(self, credential: Optional[str] = None) -> set[str]:
        cached = await get_cached_staff_roster()
        if cached is not None:
            record_identity_lookup("staff", "cached")
            return cached

        token = self.staff_token or credential
        try:
            async with self._client() as client:
                response = await client.get(
                    "/api/users/staff",
                    headers={"Authorization": f"Bearer {token}"},
                )
            response.raise_for_status()
            payload = response.json()
            staff_ids = {str(member["id"]) for member in payload}
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            record_identity_lookup("staff", "error")
            raise DependencyError(f"Staff roster unavailable: {e}")

        await set_cached_staff_roster(staff_ids)
        record_identity_lookup("staff", "ok")
        return staff_ids

    async def is_staff(self, user_id: str, credential: Optional[str] = None) -> bool:
        try:
            staff_ids = await self.fetch_staff_ids(credential)
        except DependencyError as e:
            logger.warning("staff_check_degraded", user_id=user_id, error=e.message)
            return False
        return user_id in staff_ids


_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    """Identity provider singleton (overridden in tests)."""
    global _provider
    if _provider is None:
        settings = get_settings()
        _provider = IdentityProvider(
            base_url=settings.IDENTITY_API_URL,
            staff_token=settings.IDENTITY_STAFF_TOKEN,
            timeout=settings.IDENTITY_TIMEOUT_SECONDS,
            cache_ttl=settings.IDENTITY_CACHE_TTL,
        )
    return _provider
