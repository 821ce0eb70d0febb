"""
Redis caching service for position listings and the staff roster.

CACHING STRATEGY
================

What we cache:
  - Position listing responses (JSON-serialized)
    Key pattern: "positions:list:active={active_only}"
  - The identity provider's staff roster (set of VIDs)
    Key: "identity:staff"
  - Identity records per bearer credential
    Key pattern: "identity:user:{sha256(credential)}"

Why:
  - Every calendar view starts with a position listing; positions change
    only when staff edit them
  - The staff roster is fetched from a third-party API on every privileged
    request otherwise

Invalidation strategy:
  - Any position create/update/delete deletes all "positions:list:*" keys
  - The staff roster and identity records simply expire (TTL), there is
    no write path for them

Failure policy:
  Redis is advisory only. Every helper fails open: connection problems are
  logged and counted, and callers fall back to the database / provider.
"""

import json
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

POSITION_LIST_PREFIX = "positions:list:"
STAFF_ROSTER_KEY = "identity:staff"
IDENTITY_USER_PREFIX = "identity:user:"


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            redis_connection_errors.inc()
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_position_list_key(active_only: bool) -> str:
    return f"{POSITION_LIST_PREFIX}active={active_only}"


async def get_cached_positions(active_only: bool) -> Optional[list]:
    """Retrieve cached position list."""
    client = await get_redis()
    if not client:
        return None

    key = _make_position_list_key(active_only)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_positions(active_only: bool, data: list) -> None:
    """Cache position list with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_position_list_key(active_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_position_cache() -> None:
    """
    Invalidate all cached position listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{POSITION_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cached_staff_roster() -> Optional[set[str]]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(STAFF_ROSTER_KEY)
        record_cache_operation("get", hit=data is not None)
        if data:
            return set(json.loads(data))
    except Exception as e:
        logger.error("cache_get_error", key=STAFF_ROSTER_KEY, error=str(e))

    return None


async def set_cached_staff_roster(staff_ids: set[str]) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(STAFF_ROSTER_KEY, settings.REDIS_CACHE_TTL, json.dumps(sorted(staff_ids)))
    except Exception as e:
        logger.error("cache_set_error", key=STAFF_ROSTER_KEY, error=str(e))


async def get_cached_identity(credential_hash: str) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = f"{IDENTITY_USER_PREFIX}{credential_hash}"
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            return json.loads(data)
    except Exception as e:
        logger.error("cache_get_error", key=IDENTITY_USER_PREFIX, error=str(e))

    return None


async def set_cached_identity(credential_hash: str, payload: dict, ttl: int) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(f"{IDENTITY_USER_PREFIX}{credential_hash}", ttl, json.dumps(payload))
    except Exception as e:
        logger.error("cache_set_error", key=IDENTITY_USER_PREFIX, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
            "hit_rate": (
                round(
                    info.get("keyspace_hits", 0)
                    / max(info.get("keyspace_hits", 0) + info.get("keyspace_misses", 0), 1)
                    * 100,
                    2,
                )
            ),
            "keys": keyspace,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
