"""
Redis cache for customer and operator booking lists.

Keys:
  bookings:list:customer={id}
  bookings:list:operator={id}

A write to a booking (create, cancel, processed reschedule) changes
exactly one customer list and one operator list, so those two keys are
deleted after the write; nothing else is swept. REDIS_CACHE_TTL bounds
staleness if a delete is lost.

Inventory counters and admin views are never cached: counters are read
under a row lock anyway, and admin views carry commission and settlement
fields that must be current.

Redis is advisory. When it is disabled or a command fails, reads miss,
writes are skipped and callers fall through to the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

BOOKING_LIST_PREFIX = "bookings:list:"
CUSTOMER_SCOPE = "customer"
OPERATOR_SCOPE = "operator"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Shared client, created on first use. None when Redis is off or unreachable."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            health_check_interval=30,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
            await client.aclose()
            return None
        logger.info("redis_connected", url=settings.REDIS_URL)
        _redis_client = client

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def booking_list_key(scope: str, owner_id: int) -> str:
    return f"{BOOKING_LIST_PREFIX}{scope}={owner_id}"


async def get_cached_bookings(scope: str, owner_id: int) -> Optional[list]:
    client = await get_redis()
    if client is None:
        return None

    key = booking_list_key(scope, owner_id)
    try:
        data = await client.get(key)
    except RedisError as e:
        logger.warning("cache_get_failed", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    return json.loads(data) if data is not None else None


async def set_cached_bookings(scope: str, owner_id: int, views: list) -> None:
    """Store already-serialized (camelCase JSON) booking views."""
    client = await get_redis()
    if client is None:
        return

    key = booking_list_key(scope, owner_id)
    try:
        await client.set(key, json.dumps(views), ex=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        logger.warning("cache_set_failed", key=key, error=str(e))


async def invalidate_booking_lists(customer_id: int, operator_id: Optional[int]) -> None:
    """Drop the two lists a booking appears in."""
    client = await get_redis()
    if client is None:
        return

    keys = [booking_list_key(CUSTOMER_SCOPE, customer_id)]
    if operator_id is not None:
        keys.append(booking_list_key(OPERATOR_SCOPE, operator_id))
    try:
        deleted = await client.delete(*keys)
    except RedisError as e:
        logger.warning("cache_invalidation_failed", keys=keys, error=str(e))
        return
    logger.debug("cache_invalidated", keys=keys, deleted=deleted)


async def get_cache_stats() -> dict:
    """Keyspace hit/miss counters for /health."""
    client = await get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
