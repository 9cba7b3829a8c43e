"""
Redis caching service for court slot listings.

CACHING STRATEGY
================

What we cache:
  - Resolved slot lists for one court on one date (JSON-serialized)
  - Cache key pattern: "slots:court={court_id}:date={YYYY-MM-DD}"

Why:
  - Availability is the most frequent read: every player browsing a court
  - Resolution touches templates, overrides, pricing rules, blocks and bookings

Invalidation strategy:
  - Any booking write (create, cancel, status change) deletes the key for
    that court and date
  - Facility-wide listings are resolved directly and never cached
  - Short TTL as safety net, since template/override edits happen outside
    this service

Why NOT read the cache when booking:
  - The write path re-resolves slots against committed state; a stale
    cached list would reopen the double-booking race
"""

import json
from datetime import date
from typing import List, Optional

import redis.asyncio as redis
from court_booking.core.config import get_settings
from court_booking.core.logging import get_logger
from court_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


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
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def _make_slots_key(court_id: int, day: date) -> str:
    return f"slots:court={court_id}:date={day.isoformat()}"


async def get_cached_slots(court_id: int, day: date) -> Optional[List[dict]]:
    client = await get_redis()
    if not client:
        return None

    key = _make_slots_key(court_id, day)
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


async def set_cached_slots(court_id: int, day: date, slots: List[dict]) -> None:
    """Cache a court's slot list with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_slots_key(court_id, day)
    try:
        await client.setex(key, settings.REDIS_SLOT_CACHE_TTL, json.dumps(slots, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_SLOT_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_slot_cache(court_id: int, day: date) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_slots_key(court_id, day)
    try:
        deleted = await client.delete(key)
        logger.info("cache_invalidated", key=key, keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
