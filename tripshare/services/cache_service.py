"""
Redis caching for operator booking analytics.

CACHING STRATEGY
================

What we cache:
  - The analytics rollup for an operator's set of linked companies
  - Cache key pattern: "analytics:companies={id,id,...}"

Why:
  - The dashboard polls analytics; each call runs a dozen aggregate queries
  - The numbers only change when a booking changes

Invalidation strategy:
  - Every booking mutation (create, accept, reject, cancel, edit, payment)
    deletes the keys that include the booking's company
  - TTL-based expiry as safety net (5 minutes)

  Keys embed the company ids so a mutation on company 7 only has to SCAN
  "analytics:*" and drop the keys whose id list contains 7.

Why NOT cache the seat map:
  - Seat availability must be exact at read time; a stale view is exactly
    the double-booking the seat resolver exists to prevent
"""

import json
from typing import Iterable, Optional

from tripshare.core.config import get_settings
from tripshare.core.logging import get_logger
from tripshare.core.metrics import record_cache_operation
from tripshare.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

ANALYTICS_PREFIX = "analytics:"


def _make_analytics_key(company_ids: Iterable[int]) -> str:
    ids = ",".join(str(c) for c in sorted(set(company_ids)))
    return f"{ANALYTICS_PREFIX}companies={ids}"


def _key_company_ids(key: str) -> set[int]:
    _, _, ids = key.partition("companies=")
    return {int(c) for c in ids.split(",") if c}


async def get_cached_analytics(company_ids: Iterable[int]) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_analytics_key(company_ids)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_analytics(company_ids: Iterable[int], data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_analytics_key(company_ids)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_company_analytics(company_id: int) -> None:
    """Drop every cached rollup that includes `company_id`."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{ANALYTICS_PREFIX}*", count=100):
            if company_id in _key_company_ids(key):
                await client.delete(key)
                deleted += 1
        logger.debug("cache_invalidated", company_id=company_id, keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", company_id=company_id, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
