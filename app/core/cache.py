"""Redis client and query statistics counters."""

import logging
import redis.asyncio as redis
from typing import Dict, List, Optional

from app.core.config import (
    REDIS_HOST,
    REDIS_PORT,
    REDIS_DB,
    REDIS_PASSWORD,
    REDIS_ENABLED,
    CACHE_TTL_QUERY_CTR,
)
from app.utils.aggregator import normalize_query

logger = logging.getLogger(__name__)

FAILED_QUERIES_KEY = "search:failed_queries"
QUERY_CTR_PREFIX = "search:ctr:"

_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None


async def init_redis() -> Optional[redis.Redis]:
    """Initialize Redis connection pool."""
    global _redis_pool, _redis_client

    if not REDIS_ENABLED:
        return None

    try:
        _redis_pool = redis.ConnectionPool(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            password=REDIS_PASSWORD,
            max_connections=20,
            decode_responses=True,
        )
        _redis_client = redis.Redis(connection_pool=_redis_pool)

        # Test connection
        await _redis_client.ping()
        logger.info(f"✅ Redis connected: {REDIS_HOST}:{REDIS_PORT}")
        return _redis_client
    except Exception as e:
        logger.warning(f"⚠️ Redis connection failed: {e}")
        return None


async def close_redis():
    """Close Redis connection pool."""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
    if _redis_pool:
        await _redis_pool.disconnect()

    _redis_client = None
    _redis_pool = None


class QueryStatsCache:
    """Redis counters for zero-result queries and per-query click-through.

    Counters are best effort: every method degrades to a no-op or a default
    value when Redis is disabled or unreachable.
    """

    def __init__(self, redis_client: Optional[redis.Redis]):
        self.redis = redis_client

    async def track_failed_query(self, query: str) -> None:
        """Count a query that returned zero results."""
        if not self.redis or not normalize_query(query):
            return

        try:
            await self.redis.zincrby(FAILED_QUERIES_KEY, 1, normalize_query(query))
        except Exception as e:
            logger.warning(f"Failed to track failed query: {e}")

    async def get_failed_query_counts(self, limit: int = 50) -> List[Dict[str, int]]:
        """Most frequent zero-result queries, highest count first."""
        if not self.redis:
            return []

        try:
            rows = await self.redis.zrevrange(FAILED_QUERIES_KEY, 0, limit - 1, withscores=True)
        except Exception as e:
            logger.warning(f"Failed to get failed queries: {e}")
            return []

        return [{"query": query, "count": int(score)} for query, score in rows]

    async def track_impression(self, query: str) -> None:
        """Count one search results page shown for ``query``."""
        if not self.redis or not normalize_query(query):
            return

        try:
            key = f"{QUERY_CTR_PREFIX}{normalize_query(query)}"
            await self.redis.hincrby(key, "impressions", 1)
            await self.redis.expire(key, CACHE_TTL_QUERY_CTR)
        except Exception as e:
            logger.warning(f"Failed to track query impression: {e}")

    async def track_click(self, query: str) -> None:
        """Count one result click for ``query``."""
        if not self.redis or not normalize_query(query):
            return

        try:
            await self.redis.hincrby(f"{QUERY_CTR_PREFIX}{normalize_query(query)}", "clicks", 1)
        except Exception as e:
            logger.warning(f"Failed to track query click: {e}")

    async def get_query_ctr(self, query: str) -> Dict[str, float]:
        """Impressions, clicks and click-through rate (percent) for ``query``."""
        empty = {"impressions": 0, "clicks": 0, "ctr": 0.0}
        if not self.redis:
            return empty

        try:
            data = await self.redis.hgetall(f"{QUERY_CTR_PREFIX}{normalize_query(query)}")
        except Exception as e:
            logger.warning(f"Failed to get query CTR: {e}")
            return empty

        impressions = int(data.get("impressions", 0))
        clicks = int(data.get("clicks", 0))
        ctr = (clicks / impressions) * 100 if impressions > 0 else 0.0
        return {"impressions": impressions, "clicks": clicks, "ctr": round(ctr, 2)}
