"""Redis read-through cache for log pages and statistics.

Values are pydantic models stored as JSON strings with a fixed TTL.
Every Redis failure is logged and degraded: a failed read is a miss, a
failed write or invalidation is skipped.  Callers never see cache errors.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from catlogs.cache.keys import key_pattern

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_INVALIDATE_BATCH_SIZE = 100


class QueryCache:
    """TTL cache of serialized query results keyed by normalized parameters."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def get(self, key: str, model: type[ModelT]) -> ModelT | None:
        """Return the cached value for *key*, or ``None`` on miss or failure."""
        try:
            raw = await self._redis.get(key)
        except RedisError:
            logger.exception("Cache read failed for %s", key)
            return None
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed cache entry %s", key)
            return None

    async def set(self, key: str, value: BaseModel, *, ttl: int) -> bool:
        """Store *value* under *key* for *ttl* seconds; return success."""
        try:
            await self._redis.set(key, value.model_dump_json(), ex=ttl)
        except RedisError:
            logger.exception("Cache write failed for %s", key)
            return False
        return True

    async def invalidate(self, prefix: str) -> int:
        """Delete every key under *prefix* and return how many were removed.

        Uses ``SCAN`` rather than ``KEYS`` and deletes in batches to avoid
        loading the whole key space at once.
        """
        removed = 0
        batch: list = []
        try:
            async for key in self._redis.scan_iter(match=key_pattern(prefix)):
                batch.append(key)
                if len(batch) >= _INVALIDATE_BATCH_SIZE:
                    removed += await self._redis.delete(*batch)
                    batch.clear()
            if batch:
                removed += await self._redis.delete(*batch)
        except RedisError:
            logger.exception("Cache invalidation failed for prefix %s", prefix)
            return removed
        if removed:
            logger.info("Cleared %d cache entries under %s", removed, prefix)
        return removed
