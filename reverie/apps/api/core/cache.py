from __future__ import annotations

import logging

from redis import asyncio as aioredis

from reverie.libs.schemas import get_settings

logger = logging.getLogger(__name__)

# Derived analyses regenerated lazily after any entry write.
ANALYSIS_KINDS = ("themes", "topics", "correlations")

_redis: aioredis.Redis | None = None


async def _get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(get_settings().redis_url, decode_responses=True)
    return _redis


def analysis_key(kind: str, user_id: str) -> str:
    return f"analysis:{kind}:{user_id}"


async def invalidate_analyses(user_id: str) -> bool:
    """Drop cached theme/topic/correlation analyses; failures are logged, not raised."""

    try:
        redis = await _get_redis()
        await redis.delete(*(analysis_key(kind, user_id) for kind in ANALYSIS_KINDS))
    except Exception as exc:
        logger.warning("Failed to invalidate analysis caches: user_id=%s error=%s", user_id, exc)
        return False
    return True


__all__ = ["ANALYSIS_KINDS", "analysis_key", "invalidate_analyses"]
