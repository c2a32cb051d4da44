from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from reverie.apps.api.deps.auth import get_current_user_id
from reverie.apps.api.deps.limits import get_stats_limiter, rate_limited_response
from reverie.libs.journal import get_stats
from reverie.libs.security import FixedWindowRateLimiter

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("")
async def read_stats(
    user_id: str = Depends(get_current_user_id),
    limiter: FixedWindowRateLimiter = Depends(get_stats_limiter),
):
    verdict = limiter.check(f"stats:{user_id}")
    if not verdict.allowed:
        return rate_limited_response(limiter, verdict)

    try:
        stats = await get_stats(user_id)
    except Exception:
        LOGGER.exception("Error fetching stats: user_id=%s", user_id)
        return JSONResponse({"error": "Failed to fetch stats"}, status_code=500)
    return {"stats": stats.as_dict()}


__all__ = ["router"]
