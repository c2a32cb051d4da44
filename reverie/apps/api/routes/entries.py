from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from reverie.apps.api.core.cache import invalidate_analyses
from reverie.apps.api.deps.auth import get_current_user_id
from reverie.apps.api.deps.limits import get_entries_limiter, rate_limited_response
from reverie.libs.journal import (
    EntryAccessError,
    EntryNotFoundError,
    create_entry,
    delete_entry,
    get_entry,
    list_entries,
)
from reverie.libs.logging_utils import log_context
from reverie.libs.schemas import EntryCreateRequest
from reverie.libs.security import FixedWindowRateLimiter

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entries", tags=["entries"])

_NOT_FOUND = {"error": "Entry not found"}
_FORBIDDEN = {"error": "Unauthorized"}


@router.get("")
async def get_entries(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
):
    try:
        entries, total = await list_entries(user_id, limit=limit, offset=offset)
    except Exception:
        LOGGER.exception("Error fetching entries: user_id=%s", user_id)
        return JSONResponse({"error": "Failed to fetch entries"}, status_code=500)
    return {"entries": entries, "total": total}


@router.post("", status_code=status.HTTP_201_CREATED)
async def post_entry(
    body: EntryCreateRequest,
    user_id: str = Depends(get_current_user_id),
    limiter: FixedWindowRateLimiter = Depends(get_entries_limiter),
):
    with log_context(user_id=user_id):
        return await _create_entry_response(body, user_id, limiter)


async def _create_entry_response(
    body: EntryCreateRequest,
    user_id: str,
    limiter: FixedWindowRateLimiter,
):
    verdict = limiter.check(f"entries:{user_id}")
    if not verdict.allowed:
        LOGGER.info("Entry rate limit hit: user_id=%s", user_id)
        return rate_limited_response(limiter, verdict)

    content = body.content or ""
    if not content.strip():
        return JSONResponse(
            {"error": "Entry content is required"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    transcript = None
    if body.full_transcript:
        transcript = [item.model_dump() for item in body.full_transcript]

    try:
        entry = await create_entry(
            user_id,
            content=content,
            prompt=body.prompt,
            tags=body.tags,
            entry_type=body.entry_type,
            full_transcript=transcript,
        )
    except Exception:
        LOGGER.exception("Error creating entry: user_id=%s", user_id)
        return JSONResponse({"error": "Failed to create entry"}, status_code=500)

    await invalidate_analyses(user_id)
    return {"entry": entry}


@router.get("/{entry_id}")
async def get_single_entry(entry_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        entry = await get_entry(user_id, entry_id)
    except EntryNotFoundError:
        return JSONResponse(_NOT_FOUND, status_code=status.HTTP_404_NOT_FOUND)
    except EntryAccessError:
        LOGGER.warning("Entry access denied: user_id=%s entry_id=%s", user_id, entry_id)
        return JSONResponse(_FORBIDDEN, status_code=status.HTTP_403_FORBIDDEN)
    except Exception:
        LOGGER.exception("Error fetching entry: user_id=%s entry_id=%s", user_id, entry_id)
        return JSONResponse({"error": "Failed to fetch entry"}, status_code=500)
    return {"entry": entry}


@router.delete("/{entry_id}")
async def delete_single_entry(entry_id: str, user_id: str = Depends(get_current_user_id)):
    with log_context(user_id=user_id):
        try:
            await delete_entry(user_id, entry_id)
        except EntryNotFoundError:
            return JSONResponse(_NOT_FOUND, status_code=status.HTTP_404_NOT_FOUND)
        except EntryAccessError:
            LOGGER.warning("Entry delete denied: user_id=%s entry_id=%s", user_id, entry_id)
            return JSONResponse(_FORBIDDEN, status_code=status.HTTP_403_FORBIDDEN)
        except Exception:
            LOGGER.exception("Error deleting entry: user_id=%s entry_id=%s", user_id, entry_id)
            return JSONResponse({"error": "Failed to delete entry"}, status_code=500)

        await invalidate_analyses(user_id)
    return {"success": True}


__all__ = ["router"]
