"""Server-side call-end processing for the voice vendor's webhook."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from reverie.apps.api.core.cache import invalidate_analyses
from reverie.apps.api.deps.limits import get_webhook_limiter, rate_limited_response
from reverie.libs.journal import create_entry
from reverie.libs.logging_utils import log_context
from reverie.libs.security import FixedWindowRateLimiter, rate_limit_key
from reverie.libs.voice import extract_user_content, normalize_events

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vapi", tags=["voice"])

CALL_END_EVENTS = {"call-end", "call-ended"}


@router.post("/webhook")
async def vapi_webhook(
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_webhook_limiter),
):
    client_host = request.client.host if request.client else None
    caller = rate_limit_key(request.headers, client_host)
    verdict = limiter.check(f"webhook:{caller}")
    if not verdict.allowed:
        LOGGER.warning("Webhook rate limit hit: caller=%s", caller)
        return rate_limited_response(limiter, verdict)

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Webhook processing failed"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Webhook processing failed"}, status_code=400)

    event = body.get("event") or body.get("type")
    if event in CALL_END_EVENTS:
        call = body.get("call") if isinstance(body.get("call"), dict) else {}
        with log_context(call_id=call.get("id") or body.get("callId")):
            return await _handle_call_end(body)
    if event in {"status-update", "transcript"}:
        return {"received": True}
    return {"received": True, "event": event}


def _prompt_text(value: Any) -> str:
    return "" if value is None else str(value)


async def _handle_call_end(body: Dict[str, Any]):
    metadata = body.get("metadata") if isinstance(body.get("metadata"), dict) else {}
    user_id = metadata.get("userId") or body.get("userId")
    if not user_id:
        return JSONResponse(
            {"error": "User ID not found in webhook"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    transcript: Any = body.get("transcript")
    if not transcript:
        transcript = {"messages": body.get("messages") or []}
    raw_messages = transcript.get("messages") if isinstance(transcript, dict) else transcript
    messages = normalize_events(raw_messages or [])

    user_content = extract_user_content(messages)
    if not user_content:
        return JSONResponse(
            {"error": "No user content found in transcript"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        entry = await create_entry(
            str(user_id),
            content=user_content,
            prompt=_prompt_text(metadata.get("prompt")),
            entry_type="voice",
            full_transcript=[message.as_dict() for message in messages],
        )
    except Exception:
        LOGGER.exception("Error processing call end: user_id=%s", user_id)
        return JSONResponse({"error": "Failed to process call end"}, status_code=500)

    await invalidate_analyses(str(user_id))
    LOGGER.info("Voice entry created from webhook: user_id=%s entry_id=%s", user_id, entry["id"])
    return {"success": True, "entryId": entry["id"]}


__all__ = ["router"]
