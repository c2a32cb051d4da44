"""Hand a finished voice transcript to the entry creation API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import httpx

from .types import TranscriptMessage

LOGGER = logging.getLogger(__name__)

ENTRIES_PATH = "/api/entries"
EMPTY_CONTENT_ERROR = "No content to save. Please try speaking again."
SAVE_FAILED_ERROR = "Failed to save entry"
REQUEST_FAILED_ERROR = "Failed to create entry. Please try again."


@dataclass(slots=True)
class SubmissionResult:
    success: bool
    entry: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class EntrySubmitter:
    """POSTs voice entries to ``/api/entries``; never retries."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Any, *, headers: Optional[Mapping[str, str]] = None) -> "EntrySubmitter":
        return cls(
            settings.entries_api_url,
            timeout=settings.entries_api_timeout,
            headers=headers,
        )

    @staticmethod
    def build_payload(
        content: str,
        prompt: str,
        tags: Optional[Sequence[str]] = None,
        full_transcript: Optional[Sequence[TranscriptMessage]] = None,
    ) -> Dict[str, Any]:
        return {
            "content": content,
            "prompt": prompt,
            "tags": list(tags or []),
            "fullTranscript": [message.as_dict() for message in full_transcript or []],
            "entryType": "voice",
        }

    async def submit(
        self,
        content: str,
        prompt: str,
        tags: Optional[Sequence[str]] = None,
        full_transcript: Optional[Sequence[TranscriptMessage]] = None,
    ) -> SubmissionResult:
        if not content or not content.strip():
            return SubmissionResult(success=False, error=EMPTY_CONTENT_ERROR)

        payload = self.build_payload(content, prompt, tags, full_transcript)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            ) as client:
                response = await client.post(ENTRIES_PATH, json=payload)
        except httpx.HTTPError as exc:
            LOGGER.warning("Entry submission request failed: %s", exc, exc_info=True)
            return SubmissionResult(success=False, error=REQUEST_FAILED_ERROR)

        if response.is_error:
            message = _error_message(response)
            LOGGER.warning(
                "Entry submission rejected: status=%s error=%s",
                response.status_code,
                message,
            )
            return SubmissionResult(success=False, error=message)

        try:
            body = response.json()
        except json.JSONDecodeError:
            LOGGER.warning("Entry submission returned non-JSON payload")
            return SubmissionResult(success=False, error=REQUEST_FAILED_ERROR)

        entry = body.get("entry") if isinstance(body, dict) else None
        if not entry:
            LOGGER.warning("Entry submission response missing entry: %s", body)
            return SubmissionResult(success=False, error=SAVE_FAILED_ERROR)
        return SubmissionResult(success=True, entry=entry)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except json.JSONDecodeError:
        return SAVE_FAILED_ERROR
    if isinstance(body, dict):
        detail = body.get("error") or body.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    return SAVE_FAILED_ERROR


__all__ = ["EntrySubmitter", "SubmissionResult"]
