"""Map loosely-shaped voice vendor events onto ``TranscriptMessage`` records.

The vendor SDK emits several event shapes for the same logical thing
(``{role, content}``, ``{type, text}``, ``{speaker, transcript}`` ...), so every
lookup below walks an ordered list of field names and never trusts a single
one. Anything that cannot be understood is dropped rather than raised.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from .types import Role, TranscriptMessage, now_ms

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("content", "text", "message", "transcript", "body")
TIMESTAMP_FIELDS = ("timestamp", "time")
INCREMENTAL_MARKERS = ("partial", "interim", "progress")

_USER_TYPES = {"user-message", "user", "usermessage"}
_ASSISTANT_TYPES = {"assistant-message", "assistant", "assistantmessage"}
_USER_ALIASES = {"user", "caller"}
_ASSISTANT_ALIASES = {"assistant", "agent"}


def field_value(event: Any, name: str) -> Any:
    if isinstance(event, Mapping):
        return event.get(name)
    return getattr(event, name, None)


def _text(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def is_incremental(event: Any) -> bool:
    """Return True for partial/interim transcript updates that should be skipped."""

    for name in ("type", "transcriptType"):
        marker = _text(field_value(event, name))
        if marker and any(token in marker for token in INCREMENTAL_MARKERS):
            return True
    return False


def _role_from_alias(value: Any) -> Optional[Role]:
    alias = _text(value)
    if alias in _USER_ALIASES:
        return Role.USER
    if alias in _ASSISTANT_ALIASES:
        return Role.ASSISTANT
    return None


def resolve_role(event: Any) -> Role:
    explicit = _text(field_value(event, "role"))
    if explicit:
        try:
            return Role(explicit)
        except ValueError:
            logger.debug("Unknown vendor role %r, trying other fields", explicit)

    event_type = _text(field_value(event, "type"))
    if event_type:
        if event_type in _USER_TYPES:
            return Role.USER
        if event_type in _ASSISTANT_TYPES:
            return Role.ASSISTANT
        if "user" in event_type:
            return Role.USER
        if "assistant" in event_type:
            return Role.ASSISTANT

    for name in ("speaker", "from"):
        role = _role_from_alias(field_value(event, name))
        if role is not None:
            return role

    return Role.ASSISTANT


def resolve_content(event: Any) -> str:
    for name in CONTENT_FIELDS:
        value = field_value(event, name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def resolve_timestamp(event: Any) -> float:
    for name in TIMESTAMP_FIELDS:
        value = field_value(event, name)
        if isinstance(value, bool) or value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return now_ms()


def normalize_event(event: Any) -> Optional[TranscriptMessage]:
    """Return a transcript message for ``event`` or ``None`` when it carries no speech."""

    if not event:
        return None
    try:
        if is_incremental(event):
            return None
        content = resolve_content(event)
        if not content:
            return None
        return TranscriptMessage(
            role=resolve_role(event),
            content=content,
            timestamp=resolve_timestamp(event),
        )
    except Exception as exc:  # vendor payloads are untrusted
        logger.debug("Discarding malformed vendor event: %s", exc)
        return None


def normalize_events(payload: Any) -> List[TranscriptMessage]:
    """Normalise a single event or a batch, preserving order and dropping non-messages."""

    if isinstance(payload, (list, tuple)):
        items: Iterable[Any] = payload
    else:
        items = (payload,)
    messages: List[TranscriptMessage] = []
    for item in items:
        message = normalize_event(item)
        if message is not None:
            messages.append(message)
    return messages


__all__ = [
    "field_value",
    "CONTENT_FIELDS",
    "is_incremental",
    "normalize_event",
    "normalize_events",
    "resolve_content",
    "resolve_role",
    "resolve_timestamp",
]
