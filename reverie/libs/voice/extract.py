"""Turn a call transcript into journal entry text."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, List

from .normalizer import normalize_event
from .types import Role, TranscriptMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    content: str
    used_fallback: bool = False

    @property
    def empty(self) -> bool:
        return not self.content


def _as_messages(transcript: Any) -> List[TranscriptMessage]:
    if transcript is None:
        return []
    if isinstance(transcript, Mapping):
        transcript = transcript.get("messages") or []
    messages: List[TranscriptMessage] = []
    for item in transcript:
        if isinstance(item, TranscriptMessage):
            messages.append(item)
            continue
        parsed = normalize_event(item)
        if parsed is not None:
            messages.append(parsed)
    return messages


def _join(messages: Iterable[TranscriptMessage]) -> str:
    parts = (message.content.strip() for message in messages)
    return " ".join(part for part in parts if part)


def extract_user_content(transcript: Any) -> str:
    """Join every user turn, in order, with single spaces."""

    return _join(m for m in _as_messages(transcript) if m.role == Role.USER)


def extract_all_content(transcript: Any) -> str:
    """Join every turn regardless of role; last resort when roles look wrong."""

    return _join(_as_messages(transcript))


def extract_journal_content(transcript: Any) -> ExtractionResult:
    messages = _as_messages(transcript)
    user_content = extract_user_content(messages)
    if user_content:
        return ExtractionResult(user_content)
    if not messages:
        return ExtractionResult("")
    logger.warning(
        "No user speech found in %d transcript messages; falling back to all roles",
        len(messages),
    )
    return ExtractionResult(extract_all_content(messages), used_fallback=True)


def word_count(text: str) -> int:
    return len(text.split())


__all__ = [
    "ExtractionResult",
    "extract_all_content",
    "extract_journal_content",
    "extract_user_content",
    "word_count",
]
