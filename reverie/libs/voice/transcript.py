"""Ordered, de-duplicated transcript for a single voice call."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from .types import Role, TranscriptMessage

logger = logging.getLogger(__name__)

Candidate = Union[TranscriptMessage, Sequence[TranscriptMessage]]


class TranscriptAccumulator:
    """Collects normalised messages and folds progressive re-sends of one utterance.

    The vendor may deliver "I went", then "I went for a", then "I went for a walk"
    as separate final events. Consecutive same-role messages whose contents
    contain one another are treated as refinements and the newest one wins.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._messages: List[TranscriptMessage] = []
        self._clock = clock
        self._frozen = False
        self.last_user_speech_time: Optional[float] = None

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)

    @property
    def messages(self) -> List[TranscriptMessage]:
        return list(self._messages)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject every later mutation."""

        self._frozen = True

    def append(self, candidate: Candidate) -> bool:
        """Merge one message or a batch; return True when the transcript changed."""

        if isinstance(candidate, TranscriptMessage):
            return self._merge(candidate)
        changed = False
        for item in candidate:
            changed = self._merge(item) or changed
        return changed

    def merge_final(self, candidates: Iterable[TranscriptMessage]) -> int:
        """Fold end-of-call fragments in; already captured contents are skipped.

        Returns the number of fragments that changed the transcript.
        """

        merged = 0
        for candidate in candidates:
            if any(existing.content == candidate.content for existing in self._messages):
                continue
            if self._merge(candidate):
                merged += 1
        return merged

    def _merge(self, candidate: TranscriptMessage) -> bool:
        if self._frozen:
            logger.debug("Transcript frozen, ignoring %s message", candidate.role.value)
            return False

        last = self._messages[-1] if self._messages else None
        if last is not None and last.role == candidate.role:
            if last.content == candidate.content:
                return False
            if candidate.content in last.content or last.content in candidate.content:
                self._messages[-1] = candidate
                self._mark_speech(candidate)
                return True

        self._messages.append(candidate)
        self._mark_speech(candidate)
        return True

    def _mark_speech(self, message: TranscriptMessage) -> None:
        if message.role == Role.USER:
            self.last_user_speech_time = self._clock()

    def as_payload(self) -> List[Dict[str, Any]]:
        return [message.as_dict() for message in self._messages]


__all__ = ["TranscriptAccumulator"]
