"""Shared value types for voice journaling sessions."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class Role(str, Enum):
    """Speaker of a transcript turn."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class CallStatus(str, Enum):
    """Lifecycle of a single voice journaling call."""

    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ENDING = "ending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (CallStatus.COMPLETED, CallStatus.ERROR)


def now_ms() -> float:
    return time.time() * 1000.0


@dataclass(frozen=True, slots=True)
class TranscriptMessage:
    """A normalised speech turn captured during a call."""

    role: Role
    content: str
    timestamp: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }


__all__ = ["CallStatus", "Role", "TranscriptMessage", "now_ms"]
