"""Boundary contracts for the realtime voice vendor and microphone access."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Protocol

EventHandler = Callable[[Any], Any]

EVENT_MESSAGE = "message"
EVENT_TRANSCRIPT = "transcript"
EVENT_CALL_END = "call-end"
EVENT_STATUS_UPDATE = "status-update"
EVENT_ERROR = "error"

ENDED_STATUSES = frozenset({"ended", "call-ended"})


class VoiceVendorClient(Protocol):
    """Subset of the vendor SDK the session controller relies on."""

    async def start(self, config: Mapping[str, Any]) -> Any:
        ...

    async def stop(self) -> None:
        ...

    def on(self, event: str, handler: EventHandler) -> None:
        ...

    def off(self, event: str, handler: EventHandler) -> None:
        ...


MicrophoneRequest = Callable[[], Awaitable[Any]]


class VoiceSessionError(Exception):
    """Base error surfaced to the host as a user-facing message."""

    default_message = "An error occurred during the call. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class VendorUnavailableError(VoiceSessionError):
    default_message = "Voice journaling is not available. Please check your configuration."


class MicrophonePermissionError(VoiceSessionError):
    default_message = (
        "Microphone access is required for voice journaling. "
        "Please allow microphone access and try again."
    )


class CallStartError(VoiceSessionError):
    default_message = (
        "Failed to start voice call. Please check your voice configuration and try again."
    )


def vendor_error_message(error: Any) -> str:
    """Pull a readable message out of a vendor error payload."""

    if isinstance(error, BaseException):
        return str(error) or VoiceSessionError.default_message
    if isinstance(error, Mapping):
        nested = error.get("error")
        if isinstance(nested, Mapping):
            msg = nested.get("msg") or nested.get("message")
            if isinstance(msg, str) and msg:
                return msg
        msg = error.get("message")
        if isinstance(msg, str) and msg:
            return msg
    if isinstance(error, str) and error:
        return error
    return VoiceSessionError.default_message


__all__ = [
    "CallStartError",
    "ENDED_STATUSES",
    "EVENT_CALL_END",
    "EVENT_ERROR",
    "EVENT_MESSAGE",
    "EVENT_STATUS_UPDATE",
    "EVENT_TRANSCRIPT",
    "EventHandler",
    "MicrophonePermissionError",
    "MicrophoneRequest",
    "VendorUnavailableError",
    "VoiceSessionError",
    "VoiceVendorClient",
    "vendor_error_message",
]
