"""Voice journaling call controller.

Drives one realtime voice call at a time through
``idle -> connecting -> active -> ending -> processing -> completed | error``.
All mutation happens on the event loop thread: vendor callbacks, timer
callbacks and host actions are serialised by asyncio, so no locks are taken.
Every way a call can end (manual end, vendor ``call-end``, vendor
``status-update``, duration ceiling, optional silence) goes through
``_finish`` which is guarded by a one-shot latch on the session.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .assistant import build_assistant_config
from .extract import extract_journal_content, word_count
from .normalizer import field_value, normalize_events
from .submission import EntrySubmitter, SubmissionResult
from .transcript import TranscriptAccumulator
from .types import CallStatus, Role, TranscriptMessage
from .vendor import (
    ENDED_STATUSES,
    EVENT_CALL_END,
    EVENT_ERROR,
    EVENT_MESSAGE,
    EVENT_STATUS_UPDATE,
    EVENT_TRANSCRIPT,
    CallStartError,
    MicrophonePermissionError,
    MicrophoneRequest,
    VendorUnavailableError,
    VoiceSessionError,
    VoiceVendorClient,
    vendor_error_message,
)

logger = logging.getLogger(__name__)

NO_SPEECH_ERROR = "No speech detected. Please try speaking again or switch to text mode."
SAVE_FAILED_ERROR = "Failed to save entry. Please try again."
PROCESSING_ERROR = "Error processing your journal entry. Please try again."
SHORT_ENTRY_WORDS = 5

_TRANSITIONS: Dict[CallStatus, frozenset] = {
    CallStatus.IDLE: frozenset({CallStatus.CONNECTING, CallStatus.ERROR}),
    CallStatus.CONNECTING: frozenset({CallStatus.ACTIVE, CallStatus.ERROR}),
    CallStatus.ACTIVE: frozenset({CallStatus.ENDING, CallStatus.ERROR}),
    CallStatus.ENDING: frozenset({CallStatus.PROCESSING, CallStatus.ERROR}),
    CallStatus.PROCESSING: frozenset({CallStatus.COMPLETED, CallStatus.ERROR}),
    CallStatus.COMPLETED: frozenset(),
    CallStatus.ERROR: frozenset(),
}

# Statuses in which vendor transcript events are still folded in.
_LISTENING = frozenset({CallStatus.CONNECTING, CallStatus.ACTIVE, CallStatus.ENDING})


@dataclass
class VoiceSessionConfig:
    max_call_seconds: float = 360.0
    min_call_seconds: float = 120.0
    settle_seconds: float = 1.0
    tick_seconds: float = 1.0
    silence_detection: bool = False
    silence_timeout_seconds: float = 8.0

    @classmethod
    def from_settings(cls, settings: Any) -> "VoiceSessionConfig":
        return cls(
            max_call_seconds=settings.max_call_seconds,
            min_call_seconds=settings.min_call_seconds,
            settle_seconds=settings.call_settle_seconds,
            tick_seconds=settings.call_tick_seconds,
            silence_detection=settings.enable_silence_detection,
            silence_timeout_seconds=settings.silence_timeout_seconds,
        )


@dataclass
class CallSession:
    """State of one call attempt; never reused once it reaches a terminal status."""

    transcript: TranscriptAccumulator = field(default_factory=TranscriptAccumulator)
    status: CallStatus = CallStatus.IDLE
    start_time: Optional[float] = None
    handle: Any = None
    end_latched: bool = False
    end_reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def messages(self) -> List[TranscriptMessage]:
        return self.transcript.messages

    @property
    def last_user_speech_time(self) -> Optional[float]:
        return self.transcript.last_user_speech_time

    def can_transition(self, target: CallStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def transition(self, target: CallStatus) -> bool:
        if not self.can_transition(target):
            logger.warning("Rejected call transition %s -> %s", self.status.value, target.value)
            return False
        logger.info("Call status %s -> %s", self.status.value, target.value)
        self.status = target
        if target.is_terminal:
            self.transcript.freeze()
        return True


StatusCallback = Callable[[CallStatus], Any]
TickCallback = Callable[[float, float], Any]
EntryCallback = Callable[[Dict[str, Any]], Any]
ErrorCallback = Callable[[str], Any]


class VoiceJournal:
    """Host-facing controller owning the current ``CallSession``."""

    def __init__(
        self,
        vendor: Optional[VoiceVendorClient],
        submitter: EntrySubmitter,
        *,
        prompt: str,
        tags: Optional[Sequence[str]] = None,
        config: Optional[VoiceSessionConfig] = None,
        request_microphone: Optional[MicrophoneRequest] = None,
        on_status_change: Optional[StatusCallback] = None,
        on_tick: Optional[TickCallback] = None,
        on_entry_created: Optional[EntryCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self.vendor = vendor
        self.submitter = submitter
        self.prompt = prompt
        self.tags = list(tags or [])
        self.config = config or VoiceSessionConfig()
        self._request_microphone = request_microphone
        self._on_status_change = on_status_change
        self._on_tick = on_tick
        self._on_entry_created = on_entry_created
        self._on_error = on_error

        self._session = CallSession()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._subscribed = False
        self._disposed = False

    # ------------------------------------------------------------------ state

    @property
    def session(self) -> CallSession:
        return self._session

    @property
    def status(self) -> CallStatus:
        return self._session.status

    @property
    def messages(self) -> List[TranscriptMessage]:
        return self._session.messages

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def elapsed(self) -> float:
        session = self._session
        if session.start_time is None or self._loop is None:
            return 0.0
        return max(0.0, self._loop.time() - session.start_time)

    @property
    def remaining(self) -> float:
        return max(0.0, self.config.max_call_seconds - self.elapsed)

    @property
    def min_duration_reached(self) -> bool:
        """Floor signal for the UI; never blocks ending the call."""

        return self.elapsed >= self.config.min_call_seconds

    def _is_current(self, session: CallSession) -> bool:
        return not self._disposed and session is self._session

    # -------------------------------------------------------------- lifecycle

    async def start(self) -> None:
        """Begin a new call, discarding whatever the previous one accumulated."""

        if self._disposed:
            logger.warning("start() called on a disposed voice journal")
            return
        if self._session.status not in (CallStatus.IDLE, CallStatus.COMPLETED, CallStatus.ERROR):
            logger.warning("Call already in progress (status=%s)", self._session.status.value)
            return

        self._loop = asyncio.get_running_loop()
        self._clear_timers()
        session = CallSession(transcript=TranscriptAccumulator(clock=self._loop.time))
        self._session = session

        if self.vendor is None:
            self._fail(session, VendorUnavailableError())
            return

        try:
            await self._ensure_microphone()
        except VoiceSessionError as exc:
            self._fail(session, exc)
            return
        if not self._is_current(session):
            return

        self._set_status(session, CallStatus.CONNECTING)
        self._subscribe()
        config = build_assistant_config(self.prompt, max_call_seconds=self.config.max_call_seconds)
        try:
            handle = await self.vendor.start(config)
        except Exception as exc:
            logger.error("Voice vendor failed to start call: %s", exc, exc_info=True)
            if self._is_current(session):
                self._fail(session, CallStartError(str(exc) or None))
            return

        if self._disposed:
            await self._stop_vendor()
            return
        if session is not self._session or session.status != CallStatus.CONNECTING:
            return

        session.handle = handle
        session.start_time = self._loop.time()
        self._set_status(session, CallStatus.ACTIVE)
        self._schedule_tick(session)

    async def _ensure_microphone(self) -> None:
        if self._request_microphone is None:
            return
        try:
            granted = await self._request_microphone()
        except Exception as exc:
            logger.warning("Microphone permission request failed: %s", exc)
            raise MicrophonePermissionError() from exc
        if granted is False:
            raise MicrophonePermissionError()

    async def end_call(self) -> None:
        """Manual end; always honoured while the call is active."""

        session = self._session
        if self._disposed or session.status != CallStatus.ACTIVE:
            return
        await self._stop_vendor()
        # The vendor usually answers stop() with its own call-end; if it did
        # not, end here so a failed or silent stop never strands the call.
        self._finish(session, "manual")

    async def dispose(self) -> None:
        """Tear down: no timer, vendor event or pending result acts after this."""

        if self._disposed:
            return
        self._disposed = True
        self._clear_timers()
        self._unsubscribe()
        if self._session.handle is not None:
            await self._stop_vendor()
        logger.info("Voice journal disposed (status=%s)", self._session.status.value)

    async def drain(self) -> None:
        """Wait for in-flight background work (settling, submission) to settle."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---------------------------------------------------------- vendor events

    def handle_message(self, event: Any) -> None:
        session = self._session
        if self._disposed or session.status not in _LISTENING:
            return
        messages = normalize_events(event)
        if not messages:
            return
        session.transcript.append(messages)
        if any(message.role == Role.USER for message in messages):
            self._reset_silence_timer(session)

    def handle_call_end(self, data: Any = None) -> None:
        self._finish(self._session, "call-end", data)

    def handle_status_update(self, data: Any) -> None:
        status = field_value(data, "status") if data else None
        if isinstance(status, str) and status in ENDED_STATUSES:
            self._finish(self._session, "status-update", data)

    def handle_error(self, error: Any) -> None:
        session = self._session
        if self._disposed:
            return
        message = vendor_error_message(error)
        if session.status in (CallStatus.ENDING, CallStatus.PROCESSING):
            logger.warning("Ignoring vendor error while %s: %s", session.status.value, message)
            return
        if session.status not in (CallStatus.CONNECTING, CallStatus.ACTIVE):
            logger.debug("Vendor error outside a live call (status=%s): %s", session.status.value, message)
            return
        logger.error("Voice vendor error: %s", message)
        self._fail(session, VoiceSessionError(message))

    def _handlers(self) -> List[tuple]:
        return [
            (EVENT_MESSAGE, self.handle_message),
            (EVENT_TRANSCRIPT, self.handle_message),
            (EVENT_CALL_END, self.handle_call_end),
            (EVENT_STATUS_UPDATE, self.handle_status_update),
            (EVENT_ERROR, self.handle_error),
        ]

    def _subscribe(self) -> None:
        if self._subscribed or self.vendor is None:
            return
        for event, handler in self._handlers():
            self.vendor.on(event, handler)
        self._subscribed = True

    def _unsubscribe(self) -> None:
        if not self._subscribed or self.vendor is None:
            return
        for event, handler in self._handlers():
            try:
                self.vendor.off(event, handler)
            except Exception as exc:
                logger.debug("Failed to detach %s handler: %s", event, exc)
        self._subscribed = False

    async def _stop_vendor(self) -> None:
        if self.vendor is None:
            return
        try:
            await self.vendor.stop()
        except Exception as exc:
            logger.warning("Error stopping voice call: %s", exc)

    # ------------------------------------------------------------- end of call

    def _finish(self, session: CallSession, reason: str, data: Any = None) -> None:
        if not self._is_current(session):
            return
        if session.end_latched:
            logger.debug("Call end (%s) already being handled, skipping duplicate", reason)
            return
        if session.status != CallStatus.ACTIVE:
            logger.debug("Ignoring call end (%s) while %s", reason, session.status.value)
            return

        session.end_latched = True
        session.end_reason = reason
        self._clear_timers()
        self._set_status(session, CallStatus.ENDING)
        self._spawn(self._settle(session, data))

    async def _settle(self, session: CallSession, data: Any) -> None:
        fragments = await self._collect_final_fragments(session, data)
        if not self._is_current(session) or session.status != CallStatus.ENDING:
            return
        merged = session.transcript.merge_final(fragments)
        logger.info(
            "Call ended (%s): %d messages captured, %d merged from end event",
            session.end_reason,
            len(session.transcript),
            merged,
        )
        self._schedule(session, "settle", self.config.settle_seconds, self._begin_processing)

    async def _collect_final_fragments(self, session: CallSession, data: Any) -> List[TranscriptMessage]:
        fragments: List[TranscriptMessage] = []
        if data:
            event_messages = field_value(data, "messages")
            if isinstance(event_messages, (list, tuple)):
                fragments.extend(normalize_events(event_messages))
            transcript = field_value(data, "transcript")
            if isinstance(transcript, Mapping):
                transcript = transcript.get("messages")
            if isinstance(transcript, (list, tuple)):
                fragments.extend(normalize_events(transcript))

        call_messages: Any = None
        try:
            handle = session.handle
            getter = getattr(handle, "get_messages", None)
            if callable(getter):
                call_messages = getter()
                if inspect.isawaitable(call_messages):
                    call_messages = await call_messages
            elif handle is not None:
                call_messages = field_value(handle, "messages")
        except Exception as exc:
            logger.warning("Could not read messages from call handle: %s", exc)

        if isinstance(call_messages, (list, tuple)):
            fragments.extend(normalize_events(call_messages))
        return fragments

    def _begin_processing(self, session: CallSession) -> None:
        if session.status != CallStatus.ENDING:
            return
        self._set_status(session, CallStatus.PROCESSING)
        self._spawn(self._process(session))

    async def _process(self, session: CallSession) -> None:
        messages = session.messages
        if not messages:
            self._fail(session, NO_SPEECH_ERROR)
            return

        extraction = extract_journal_content(messages)
        if extraction.empty:
            self._fail(session, NO_SPEECH_ERROR)
            return
        if word_count(extraction.content) < SHORT_ENTRY_WORDS:
            logger.warning(
                "Voice entry is short (%d words); saving anyway",
                word_count(extraction.content),
            )

        try:
            result = await self.submitter.submit(
                extraction.content,
                self.prompt,
                self.tags,
                messages,
            )
        except Exception as exc:
            logger.error("Voice entry submission raised: %s", exc, exc_info=True)
            result = SubmissionResult(success=False, error=PROCESSING_ERROR)

        if not self._is_current(session):
            logger.info("Discarding submission result for a superseded call")
            return
        if result.success and result.entry:
            self._set_status(session, CallStatus.COMPLETED)
            self._emit(self._on_entry_created, result.entry)
        else:
            self._fail(session, result.error or SAVE_FAILED_ERROR)

    def _fail(self, session: CallSession, error: VoiceSessionError | str) -> None:
        if not self._is_current(session) or session.status.is_terminal:
            return
        message = error.message if isinstance(error, VoiceSessionError) else error
        self._clear_timers()
        session.error = message
        session.end_latched = False
        self._set_status(session, CallStatus.ERROR)
        self._emit(self._on_error, message)

    def _set_status(self, session: CallSession, status: CallStatus) -> None:
        if session.transition(status):
            if status.is_terminal:
                self._clear_timers()
            self._emit(self._on_status_change, status)

    # ------------------------------------------------------------------ timers

    def _schedule(
        self,
        session: CallSession,
        name: str,
        delay: float,
        callback: Callable[[CallSession], None],
    ) -> None:
        self._cancel_timer(name)
        self._timers[name] = self._require_loop().call_later(
            max(0.0, delay), self._fire, name, session, callback
        )

    def _fire(self, name: str, session: CallSession, callback: Callable[[CallSession], None]) -> None:
        self._timers.pop(name, None)
        if not self._is_current(session):
            return
        callback(session)

    def _cancel_timer(self, name: str) -> None:
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    def _clear_timers(self) -> None:
        for name in list(self._timers):
            self._cancel_timer(name)

    def _schedule_tick(self, session: CallSession) -> None:
        delay = min(self.config.tick_seconds, self.remaining)
        self._schedule(session, "duration", delay, self._on_duration_tick)

    def _on_duration_tick(self, session: CallSession) -> None:
        if session.status != CallStatus.ACTIVE:
            return
        remaining = self.remaining
        self._emit(self._on_tick, self.elapsed, remaining)
        if remaining <= 0:
            logger.info("Maximum call duration reached, ending call")
            self._finish(session, "max-duration")
            self._spawn(self._stop_vendor())
            return
        self._schedule_tick(session)

    def _reset_silence_timer(self, session: CallSession) -> None:
        self._cancel_timer("silence")
        if not self.config.silence_detection or session.status != CallStatus.ACTIVE:
            return
        if not self.min_duration_reached or session.last_user_speech_time is None:
            return
        self._schedule(session, "silence", self.config.silence_timeout_seconds, self._on_silence)

    def _on_silence(self, session: CallSession) -> None:
        if session.status != CallStatus.ACTIVE or session.last_user_speech_time is None:
            return
        quiet_for = self._require_loop().time() - session.last_user_speech_time
        if quiet_for < self.config.silence_timeout_seconds:
            self._schedule(
                session,
                "silence",
                self.config.silence_timeout_seconds - quiet_for,
                self._on_silence,
            )
            return
        logger.info("Silence after user speech for %.1fs, ending call", quiet_for)
        self._finish(session, "silence")
        self._spawn(self._stop_vendor())

    # ---------------------------------------------------------------- helpers

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise VoiceSessionError("Voice journal has not been started")
        return self._loop

    def _spawn(self, coro: Any) -> None:
        try:
            loop = self._require_loop()
        except VoiceSessionError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _emit(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
        except Exception:
            logger.exception("Voice journal host callback failed")
            return
        if inspect.iscoroutine(result):
            self._spawn(result)


__all__ = [
    "CallSession",
    "NO_SPEECH_ERROR",
    "VoiceJournal",
    "VoiceSessionConfig",
]
