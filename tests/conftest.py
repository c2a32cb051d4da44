import asyncio
import os
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import pytest

os.environ.setdefault("REVERIE_ENVIRONMENT", "test")
os.environ.setdefault("REVERIE_LOG_FORMAT", "text")

from reverie.libs.voice import CallStatus, SubmissionResult, VoiceSessionConfig


class FakeVendor:
    """In-memory stand-in for the realtime voice SDK."""

    def __init__(
        self,
        *,
        handle: Any = None,
        start_error: Optional[Exception] = None,
        stop_error: Optional[Exception] = None,
        end_on_stop: bool = False,
    ) -> None:
        self.handle = handle if handle is not None else {"id": "call-1"}
        self.start_error = start_error
        self.stop_error = stop_error
        self.end_on_stop = end_on_stop
        self.handlers: Dict[str, List[Callable[[Any], Any]]] = defaultdict(list)
        self.started_with: Optional[dict] = None
        self.start_calls = 0
        self.stop_calls = 0

    async def start(self, config):
        self.start_calls += 1
        self.started_with = config
        if self.start_error is not None:
            raise self.start_error
        return self.handle

    async def stop(self):
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        if self.end_on_stop:
            self.emit("call-end", {})

    def on(self, event, handler):
        self.handlers[event].append(handler)

    def off(self, event, handler):
        self.handlers[event].remove(handler)

    def emit(self, event, payload=None):
        for handler in list(self.handlers[event]):
            handler(payload)

    def subscribed(self) -> int:
        return sum(len(items) for items in self.handlers.values())


class RecordingSubmitter:
    def __init__(self, result: Optional[SubmissionResult] = None, gate: Optional[asyncio.Event] = None) -> None:
        self.result = result or SubmissionResult(success=True, entry={"id": "entry-1"})
        self.gate = gate
        self.calls: List[Dict[str, Any]] = []

    async def submit(self, content, prompt, tags=None, full_transcript=None):
        self.calls.append(
            {
                "content": content,
                "prompt": prompt,
                "tags": list(tags or []),
                "full_transcript": list(full_transcript or []),
            }
        )
        if self.gate is not None:
            await self.gate.wait()
        return self.result


@pytest.fixture
def vendor() -> FakeVendor:
    return FakeVendor()


@pytest.fixture
def submitter() -> RecordingSubmitter:
    return RecordingSubmitter()


@pytest.fixture
def fast_config() -> VoiceSessionConfig:
    return VoiceSessionConfig(
        max_call_seconds=60.0,
        min_call_seconds=30.0,
        settle_seconds=0.0,
        tick_seconds=60.0,
    )


@pytest.fixture
def wait_for_status():
    async def _wait(journal, statuses, timeout: float = 2.0) -> CallStatus:
        wanted = {statuses} if isinstance(statuses, CallStatus) else set(statuses)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while journal.status not in wanted:
            if loop.time() > deadline:
                raise AssertionError(f"status stayed {journal.status.value}, wanted {wanted}")
            await asyncio.sleep(0.005)
        await journal.drain()
        return journal.status

    return _wait
