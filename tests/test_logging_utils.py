from __future__ import annotations

import json
import logging

import pytest

from reverie.libs.logging_utils import (
    ColorTextFormatter,
    ContextFilter,
    JsonFormatter,
    colorize,
    log_context,
)


def _record(message: str = "entry saved", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("reverie.test", level, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_bound_context() -> None:
    record = _record(entry_type="voice")
    with log_context(user_id="user-1", call_id="call-9", ignored="x"):
        ContextFilter().filter(record)

    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "entry saved"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "reverie.test"
    assert payload["user_id"] == "user-1"
    assert payload["call_id"] == "call-9"
    assert payload["entry_type"] == "voice"
    assert "ignored" not in payload
    assert "levelno" not in payload


def test_context_is_scoped_to_the_block() -> None:
    with log_context(user_id="user-1"):
        with log_context(call_id="call-2"):
            inner = _record()
            ContextFilter().filter(inner)
        outer = _record()
        ContextFilter().filter(outer)
    after = _record()
    ContextFilter().filter(after)

    assert (inner.user_id, inner.call_id) == ("user-1", "call-2")
    assert outer.user_id == "user-1"
    assert not hasattr(outer, "call_id")
    assert not hasattr(after, "user_id")


def test_text_formatter_appends_extras_and_colors_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REVERIE_LOG_COLOR", "1")
    formatter = ColorTextFormatter("%(levelname)s %(message)s")

    line = formatter.format(_record("save failed", logging.ERROR, user_id="user-3"))
    assert line == colorize("ERROR save failed user_id=user-3", "red")
    assert line.startswith("\033[31m")

    monkeypatch.setenv("REVERIE_LOG_COLOR", "0")
    assert formatter.format(_record("hello")) == "INFO hello"
