from __future__ import annotations

from types import SimpleNamespace

from reverie.libs.voice import Role, normalize_event, normalize_events
from reverie.libs.voice.normalizer import is_incremental, resolve_role


def test_role_field_wins() -> None:
    message = normalize_event({"role": "user", "type": "assistant-message", "content": "hello"})
    assert message is not None
    assert message.role == Role.USER
    assert message.content == "hello"


def test_type_field_maps_roles() -> None:
    assert resolve_role({"type": "user-message"}) == Role.USER
    assert resolve_role({"type": "usermessage"}) == Role.USER
    assert resolve_role({"type": "assistant-message"}) == Role.ASSISTANT
    assert resolve_role({"type": "final-user-speech"}) == Role.USER


def test_speaker_aliases() -> None:
    assert resolve_role({"speaker": "caller"}) == Role.USER
    assert resolve_role({"from": "agent"}) == Role.ASSISTANT


def test_unknown_role_defaults_to_assistant() -> None:
    assert resolve_role({"role": "narrator", "content": "x"}) == Role.ASSISTANT
    assert resolve_role({}) == Role.ASSISTANT


def test_content_field_order() -> None:
    message = normalize_event({"role": "user", "content": "  ", "text": "from text", "transcript": "later"})
    assert message is not None
    assert message.content == "from text"

    message = normalize_event({"speaker": "user", "transcript": "  I went for a walk  "})
    assert message is not None
    assert message.content == "I went for a walk"


def test_partial_and_interim_events_are_dropped() -> None:
    assert normalize_event({"type": "transcript", "transcriptType": "partial", "role": "user", "transcript": "I"}) is None
    assert normalize_event({"type": "interim-transcript", "role": "user", "text": "I we"}) is None
    assert normalize_event({"type": "speech-progress", "role": "user", "text": "I went"}) is None
    assert is_incremental({"transcriptType": "final"}) is False


def test_events_without_content_are_dropped() -> None:
    assert normalize_event(None) is None
    assert normalize_event({}) is None
    assert normalize_event({"role": "user"}) is None
    assert normalize_event({"role": "user", "content": 42}) is None


def test_timestamp_is_read_or_filled_in() -> None:
    stamped = normalize_event({"role": "user", "content": "hi", "timestamp": 1700000000000})
    assert stamped is not None
    assert stamped.timestamp == 1700000000000.0

    filled = normalize_event({"role": "user", "content": "hi", "time": "not a number"})
    assert filled is not None
    assert filled.timestamp > 0


def test_attribute_style_events() -> None:
    event = SimpleNamespace(role="user", content="typed object", timestamp=5)
    message = normalize_event(event)
    assert message is not None
    assert message.role == Role.USER
    assert message.content == "typed object"


def test_malformed_event_is_discarded() -> None:
    class Exploding:
        def __bool__(self) -> bool:
            return True

        def __getattr__(self, name: str):
            raise RuntimeError("boom")

    assert normalize_event(Exploding()) is None


def test_normalize_events_keeps_order_and_filters() -> None:
    messages = normalize_events(
        [
            {"role": "assistant", "content": "How was your day?"},
            {"transcriptType": "partial", "role": "user", "content": "It"},
            {"role": "user", "content": "It was good"},
            "not an event",
        ]
    )
    assert [(m.role, m.content) for m in messages] == [
        (Role.ASSISTANT, "How was your day?"),
        (Role.USER, "It was good"),
    ]
    assert normalize_events({"role": "user", "content": "single"})[0].content == "single"
