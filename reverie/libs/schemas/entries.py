"""Journal entry payloads shared by the API and the voice client."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class TranscriptItem(BaseModel):
    """A single stored transcript turn."""

    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: float | None = None


class EntryCreateRequest(BaseModel):
    """Body accepted by ``POST /api/entries``."""

    model_config = ConfigDict(populate_by_name=True)

    content: str | None = None
    prompt: str | None = None
    tags: list[Any] | None = None
    full_transcript: list[TranscriptItem] | None = Field(default=None, alias="fullTranscript")
    entry_type: Literal["text", "voice"] | None = Field(default=None, alias="entryType")


__all__ = ["EntryCreateRequest", "TranscriptItem"]
