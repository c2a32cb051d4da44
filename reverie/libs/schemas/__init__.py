"""Pydantic models, settings and database access."""

from .db import close_async_pool, get_async_pool, transaction
from .entries import EntryCreateRequest, TranscriptItem
from .settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "EntryCreateRequest",
    "TranscriptItem",
    "close_async_pool",
    "get_async_pool",
    "get_settings",
    "transaction",
]
