"""Persistence for journal entries and the per-user stats they drive."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from reverie.libs.schemas.db import get_async_pool, transaction

from .streak import JournalStats, record_entry

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = """
    id, user_id, content, prompt, word_count, time_of_day, entry_type,
    full_transcript, tags, sentiment, created_at
"""


class EntryNotFoundError(LookupError):
    """No entry exists under the requested id."""


class EntryAccessError(PermissionError):
    """The entry exists but belongs to a different user."""


def time_of_day(moment: Optional[datetime] = None) -> str:
    hour = (moment or datetime.now()).hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def _json_field(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return value


def entry_from_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Shape a ``journal_entries`` row the way API clients expect it."""

    created_at = row.get("created_at")
    metadata: Dict[str, Any] = {
        "wordCount": int(row.get("word_count") or 0),
        "prompt": row.get("prompt"),
        "timeOfDay": row.get("time_of_day"),
        "entryType": row.get("entry_type") or "text",
    }
    transcript = _json_field(row.get("full_transcript"))
    if transcript:
        metadata["fullTranscript"] = transcript
    return {
        "id": str(row.get("id")),
        "userId": row.get("user_id"),
        "content": row.get("content"),
        "sentiment": _json_field(row.get("sentiment")),
        "metadata": metadata,
        "tags": list(row.get("tags") or []),
        "createdAt": created_at.isoformat() if isinstance(created_at, datetime) else created_at,
    }


def clean_tags(tags: Any) -> List[str]:
    if not isinstance(tags, (list, tuple)):
        return []
    return [str(tag) for tag in tags if tag]


async def create_entry(
    user_id: str,
    *,
    content: str,
    prompt: Optional[str] = None,
    tags: Any = None,
    entry_type: Optional[str] = None,
    full_transcript: Optional[Sequence[Mapping[str, Any]]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Insert an entry, mark today's prompt answered and roll the user's streak."""

    moment = now or datetime.now(timezone.utc)
    kind = entry_type or "text"
    transcript = list(full_transcript) if kind == "voice" and full_transcript else None

    pool = await get_async_pool()
    async with transaction(pool) as connection:
        row = await connection.fetchrow(
            f"""
            INSERT INTO journal_entries
                (user_id, content, prompt, word_count, time_of_day, entry_type, full_transcript, tags, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9)
            RETURNING {ENTRY_COLUMNS}
            """,
            user_id,
            content,
            prompt,
            len(content.split()),
            time_of_day(moment),
            kind,
            transcript,
            clean_tags(tags),
            moment,
        )
        if prompt and prompt.strip():
            await _mark_prompt_answered(connection, user_id, prompt, moment)
        stats = await _record_stats(connection, user_id, moment)

    logger.info(
        "Journal entry created: user_id=%s type=%s streak=%s",
        user_id,
        kind,
        stats.current_streak,
    )
    return entry_from_row(row)


async def _mark_prompt_answered(connection: Any, user_id: str, prompt: str, moment: datetime) -> None:
    today = moment.astimezone(timezone.utc).date()
    daily = await connection.fetchrow(
        "SELECT prompt, answered_at FROM daily_prompts WHERE user_id = $1 AND date = $2",
        user_id,
        today,
    )
    if not daily or daily.get("answered_at"):
        return
    if (daily.get("prompt") or "").strip().lower() != prompt.strip().lower():
        return
    await connection.execute(
        "UPDATE daily_prompts SET answered_at = $3 WHERE user_id = $1 AND date = $2",
        user_id,
        today,
        moment,
    )


async def _record_stats(connection: Any, user_id: str, moment: datetime) -> JournalStats:
    # Seed the row first so FOR UPDATE always has something to lock.
    await connection.execute(
        "INSERT INTO user_stats (user_id) VALUES ($1) ON CONFLICT DO NOTHING",
        user_id,
    )
    row = await connection.fetchrow(
        """
        SELECT total_entries, current_streak, longest_streak, last_entry_date
        FROM user_stats
        WHERE user_id = $1
        FOR UPDATE
        """,
        user_id,
    )
    stats = record_entry(JournalStats.from_row(row), moment)
    await connection.execute(
        """
        INSERT INTO user_stats (user_id, total_entries, current_streak, longest_streak, last_entry_date)
        VALUES ($1, $2, $3, $4, $5)
        ON CONFLICT (user_id)
        DO UPDATE SET total_entries = EXCLUDED.total_entries,
                      current_streak = EXCLUDED.current_streak,
                      longest_streak = EXCLUDED.longest_streak,
                      last_entry_date = EXCLUDED.last_entry_date
        """,
        user_id,
        stats.total_entries,
        stats.current_streak,
        stats.longest_streak,
        stats.last_entry_date,
    )
    return stats


async def list_entries(user_id: str, *, limit: int = 10, offset: int = 0) -> Tuple[List[Dict[str, Any]], int]:
    """Newest-first page of a user's entries plus the total count."""

    pool = await get_async_pool()
    async with pool.acquire() as connection:
        rows = await connection.fetch(
            f"""
            SELECT {ENTRY_COLUMNS}
            FROM journal_entries
            WHERE user_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
            """,
            user_id,
            max(1, min(limit, 100)),
            max(0, offset),
        )
        total = await connection.fetchval(
            "SELECT COUNT(*) FROM journal_entries WHERE user_id = $1",
            user_id,
        )
    return [entry_from_row(row) for row in rows], int(total or 0)


def _entry_key(entry_id: Any) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(entry_id))
    except ValueError:
        return None


def _check_owner(row: Optional[Mapping[str, Any]], user_id: str, entry_id: Any) -> None:
    if row is None:
        raise EntryNotFoundError(f"Entry {entry_id} not found")
    if row.get("user_id") != user_id:
        raise EntryAccessError(f"Entry {entry_id} belongs to another user")


async def get_entry(user_id: str, entry_id: Any) -> Dict[str, Any]:
    """Fetch one of ``user_id``'s entries by id."""

    key = _entry_key(entry_id)
    if key is None:
        raise EntryNotFoundError(f"Entry {entry_id} not found")
    pool = await get_async_pool()
    async with pool.acquire() as connection:
        row = await connection.fetchrow(
            f"SELECT {ENTRY_COLUMNS} FROM journal_entries WHERE id = $1",
            key,
        )
    _check_owner(row, user_id, entry_id)
    return entry_from_row(row)


async def delete_entry(user_id: str, entry_id: Any) -> None:
    """Remove an entry and take it off the user's running total (never below zero).

    The streak is left as it was; it records days written, not entries kept.
    """

    key = _entry_key(entry_id)
    if key is None:
        raise EntryNotFoundError(f"Entry {entry_id} not found")
    pool = await get_async_pool()
    async with transaction(pool) as connection:
        row = await connection.fetchrow(
            "SELECT user_id FROM journal_entries WHERE id = $1 FOR UPDATE",
            key,
        )
        _check_owner(row, user_id, entry_id)
        await connection.execute("DELETE FROM journal_entries WHERE id = $1", key)
        await connection.execute(
            "UPDATE user_stats SET total_entries = GREATEST(total_entries - 1, 0) WHERE user_id = $1",
            user_id,
        )
    logger.info("Journal entry deleted: user_id=%s entry_id=%s", user_id, key)


async def get_stats(user_id: str) -> JournalStats:
    """Read the user's streak counters, correcting a drifted total from the entry count."""

    pool = await get_async_pool()
    async with pool.acquire() as connection:
        row = await connection.fetchrow(
            """
            SELECT total_entries, current_streak, longest_streak, last_entry_date
            FROM user_stats
            WHERE user_id = $1
            """,
            user_id,
        )
        count = await connection.fetchval(
            "SELECT COUNT(*) FROM journal_entries WHERE user_id = $1",
            user_id,
        )
        stats = JournalStats.from_row(row)
        actual = int(count or 0)
        if row is not None and stats.total_entries != actual:
            logger.info(
                "Resyncing total entries: user_id=%s stored=%s actual=%s",
                user_id,
                stats.total_entries,
                actual,
            )
            await connection.execute(
                "UPDATE user_stats SET total_entries = $2 WHERE user_id = $1",
                user_id,
                actual,
            )
    return replace(stats, total_entries=actual)


__all__ = [
    "EntryAccessError",
    "EntryNotFoundError",
    "clean_tags",
    "create_entry",
    "delete_entry",
    "entry_from_row",
    "get_entry",
    "get_stats",
    "list_entries",
    "time_of_day",
]
