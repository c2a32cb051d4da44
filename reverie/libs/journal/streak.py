"""Daily journaling streak bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class JournalStats:
    total_entries: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_entry_date: Optional[date] = None

    @classmethod
    def from_row(cls, row: Optional[Mapping[str, Any]]) -> "JournalStats":
        if not row:
            return cls()
        return cls(
            total_entries=int(row.get("total_entries") or 0),
            current_streak=int(row.get("current_streak") or 0),
            longest_streak=int(row.get("longest_streak") or 0),
            last_entry_date=utc_day(row.get("last_entry_date")),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "totalEntries": self.total_entries,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastEntryDate": self.last_entry_date.isoformat() if self.last_entry_date else None,
        }


def utc_day(value: Any) -> Optional[date]:
    """Collapse a datetime/date/ISO string onto its UTC calendar day."""

    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Unsupported date value: {value!r}")


def update_streak(stats: JournalStats, today: Any = None) -> JournalStats:
    """Return stats after an entry written on ``today`` (defaults to now, UTC).

    Same day leaves the streak alone, the following day extends it and any
    larger gap restarts it at one.
    """

    day = utc_day(today) or datetime.now(timezone.utc).date()
    if stats.last_entry_date is None:
        return replace(stats, current_streak=1, longest_streak=max(1, stats.longest_streak), last_entry_date=day)

    gap = (day - stats.last_entry_date).days
    if gap <= 0:
        return stats
    if gap == 1:
        current = stats.current_streak + 1
        return replace(
            stats,
            current_streak=current,
            longest_streak=max(stats.longest_streak, current),
            last_entry_date=day,
        )
    return replace(stats, current_streak=1, last_entry_date=day)


def record_entry(stats: JournalStats, today: Any = None) -> JournalStats:
    """Count one more entry and roll the streak forward."""

    return update_streak(replace(stats, total_entries=stats.total_entries + 1), today)


__all__ = ["JournalStats", "record_entry", "update_streak", "utc_day"]
