from .entries import (
    EntryAccessError,
    EntryNotFoundError,
    create_entry,
    delete_entry,
    entry_from_row,
    get_entry,
    get_stats,
    list_entries,
    time_of_day,
)
from .streak import JournalStats, record_entry, update_streak, utc_day

__all__ = [
    "EntryAccessError",
    "EntryNotFoundError",
    "JournalStats",
    "create_entry",
    "delete_entry",
    "entry_from_row",
    "get_entry",
    "get_stats",
    "list_entries",
    "record_entry",
    "time_of_day",
    "update_streak",
    "utc_day",
]
