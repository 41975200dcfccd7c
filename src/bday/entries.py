from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from bday.date_logic import compute_occurrences, resolve_timezone
from bday.models import Entry, StoredEntry


def build_entry(stored: StoredEntry, now: datetime) -> Entry:
    zone = resolve_timezone(stored.timezone) if stored.timezone is not None else None
    prev_occurrence, next_occurrence = compute_occurrences(stored.date, zone, now)
    return Entry(
        name=stored.name,
        date=stored.date,
        timezone=zone,
        timezone_name=stored.timezone,
        prev_occurrence=prev_occurrence,
        next_occurrence=next_occurrence,
    )


def build_entries(stored_entries: Iterable[StoredEntry], now: datetime) -> list[Entry]:
    return [build_entry(stored, now) for stored in stored_entries]
