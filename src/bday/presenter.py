from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from dateutil.relativedelta import relativedelta
from rich import box
from rich.table import Table
from rich.text import Text

from bday.date_logic import display_day_month, occurrence_sort_key, turning_age
from bday.models import Entry

TODAY_LABEL = "Today!"
UNKNOWN_AGE_LABEL = "?"
COLUMNS = ("#", "Name", "Date", "Age", "In")


@dataclass(frozen=True)
class BirthdayRow:
    index: int
    name: str
    date: str
    age: str
    until: str


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def _rough_span(earlier: datetime, later: datetime) -> str | None:
    span = relativedelta(later, earlier)
    if span.years:
        return _plural(span.years + (1 if span.months >= 6 else 0), "year")
    if span.months:
        months = span.months + (1 if span.days >= 15 else 0)
        if months == 12:
            return _plural(1, "year")
        return _plural(months, "month")

    seconds = (later - earlier).total_seconds()
    if seconds >= 22 * 3600:
        days = max(1, round(seconds / 86400))
        if days >= 7:
            return _plural(round(days / 7), "week")
        return _plural(days, "day")
    if seconds >= 45 * 60:
        return _plural(max(1, round(seconds / 3600)), "hour")
    if seconds >= 45:
        return _plural(max(1, round(seconds / 60)), "minute")
    return None


def humanize_delta(from_dt: datetime, to_dt: datetime) -> str:
    future = to_dt >= from_dt
    earlier, later = (from_dt, to_dt) if future else (to_dt, from_dt)
    phrase = _rough_span(earlier, later)
    if phrase is None:
        return "now"
    return f"in {phrase}" if future else f"{phrase} ago"


def format_age(entry: Entry, now: datetime) -> str:
    # The birthday's year is the one in the entry's own zone, not the viewer's.
    occurrence = entry.next_occurrence if entry.next_occurrence is not None else now
    if entry.timezone is not None:
        occurrence = occurrence.astimezone(entry.timezone)
    age = turning_age(entry.date, occurrence.year)
    if age is None:
        return UNKNOWN_AGE_LABEL
    return f"{age - 1} → {age}"


def format_until(entry: Entry, now: datetime) -> str:
    if entry.next_occurrence is None:
        return TODAY_LABEL
    return humanize_delta(now, entry.next_occurrence)


def prepare_rows(entries: Iterable[Entry], now: datetime, limit: int | None = None) -> list[BirthdayRow]:
    ordered = sorted(entries, key=occurrence_sort_key)
    if limit is not None:
        ordered = ordered[:limit]

    return [
        BirthdayRow(
            index=index,
            name=entry.name,
            date=display_day_month(entry.date),
            age=format_age(entry, now),
            until=format_until(entry, now),
        )
        for index, entry in enumerate(ordered, start=1)
    ]


def render_table(rows: list[BirthdayRow]) -> Table:
    table = Table(show_header=True, header_style="bold", box=box.ROUNDED)
    table.add_column(COLUMNS[0], justify="right")
    for title in COLUMNS[1:]:
        table.add_column(title)

    # Text cells keep names like "[bold]" from being read as markup.
    for row in rows:
        table.add_row(
            Text(str(row.index)),
            Text(row.name),
            Text(row.date),
            Text(row.age),
            Text(row.until),
        )
    return table
