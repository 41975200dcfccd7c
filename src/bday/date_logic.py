from __future__ import annotations

import re
from datetime import date, datetime, time, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, available_timezones

from dateutil import tz

from bday.models import DateSpec, Entry

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

START_OF_DAY = time(0, 0, 0)
END_OF_DAY = time(23, 59, 59)

# Year used to validate day/month pairs that carry no year of their own.
PROBE_LEAP_YEAR = 2000

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)
_UNSIGNED_RE = re.compile(r"[0-9]+")
_SIGNED_RE = re.compile(r"[+-]?[0-9]+")

# Widest distance between a wall time and UTC, plus slack for the gap itself.
_GAP_SEARCH_SECONDS = 15 * 3600


class DateSpecError(ValueError):
    pass


class InvalidDateFormatError(DateSpecError):
    pass


class InvalidDateError(DateSpecError):
    pass


class UnknownTimezoneError(ValueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"{name!r} is not a known IANA timezone name")
        self.name = name


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(year: int, month: int) -> int:
    if month == 2 and is_leap_year(year):
        return 29
    return _DAYS_IN_MONTH[month - 1]


def make_date_spec(day: int, month: int, year: int | None = None) -> DateSpec:
    if month < 1 or month > 12:
        raise InvalidDateError(f"Invalid month: {month}")

    probe_year = PROBE_LEAP_YEAR if year is None else year
    if day < 1 or day > days_in_month(probe_year, month):
        if year is None:
            raise InvalidDateError(f"Invalid day/month combination: {day:02d}/{month:02d}")
        raise InvalidDateError(f"Not a real date: {day:02d}/{month:02d}/{year}")

    return DateSpec(day=day, month=month, year=year)


def _field(value: str, pattern: re.Pattern[str], raw_text: str) -> int:
    if not pattern.fullmatch(value):
        raise InvalidDateFormatError(f"Invalid number {value!r} in date {raw_text!r}")
    return int(value)


def parse_date_spec(raw_text: str) -> DateSpec:
    value = raw_text.strip()

    if "/" in value:
        pieces = value.split("/")
        if len(pieces) == 2:
            day = _field(pieces[0], _UNSIGNED_RE, raw_text)
            month = _field(pieces[1], _UNSIGNED_RE, raw_text)
            return make_date_spec(day, month)
        if len(pieces) == 3:
            day = _field(pieces[0], _UNSIGNED_RE, raw_text)
            month = _field(pieces[1], _UNSIGNED_RE, raw_text)
            year = _field(pieces[2], _SIGNED_RE, raw_text)
            return make_date_spec(day, month, year)
    elif "-" in value:
        pieces = value.split("-")
        if len(pieces) == 3:
            year, month, day = (_field(piece, _UNSIGNED_RE, raw_text) for piece in pieces)
            return make_date_spec(day, month, year)

    raise InvalidDateFormatError(
        f"Unrecognised date {raw_text!r}, expected DD/MM, DD/MM/YYYY or YYYY-MM-DD"
    )


def format_date_spec(spec: DateSpec) -> str:
    return str(spec)


def display_day_month(spec: DateSpec) -> str:
    return f"{spec.day:02d} {MONTH_NAMES[spec.month - 1]}"


@lru_cache(maxsize=1)
def _zone_names_by_key() -> dict[str, str]:
    return {name.lower(): name for name in available_timezones()}


def canonical_timezone_name(name: str) -> str:
    key = name.strip().lower()
    canonical = _zone_names_by_key().get(key)
    if canonical is None:
        raise UnknownTimezoneError(name)
    return canonical


def resolve_timezone(name: str) -> ZoneInfo:
    return ZoneInfo(canonical_timezone_name(name))


def safe_date(year: int, month: int, day: int) -> date:
    # Only Feb 29 collapses; any other impossible date still raises ValueError.
    if month == 2 and day == 29 and not is_leap_year(year):
        return date(year, 2, 28)
    return date(year, month, day)


def find_prev_next_occurrences(day: int, month: int, reference: date) -> tuple[date, date] | None:
    # Feb 29 anniversaries fall on Feb 28 in common years, so that day counts as the day itself.
    candidate = safe_date(reference.year, month, day)
    if candidate == reference:
        return None
    if candidate < reference:
        return candidate, safe_date(reference.year + 1, month, day)
    return safe_date(reference.year - 1, month, day), candidate


def _first_instant_at_or_after(wall: datetime, zone: tzinfo) -> int:
    anchor = int(wall.replace(tzinfo=timezone.utc).timestamp())
    lo = anchor - _GAP_SEARCH_SECONDS
    hi = anchor + _GAP_SEARCH_SECONDS
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if datetime.fromtimestamp(mid, zone).replace(tzinfo=None) >= wall:
            hi = mid
        else:
            lo = mid
    return hi


def localize(naive: datetime, zone: tzinfo, *, end_of_day: bool = False) -> datetime:
    """Attach ``zone`` to a wall time, resolving DST gaps and folds.

    Start-of-day times take the earlier instant of a fold and the first
    instant after a gap. End-of-day times take the later instant of a fold
    and the last whole second before a gap.
    """
    aware = tz.enfold(naive.replace(tzinfo=zone), fold=1 if end_of_day else 0)
    if tz.datetime_exists(aware):
        return aware

    transition = _first_instant_at_or_after(naive, zone)
    if end_of_day:
        return datetime.fromtimestamp(transition - 1, zone)
    return datetime.fromtimestamp(transition, zone)


def compute_occurrences(
    spec: DateSpec, zone: tzinfo | None, now: datetime
) -> tuple[datetime | None, datetime | None]:
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    viewer_zone = now.tzinfo
    entry_zone = zone if zone is not None else viewer_zone
    reference = now.astimezone(entry_zone).date()

    found = find_prev_next_occurrences(spec.day, spec.month, reference)
    if found is None:
        return None, None

    prev_day, next_day = found
    prev_instant = localize(datetime.combine(prev_day, END_OF_DAY), entry_zone, end_of_day=True)
    next_instant = localize(datetime.combine(next_day, START_OF_DAY), entry_zone)
    return prev_instant.astimezone(viewer_zone), next_instant.astimezone(viewer_zone)


def occurrence_sort_key(entry: Entry) -> tuple[int, float, str]:
    if entry.next_occurrence is None:
        return 0, 0.0, entry.name
    return 1, entry.next_occurrence.timestamp(), entry.name


def turning_age(spec: DateSpec, occurrence_year: int) -> int | None:
    if spec.year is None:
        return None
    return occurrence_year - spec.year
