from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class DateSpec:
    day: int
    month: int
    year: int | None = None

    def __str__(self) -> str:
        if self.year is None:
            return f"{self.day:02d}/{self.month:02d}"
        return f"{self.day:02d}/{self.month:02d}/{self.year}"


@dataclass(frozen=True)
class StoredEntry:
    name: str
    date: DateSpec
    timezone: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)
    # Key order as read from the file, so rewrites keep the user's layout.
    key_order: tuple[str, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class Entry:
    name: str
    date: DateSpec
    timezone: tzinfo | None
    timezone_name: str | None
    # Both None when today is the anniversary in the entry's zone.
    prev_occurrence: datetime | None
    next_occurrence: datetime | None

    @property
    def is_today(self) -> bool:
        return self.next_occurrence is None


@dataclass(frozen=True)
class ConfigFile:
    path: Path
    birthdays: list[StoredEntry] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, compare=False)
