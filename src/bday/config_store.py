from __future__ import annotations

import logging
import math
import os
import re
import tempfile
import tomllib
from dataclasses import replace
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

from bday.date_logic import DateSpecError, format_date_spec, parse_date_spec
from bday.models import ConfigFile, StoredEntry
from bday.settings import config_search_paths, default_config_path

LOGGER = logging.getLogger(__name__)

KNOWN_ENTRY_KEYS = ("name", "date", "timezone")

_BARE_KEY_RE = re.compile(r"[A-Za-z0-9_-]+")
_SHORT_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


class ConfigError(Exception):
    pass


class ConfigNotFoundError(ConfigError):
    pass


class ConfigIoError(ConfigError):
    pass


class ConfigParseError(ConfigError):
    pass


def _toml_escape(value: str) -> str:
    pieces: list[str] = []
    for char in value:
        if char in _SHORT_ESCAPES:
            pieces.append(_SHORT_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            pieces.append(f"\\u{ord(char):04X}")
        else:
            pieces.append(char)
    return "".join(pieces)


def _toml_key(key: str) -> str:
    if _BARE_KEY_RE.fullmatch(key):
        return key
    return f'"{_toml_escape(key)}"'


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        return repr(value)
    if isinstance(value, str):
        return f'"{_toml_escape(value)}"'
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        pairs = ", ".join(f"{_toml_key(key)} = {_toml_value(item)}" for key, item in value.items())
        return "{ " + pairs + " }"
    raise TypeError(f"Cannot render {type(value).__name__} as TOML")


def _parse_stored_entry(row: Any, index: int) -> StoredEntry:
    where = f"birthdays[{index}]"
    if not isinstance(row, dict):
        raise ConfigParseError(f"{where} must be a table")

    name = row.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigParseError(f"{where}.name must be a non-empty string")

    raw_date = row.get("date")
    if not isinstance(raw_date, str):
        raise ConfigParseError(f"{where}.date must be a string like DD/MM or DD/MM/YYYY")
    try:
        date_spec = parse_date_spec(raw_date)
    except DateSpecError as exc:
        raise ConfigParseError(f"{where}.date: {exc}") from exc

    timezone = row.get("timezone")
    if timezone is not None and not isinstance(timezone, str):
        raise ConfigParseError(f"{where}.timezone must be a string")

    extra = {key: value for key, value in row.items() if key not in KNOWN_ENTRY_KEYS}
    return StoredEntry(
        name=name,
        date=date_spec,
        timezone=timezone,
        extra=extra,
        key_order=tuple(row),
    )


def parse_config(raw: bytes, path: Path) -> ConfigFile:
    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigParseError(f"{path}: {exc}") from exc

    rows = data.get("birthdays", [])
    if not isinstance(rows, list):
        raise ConfigParseError(f"{path}: birthdays must be an array of tables")

    try:
        birthdays = [_parse_stored_entry(row, index) for index, row in enumerate(rows)]
    except ConfigParseError as exc:
        raise ConfigParseError(f"{path}: {exc}") from exc

    extra = {key: value for key, value in data.items() if key != "birthdays"}
    return ConfigFile(path=path, birthdays=birthdays, extra=extra)


def load_config(path: Path | None = None) -> ConfigFile:
    candidates = [path] if path is not None else config_search_paths()

    for candidate in candidates:
        if not candidate.is_file():
            LOGGER.debug("No config file at %s", candidate)
            continue

        LOGGER.debug("Loading config from %s", candidate)
        try:
            with candidate.open("rb") as file_obj:
                raw = file_obj.read()
        except OSError as exc:
            raise ConfigIoError(f"{candidate}: {exc}") from exc

        config = parse_config(raw, candidate)
        LOGGER.debug("Loaded %s birthdays from %s", len(config.birthdays), candidate)
        return config

    raise ConfigNotFoundError("No config file found in: " + ", ".join(str(c) for c in candidates))


def load_or_empty_config(path: Path | None = None) -> ConfigFile:
    try:
        return load_config(path)
    except ConfigNotFoundError:
        target = path if path is not None else default_config_path()
        LOGGER.info("No config file found, starting empty at %s", target)
        return ConfigFile(path=target)


def _render_entry(entry: StoredEntry) -> list[str]:
    values: dict[str, Any] = {"name": entry.name, "date": format_date_spec(entry.date)}
    if entry.timezone is not None:
        values["timezone"] = entry.timezone
    values.update(entry.extra)

    ordered = [key for key in entry.key_order if key in values]
    ordered.extend(key for key in values if key not in ordered)
    return [f"{_toml_key(key)} = {_toml_value(values[key])}" for key in ordered]


def render_config(config: ConfigFile) -> str:
    lines: list[str] = [f"{_toml_key(key)} = {_toml_value(value)}" for key, value in config.extra.items()]
    if not config.birthdays:
        lines.append("birthdays = []")
    lines.append("")

    for entry in config.birthdays:
        lines.append("[[birthdays]]")
        lines.extend(_render_entry(entry))
        lines.append("")

    return "\n".join(lines).strip() + "\n"


def save_config_atomic(config: ConfigFile) -> None:
    rendered = render_config(config)
    path = config.path

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            delete=False,
        ) as temp_file:
            temp_file.write(rendered)
            temp_name = temp_file.name

        os.replace(temp_name, path)
    except OSError as exc:
        raise ConfigIoError(f"{path}: {exc}") from exc

    LOGGER.debug("Wrote %s birthdays to %s", len(config.birthdays), path)


def append_entry(config: ConfigFile, new_entry: StoredEntry) -> ConfigFile:
    return replace(config, birthdays=[*config.birthdays, new_entry])
