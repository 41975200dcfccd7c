from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from dateutil import tz
from rich.console import Console

from bday.config_store import (
    ConfigIoError,
    ConfigParseError,
    append_entry,
    load_or_empty_config,
    save_config_atomic,
)
from bday.date_logic import (
    DateSpecError,
    UnknownTimezoneError,
    canonical_timezone_name,
    format_date_spec,
    parse_date_spec,
)
from bday.entries import build_entries
from bday.models import DateSpec, StoredEntry
from bday.presenter import prepare_rows, render_table

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 3

EMPTY_LIST_MESSAGE = "No entries found, add some with the 'add' command."
RECREATE_HINT = "You can delete the file, it will be re-created the next time you add a birthday."

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(tz.tzlocal())


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _package_version() -> str:
    try:
        return version("bday")
    except PackageNotFoundError:
        return "unknown"


def _date_spec_arg(value: str) -> DateSpec:
    try:
        return parse_date_spec(value)
    except DateSpecError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _name_arg(value: str) -> str:
    name = value.strip()
    if not name:
        raise argparse.ArgumentTypeError("name must not be empty")
    return name


def _limit_arg(value: str) -> int:
    try:
        limit = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid limit: {value!r}") from exc
    if limit < 0:
        raise argparse.ArgumentTypeError("limit must not be negative")
    return limit


def run_add(args: argparse.Namespace, console: Console, now: datetime) -> int:
    timezone = canonical_timezone_name(args.timezone) if args.timezone is not None else None
    config = load_or_empty_config(args.file)

    new_entry = StoredEntry(name=args.name, date=args.date, timezone=timezone)
    updated = append_entry(config, new_entry)
    save_config_atomic(updated)
    LOGGER.info("Appended %s as entry %s in %s", new_entry.name, len(updated.birthdays), updated.path)

    zone_note = f", timezone {timezone}" if timezone is not None else ""
    console.print(
        f"Added {new_entry.name}, date {format_date_spec(new_entry.date)}{zone_note} to {updated.path}",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )
    return EXIT_OK


def run_list(args: argparse.Namespace, console: Console, now: datetime) -> int:
    config = load_or_empty_config(args.file)
    if not config.birthdays:
        print(EMPTY_LIST_MESSAGE, file=sys.stderr)
        return EXIT_OK

    entries = build_entries(config.birthdays, now)
    rows = prepare_rows(entries, now, args.limit)
    console.print(render_table(rows))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bday",
        description="Remember birthdays and see how soon each one comes round.",
    )
    parser.add_argument(
        "-f",
        "--file",
        type=Path,
        help="config file to use instead of searching the default locations",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug details to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    sub = parser.add_subparsers(dest="command", required=True)

    p_add = sub.add_parser("add", help="Add a new birthday")
    p_add.add_argument("-n", "--name", required=True, type=_name_arg, help="who the birthday belongs to")
    p_add.add_argument(
        "-d",
        "--date",
        required=True,
        type=_date_spec_arg,
        help="DD/MM, DD/MM/YYYY or YYYY-MM-DD",
    )
    p_add.add_argument("-t", "--timezone", help="IANA timezone the birthday is celebrated in")
    p_add.set_defaults(handler=run_add)

    p_list = sub.add_parser("list", help="List birthdays, soonest first")
    p_list.add_argument("-l", "--limit", type=_limit_arg, help="show only the closest N birthdays")
    p_list.set_defaults(handler=run_list)

    return parser


def main(
    argv: Sequence[str] | None = None,
    *,
    clock: Clock = system_clock,
    console: Console | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if console is None:
        console = Console()
    now = clock()

    try:
        return args.handler(args, console, now)
    except UnknownTimezoneError as exc:
        print(f"Unknown timezone: {exc.name}", file=sys.stderr)
    except ConfigIoError as exc:
        print(f"Config I/O error: {exc}", file=sys.stderr)
    except ConfigParseError as exc:
        print(f"Config parse error: {exc}. {RECREATE_HINT}", file=sys.stderr)
    return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
