import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from bday.config_store import load_config
from bday.main import EMPTY_LIST_MESSAGE, main
from bday.models import DateSpec

UTC = ZoneInfo("UTC")


def fixed_clock() -> datetime:
    return datetime(2024, 5, 5, 12, 0, tzinfo=UTC)


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    workdir = tmp_path / "work"
    home.mkdir()
    workdir.mkdir()
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(workdir)
    return home


def run(*argv: str) -> int:
    return main(list(argv), clock=fixed_clock)


def test_add_then_list(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "bday.toml"

    assert run("--file", str(path), "add", "--name", "Carol", "--date", "2000-12-25") == 0
    added = capsys.readouterr().out
    assert added.startswith("Added Carol, date 25/12/2000")

    assert run("--file", str(path), "list") == 0
    output = capsys.readouterr().out

    assert "Carol" in output
    assert "25 December" in output
    assert "23 → 24" in output
    assert output.count("Carol") == 1


def test_add_writes_default_path_when_no_config_exists(isolated_home: Path, tmp_path: Path) -> None:
    assert run("add", "-n", "Alice", "-d", "06/06") == 0

    config = load_config(tmp_path / "xdg" / "bday.toml")
    assert config.birthdays[0].name == "Alice"
    assert config.birthdays[0].date == DateSpec(day=6, month=6)


def test_add_appends_to_discovered_config(isolated_home: Path) -> None:
    dotfile = isolated_home / ".bday.toml"
    dotfile.write_text('[[birthdays]]\nname = "First"\ndate = "01/01"\n', encoding="utf-8")

    assert run("add", "--name", "Second", "--date", "02/02") == 0

    assert [entry.name for entry in load_config(dotfile).birthdays] == ["First", "Second"]


def test_add_stores_canonical_timezone(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "bday.toml"

    assert run("-f", str(path), "add", "-n", "Alice", "-d", "29/02/1992", "-t", "europe/paris") == 0

    assert load_config(path).birthdays[0].timezone == "Europe/Paris"
    assert "timezone Europe/Paris" in capsys.readouterr().out


def test_add_unknown_timezone_exits_3(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "bday.toml"

    assert run("-f", str(path), "add", "-n", "Alice", "-d", "06/06", "-t", "Mars/Base") == 3

    assert "Unknown timezone: Mars/Base" in capsys.readouterr().err
    assert not path.exists()


@pytest.mark.parametrize("date_arg", ["31/02", "2023-02-29", "June 6th"])
def test_add_invalid_date_is_usage_error(tmp_path: Path, date_arg: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run("-f", str(tmp_path / "bday.toml"), "add", "-n", "Alice", "-d", date_arg)
    assert excinfo.value.code == 2


def test_add_blank_name_is_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run("-f", str(tmp_path / "bday.toml"), "add", "-n", "  ", "-d", "06/06")
    assert excinfo.value.code == 2


@pytest.mark.parametrize("argv", [["frobnicate"], [], ["list", "--limit", "-1"], ["list", "--limit", "many"]])
def test_usage_errors_exit_2(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run(*argv)
    assert excinfo.value.code == 2


def test_list_empty_store(isolated_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run("list") == 0

    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.strip() == EMPTY_LIST_MESSAGE


def test_list_sorted_and_limited(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "bday.toml"
    path.write_text(
        '[[birthdays]]\nname = "Bob"\ndate = "01/01/1990"\n\n'
        '[[birthdays]]\nname = "Alice"\ndate = "06/06"\n\n'
        '[[birthdays]]\nname = "Fay"\ndate = "05/05/2000"\n',
        encoding="utf-8",
    )

    assert run("-f", str(path), "list", "--limit", "2") == 0
    output = capsys.readouterr().out

    assert "Bob" not in output
    assert output.index("Fay") < output.index("Alice")
    assert "Today!" in output
    assert "in 1 month" in output


def test_list_unknown_timezone_exits_3(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "bday.toml"
    path.write_text('[[birthdays]]\nname = "Al"\ndate = "06/06"\ntimezone = "Nowhere/Town"\n', encoding="utf-8")

    assert run("-f", str(path), "list") == 3
    assert "Unknown timezone: Nowhere/Town" in capsys.readouterr().err


def test_parse_error_exits_3_with_hint(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "bday.toml"
    path.write_text("birthdays = [", encoding="utf-8")

    assert run("-f", str(path), "list") == 3

    err = capsys.readouterr().err
    assert err.startswith("Config parse error:")
    assert "delete the file" in err
    assert len(err.strip().splitlines()) == 1


def test_unwritable_target_exits_3(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    assert run("-f", str(blocker / "bday.toml"), "add", "-n", "Al", "-d", "06/06") == 3
    assert capsys.readouterr().err.startswith("Config I/O error:")


def test_unreadable_config_exits_3(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    path = tmp_path / "bday.toml"
    path.write_text('[[birthdays]]\nname = "Al"\ndate = "06/06"\n', encoding="utf-8")

    def deny(self: Path, *args: object, **kwargs: object) -> None:
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "open", deny)

    assert run("-f", str(path), "list") == 3
    assert capsys.readouterr().err.startswith("Config I/O error:")
