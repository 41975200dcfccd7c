from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILE_NAME = "bday.toml"


def user_config_dir() -> Path:
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"

    # XDG base directories must be absolute; relative values are ignored.
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg and Path(xdg).is_absolute():
        return Path(xdg)
    return Path.home() / ".config"


def default_config_path() -> Path:
    return user_config_dir() / CONFIG_FILE_NAME


def config_search_paths() -> list[Path]:
    candidates = [
        Path.cwd() / CONFIG_FILE_NAME,
        default_config_path(),
        Path.home() / ".config" / CONFIG_FILE_NAME,
        Path.home() / f".{CONFIG_FILE_NAME}",
    ]

    paths: list[Path] = []
    for candidate in candidates:
        if candidate not in paths:
            paths.append(candidate)
    return paths
