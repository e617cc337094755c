"""
__init__.py - Code dealing with the configuration of the program.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

Settings live in a flat TOML table, `config.toml`, in the per-user
application directory.  This project only reads settings; the file is
created with empty settings if it does not exist yet.
"""
from __future__ import annotations

__all__ = [
    # defined in the order they appear in the file
    "GITVERSION_FILE",
    "appname",
    "applongname",
    "appcmdname",
    "trace_on",
    "logger",
    "git_shorthash_from_head",
    "appversion",
    "appversion_nobuild",
    "Config",
    "config",
    "config_logger",
]

import contextlib
import logging
import os
import pathlib
import re
import subprocess
import sys
import tomllib
import tomli_w
from time import gmtime
from typing import Any
import semantic_version
from constants import GITVERSION_FILE, appcmdname, applongname, appname

# appversion **MUST** follow Semantic Versioning rules:
# <https://semver.org/#semantic-versioning-specification-semver>
# Major.Minor.Patch(-prerelease)(+buildmetadata)
# NB: Do *not* import this, use the functions appversion() and appversion_nobuild()
_static_appversion = "1.0.0"
_cached_version: semantic_version.Version | None = None

# TRACE logging code that should actually be used.  Means not spamming it
# *all* if only interested in some things.
trace_on: list[str] = []

# This must be done here in order to avoid an import cycle with EDJTLogging.
# Other code should use EDJTLogging.get_main_logger
logger = (
    logging.getLogger(appcmdname)
    if os.getenv("EDJT_NO_UI")
    else logging.getLogger(appname)
)

# Defaults for the journal engine settings
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_LOOKUP_WINDOW = 10


def git_shorthash_from_head() -> str | None:
    """
    Determine short hash for current git HEAD.

    Includes `.DIRTY` if any changes have been made from HEAD.

    :return: str | None: None if we couldn't determine the short hash.
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
        )
        shorthash = result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        logger.info(f"Couldn't run git command for short hash: {e!r}")
        return None

    if not re.fullmatch(r"[0-9a-f]{7,}", shorthash):
        logger.error(
            f"'{shorthash}' doesn't look like a valid git short hash, forcing to None"
        )
        return None

    with contextlib.suppress(Exception):
        diff_result = subprocess.run(
            ["git", "diff", "--stat", "HEAD"], capture_output=True, check=True
        )
        if diff_result.stdout:
            shorthash += ".DIRTY"

    return shorthash


def appversion() -> semantic_version.Version:
    """
    Determine app version including git short hash if possible.

    :return: The augmented app version.
    """
    global _cached_version
    if _cached_version is not None:
        return _cached_version

    shorthash = git_shorthash_from_head()
    if shorthash is None:
        gitversion_path = pathlib.Path(sys.path[0]) / GITVERSION_FILE
        if gitversion_path.exists():
            shorthash = gitversion_path.read_text(encoding="utf-8").strip()

        else:
            shorthash = "UNKNOWN"

    _cached_version = semantic_version.Version(f"{_static_appversion}+{shorthash}")
    return _cached_version


def appversion_nobuild() -> semantic_version.Version:
    """
    Determine app version without *any* build meta data.

    :return: App version without any build meta data.
    """
    return appversion().truncate("prerelease")


class Config:
    """Platform-unified, TOML backed settings."""

    app_dir_path: pathlib.Path
    home_path: pathlib.Path
    default_journal_dir_path: pathlib.Path | None

    def __init__(self, app_path: pathlib.Path) -> None:
        self.home_path = pathlib.Path.home()
        self.app_dir_path = app_path
        self.default_journal_dir_path = None

        self.toml_path: pathlib.Path = self.app_dir_path / "config.toml"
        self.generated: str | None = None
        self.settings: dict[str, Any] = {}
        self._load()

        self._init_platform()

    def _init_platform(self) -> None:
        if sys.platform == "win32":
            from .windows import win_helper

            win_helper(self)
        elif sys.platform == "linux":
            from .linux import linux_helper

            linux_helper(self)
        elif sys.platform == "darwin":
            from .darwin import darwin_helper

            darwin_helper(self)
        else:
            config_logger.warning(f"Unsupported platform {sys.platform}, no default journal directory")

    def _load(self) -> None:
        """Load TOML from disk and store fields. Create file if missing."""
        if not self.toml_path.exists():
            self.toml_path.parent.mkdir(parents=True, exist_ok=True)
            with self.toml_path.open("wb") as f:
                tomli_w.dump({"generated": "", "settings": {}}, f)

        try:
            with self.toml_path.open("rb") as f:
                data = tomllib.load(f)

        except tomllib.TOMLDecodeError:
            config_logger.exception(f"Couldn't parse {self.toml_path}, using defaults")
            data = {}

        self.generated = data.get("generated", "")
        self.settings = dict(data.get("settings", {}))

    def get(self, key: str, default=None):
        """Return raw stored value."""
        return self.settings.get(key, default)

    def get_str(self, key: str, default="") -> str:
        """Return string value."""
        val = self.get(key, default)
        return str(val) if val is not None else default

    def get_int(self, key: str, default=0) -> int:
        """Adaptive int (handles booleans stored as ints)."""
        val = self.get(key)
        if isinstance(val, int):
            return val
        try:
            return int(val)
        except (ValueError, TypeError):
            return default

    def get_float(self, key: str, default=0.0) -> float:
        """Return a float, accepting ints and numeric strings."""
        val = self.get(key)
        if isinstance(val, bool):
            return default
        try:
            return float(val)
        except (ValueError, TypeError):
            return default

    def get_bool(self, key: str, default=False) -> bool:
        """
        Adaptive boolean reader.

          - Accepts ints 0/1
          - Accepts strings "true"/"false"/"1"/"0"
          - Accepts real booleans
        """
        val = self.get(key)

        if isinstance(val, bool):
            return val

        if isinstance(val, int):
            return val != 0

        if isinstance(val, str):
            v = val.strip().lower()
            if v in ("1", "true", "yes", "on"):
                return True
            if v in ("0", "false", "no", "off"):
                return False

        return default

    def get_list(self, key: str, default=None) -> list:
        """Return the list referred to by the given key if it exists, or the default."""
        val = self.get(key)
        return (
            val if isinstance(val, list) else (default if default is not None else [])
        )

    @property
    def app_dir(self) -> str:
        """Return a string version of app_dir."""
        return str(self.app_dir_path)

    @property
    def default_journal_dir(self) -> str:
        """Return a string version of default_journal_dir, '' if there is none."""
        if self.default_journal_dir_path is None:
            return ""

        return str(self.default_journal_dir_path)

    @property
    def journal_poll_interval(self) -> float:
        """Seconds between polls of the current journal."""
        interval = self.get_float("journal_poll_interval", DEFAULT_POLL_INTERVAL)
        return interval if interval > 0 else DEFAULT_POLL_INTERVAL

    @property
    def commander_lookup_window(self) -> int:
        """How many recent journals to search for a commander name."""
        window = self.get_int("commander_lookup_window", DEFAULT_LOOKUP_WINDOW)
        return window if window > 0 else DEFAULT_LOOKUP_WINDOW

    def set(self, key: str, value: Any) -> None:
        """Modify a setting in memory, for this run only."""
        self.settings[key] = value

    def delete(self, key: str) -> None:
        """Forget the given setting for this run."""
        self.settings.pop(key, None)


def get_appdirpath() -> pathlib.Path:
    """Grab the Application Directory early."""
    if sys.platform == "win32":
        base = pathlib.Path(os.getenv("LOCALAPPDATA", "~/AppData/Local")).expanduser()

    elif sys.platform == "darwin":
        base = pathlib.Path("~/Library/Application Support").expanduser()

    else:
        base = pathlib.Path(
            os.getenv("XDG_DATA_HOME", default="~/.local/share")
        ).expanduser()

    return base / appname


def get_config() -> Config:
    """Get the Config for the current user."""
    return Config(app_path=get_appdirpath())


# Set internal Config logger, because config is set up before main logger.
config_logger = logging.getLogger("pre_config")
config_logger.setLevel(logging.INFO)

ch = logging.StreamHandler(sys.stdout)
ch.setLevel(logging.INFO)
formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
formatter.converter = gmtime
ch.setFormatter(formatter)
config_logger.addHandler(ch)


config = get_config()
