"""
linux.py - Linux config implementation.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

The game has no native Linux client, so journals live inside the Wine prefix
Steam's Proton creates for it.
"""
from __future__ import annotations

import os
import pathlib
import sys
from typing import TYPE_CHECKING

from config import config_logger
from constants import ELITE_STEAM_APPID, JOURNAL_GAME_DIR

if TYPE_CHECKING:
    from . import Config

if sys.platform != "linux":
    raise OSError("This file is for Linux only.")


def proton_journal_dir(home: pathlib.Path) -> pathlib.Path:
    """Return where the journals are under the default Steam library's Proton prefix."""
    steam_root = pathlib.Path(os.getenv("STEAM_ROOT", home / ".local" / "share" / "Steam"))
    return (
        steam_root / "steamapps" / "compatdata" / ELITE_STEAM_APPID / "pfx" / "drive_c"
        / "users" / "steamuser" / "Saved Games" / pathlib.Path(*JOURNAL_GAME_DIR)
    )


def linux_helper(config: Config) -> Config:
    """Set Environment Specific Variables for Linux Config."""
    config_logger.debug("Linux environment detected. Setting platform-specific variables.")
    journal_dir_path = proton_journal_dir(config.home_path)
    config.default_journal_dir_path = journal_dir_path if journal_dir_path.is_dir() else None
    return config
