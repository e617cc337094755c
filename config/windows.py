"""
windows.py - Windows config implementation.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.
"""
from __future__ import annotations

import pathlib
import sys
import uuid
from typing import TYPE_CHECKING

from config import config_logger
from constants import JOURNAL_GAME_DIR
from win32comext.shell import shell

if TYPE_CHECKING:
    from . import Config

if sys.platform != "win32":
    raise OSError("This file is for Windows only.")


def known_folder_path(guid: uuid.UUID) -> str | None:
    """Look up a Windows GUID to actual folder path name."""
    try:
        return shell.SHGetKnownFolderPath(guid, 0, 0)

    except Exception:
        config_logger.exception(f"Couldn't look up known folder {guid}")
        return None


def win_helper(config: Config) -> Config:
    """Set Environment Specific Variables for Windows Config."""
    config_logger.debug("Windows environment detected. Setting platform-specific variables.")
    saved_games = known_folder_path(shell.FOLDERID_SavedGames)  # type: ignore
    if saved_games is None:
        saved_games = str(config.home_path / "Saved Games")

    journal_dir_path = pathlib.Path(saved_games) / pathlib.Path(*JOURNAL_GAME_DIR)
    config.default_journal_dir_path = journal_dir_path if journal_dir_path.is_dir() else None
    return config
