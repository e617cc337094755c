"""
darwin.py - Darwin/macOS config implementation.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.
"""
from __future__ import annotations

import pathlib
import sys
from typing import TYPE_CHECKING

from config import config_logger
from constants import JOURNAL_GAME_DIR

if TYPE_CHECKING:
    from . import Config

if sys.platform != "darwin":
    raise OSError("This file is for macOS only.")


def darwin_helper(config: Config) -> Config:
    """Set Environment Specific Variables for macOS Config."""
    config_logger.debug("macOS environment detected. Setting platform-specific variables.")
    support_path = config.home_path / "Library" / "Application Support"
    journal_dir_path = support_path / pathlib.Path(*JOURNAL_GAME_DIR)
    config.default_journal_dir_path = journal_dir_path if journal_dir_path.is_dir() else None
    return config
