"""
journal_files.py - Find Journal files, and judge which are worth reading.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.
"""
from __future__ import annotations

import pathlib
import re
from os import scandir
from typing import Iterable

from config import config
from constants import JOURNAL_GAME_DIR
from EDJTLogging import get_main_logger
from journal_event import IDENTITY_EVENTS, JUMP_EVENTS, event_name, is_jump_line

logger = get_main_logger()

# Odyssey Update 11 has, e.g.    Journal.2022-03-15T152503.01.log
# Horizons Update 11 equivalent: Journal.220315152335.01.log
# So match on the shape of the name only and order by modification time.
_RE_LOGFILE = re.compile(r'^Journal\.[^\\/]+\.log$')

# How many non-empty lines of a file to look at when judging it
USABLE_SCAN_LINES = 100

_USEFUL_EVENTS = IDENTITY_EVENTS | JUMP_EVENTS


def is_journal_name(name: str) -> bool:
    """Whether a bare file name looks like a Journal."""
    return bool(_RE_LOGFILE.match(name))


def journal_files(directory: str | pathlib.Path | None) -> list[pathlib.Path]:
    """
    List the Journal files in a directory, newest first.

    :param directory: The directory to list.
    :return: Full paths ordered by modification time, newest first.  An empty
      list if the directory is unset, missing or unreadable.
    """
    # os.scandir(None) would list CWD
    if not directory:
        return []

    found: list[tuple[float, str, pathlib.Path]] = []
    try:
        with scandir(directory) as entries:
            for entry in entries:
                if not is_journal_name(entry.name):
                    continue

                try:
                    if not entry.is_file():
                        continue

                    found.append((entry.stat().st_mtime, entry.name, pathlib.Path(entry.path)))

                except OSError as e:
                    # Removed between listing and stat(), or no permission
                    logger.debug(f'Skipping "{entry.path}": {e!r}')

    except OSError as e:
        logger.warning(f'Could not list Journal directory "{directory}": {e!r}')
        return []

    found.sort(key=lambda f: (f[0], f[1]), reverse=True)
    return [f[2] for f in found]


def is_usable(path: str | pathlib.Path, max_lines: int = USABLE_SCAN_LINES) -> bool:
    """
    Judge whether a Journal has anything we can use in it.

    Only the first `max_lines` non-empty lines are looked at.  A file is
    usable if they contain a jump or an identity event.

    :param path: The Journal file.
    :param max_lines: How many non-empty lines to look at.
    :return: True if usable.
    """
    seen = 0
    try:
        with open(path, 'rb') as handle:
            for line in handle:
                if not line.strip():
                    continue

                seen += 1
                if event_name(line) in _USEFUL_EVENTS:
                    return True

                if seen >= max_lines:
                    break

    except OSError as e:
        logger.debug(f'Could not read "{path}": {e!r}')
        return False

    return False


def find_latest_usable(directory: str | pathlib.Path | None) -> pathlib.Path | None:
    """
    Find the newest usable Journal in a directory.

    :return: The path, or None if there isn't one.
    """
    for path in journal_files(directory):
        if is_usable(path):
            return path

    logger.trace_if('journal.file', f'No usable Journal in "{directory}"')
    return None


def journal_dir_candidates(home: pathlib.Path | None = None) -> list[pathlib.Path]:
    """
    List the conventional places the game writes its Journals to.

    :param home: The user's home directory, defaults to the real one.
    :return: Candidate directories, most likely first, without duplicates.
    """
    if home is None:
        home = config.home_path

    game_dir = pathlib.Path(*JOURNAL_GAME_DIR)
    candidates: list[pathlib.Path] = []
    if config.default_journal_dir_path is not None:
        candidates.append(config.default_journal_dir_path)

    candidates.extend((
        home / 'Saved Games' / game_dir,
        home / 'Documents' / game_dir,
        home / 'Library' / 'Application Support' / game_dir,
    ))

    deduplicated: list[pathlib.Path] = []
    for candidate in candidates:
        if candidate not in deduplicated:
            deduplicated.append(candidate)

    return deduplicated


def auto_detect_journal_dir(candidates: Iterable[pathlib.Path] | None = None) -> pathlib.Path | None:
    """
    Find the first candidate directory that holds a usable Journal.

    :param candidates: Directories to try, defaults to journal_dir_candidates().
    :return: The directory, or None.
    """
    if candidates is None:
        candidates = journal_dir_candidates()

    for candidate in candidates:
        if not candidate.is_dir():
            continue

        if find_latest_usable(candidate) is not None:
            logger.info(f'Auto-detected Journal directory "{candidate}"')
            return candidate

    logger.info('Failed to auto-detect a Journal directory')
    return None


def count_jump_lines(path: str | pathlib.Path) -> int:
    """
    Count the FSDJump and CarrierJump lines in one Journal.

    :raises OSError: If the file can't be read.
    """
    with open(path, 'rb') as handle:
        return sum(1 for line in handle if is_jump_line(line))
