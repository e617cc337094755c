"""
backfill.py - Whole-file sweeps over historical Journals.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

None of this touches engine state.  Every sweep returns a result object and
monitor.JournalMonitor applies it in one go.
"""
from __future__ import annotations

import dataclasses
import pathlib
from typing import TYPE_CHECKING, Iterable, Sequence

from config import DEFAULT_LOOKUP_WINDOW
from EDJTLogging import get_main_logger
from journal_event import (
    CommanderEvent, FileHeaderEvent, LoadGameEvent, SystemEvent, parse_identity, parse_line
)
from journal_files import USABLE_SCAN_LINES, count_jump_lines

if TYPE_CHECKING:
    from EDJTLogging import LoggerMixin


@dataclasses.dataclass
class CommanderSweep:
    """Result of looking for every commander in a set of Journals."""

    commanders: list[str] = dataclasses.field(default_factory=list)
    files_scanned: int = 0
    files_failed: int = 0

    @property
    def nothing_readable(self) -> bool:
        """There were files, but not one of them could be read."""
        return self.files_failed > 0 and self.files_scanned == 0


@dataclasses.dataclass
class LocationSweep:
    """Result of looking for one commander's latest location."""

    commander: str
    event: SystemEvent | None = None
    path: pathlib.Path | None = None
    files_matched: int = 0
    files_failed: int = 0

    @property
    def system(self) -> str | None:
        return self.event.system if self.event else None


class BackfillScanner:
    """Sweeps over whole Journal files, newest first."""

    def __init__(self, logger: LoggerMixin | None = None, lookup_window: int = DEFAULT_LOOKUP_WINDOW) -> None:
        self.log = logger if logger is not None else get_main_logger()
        self.lookup_window = lookup_window

    def _read_lines(self, path: pathlib.Path) -> list[bytes] | None:
        try:
            with open(path, 'rb') as handle:
                return handle.readlines()

        except OSError as e:
            self.log.debug(f'Error reading Journal "{path}": {e!r}')
            return None

    def scan_commanders(self, files: Iterable[pathlib.Path]) -> CommanderSweep:
        """
        Find every commander named in the given Journals.

        Each file is read bottom to top, so within a file later names come first.

        :param files: The Journals, newest first.
        :return: The names in the order they were found, without duplicates.
        """
        sweep = CommanderSweep()
        for path in files:
            lines = self._read_lines(path)
            if lines is None:
                sweep.files_failed += 1
                continue

            sweep.files_scanned += 1
            for line in reversed(lines):
                name = parse_identity(line)
                if name and name not in sweep.commanders:
                    self.log.trace_if('journal.backfill', f'Found commander "{name}" in "{path.name}"')
                    sweep.commanders.append(name)

        self.log.debug(
            f'Commander scan complete: {len(sweep.commanders)} commanders in {sweep.files_scanned} files,'
            f' {sweep.files_failed} unreadable'
        )
        return sweep

    def journal_owner(self, path: pathlib.Path) -> tuple[str | None, bool]:
        """
        Work out who wrote a Journal.

        The first Commander or LoadGame event in a file decides who owns the
        whole of it.  Only the head of the file is read.

        :return: (owner or None, whether the Fileheader said Odyssey)
        :raises OSError: If the file can't be read.
        """
        is_odyssey = False
        seen = 0
        with open(path, 'rb') as handle:
            for line in handle:
                if not line.strip():
                    continue

                seen += 1
                event = parse_line(line)
                if isinstance(event, FileHeaderEvent):
                    is_odyssey = event.is_odyssey

                elif isinstance(event, (CommanderEvent, LoadGameEvent)):
                    return event.commander or None, is_odyssey

                if seen >= USABLE_SCAN_LINES:
                    break

        return None, is_odyssey

    def latest_location(self, path: pathlib.Path) -> SystemEvent | None:
        """
        Find the latest location event in one Journal.

        "Latest" is by the event's own timestamp, events without a parseable
        one are ignored.  On a tie the earlier line wins.

        :raises OSError: If the file can't be read.
        """
        latest: SystemEvent | None = None
        with open(path, 'rb') as handle:
            for line in handle:
                event = parse_line(line)
                if not isinstance(event, SystemEvent):
                    continue

                if not event.system or event.timestamp is None:
                    continue

                if latest is None or event.timestamp > latest.timestamp:  # type: ignore[operator]
                    latest = event

        return latest

    def find_latest_location(self, files: Iterable[pathlib.Path], commander: str) -> LocationSweep:
        """
        Find where `commander` was last seen, across all their Journals.

        Journals owned by anyone else are skipped entirely, even if they
        mention `commander`.  The result doesn't depend on the order of `files`.

        :param files: The Journals, newest first.
        :param commander: Whose location to find.
        """
        sweep = LocationSweep(commander)
        for path in files:
            try:
                owner, is_odyssey = self.journal_owner(path)
                if owner != commander:
                    continue

                sweep.files_matched += 1
                self.log.trace_if(
                    'journal.backfill', f'Found journal for "{commander}": "{path.name}" (Odyssey: {is_odyssey})'
                )
                event = self.latest_location(path)

            except OSError as e:
                self.log.debug(f'Error reading Journal "{path}": {e!r}')
                sweep.files_failed += 1
                continue

            if event is None:
                continue

            if sweep.event is None or event.timestamp > sweep.event.timestamp:  # type: ignore[operator]
                self.log.trace_if(
                    'journal.backfill', f'Most recent location for "{commander}": "{event.system}" from "{path.name}"'
                )
                sweep.event = event
                sweep.path = path

        return sweep

    def commander_from_journal(self, path: pathlib.Path | None, recent_files: Sequence[pathlib.Path]) -> str | None:
        """
        Find the commander most recently named in a Journal.

        If `path` names nobody, the newest `lookup_window` of `recent_files`
        are tried in turn.  Each file is read bottom to top.

        :param path: The Journal to look in first.
        :param recent_files: Other Journals, newest first.
        :return: The commander, or None if nobody was found.
        """
        candidates: list[pathlib.Path] = []
        if path is not None:
            candidates.append(path)

        candidates.extend(p for p in recent_files[:self.lookup_window] if p != path)
        for candidate in candidates:
            lines = self._read_lines(candidate)
            if lines is None:
                continue

            for line in reversed(lines):
                name = parse_identity(line)
                if name:
                    self.log.debug(f'Found commander "{name}" in "{candidate.name}"')
                    return name

        self.log.warning('No commander found in any recent journals')
        return None

    def count_jumps(self, files: Iterable[pathlib.Path]) -> int:
        """Count FSDJump and CarrierJump events over all the given Journals."""
        total = 0
        for path in files:
            try:
                total += count_jump_lines(path)

            except OSError as e:
                self.log.debug(f'Could not open journal file for jump counting "{path}": {e!r}')

        return total
