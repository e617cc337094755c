"""
journal_tail.py - Read only what has been appended to the current Journal.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.
"""
from __future__ import annotations

import dataclasses
import pathlib
from os import SEEK_SET
from typing import TYPE_CHECKING, Iterator

from EDJTLogging import get_main_logger

if TYPE_CHECKING:
    from EDJTLogging import LoggerMixin


@dataclasses.dataclass
class JournalFileHandle:
    """
    Book-keeping for the Journal being tailed.

    :param path: Full path of the file.
    :param order: Position in the newest-first listing when it was picked.
    :param offset: Bytes consumed so far.  Only ever grows while this is the
      tailed file, and always sits just after a newline.
    :param size: File size seen at the last read.
    """

    path: pathlib.Path
    order: int = 0
    offset: int = 0
    size: int = 0

    def snapshot(self) -> JournalFileHandle:
        """Copy for anyone other than the tailer."""
        return dataclasses.replace(self)


class JournalTailer:
    """Turns growth of one Journal file into a stream of new lines."""

    def __init__(self, logger: LoggerMixin | None = None) -> None:
        self.logger = logger if logger is not None else get_main_logger()
        self.handle: JournalFileHandle | None = None

    @property
    def path(self) -> pathlib.Path | None:
        """The file being tailed, if any."""
        return self.handle.path if self.handle else None

    def switch_to(self, path: str | pathlib.Path, order: int = 0) -> JournalFileHandle:
        """
        Start tailing a different file, from its beginning.

        :param path: The new file.
        :param order: Its position in the newest-first listing.
        :return: The new handle.
        """
        old = self.path
        self.handle = JournalFileHandle(path=pathlib.Path(path), order=order)
        self.logger.info(f'New Journal File. Was "{old}", now "{self.handle.path}"')
        return self.handle

    def release(self) -> None:
        """Stop tailing.  Safe to call repeatedly."""
        if self.handle is not None:
            self.logger.debug(f'Released "{self.handle.path}"')

        self.handle = None

    def has_grown(self) -> bool:
        """Whether the file is bigger than at the last read."""
        handle = self.handle
        if handle is None:
            return False

        try:
            size = handle.path.stat().st_size

        except OSError as e:
            self.logger.warning(f'Could not stat "{handle.path}": {e!r}')
            return False

        if size < handle.size:
            # Journals are append only, so someone else has been at it.  Don't
            # go backwards, just wait for it to grow past where we were.
            self.logger.warning(f'"{handle.path}" shrank from {handle.size} to {size} bytes')

        return size > handle.size

    def read_new_lines(self) -> Iterator[bytes]:
        """
        Yield each complete, non-empty line appended since the last read.

        The offset moves past a line only when it has been yielded, so a
        consumer that stops early loses nothing.  A trailing line without its
        newline is still being written; it is left for the next call.

        :return: Stripped lines, as bytes.
        """
        handle = self.handle
        if handle is None or not self.has_grown():
            return

        try:
            size = handle.path.stat().st_size
            loghandle = open(handle.path, 'rb')

        except OSError as e:
            self.logger.warning(f'Could not open "{handle.path}": {e!r}')
            return

        with loghandle:
            loghandle.seek(handle.offset, SEEK_SET)
            for line in loghandle:
                if not line.endswith(b'\n'):
                    self.logger.trace_if('journal.tail', f'Partial line at {handle.offset}, waiting for the rest')
                    break

                handle.offset += len(line)
                stripped = line.strip()
                if stripped:
                    yield stripped

        handle.size = max(size, handle.offset)
