"""
monitor.py - Monitor for new Journal files and contents of latest.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

All commander and location state is mutated only while holding
JournalMonitor._lock.  Three things take it:

1. watchdog's observer thread, when it tells us about a change;
2. the 'Journal worker' thread, which polls every `poll_interval` seconds
   because file system events are unreliable (e.g. over network drives);
3. backfill sweeps, which read files without the lock and then apply their
   result in one go.

stop_monitoring() takes the lock and bumps a generation counter, so once it
returns no line is mid-way through being applied.  Anything started under an
older generation throws its results away rather than applying them.
"""
from __future__ import annotations

import os
import pathlib
import threading
from os.path import expanduser
from time import sleep
from typing import TYPE_CHECKING, Callable

import psutil
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from backfill import BackfillScanner, LocationSweep
from config import config
from EDJTLogging import get_main_logger
from identity import IdentityResolver, IdentityState
from journal_event import (
    CommanderEvent, FileHeaderEvent, JournalEvent, LoadGameEvent, SystemEvent, parse_line
)
from journal_files import auto_detect_journal_dir, find_latest_usable, is_journal_name, journal_files
from journal_tail import JournalTailer
from location import LocationState, LocationTracker
from notifications import Callback, ErrorEvent, MonitorEvents, NotificationBus, StatusEvent

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver, ObservedWatch

    from EDJTLogging import LoggerMixin


# Journal handler
class JournalMonitor(FileSystemEventHandler):
    """Monitoring of Journal files, and the commander and location they describe."""

    def __init__(
        self,
        journal_dir: str | pathlib.Path | None = None,
        logger: LoggerMixin | None = None,
        poll_interval: float | None = None,
        lookup_window: int | None = None,
        use_observer: bool | None = None,
    ) -> None:
        FileSystemEventHandler.__init__(self)  # futureproofing - not need for current version of watchdog
        self.log = logger if logger is not None else get_main_logger()

        if journal_dir is None:
            journal_dir = config.get_str('journaldir') or None

        self.journal_dir: pathlib.Path | None = pathlib.Path(expanduser(journal_dir)) if journal_dir else None
        self.currentdir: pathlib.Path | None = None  # The actual logdir that we're monitoring
        self.poll_interval = poll_interval if poll_interval is not None else config.journal_poll_interval
        self.use_observer = use_observer if use_observer is not None else config.get_bool('journal_observer', True)

        self.observer: BaseObserver | None = None
        self.observed: ObservedWatch | None = None  # a watchdog ObservedWatch, or None if polling
        self.thread: threading.Thread | None = None
        self.backfill_thread: threading.Thread | None = None
        self.running_process: psutil.Process | None = None

        self.is_odyssey = False  # From the latest `Fileheader`

        self._lock = threading.RLock()
        self._generation = 0
        self._monitoring = False

        self.bus = NotificationBus(self.log)
        self.identity = IdentityResolver(self.bus, logger=self.log)
        self.location = LocationTracker(self.bus, logger=self.log)
        self.tailer = JournalTailer(self.log)
        self.scanner = BackfillScanner(
            self.log, lookup_window if lookup_window is not None else config.commander_lookup_window
        )

    @property
    def cmdr(self) -> str | None:
        """The current commander."""
        return self.identity.state.current_commander

    @property
    def system(self) -> str | None:
        """The current star system."""
        return self.location.state.current_system

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    def identity_state(self) -> IdentityState:
        """Copy of the identity state."""
        with self._lock:
            return self.identity.state.copy()

    def location_state(self) -> LocationState:
        """Copy of the location state."""
        with self._lock:
            return self.location.state.copy()

    def register(self, name: str, func: Callback) -> None:
        """Call `func` for every notification called `name`, see notifications.MonitorEvents."""
        self.bus.register(name, func)

    def unregister(self, name: str, func: Callback) -> None:
        """Undo register()."""
        self.bus.unregister(name, func)

    def _error(self, message: str) -> None:
        self.log.error(message)
        self.bus.fire(ErrorEvent(message))

    def _directory(self) -> pathlib.Path | None:
        return self.currentdir or self.journal_dir

    def set_journal_directory(self, path: str | pathlib.Path | None) -> None:
        """
        Change the Journal directory.

        Restarts monitoring if it was running.
        """
        new_dir = pathlib.Path(expanduser(path)) if path else None
        if new_dir == self.journal_dir:
            return

        self.log.debug(f'Journal Directory changed?  Was "{self.journal_dir}", now "{new_dir}"')
        self.journal_dir = new_dir
        self.bus.fire(StatusEvent(MonitorEvents.JOURNAL_DIR_CHANGED, new_dir))

        if self._monitoring:
            self.stop_monitoring()
            self.start_monitoring()

    def start_monitoring(self) -> bool:  # noqa: CCR001
        """
        Start journal monitoring.

        :return: bool - False if we couldn't access/find the Journal directory.
        """
        self.log.debug('Begin...')
        logdir = self.journal_dir
        if logdir is None:
            logdir = auto_detect_journal_dir()
            if logdir is None:
                self._error('No journal folder found')
                return False

            self.set_journal_directory(logdir)

        if not logdir.is_dir():
            self._error(f'Journal folder does not exist: "{logdir}"')
            return False

        if self._monitoring:
            if self.currentdir == logdir:
                self.log.debug('Already monitoring')
                return True

            self.stop_monitoring()

        with self._lock:
            self._generation += 1
            generation = self._generation
            self.currentdir = logdir
            self._monitoring = True

            # Latest pre-existing logfile - e.g. if E:D is already running.
            # Do this before setting up the observer in case the journal directory has gone away
            logfile = find_latest_usable(logdir)
            if logfile is None:
                # Not fatal, one may turn up
                self._error(f'No usable journal file found in "{logdir}"')

            else:
                self._switch_tail(logfile, generation)

        self._start_observer()
        self.log.info(f'{"Monitoring" if self.observed else "Polling"} Journal Folder: "{self.currentdir}"')
        self.log.info(f'Start Journal File: "{self.tailer.path}"')

        if not self.running():
            self.log.debug('Starting Journal worker thread...')
            self.thread = threading.Thread(target=self.worker, args=(generation,), name='Journal worker')
            self.thread.daemon = True
            self.thread.start()

        # Populate the commander list from history without holding up live tailing
        self.backfill_thread = threading.Thread(
            target=self.scan_all_for_commanders, args=(generation,), name='Journal backfill'
        )
        self.backfill_thread.daemon = True
        self.backfill_thread.start()

        self.bus.fire(StatusEvent(MonitorEvents.MONITORING_CHANGED, True))
        self.log.debug('Done.')
        return True

    def _start_observer(self) -> None:
        # Notifications only save us waiting for the next poll, so any failure
        # here just leaves us polling.
        if not self.use_observer:
            return

        try:
            if not self.observer:
                self.log.debug('Not polling, no observer, starting an observer...')
                self.observer = Observer()
                self.observer.daemon = True
                self.observer.start()

            if not self.observed:
                self.observed = self.observer.schedule(self, str(self.currentdir))

        except OSError:
            self.log.exception('Could not watch the Journal directory, polling only')
            self.observed = None

    def stop_monitoring(self) -> None:
        """Stop journal monitoring.  Safe to call at any time, and more than once."""
        self.log.debug('Stopping monitoring Journal')
        # Waits for any line being applied on another thread
        with self._lock:
            self._generation += 1
            was_monitoring = self._monitoring
            self._monitoring = False
            self.currentdir = None
            observed, self.observed = self.observed, None
            self.thread = None  # Orphan the worker thread - will terminate at next poll
            self.tailer.release()

            if was_monitoring:
                self.bus.fire(StatusEvent(MonitorEvents.MONITORING_CHANGED, False))

        # Outside our lock, the observer holds its own while it calls us
        if observed:
            self.log.debug('self.observed: Calling unschedule_all()')
            assert self.observer is not None, 'Observer was none but it is in use?'
            self.observer.unschedule_all()

        self.log.debug('Done.')

    def close(self) -> None:
        """Close journal monitoring."""
        self.stop_monitoring()

        if self.observer:
            self.log.debug('Calling self.observer.stop()...')
            self.observer.stop()
            self.log.debug('Joining self.observer thread...')
            self.observer.join()
            self.observer = None

        self.log.debug('Done.')

    def running(self) -> bool:
        """
        Determine if Journal watching is active.

        :return: bool
        """
        return bool(self.thread and self.thread.is_alive())

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def on_created(self, event: FileSystemEvent) -> None:
        """Watchdog callback when, e.g. client (re)started."""
        self._directory_changed(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Watchdog callback when a Journal goes away."""
        self._directory_changed(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Watchdog callback when a Journal is renamed."""
        self._directory_changed(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Watchdog callback when a file was written to."""
        if event.is_directory:
            return

        path = pathlib.Path(os.fsdecode(event.src_path))
        tailing = self.tailer.path
        # Either side may have come via a symlink or a relative journal_dir
        if tailing is not None and path.resolve() == tailing.resolve():
            self.check_for_updates()

        elif is_journal_name(path.name):
            # A brand new Journal only becomes usable once the commander is in it
            self.check_directory()

    def _directory_changed(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        paths = [event.src_path, getattr(event, 'dest_path', '')]
        if any(is_journal_name(pathlib.Path(os.fsdecode(p)).name) for p in paths if p):
            self.check_directory()

    def worker(self, generation: int) -> None:
        """
        Poll the latest Journal file.

        Runs in its own thread until monitoring stops, as a backstop for
        watchdog events that never arrive.
        """
        self.log.debug('Entering loop...')
        while True:
            sleep(self.poll_interval)

            # Check whether we're still supposed to be running
            if threading.current_thread() != self.thread or self._is_stale(generation):
                self.log.info("We're not meant to be running, exiting...")
                return

            try:
                self.check_for_updates(generation)

            except Exception:
                self.log.exception('Failed polling the Journal')

    def check_for_updates(self, generation: int | None = None) -> int:
        """
        Process anything new in the current Journal, then look for a newer Journal.

        :param generation: The monitoring generation the caller belongs to.
        :return: How many lines were processed.
        """
        with self._lock:
            if generation is None:
                generation = self._generation

            if self._is_stale(generation) or not self._monitoring:
                return 0

            processed = self._process_new_lines(generation)
            self.check_directory(generation)
            return processed

    def check_directory(self, generation: int | None = None) -> bool:
        """
        Switch to a newer usable Journal, if there is one.

        :return: True if we switched.
        """
        with self._lock:
            if generation is None:
                generation = self._generation

            if self._is_stale(generation) or not self._monitoring:
                return False

            logfile = find_latest_usable(self.currentdir)
            if logfile is None or logfile == self.tailer.path:
                return False

            self._switch_tail(logfile, generation)
            return True

    def _switch_tail(self, logfile: pathlib.Path, generation: int) -> None:
        files = journal_files(self.currentdir)
        order = files.index(logfile) if logfile in files else 0
        self.tailer.switch_to(logfile, order)

        # The file's owner is known before any of its jumps are looked at
        self.identity.set_journal_owner(self.scanner.commander_from_journal(logfile, files))
        self._process_new_lines(generation)

    def _process_new_lines(self, generation: int) -> int:
        processed = 0
        for line in self.tailer.read_new_lines():
            if self._is_stale(generation):
                self.log.info('Monitoring stopped, discarding the rest of this read')
                break

            self.process_line(line, generation)
            processed += 1

        if processed:
            self.log.trace_if('journal.tail', f'Processed {processed} lines from "{self.tailer.path}"')

        return processed

    def process_line(self, line: str | bytes, generation: int | None = None) -> JournalEvent:
        """
        Parse one Journal line and apply it to our state.

        :param line: The raw line.
        :param generation: Monitoring generation the line was read under.  The
          line is parsed but not applied if monitoring has stopped since.
        :return: The parsed event.
        """
        event = parse_line(line)
        with self._lock:
            if generation is not None and self._is_stale(generation):
                self.log.debug(f'Monitoring stopped, not applying {type(event).__name__}')
                return event

            if isinstance(event, (CommanderEvent, LoadGameEvent)):
                self.identity.on_identity(event.commander)

            elif isinstance(event, SystemEvent):
                if self.identity.allows_location_update():
                    self.location.apply(event)

                else:
                    state = self.identity.state
                    self.log.debug(
                        f'Ignoring {type(event).__name__} to "{event.system}" from journal commander'
                        f' "{state.actual_journal_commander}" (Force Main CMDR is set to'
                        f' "{state.forced_commander_name}")'
                    )

            elif isinstance(event, FileHeaderEvent):
                self.is_odyssey = event.is_odyssey

        return event

    def set_forced_commander(self, name: str | None, enabled: bool) -> None:
        """Pin (or unpin) the commander whose Journals may move the location."""
        with self._lock:
            self.identity.set_forced_commander(name, enabled)

    def _run_in_background(self, target: Callable, *args, name: str) -> threading.Thread:
        thread = threading.Thread(target=target, args=args, name=name)
        thread.daemon = True
        thread.start()
        return thread

    def scan_all_for_commanders(self, generation: int | None = None) -> list[str]:
        """
        Add every commander in every Journal to the known commanders.

        :param generation: The monitoring generation the caller belongs to.
        :return: The commanders that were new.
        """
        directory = self._directory()
        if directory is None:
            self.log.debug('No journal path set for commander scanning')
            return []

        if generation is None:
            generation = self._generation

        self.log.debug('Scanning all journals for commanders...')
        sweep = self.scanner.scan_commanders(journal_files(directory))

        with self._lock:
            if self._is_stale(generation):
                self.log.info('Monitoring stopped during commander scan, discarding results')
                return []

            if sweep.nothing_readable:
                self._error(f'Could not read any journal in "{directory}"')

            added = self.identity.add_known(sweep.commanders)

        self.log.info(
            f'Commander scan complete. Found {len(added)} new commanders.'
            f' Total: {len(self.identity.state.all_known_commanders)}'
        )
        return added

    def switch_to_commander(self, name: str, background: bool = False) -> LocationSweep | None:
        """
        Make `name` the current commander, and move to where they were last seen.

        Every Journal owned by `name` is searched; the live tail is untouched.

        :param name: The commander.
        :param background: Do the search in a separate thread.
        :return: The search result, or None if run in the background or there
          was nothing to search.
        """
        directory = self._directory()
        if not name or directory is None:
            self.log.warning('Cannot switch commander - invalid name or journal path')
            return None

        generation = self._generation
        if background:
            self.backfill_thread = self._run_in_background(
                self._switch_to_commander, name, directory, generation, name='Journal commander switch'
            )
            return None

        return self._switch_to_commander(name, directory, generation)

    def _switch_to_commander(self, name: str, directory: pathlib.Path, generation: int) -> LocationSweep | None:
        self.log.debug(f'Switching to commander "{name}", re-scanning all journals for latest location...')
        sweep = self.scanner.find_latest_location(journal_files(directory), name)

        with self._lock:
            if self._is_stale(generation):
                self.log.info('Monitoring stopped during commander switch, discarding results')
                return None

            self.identity.add_known((name,))
            previous = self.identity.adopt(name)
            if sweep.event is not None:
                self.log.info(f'Found last known location for "{name}": "{sweep.system}"')
                self.location.apply(sweep.event, force=True)

            else:
                self.log.info(f'Could not find any location data for "{name}", updating commander only')

            self.identity.announce(name, previous)

        return sweep

    def get_all_known_commanders(self) -> list[str]:
        """Every commander seen so far, in the order first seen."""
        with self._lock:
            return list(self.identity.state.all_known_commanders)

    def get_latest_usable_file(self) -> pathlib.Path | None:
        """The newest usable Journal in the Journal directory."""
        return find_latest_usable(self._directory())

    def count_total_jumps(self) -> int:
        """Count every FSDJump and CarrierJump in every Journal."""
        directory = self._directory()
        if directory is None:
            self.log.debug('No journal path set for jump counting')
            return 0

        return self.scanner.count_jumps(journal_files(directory))

    def auto_detect_journal_directory(self) -> pathlib.Path | None:
        """Find a Journal directory in the usual places, without adopting it."""
        return auto_detect_journal_dir()

    def analyze_journal_directory(self, path: str | pathlib.Path) -> bool:
        """
        Adopt `path` as the Journal directory if it has a usable Journal in it.

        :return: True if adopted.
        """
        if find_latest_usable(path) is None:
            return False

        self.set_journal_directory(path)
        return True

    def commander_from_journal(self, path: pathlib.Path | None = None) -> str | None:
        """
        Find who wrote a Journal, falling back to recent Journals.

        :param path: The Journal, defaults to the one being tailed, then the latest usable one.
        :return: The commander, or None if nobody could be found.
        """
        directory = self._directory()
        if path is None:
            path = self.tailer.path or find_latest_usable(directory)

        if path is None:
            self.log.warning('No journal file available for commander extraction')
            return None

        return self.scanner.commander_from_journal(path, journal_files(directory))

    def game_running(self) -> bool:
        """
        Determine if the game is currently running.

        :return: bool - True if the game is running.
        """
        if self.running_process:
            p = self.running_process
            try:
                with p.oneshot():
                    if p.status() not in [psutil.STATUS_RUNNING, psutil.STATUS_SLEEPING]:
                        raise psutil.NoSuchProcess(p.pid)
            except psutil.NoSuchProcess:
                # Process likely expired
                self.running_process = None
        if not self.running_process:
            try:
                our_user = psutil.Process().username()
                for proc in psutil.process_iter(['name', 'username']):
                    if 'EliteDangerous' in (proc.info['name'] or '') and proc.info['username'] == our_user:
                        self.running_process = proc
                        return True
            except psutil.Error:
                pass
            return False
        return bool(self.running_process)


# singleton
monitor = JournalMonitor()
