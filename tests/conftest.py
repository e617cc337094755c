# flake8: noqa
# mypy: ignore-errors
"""Shared fixtures: a throwaway config directory and a Journal directory to write into."""

import json
import os
import tempfile

# config/__init__.py reads and creates its settings file at import time, so
# point it somewhere disposable before any project module is imported.
_app_home = tempfile.mkdtemp(prefix="edjt-tests-")
os.environ["XDG_DATA_HOME"] = _app_home
os.environ["LOCALAPPDATA"] = _app_home

import pytest  # noqa: E402

from monitor import JournalMonitor  # noqa: E402
from notifications import MonitorEvents  # noqa: E402


class JournalWriter:
    """Writes Journal files with strictly increasing modification times."""

    def __init__(self, directory):
        self.directory = directory
        self._mtime = 1_700_000_000
        self._count = 0

    def _touch(self, path):
        self._mtime += 10
        os.utime(path, (self._mtime, self._mtime))

    @staticmethod
    def _line(entry):
        return entry if isinstance(entry, str) else json.dumps(entry)

    def write(self, *entries, name=None):
        """Write a new Journal, newer than any written before."""
        self._count += 1
        if name is None:
            name = f"Journal.2024-01-01T{self._count:06d}.01.log"

        path = self.directory / name
        with open(path, "w", encoding="utf-8") as f:
            for entry in entries:
                f.write(self._line(entry) + "\n")

        self._touch(path)
        return path

    def append(self, path, *entries, newline=True):
        """Append to a Journal, keeping it the newest."""
        with open(path, "a", encoding="utf-8") as f:
            f.write("\n".join(self._line(e) for e in entries))
            if newline:
                f.write("\n")

        self._touch(path)

    @staticmethod
    def header(odyssey=False):
        return {"timestamp": "2024-01-01T00:00:00Z", "event": "Fileheader", "part": 1, "Odyssey": odyssey}

    @staticmethod
    def commander(name):
        return {"timestamp": "2024-01-01T00:00:01Z", "event": "Commander", "FID": "F1234", "Name": name}

    @staticmethod
    def loadgame(name):
        return {"timestamp": "2024-01-01T00:00:02Z", "event": "LoadGame", "FID": "F1234", "Commander": name}

    @staticmethod
    def fsd(system, timestamp="2024-01-01T00:01:00Z"):
        return {"timestamp": timestamp, "event": "FSDJump", "StarSystem": system, "StarPos": [0.0, 0.0, 0.0]}

    @staticmethod
    def carrier(system, timestamp="2024-01-01T00:01:00Z"):
        return {"timestamp": timestamp, "event": "CarrierJump", "StarSystem": system, "StarPos": [1.0, 2.0, 3.0]}

    @staticmethod
    def location(system, timestamp="2024-01-01T00:00:30Z", coordinates=True):
        entry = {"timestamp": timestamp, "event": "Location", "StarSystem": system}
        if coordinates:
            entry["StarPos"] = [4.0, 5.0, 6.0]

        return entry

    @staticmethod
    def music():
        return {"timestamp": "2024-01-01T00:00:03Z", "event": "Music", "MusicTrack": "MainMenu"}


@pytest.fixture
def journal_dir(tmp_path):
    """An empty Journal directory."""
    d = tmp_path / "journals"
    d.mkdir()
    return d


@pytest.fixture
def journals(journal_dir):
    return JournalWriter(journal_dir)


class Recorder:
    """Registers for every notification and keeps them in order."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def attach(self, target):
        for key, name in vars(MonitorEvents).items():
            if key.isupper():
                target.register(name, self)

        return self

    @property
    def names(self):
        return [e.name for e in self.events]

    def of(self, name):
        return [e for e in self.events if e.name == name]

    def clear(self):
        self.events.clear()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_monitor(journal_dir):
    """Build JournalMonitors that poll too slowly to interfere, closing them afterwards."""
    monitors = []

    def factory(**kwargs):
        kwargs.setdefault("journal_dir", journal_dir)
        kwargs.setdefault("poll_interval", 60)
        kwargs.setdefault("use_observer", False)
        m = JournalMonitor(**kwargs)
        monitors.append(m)
        return m

    yield factory

    for m in monitors:
        m.close()
