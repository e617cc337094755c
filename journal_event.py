"""
journal_event.py - Classify raw Journal lines into typed events.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

Two tiers of parsing live here and only here:

1. `parse_line()` fully decodes a line as JSON and dispatches on its
   `event` member.  It never raises; anything it can't make sense of is
   `UNRECOGNIZED`.
2. `event_name()` and `parse_identity()` pull single values out of a line
   with regular expressions, without a full decode.  The former is for cheap
   bulk scans, the latter lets commander lookups survive a line the game
   only half wrote.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Union

EVENT_COMMANDER = 'Commander'
EVENT_LOADGAME = 'LoadGame'
EVENT_FSDJUMP = 'FSDJump'
EVENT_CARRIERJUMP = 'CarrierJump'
EVENT_LOCATION = 'Location'
EVENT_FILEHEADER = 'Fileheader'

IDENTITY_EVENTS = frozenset((EVENT_COMMANDER, EVENT_LOADGAME))
JUMP_EVENTS = frozenset((EVENT_FSDJUMP, EVENT_CARRIERJUMP))
SYSTEM_EVENTS = JUMP_EVENTS | {EVENT_LOCATION}

_RE_EVENT = re.compile(rb'"event"\s*:\s*"([^"]*)"')
_RE_NAME = re.compile(rb'"Name"\s*:\s*"([^"]+)"')
_RE_COMMANDER = re.compile(rb'"Commander"\s*:\s*"([^"]+)"')

_TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


@dataclass(frozen=True)
class CommanderEvent:
    """`Commander` - first identity event of a session since 3.0."""

    name: str

    @property
    def commander(self) -> str:
        return self.name


@dataclass(frozen=True)
class LoadGameEvent:
    """`LoadGame` - the session went live."""

    commander_name: str

    @property
    def commander(self) -> str:
        return self.commander_name


@dataclass(frozen=True)
class SystemEvent:
    """Common shape of every event that says which system the commander is in."""

    system: str
    raw: Mapping[str, Any] = field(repr=False, compare=False)
    timestamp: datetime | None = None


@dataclass(frozen=True)
class FSDJumpEvent(SystemEvent):
    """Arrived in a system under the ship's own Frame Shift Drive."""


@dataclass(frozen=True)
class CarrierJumpEvent(SystemEvent):
    """Arrived in a system aboard a jumping Fleet Carrier."""


@dataclass(frozen=True)
class LocationEvent(SystemEvent):
    """Where the commander is at session start, or after a respawn."""

    has_coordinates: bool = False


@dataclass(frozen=True)
class FileHeaderEvent:
    """First line of every journal."""

    is_odyssey: bool = False


@dataclass(frozen=True)
class UnrecognizedEvent:
    """Anything else, including lines that aren't valid JSON."""


UNRECOGNIZED = UnrecognizedEvent()

JournalEvent = Union[
    CommanderEvent, LoadGameEvent, FSDJumpEvent, CarrierJumpEvent, LocationEvent, FileHeaderEvent,
    UnrecognizedEvent
]
IdentityEvent = Union[CommanderEvent, LoadGameEvent]


def _as_bytes(line: str | bytes) -> bytes:
    if isinstance(line, bytes):
        return line

    return line.encode('utf-8', errors='replace')


def _str_field(entry: Mapping[str, Any], *keys: str) -> str:
    """Return the first of `keys` holding a non-empty string, else ''."""
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value:
            return value

    return ''


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a Journal `timestamp` into an aware UTC datetime.

    :param value: The raw value, usually of the form 2024-01-01T00:00:00Z.
    :return: The datetime, or None if it is absent or not parseable.
    """
    if not isinstance(value, str) or not value:
        return None

    try:
        return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)

    except ValueError:
        pass

    # Fractional seconds or an explicit offset
    try:
        parsed = datetime.fromisoformat(value)

    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def decode(line: str | bytes) -> dict[str, Any] | None:
    """
    Decode a line into its JSON object.

    :return: The object, or None for blank lines, bad JSON or non-objects.
    """
    line = line.strip()
    if not line:
        return None

    try:
        entry = json.loads(line)

    except (ValueError, RecursionError):  # ValueError covers JSONDecodeError and UnicodeDecodeError
        return None

    if not isinstance(entry, dict):
        return None

    return entry


def event_from_entry(entry: Mapping[str, Any]) -> JournalEvent:
    """Classify an already decoded Journal object."""
    event_type = entry.get('event')
    if not isinstance(event_type, str):
        return UNRECOGNIZED

    if event_type == EVENT_COMMANDER:
        return CommanderEvent(_str_field(entry, 'Name', 'Commander'))

    if event_type == EVENT_LOADGAME:
        return LoadGameEvent(_str_field(entry, 'Commander', 'Name'))

    if event_type in SYSTEM_EVENTS:
        system = _str_field(entry, 'StarSystem')
        raw = MappingProxyType(dict(entry))
        timestamp = parse_timestamp(entry.get('timestamp'))
        if event_type == EVENT_FSDJUMP:
            return FSDJumpEvent(system, raw, timestamp)

        if event_type == EVENT_CARRIERJUMP:
            return CarrierJumpEvent(system, raw, timestamp)

        return LocationEvent(system, raw, timestamp, has_coordinates='StarPos' in entry)

    if event_type == EVENT_FILEHEADER:
        return FileHeaderEvent(is_odyssey=entry.get('Odyssey') is True)

    return UNRECOGNIZED


def parse_line(line: str | bytes) -> JournalEvent:
    """
    Parse one Journal line into a typed event.

    Never raises, malformed lines are normal (e.g. a line the game is still
    writing) and come back as UNRECOGNIZED.

    :param line: The raw line, str or bytes.  json.loads() copes with either.
    :return: The event.
    """
    entry = decode(line)
    if entry is None:
        return UNRECOGNIZED

    return event_from_entry(entry)


def event_name(line: str | bytes) -> str | None:
    """
    Extract the `event` value of a line without decoding it.

    :return: The event name, or None if the line doesn't carry one.
    """
    match = _RE_EVENT.search(_as_bytes(line))
    if match is None:
        return None

    return match.group(1).decode('utf-8', errors='replace')


def is_jump_line(line: str | bytes) -> bool:
    """Whether the line is an FSDJump or CarrierJump."""
    return event_name(line) in JUMP_EVENTS


def parse_identity(line: str | bytes) -> str | None:
    """
    Return the commander named by a `Commander` or `LoadGame` line.

    Falls back to pattern matching the name out of the line if it isn't
    valid JSON.

    :return: The commander name, or None if this isn't a usable identity line.
    """
    event = parse_line(line)
    if isinstance(event, (CommanderEvent, LoadGameEvent)):
        return event.commander or None

    if event is not UNRECOGNIZED:
        return None

    name = event_name(line)
    if name == EVENT_LOADGAME:
        match = _RE_COMMANDER.search(_as_bytes(line))

    elif name == EVENT_COMMANDER:
        match = _RE_NAME.search(_as_bytes(line))

    else:
        return None

    if match is None:
        return None

    return match.group(1).decode('utf-8', errors='replace')
