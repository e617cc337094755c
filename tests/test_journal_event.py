# flake8: noqa
# mypy: ignore-errors
"""Test classifying Journal lines."""

import json
from datetime import datetime, timezone

import pytest

from journal_event import (
    UNRECOGNIZED, CarrierJumpEvent, CommanderEvent, FileHeaderEvent, FSDJumpEvent, LoadGameEvent, LocationEvent,
    event_name, is_jump_line, parse_identity, parse_line, parse_timestamp
)


def line(**entry):
    return json.dumps(entry).encode("utf-8")


class TestParseLine:

    def test_commander(self):
        event = parse_line(line(event="Commander", FID="F1", Name="Jameson"))
        assert event == CommanderEvent("Jameson")
        assert event.commander == "Jameson"

    def test_loadgame(self):
        event = parse_line(line(event="LoadGame", Commander="Jameson", Ship="SideWinder"))
        assert isinstance(event, LoadGameEvent)
        assert event.commander == "Jameson"

    def test_fsdjump(self):
        event = parse_line(line(timestamp="2024-05-01T12:30:00Z", event="FSDJump", StarSystem="Sol"))
        assert isinstance(event, FSDJumpEvent)
        assert event.system == "Sol"
        assert event.timestamp == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert event.raw["StarSystem"] == "Sol"

    def test_carrierjump(self):
        event = parse_line(line(timestamp="2024-05-01T12:30:00Z", event="CarrierJump", StarSystem="Lave"))
        assert isinstance(event, CarrierJumpEvent)
        assert event.system == "Lave"

    @pytest.mark.parametrize("entry, expected", [
        ({"StarPos": [0, 0, 0]}, True),
        ({}, False),
    ])
    def test_location_coordinates(self, entry, expected):
        event = parse_line(line(event="Location", StarSystem="Diaguandri", **entry))
        assert isinstance(event, LocationEvent)
        assert event.has_coordinates is expected

    def test_fileheader_odyssey(self):
        assert parse_line(line(event="Fileheader", Odyssey=True)) == FileHeaderEvent(is_odyssey=True)
        assert parse_line(line(event="Fileheader")) == FileHeaderEvent(is_odyssey=False)

    def test_str_input(self):
        assert parse_line('{"event": "Commander", "Name": "Jameson"}') == CommanderEvent("Jameson")

    @pytest.mark.parametrize("raw", [
        b"",
        b"   ",
        b"not json",
        b'{"event": "FSDJump", "StarSystem": "So',
        b"[1, 2, 3]",
        b'"just a string"',
        b'{"event": 42}',
        b'{"no_event": true}',
        b'{"event": "Music", "MusicTrack": "MainMenu"}',
        b"\xff\xfe\x00garbage",
        b"[" * 100000,
    ])
    def test_unrecognized(self, raw):
        assert parse_line(raw) is UNRECOGNIZED

    def test_raw_is_read_only(self):
        event = parse_line(line(event="FSDJump", StarSystem="Sol"))
        with pytest.raises(TypeError):
            event.raw["StarSystem"] = "Lave"


class TestParseTimestamp:

    @pytest.mark.parametrize("value, expected", [
        ("2024-01-02T03:04:05Z", datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)),
        ("2024-01-02T03:04:05.500Z", datetime(2024, 1, 2, 3, 4, 5, 500000, tzinfo=timezone.utc)),
        ("2024-01-02T03:04:05", datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)),
        ("2024-01-02T04:04:05+01:00", datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)),
    ])
    def test_parses(self, value, expected):
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", [None, "", "yesterday", 1700000000])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None

    def test_missing_timestamp_still_parses_event(self):
        event = parse_line(line(event="FSDJump", StarSystem="Sol"))
        assert event.system == "Sol"
        assert event.timestamp is None


class TestPatternHelpers:

    def test_event_name(self):
        assert event_name(b'{ "timestamp":"x", "event":"FSDJump", "StarSystem":"Sol" }') == "FSDJump"
        assert event_name(b'{"event" : "Scan"}') == "Scan"
        assert event_name(b"nothing here") is None

    def test_is_jump_line(self):
        assert is_jump_line(b'{"event":"FSDJump"}')
        assert is_jump_line(b'{"event":"CarrierJump"}')
        assert not is_jump_line(b'{"event":"Location"}')

    def test_identity_from_valid_lines(self):
        assert parse_identity(line(event="Commander", Name="Jameson")) == "Jameson"
        assert parse_identity(line(event="LoadGame", Commander="Jameson")) == "Jameson"

    def test_identity_from_truncated_lines(self):
        assert parse_identity(b'{"event":"Commander", "FID":"F1", "Name":"Jameson"') == "Jameson"
        assert parse_identity(b'{"event":"LoadGame", "Commander":"Jameson", "Ship') == "Jameson"

    def test_identity_rejects(self):
        assert parse_identity(line(event="Commander", Name="")) is None
        assert parse_identity(line(event="FSDJump", StarSystem="Sol")) is None
        assert parse_identity(b'{"event":"Music", "Name":"Jameson"') is None
        assert parse_identity(b"") is None
