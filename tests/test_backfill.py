# flake8: noqa
# mypy: ignore-errors
"""Test sweeps over historical Journals."""

from unittest.mock import MagicMock

import pytest

from backfill import BackfillScanner, CommanderSweep
from journal_files import journal_files


class TestScanCommanders:

    @pytest.fixture
    def scanner(self):
        return BackfillScanner(MagicMock())

    def test_every_commander_once(self, scanner, journals, journal_dir):
        journals.write(journals.commander("A"), journals.fsd("Sol"))
        journals.write(journals.loadgame("B"), journals.commander("C"))
        journals.write(journals.commander("A"))

        sweep = scanner.scan_commanders(journal_files(journal_dir))

        # Newest file first, each read bottom up
        assert sweep.commanders == ["A", "C", "B"]
        assert sweep.files_scanned == 3
        assert not sweep.nothing_readable

    def test_unreadable_files(self, scanner, journal_dir):
        sweep = scanner.scan_commanders([journal_dir / "Journal.a.log", journal_dir / "Journal.b.log"])

        assert sweep.commanders == []
        assert sweep.files_failed == 2
        assert sweep.nothing_readable

    def test_no_files_is_not_an_error(self, scanner):
        assert not scanner.scan_commanders([]).nothing_readable
        assert not CommanderSweep(files_scanned=1, files_failed=3).nothing_readable


class TestJournalOwner:

    @pytest.fixture
    def scanner(self):
        return BackfillScanner(MagicMock())

    def test_first_identity_owns_the_file(self, scanner, journals):
        path = journals.write(journals.header(odyssey=True), journals.commander("A"), journals.commander("B"))
        assert scanner.journal_owner(path) == ("A", True)

    def test_nobody(self, scanner, journals):
        assert scanner.journal_owner(journals.write(journals.header(), journals.fsd("Sol"))) == (None, False)

    def test_missing(self, scanner, journal_dir):
        with pytest.raises(OSError):
            scanner.journal_owner(journal_dir / "Journal.gone.log")


class TestFindLatestLocation:

    @pytest.fixture
    def scanner(self):
        return BackfillScanner(MagicMock())

    def test_latest_by_timestamp_across_files(self, scanner, journals, journal_dir):
        # Oldest file holds the latest location
        journals.write(journals.commander("A"), journals.fsd("Lave", "2024-03-01T00:00:00Z"))
        journals.write(journals.commander("A"), journals.fsd("Sol", "2024-01-01T00:00:00Z"))
        journals.write(journals.commander("B"), journals.fsd("Achenar", "2024-04-01T00:00:00Z"))
        files = journal_files(journal_dir)

        sweep = scanner.find_latest_location(files, "A")
        assert sweep.system == "Lave"
        assert sweep.files_matched == 2

        assert scanner.find_latest_location(list(reversed(files)), "A").system == "Lave"

    def test_latest_within_a_file(self, scanner, journals, journal_dir):
        journals.write(
            journals.commander("A"),
            journals.fsd("Sol", "2024-01-02T00:00:00Z"),
            journals.carrier("Lave", "2024-01-03T00:00:00Z"),
            journals.location("Sol", "2024-01-01T00:00:00Z"),
            journals.fsd("Nowhere", "not a time"),
        )

        sweep = scanner.find_latest_location(journal_files(journal_dir), "A")
        assert sweep.system == "Lave"
        assert sweep.event.raw["event"] == "CarrierJump"

    def test_other_owners_ignored(self, scanner, journals, journal_dir):
        # Owned by B, even though A shows up later in it
        journals.write(journals.commander("B"), journals.commander("A"), journals.fsd("Sol"))

        sweep = scanner.find_latest_location(journal_files(journal_dir), "A")
        assert sweep.event is None
        assert sweep.system is None
        assert sweep.files_matched == 0

    def test_unreadable_counted(self, scanner, journal_dir):
        sweep = scanner.find_latest_location([journal_dir / "Journal.gone.log"], "A")
        assert sweep.files_failed == 1
        assert sweep.event is None


class TestCommanderFromJournal:

    def test_latest_name_in_file(self, journals, journal_dir):
        path = journals.write(journals.commander("A"), journals.commander("B"), journals.fsd("Sol"))
        assert BackfillScanner(MagicMock()).commander_from_journal(path, journal_files(journal_dir)) == "B"

    def test_falls_back_to_recent(self, journals, journal_dir):
        journals.write(journals.commander("A"))
        path = journals.write(journals.header(), journals.fsd("Sol"))

        assert BackfillScanner(MagicMock()).commander_from_journal(path, journal_files(journal_dir)) == "A"

    def test_window_bounds_the_search(self, journals, journal_dir):
        journals.write(journals.commander("A"))
        journals.write(journals.fsd("Lave"))
        path = journals.write(journals.fsd("Sol"))
        files = journal_files(journal_dir)

        assert BackfillScanner(MagicMock(), lookup_window=2).commander_from_journal(path, files) is None
        assert BackfillScanner(MagicMock(), lookup_window=3).commander_from_journal(path, files) == "A"

    def test_nothing_anywhere(self, journal_dir):
        assert BackfillScanner(MagicMock()).commander_from_journal(None, []) is None


class TestCountJumps:

    def test_counts_all_files(self, journals, journal_dir):
        journals.write(journals.commander("A"), journals.fsd("Sol"), journals.carrier("Lave"))
        journals.write(journals.commander("B"), journals.location("Sol"), journals.fsd("Achenar"))
        files = journal_files(journal_dir) + [journal_dir / "Journal.gone.log"]

        assert BackfillScanner(MagicMock()).count_jumps(files) == 3
