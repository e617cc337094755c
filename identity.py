"""
identity.py - Track which commander is playing, and whose Journal we're reading.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

Two commanders are tracked:

* `current_commander` is the one the consumer is shown.  Normally that is
  whoever last declared themselves in the Journal, but switch_to_commander()
  can point it at anyone.
* `actual_journal_commander` is always whoever wrote the Journal being
  tailed.  Every Journal belongs to exactly one commander.

When a forced commander is set, location updates from a Journal written by
anyone else are dropped.  Identity events are never dropped.
"""
from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Iterable

from EDJTLogging import get_main_logger
from notifications import CmdrEvent, KnownCommandersEvent, MonitorEvents, NotificationBus

if TYPE_CHECKING:
    from EDJTLogging import LoggerMixin


@dataclasses.dataclass
class IdentityState:
    """Who is who.  None means not known, there is no placeholder name."""

    current_commander: str | None = None
    actual_journal_commander: str | None = None
    # Only ever appended to, in the order first seen
    all_known_commanders: list[str] = dataclasses.field(default_factory=list)
    forced_commander_name: str | None = None
    forced_enabled: bool = False

    @property
    def forcing(self) -> bool:
        """Whether the forced commander filter is in effect."""
        return self.forced_enabled and bool(self.forced_commander_name)

    def copy(self) -> IdentityState:
        return dataclasses.replace(self, all_known_commanders=list(self.all_known_commanders))


class IdentityResolver:
    """Applies identity events and the forced commander rule to an IdentityState."""

    def __init__(
        self, bus: NotificationBus, state: IdentityState | None = None, logger: LoggerMixin | None = None
    ) -> None:
        self.bus = bus
        self.state = state if state is not None else IdentityState()
        self.log = logger if logger is not None else get_main_logger()

    def on_identity(self, name: str | None) -> None:
        """
        Handle a `Commander` or `LoadGame` event.

        Notifications fire in this order: known-commanders-changed (if the name
        is new), then commander-changed, commander-detected and, if a different
        commander was already current, new-journal-session.

        :param name: The commander named by the event.  Empty is ignored.
        """
        if not name:
            return

        self.state.actual_journal_commander = name
        self.add_known((name,))

        previous = self.state.current_commander
        if name == previous:
            return

        self.state.current_commander = name
        self.announce(name, previous)
        if previous:
            self.log.info(f'New journal session detected: commander changed from "{previous}" to "{name}"')
            self.bus.fire(CmdrEvent(MonitorEvents.NEW_JOURNAL_SESSION, name, previous))

        else:
            self.log.info(f'Commander detected: "{name}"')

    def add_known(self, names: Iterable[str]) -> list[str]:
        """
        Add names to the known commanders, firing one notification if any were new.

        :param names: Candidate names, duplicates and empties are skipped.
        :return: The names actually added.
        """
        added = []
        for name in names:
            if name and name not in self.state.all_known_commanders:
                self.state.all_known_commanders.append(name)
                added.append(name)

        if added:
            self.log.debug(f'New commanders added to list: {added}')
            self.bus.fire(KnownCommandersEvent(self.state.all_known_commanders))

        return added

    def set_journal_owner(self, name: str | None) -> None:
        """Record who wrote the Journal now being tailed, without announcing anything."""
        if name:
            self.log.info(f'Journal belongs to commander "{name}"')
            self.state.actual_journal_commander = name

    def adopt(self, name: str) -> str | None:
        """
        Make `name` the current commander without announcing it yet.

        :return: The previous current commander.
        """
        previous = self.state.current_commander
        self.state.current_commander = name
        return previous

    def announce(self, name: str, previous: str | None = None) -> None:
        """Fire commander-changed then commander-detected for `name`."""
        self.bus.fire(CmdrEvent(MonitorEvents.COMMANDER_CHANGED, name, previous))
        self.bus.fire(CmdrEvent(MonitorEvents.COMMANDER_DETECTED, name, previous))

    def set_forced_commander(self, name: str | None, enabled: bool) -> None:
        """
        Set, or clear, the forced commander.

        Only affects events processed from now on.
        """
        self.state.forced_commander_name = name or None
        self.state.forced_enabled = enabled
        if self.state.forcing:
            self.log.info(f'Force commander set to "{name}"')

        else:
            self.log.info('Force commander disabled')

    def allows_location_update(self) -> bool:
        """
        Apply the forced commander rule.

        :return: False if a forced commander is set and didn't write this Journal.
        """
        if not self.state.forcing:
            return True

        return self.state.actual_journal_commander == self.state.forced_commander_name
