"""
location.py - Track which star system the commander is in.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.
"""
from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import TYPE_CHECKING

from EDJTLogging import get_main_logger
from journal_event import CarrierJumpEvent, LocationEvent, SystemEvent
from notifications import JumpEvent, MonitorEvents, NotificationBus, SystemChangedEvent

if TYPE_CHECKING:
    from EDJTLogging import LoggerMixin


@dataclasses.dataclass
class LocationState:
    """Where we last saw the commander, and the event that told us."""

    current_system: str | None = None
    last_event: SystemEvent | None = None
    last_event_timestamp: datetime | None = None

    def copy(self) -> LocationState:
        return dataclasses.replace(self)


class LocationTracker:
    """Applies accepted FSDJump, CarrierJump and Location events to a LocationState."""

    def __init__(
        self, bus: NotificationBus, state: LocationState | None = None, logger: LoggerMixin | None = None
    ) -> None:
        self.bus = bus
        self.state = state if state is not None else LocationState()
        self.log = logger if logger is not None else get_main_logger()

    def apply(self, event: SystemEvent, force: bool = False) -> bool:
        """
        Move the commander to the event's system.

        Fires current-system-changed, then carrier-jump-detected for a
        CarrierJump, or fsd-jump-detected for an FSDJump or a Location that
        carries coordinates.  A Location without coordinates only updates
        our book-keeping, it isn't somewhere consumers can plot.

        :param event: An event that has already passed the forced commander rule.
        :param force: Announce even if the system is unchanged.
        :return: True if anything was updated.
        """
        if not event.system:
            return False

        if event.system == self.state.current_system and not force:
            return False

        self.state.current_system = event.system
        self.state.last_event = event
        self.state.last_event_timestamp = event.timestamp
        self.bus.fire(SystemChangedEvent(event.system))

        if isinstance(event, CarrierJumpEvent):
            self.log.info(f'Carrier Jump to: "{event.system}"')
            self.bus.fire(JumpEvent(MonitorEvents.CARRIER_JUMP_DETECTED, event.system, event.raw))

        elif isinstance(event, LocationEvent):
            self.log.info(f'Location update: "{event.system}"')
            if event.has_coordinates:
                self.bus.fire(JumpEvent(MonitorEvents.FSD_JUMP_DETECTED, event.system, event.raw))

        else:
            self.log.info(f'FSD Jump to: "{event.system}"')
            self.bus.fire(JumpEvent(MonitorEvents.FSD_JUMP_DETECTED, event.system, event.raw))

        return True
