"""
notifications.py - Typed notifications from the Journal engine to its consumers.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

Consumers register a callable per notification name (see MonitorEvents) and
are called with one of the event classes below.  Callbacks run on whichever
thread made the change, with the engine's lock held, so a UI must hand them
over to its own thread.
"""
from __future__ import annotations

import time
import threading
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Generic, Mapping, Optional, Sequence, TypeVar

from EDJTLogging import get_main_logger

if TYPE_CHECKING:
    from EDJTLogging import LoggerMixin


class MonitorEvents:
    """Names of the notifications the engine fires."""

    KNOWN_COMMANDERS_CHANGED = 'identity.known_commanders_changed'
    COMMANDER_CHANGED = 'identity.commander_changed'
    COMMANDER_DETECTED = 'identity.commander_detected'
    NEW_JOURNAL_SESSION = 'identity.new_journal_session'
    CURRENT_SYSTEM_CHANGED = 'location.current_system_changed'
    FSD_JUMP_DETECTED = 'location.fsd_jump_detected'
    CARRIER_JUMP_DETECTED = 'location.carrier_jump_detected'
    MONITORING_ERROR = 'monitor.error'
    MONITORING_CHANGED = 'monitor.monitoring_changed'
    JOURNAL_DIR_CHANGED = 'monitor.journal_dir_changed'

    def __init__(self) -> None:
        raise NotImplementedError('This is not to be instantiated.')


class BaseEvent:
    """
    Base Event class.

    Intended to simply signify that something happened. If you want to pass data
    with your event, use one of the subclasses below.
    """

    def __init__(self, name: str, event_time: Optional[float] = None) -> None:
        self.name = name
        if event_time is None:
            event_time = time.time()

        self.time = event_time

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.name!r})'


T = TypeVar('T')


class BaseDataEvent(BaseEvent, Generic[T]):
    """Same as BaseEvent but carries some data as well."""

    def __init__(self, name: str, data: T, event_time: Optional[float] = None) -> None:
        super().__init__(name, event_time=event_time)
        self.data: T = data

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.name!r}, {self.data!r})'


class KnownCommandersEvent(BaseDataEvent[Sequence[str]]):
    """The list of known commanders grew."""

    def __init__(self, commanders: Sequence[str], event_time: Optional[float] = None) -> None:
        super().__init__(MonitorEvents.KNOWN_COMMANDERS_CHANGED, tuple(commanders), event_time=event_time)

    @property
    def commanders(self) -> Sequence[str]:
        return self.data


class CmdrEvent(BaseEvent):
    """commander-changed, commander-detected and new-journal-session."""

    def __init__(
        self, name: str, commander: str | None, previous: str | None = None, event_time: Optional[float] = None
    ) -> None:
        super().__init__(name, event_time=event_time)
        self.commander = commander
        self.previous = previous

    def __repr__(self) -> str:
        return f'CmdrEvent({self.name!r}, {self.commander!r})'


class SystemChangedEvent(BaseEvent):
    """The current system changed."""

    def __init__(self, system: str | None, event_time: Optional[float] = None) -> None:
        super().__init__(MonitorEvents.CURRENT_SYSTEM_CHANGED, event_time=event_time)
        self.system = system

    def __repr__(self) -> str:
        return f'SystemChangedEvent({self.system!r})'


class JumpEvent(BaseDataEvent[Mapping[str, Any]]):
    """fsd-jump-detected and carrier-jump-detected, `data` is the raw Journal entry."""

    def __init__(self, name: str, system: str, raw: Mapping[str, Any], event_time: Optional[float] = None) -> None:
        super().__init__(name, raw, event_time=event_time)
        self.system = system

    @property
    def raw(self) -> Mapping[str, Any]:
        return self.data

    def __repr__(self) -> str:
        return f'JumpEvent({self.name!r}, {self.system!r})'


class ErrorEvent(BaseDataEvent[str]):
    """monitoring-error, `data` is a user presentable message."""

    def __init__(self, message: str, event_time: Optional[float] = None) -> None:
        super().__init__(MonitorEvents.MONITORING_ERROR, message, event_time=event_time)

    @property
    def message(self) -> str:
        return self.data


class StatusEvent(BaseDataEvent[Any]):
    """monitoring-changed (data is bool) and journal-dir-changed (data is the path or None)."""


Callback = Callable[[BaseEvent], Any]


class NotificationBus:
    """A callback registry, one list of callbacks per notification name."""

    def __init__(self, logger: LoggerMixin | None = None) -> None:
        self.log = logger if logger is not None else get_main_logger()
        self.callbacks: dict[str, list[Callback]] = defaultdict(list)
        self._lock = threading.Lock()

    def register(self, name: str, func: Callback) -> None:
        """
        Call `func` whenever the named notification fires.

        Registering the same callable twice for one name has no effect.
        """
        with self._lock:
            if func not in self.callbacks[name]:
                self.callbacks[name].append(func)

    def unregister(self, name: str, func: Callback) -> None:
        """Stop calling `func` for the named notification.  Unknown callables are ignored."""
        with self._lock:
            if func in self.callbacks.get(name, ()):
                self.callbacks[name].remove(func)

    def fire(self, event: BaseEvent) -> list[Any]:
        """
        Call all callbacks registered for the event's name, in registration order.

        A callback that raises is logged and skipped; the rest still get called.

        :param event: the event to pass
        :return: The non-None return values of the callbacks.
        """
        with self._lock:
            funcs = list(self.callbacks.get(event.name, ()))

        self.log.trace_if('journal.notify', f'Firing {event!r} to {len(funcs)} callbacks')
        out = []
        for func in funcs:
            try:
                res = func(event)
                if res is not None:
                    out.append(res)

            except Exception:
                self.log.exception(f'Caught an exception while firing event {event.name!r} on func {func}')

        return out
