"""
Set up required logging for the application.

This module provides for a common logging-powered log facility.
Mostly it implements a logging.Filter() in order to get extra members
on the logging.LogRecord instance for use in logging.Formatter() strings.

If type checking, e.g. mypy, objects to `logging.trace(...)` then include this
stanza:

    # See EDJTLogging.py docs.
    # isort: off
    if TYPE_CHECKING:
        from logging import trace, TRACE  # type: ignore # noqa: F401
    # isort: on

This is needed because we add the TRACE level and the trace() function
ourselves at runtime.

To utilise logging in core code include this:

    from EDJTLogging import get_main_logger

    logger = get_main_logger()

Classes that own long lived state (e.g. monitor.JournalMonitor) take the
logger as a constructor argument instead, defaulting to get_main_logger().
"""
import inspect
import logging
import logging.handlers
import os
import pathlib
import tempfile
from contextlib import suppress
from fnmatch import fnmatch

# So that any warning about accessing a protected member is only in one place.
from sys import _getframe as getframe
from threading import get_native_id as thread_native_id
from time import gmtime
from typing import TYPE_CHECKING, Tuple, cast, Union

import config as config_mod
from config import appcmdname, appname, config

_default_loglevel = logging.DEBUG

# Define a TRACE level
LEVEL_TRACE = 5
LEVEL_TRACE_ALL = 3
logging.addLevelName(LEVEL_TRACE, "TRACE")
logging.addLevelName(LEVEL_TRACE_ALL, "TRACE_ALL")
logging.TRACE = LEVEL_TRACE  # type: ignore
logging.TRACE_ALL = LEVEL_TRACE_ALL  # type: ignore
logging.Logger.trace = lambda self, message, *args, **kwargs: self._log(  # type: ignore
    logging.TRACE, message, args, **kwargs  # type: ignore
)

# Journal timestamps are UTC, so our log timestamps are too.  The game uses the
# server's idea of UTC, so don't expect the two to line up perfectly.
logging.Formatter.converter = gmtime


def _trace_if(
    self: logging.Logger, condition: str, message: str, *args, **kwargs
) -> None:
    if any(fnmatch(condition, p) for p in config_mod.trace_on):
        self._log(logging.TRACE, message, args, **kwargs)  # type: ignore # we added it
        return

    self._log(logging.TRACE_ALL, message, args, **kwargs)  # type: ignore # we added it


logging.Logger.trace_if = _trace_if  # type: ignore

# we cant hide this from `from xxx` imports and I'd really rather no-one other than `logging` had access to it
del _trace_if

if TYPE_CHECKING:
    from types import FrameType

    # Fake type that we can use here to tell type checkers that trace exists

    class LoggerMixin(logging.Logger):
        """LoggerMixin is a fake class that tells type checkers that trace exists on a given type."""

        def trace(self, message, *args, **kwargs) -> None:
            """See implementation above."""
            ...

        def trace_if(self, condition: str, message, *args, **kwargs) -> None:
            """
            Fake trace if method, traces only if condition exists in trace_on.

            See implementation above.
            """
            ...


class Logger:
    """
    Wrapper class for all logging configuration and code.

    Class instantiation requires the 'logger name' and optional loglevel.
    It is intended that this 'logger name' be re-used in all files/modules
    that need to log.

    Users of this class should then call get_logger() to get the
    logging.Logger instance.
    """

    def __init__(self, logger_name: str, loglevel: Union[int, str] = _default_loglevel):
        """
        Set up a `logging.Logger` with our preferred configuration.

        This includes using an EDJTContextFilter to add 'class' and 'qualname'
        expansions for logging.Formatter().
        """
        self.logger = logging.getLogger(logger_name)
        # Always TRACE on the logger itself, the *handlers* decide what is output.
        self.logger.setLevel(logging.TRACE)  # type: ignore

        self.logger_filter = EDJTContextFilter()
        self.logger.addFilter(self.logger_filter)

        self.logger_channel = logging.StreamHandler()
        self.logger_channel.setLevel(loglevel)

        self.logger_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s - %(process)d:%(thread)d:"
            "%(osthreadid)d %(module)s.%(qualname)s:%(lineno)d: %(message)s"
        )
        self.logger_formatter.default_time_format = "%Y-%m-%d %H:%M:%S"
        # ' UTC' is hard-coded as we made logging.Formatter() use gmtime() above.
        self.logger_formatter.default_msec_format = "%s.%03d UTC"

        self.logger_channel.setFormatter(self.logger_formatter)
        self.logger.addHandler(self.logger_channel)

        # Rotating files in %TEMP%\{appname}\ as {logger_name}-debug.log, so
        # the command line tool gets its own file.
        logfile_rotating = pathlib.Path(tempfile.gettempdir())
        logfile_rotating /= f"{appname}"
        logfile_rotating.mkdir(exist_ok=True)
        logfile_rotating /= f"{logger_name}-debug.log"

        self.logger_channel_rotating = logging.handlers.RotatingFileHandler(
            logfile_rotating, maxBytes=1024 * 1024, backupCount=10, encoding="utf-8"
        )
        self.logger_channel_rotating.setLevel(logging.TRACE)  # type: ignore
        self.logger_channel_rotating.setFormatter(self.logger_formatter)
        self.logger.addHandler(self.logger_channel_rotating)

    def get_logger(self) -> "LoggerMixin":
        """
        Obtain the self.logger of the class instance.

        Not to be confused with logging.getLogger().
        """
        return cast("LoggerMixin", self.logger)

    def set_channels_loglevel(self, level: Union[int, str]) -> None:
        """
        Set the specified log level on the channels.

        :param level: A valid `logging` level.
        :return: None
        """
        self.logger_channel.setLevel(level)
        self.logger_channel_rotating.setLevel(level)


class EDJTContextFilter(logging.Filter):
    """
    Place extra attributes of the calling site into each record.

    1. class = class name(s) of the call site, or '<none>'
    2. qualname = __qualname__ of the call site, so a format string can use
       just `%(module)s.%(qualname)s` whether or not a class is involved.
    3. osthreadid = OS level thread ID.

    The qualname is the 'context' half of every log call the journal engine
    makes, the level is the severity.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Attempt to set/change fields in the LogRecord.

        :param record: The LogRecord we're "filtering"
        :return: bool - Always true in order for this record to be logged.
        """
        class_name, qualname = self.caller_attributes()

        if getattr(record, "class", None) is None:
            setattr(record, "class", class_name)

        if getattr(record, "qualname", None) is None:
            setattr(record, "qualname", qualname)

        setattr(record, "osthreadid", thread_native_id())

        return True

    @classmethod
    def caller_attributes(cls) -> Tuple[str, str]:  # noqa: CCR001
        """
        Determine the class name(s) and qualname of the logging call site.

        If something goes wrong we print() rather than log, we are inside
        logging after all, and hand back markers so the record still goes out.

        :return: Tuple[str, str] - class_name, qualname
        """
        frame = cls.find_caller_frame()
        if frame is None:
            return "<none>", "<unknown>"

        caller_class_names = "<none>"
        caller_qualname = ""
        try:
            frame_info = inspect.getframeinfo(frame)
            args, _, _, value_dict = inspect.getargvalues(frame)
            if len(args) and args[0] in ("self", "cls"):
                frame_class = value_dict[args[0]]
                owner = frame_class if isinstance(frame_class, type) else frame_class.__class__
                name = frame_info.function
                class_name = owner.__name__.lstrip("_")
                # Undo name mangling so getattr_static can find __private methods
                if name.startswith("__") and not name.endswith("__") and class_name:
                    name = f"_{class_name}{name}"

                fn = inspect.getattr_static(frame_class, name, None)
                if isinstance(fn, property):
                    caller_qualname = f"{owner.__qualname__}.{name}(property)"

                elif isinstance(fn, (classmethod, staticmethod)):
                    caller_qualname = fn.__func__.__qualname__

                elif fn is not None and getattr(fn, "__qualname__", None):
                    caller_qualname = fn.__qualname__

                else:
                    caller_qualname = f"{owner.__qualname__}.{frame_info.function}"

                caller_class_names = owner.__qualname__

            elif frame_info.function == "<module>":
                caller_qualname = value_dict.get("__name__", "<module>")

            else:
                caller_qualname = frame_info.function

        except Exception as e:
            print(f"ALERT!  Failed finding caller info for logging: {e!r}")
            with suppress(Exception):
                print(f"ALERT!  {frame=}")

            return "??", "??"

        finally:
            # https://docs.python.org/3/library/inspect.html#the-interpreter-stack
            del frame

        if caller_qualname == "":
            caller_qualname = '<ERROR in EDJTLogging.caller_attributes() for "qualname">'

        return caller_class_names, caller_qualname

    @classmethod
    def find_caller_frame(cls) -> "FrameType | None":
        """
        Find the stack frame of the logging caller.

        :returns: 'frame' object such as from sys._getframe()
        """
        # Go up until we are inside logging.Logger's own frames...
        frame: "FrameType | None" = getframe(0)
        while frame:
            if isinstance(frame.f_locals.get("self"), logging.Logger):
                break
            frame = frame.f_back

        # ...then on up until we are out of them again, that's the call site.
        while frame:
            if not isinstance(frame.f_locals.get("self"), logging.Logger):
                break
            frame = frame.f_back

        return frame


def get_main_logger() -> "LoggerMixin":
    """Return the correct logger for how the program is being run."""
    if not os.getenv("EDJT_NO_UI"):
        # Library or GUI use
        return cast("LoggerMixin", logging.getLogger(appname))
    # Must be the CLI
    return cast("LoggerMixin", logging.getLogger(appcmdname))


# Singleton
loglevel: Union[str, int] = config.get_str("loglevel")
if not loglevel:
    loglevel = logging.INFO

if not os.getenv("EDJT_NO_UI"):
    base_logger_name = appname
else:
    base_logger_name = appcmdname

edjtlogger = Logger(base_logger_name, loglevel=loglevel)
logger: "LoggerMixin" = edjtlogger.get_logger()
