#!/usr/bin/env python3
"""Command-line interface to the Journal engine, prints the commander and where they are."""
import argparse
import os
import sys
from time import sleep
from typing import TYPE_CHECKING, Optional

# isort: off

os.environ["EDJT_NO_UI"] = "1"

# See EDJTLogging.py docs.
from EDJTLogging import edjtlogger, logger, logging

if TYPE_CHECKING:
    from logging import TRACE  # type: ignore # noqa: F401 # needed to make mypy happy

edjtlogger.set_channels_loglevel(logging.INFO)

# isort: on

from config import appcmdname, appversion  # noqa: E402
from monitor import monitor  # noqa: E402
from notifications import BaseEvent, MonitorEvents  # noqa: E402

(
    EXIT_SUCCESS,
    EXIT_ARGS,
    EXIT_JOURNAL_DIR,
    EXIT_COMMANDER_UNKNOWN,
) = range(4)


def print_event(event: BaseEvent) -> None:
    """Print a notification as it happens, for --watch."""
    if event.name == MonitorEvents.CURRENT_SYSTEM_CHANGED:
        print(f"System: {event.system}")  # type: ignore[attr-defined]

    elif event.name in (MonitorEvents.COMMANDER_CHANGED, MonitorEvents.NEW_JOURNAL_SESSION):
        print(f"Commander: {event.commander}")  # type: ignore[attr-defined]

    elif event.name in (MonitorEvents.FSD_JUMP_DETECTED, MonitorEvents.CARRIER_JUMP_DETECTED):
        kind = "Carrier jump" if event.name == MonitorEvents.CARRIER_JUMP_DETECTED else "FSD jump"
        print(f"{kind}: {event.system}")  # type: ignore[attr-defined]

    elif event.name == MonitorEvents.MONITORING_ERROR:
        print(f"Error: {event.message}", file=sys.stderr)  # type: ignore[attr-defined]


def watch() -> None:
    """Follow the Journal until interrupted."""
    for name in (
        MonitorEvents.CURRENT_SYSTEM_CHANGED,
        MonitorEvents.COMMANDER_CHANGED,
        MonitorEvents.NEW_JOURNAL_SESSION,
        MonitorEvents.FSD_JUMP_DETECTED,
        MonitorEvents.CARRIER_JUMP_DETECTED,
        MonitorEvents.MONITORING_ERROR,
    ):
        monitor.register(name, print_event)

    if not monitor.start_monitoring():
        sys.exit(EXIT_JOURNAL_DIR)

    try:
        while True:
            sleep(1)

    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")

    finally:
        monitor.close()


def main():  # noqa: C901, CCR001
    """Run the main code of the program."""
    parser = argparse.ArgumentParser(
        prog=appcmdname,
        description="Prints the current commander and star system, as found in the Elite Dangerous Journal.",
    )

    parser.add_argument(
        "-v",
        "--version",
        help="print program version and exit",
        action="store_const",
        const=True,
    )
    group_loglevel = parser.add_mutually_exclusive_group()
    group_loglevel.add_argument(
        "--loglevel",
        metavar="loglevel",
        help="Set the logging loglevel to one of: "
        "CRITICAL, ERROR, WARNING, INFO, DEBUG, TRACE",
    )

    group_loglevel.add_argument(
        "--trace",
        help="Set the Debug logging loglevel to TRACE",
        action="store_true",
    )

    parser.add_argument(
        "--trace-on",
        help='Mark the selected trace logging as active, e.g. "journal.*". "*" or "all" traces everything',
        action="append",
    )

    parser.add_argument("--journal-dir", metavar="DIR", help="read Journals from DIR instead of the default")
    parser.add_argument("--commanders", action="store_true", help="list every commander found in the Journals")
    parser.add_argument("--count-jumps", action="store_true", help="count every jump in the Journals")
    parser.add_argument("--latest", action="store_true", help="print the latest usable Journal file")
    parser.add_argument("--switch", metavar="CMDR", help="report on CMDR rather than the latest commander")
    parser.add_argument("--force", metavar="CMDR", help="only take location updates from Journals written by CMDR")
    parser.add_argument("--watch", action="store_true", help="keep following the Journal, printing changes")
    args = parser.parse_args()

    if args.version:
        print(appversion())
        return

    level_to_set: Optional[int] = None
    if args.trace or args.trace_on:
        level_to_set = logging.TRACE  # type: ignore # it exists
        logger.info("Setting TRACE level debugging due to either --trace or a --trace-on")

    if args.trace_on and ("*" in args.trace_on or "all" in args.trace_on):
        level_to_set = logging.TRACE_ALL  # type: ignore # it exists
        logger.info("Setting TRACE_ALL level debugging due to a --trace-on *|all")

    if level_to_set is not None:
        logger.setLevel(level_to_set)
        edjtlogger.set_channels_loglevel(level_to_set)

    elif args.loglevel:
        if args.loglevel not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "TRACE"):
            print(
                "loglevel must be one of: CRITICAL, ERROR, WARNING, INFO, DEBUG, TRACE",
                file=sys.stderr,
            )
            sys.exit(EXIT_ARGS)
        edjtlogger.set_channels_loglevel(args.loglevel)

    logger.debug(f"Startup v{appversion()} : Running on Python v{sys.version}")
    if args.trace_on and len(args.trace_on) > 0:
        import config as conf_module

        conf_module.trace_on = [x.casefold() for x in args.trace_on]  # duplicate the list just in case
        for d in conf_module.trace_on:
            logger.info(f"marked {d} for TRACE")

    if args.journal_dir:
        if not monitor.analyze_journal_directory(args.journal_dir):
            logger.error(f'No usable Journal in "{args.journal_dir}"')
            sys.exit(EXIT_JOURNAL_DIR)

    if args.force:
        monitor.set_forced_commander(args.force, True)

    if args.watch:
        watch()
        return

    if not monitor.start_monitoring():
        sys.exit(EXIT_JOURNAL_DIR)

    try:
        # Need the full commander list before answering anything about commanders
        if monitor.backfill_thread:
            monitor.backfill_thread.join()

        if args.latest:
            print(monitor.get_latest_usable_file())

        if args.commanders:
            for cmdr in monitor.get_all_known_commanders():
                print(cmdr)

        if args.count_jumps:
            print(monitor.count_total_jumps())

        if args.switch:
            if args.switch not in monitor.get_all_known_commanders():
                logger.error(f'Commander "{args.switch}" not found in any Journal')
                sys.exit(EXIT_COMMANDER_UNKNOWN)

            monitor.switch_to_commander(args.switch)

        if not monitor.cmdr:
            logger.error("No commander found in the Journals")
            sys.exit(EXIT_COMMANDER_UNKNOWN)

        print(f"{monitor.cmdr}\t{monitor.system or ''}")

    finally:
        monitor.close()


if __name__ == "__main__":
    main()
    logger.debug("Exiting")
    sys.exit(EXIT_SUCCESS)
