#!/usr/bin/env python3
# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
waybar-mpris: MPRIS status for waybar custom modules.

Prints one JSON line per player state change on stdout.  The first
invocation owns the D-Bus subscription; later ones either forward a
command to it or mirror its output:

    waybar-mpris                       # primary, or mirror if one is running
    waybar-mpris --send player-next    # rotate the shown player
    waybar-mpris --send list           # show known players
    waybar-mpris --replace             # take over from a running instance

Logs go to /tmp/waybar-mpris.log and stderr; stdout is only status lines.
"""

import argparse
import asyncio
import logging
import signal
import sys

from .lib.config import LOG_PATH, load_settings, reload_config
from .lib.control import COMMANDS
from .lib.coordinator import CoordinationError, InstanceCoordinator, Role
from .lib.transport import TransportError

logger = logging.getLogger("waybar-mpris")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="waybar-mpris",
        description="MPRIS media player status for waybar.")
    parser.add_argument("--play", help="Play symbol/text to use.")
    parser.add_argument("--pause", help="Pause symbol/text to use.")
    parser.add_argument("--separator",
                        help="Separator string to use between artist, album, and title.")
    parser.add_argument("--order", help="Element order, e.g. SYMBOL:ARTIST:ALBUM:TITLE:POSITION.")
    parser.add_argument("--autofocus", action="store_true", default=None,
                        help="Auto switch to currently playing music players.")
    parser.add_argument("--position", action="store_true", default=None,
                        help="Show current position between brackets, e.g (04:50/05:00).")
    parser.add_argument("--interpolate", action="store_true", default=None,
                        help="Interpolate track position (for players that don't update regularly, e.g mpDris2).")
    parser.add_argument("--replace", action="store_true", default=None,
                        help="Replace an existing waybar-mpris if found. Otherwise a new "
                             "instance clones the running instance's output.")
    parser.add_argument("--send", choices=COMMANDS, metavar="COMMAND",
                        help="Send a command to the running instance "
                             f"(options: {'/'.join(COMMANDS)}).")
    parser.add_argument("--config", help="Path to a JSON config file.")
    parser.add_argument("--debug", action="store_true", help="Verbose logging.")
    return parser.parse_args(argv)


LOG_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(debug: bool = False):
    """stderr logging; runs before the config is read so its messages show."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def add_log_file(log_path: str = LOG_PATH) -> logging.Handler | None:
    """Also log to *log_path*, whose location comes from the config."""
    try:
        handler = logging.FileHandler(log_path)
    except OSError as e:
        logger.warning("Couldn't open %s for writing: %s", log_path, e)
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
    logging.getLogger().addHandler(handler)
    return handler


async def run(settings, command: str | None = None, service_factory=None) -> Role:
    """Resolve this process's role and carry it out."""
    coordinator = InstanceCoordinator(settings)
    role = await coordinator.resolve(command)
    logger.info("Starting as %s", role.value)

    if role is Role.SEND_COMMAND:
        await coordinator.send(command)

    elif role is Role.MIRROR:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        await coordinator.attach_mirror(stop_event)

    else:
        if service_factory is None:
            from .service import MprisService
            service_factory = MprisService
        await service_factory(settings).run()
    return role


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.debug)
    if args.config:
        reload_config(args.config)
    settings = load_settings({
        "play_symbol": args.play,
        "pause_symbol": args.pause,
        "separator": args.separator,
        "order": args.order,
        "autofocus": args.autofocus,
        "show_position": args.position,
        "interpolate": args.interpolate,
        "replace": args.replace,
    })
    add_log_file(settings.log_path)

    try:
        asyncio.run(run(settings, args.send))
    except CoordinationError as e:
        logger.error("%s", e)
        sys.exit(1)
    except TransportError as e:
        logger.error("Error connecting to DBus: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
