# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""systemd notifications for the primary instance.

The primary reports its lifecycle to systemd when run as a ``Type=notify``
user unit:

    READY=1 + STATUS=...   control socket bound and players loaded
    WATCHDOG=1 + STATUS=   heartbeat, only when the unit sets WatchdogSec=
    STOPPING=1             shutdown started

Everything is a no-op when NOTIFY_SOCKET is unset (started by the bar).

Usage:
    notify_ready(status())
    asyncio.create_task(watchdog_loop(status))
    notify_stopping()
"""

import asyncio
import logging
import os
import socket
from typing import Callable

logger = logging.getLogger(__name__)


def sd_notify(*states: str) -> bool:
    """Send ``KEY=value`` states in one datagram.  False if nothing was sent."""
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr or not states:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto("\n".join(states).encode(), addr)
    except OSError as e:
        logger.debug("sd_notify(%s) failed: %s", states[0], e)
        return False
    finally:
        sock.close()
    return True


def watchdog_interval() -> float | None:
    """Heartbeat period in seconds, half of WatchdogSec; None if not requested.

    WATCHDOG_PID, when present, must name this process.
    """
    usec = os.environ.get("WATCHDOG_USEC")
    pid = os.environ.get("WATCHDOG_PID")
    if not usec or (pid and pid != str(os.getpid())):
        return None
    try:
        usec_value = int(usec)
    except ValueError:
        logger.warning("Ignoring malformed WATCHDOG_USEC=%r", usec)
        return None
    if usec_value <= 0:
        return None
    return usec_value / 2_000_000


def notify_ready(status: str) -> bool:
    return sd_notify("READY=1", f"STATUS={status}")


def notify_stopping() -> bool:
    return sd_notify("STOPPING=1")


async def watchdog_loop(status: Callable[[], str]):
    """Send WATCHDOG=1 with a fresh STATUS= line while systemd wants it."""
    interval = watchdog_interval()
    if interval is None:
        return
    logger.info("Watchdog started (interval=%.1fs)", interval)
    while True:
        sd_notify("WATCHDOG=1", f"STATUS={status()}")
        await asyncio.sleep(interval)
