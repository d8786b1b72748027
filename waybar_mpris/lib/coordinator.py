# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
InstanceCoordinator — decides what this process is at startup.

Only one process per user should hold the bus subscription.  Later
invocations find the primary through its control socket and either forward
a command to it or mirror its output:

    --send CMD given            → SEND_COMMAND  (no primary: fatal)
    no socket / stale socket    → PRIMARY       (stale files removed)
    socket, --replace           → PRIMARY       (after a short confirm window)
    socket, live primary        → MIRROR        ("share", then follow the file)

Nothing here touches the bus; only the PRIMARY path goes on to do that.
"""

import asyncio
import enum
import logging
import os
import sys
from typing import TextIO

from .config import Settings
from .control import (
    MIRROR_COMMAND, MIRROR_OK, ControlError, ControlUnavailable, send_command,
)

logger = logging.getLogger(__name__)

MIRROR_POLL = 0.1  # seconds between checks for new mirrored output
MIRROR_CHUNK = 64 * 1024  # largest single read from the duplication file


class Role(enum.Enum):
    PRIMARY = "primary"
    SEND_COMMAND = "send"
    MIRROR = "mirror"


class CoordinationError(Exception):
    """Single-instance coordination failed; this invocation cannot go on."""


def _remove(path: str):
    try:
        os.unlink(path)
        logger.debug("Removed %s", path)
    except FileNotFoundError:
        pass


class InstanceCoordinator:
    def __init__(self, settings: Settings, out: TextIO | None = None,
                 err: TextIO | None = None, stdin: TextIO | None = None):
        self._settings = settings
        self._out = out if out is not None else sys.stdout
        self._err = err if err is not None else sys.stderr
        self._stdin = stdin if stdin is not None else sys.stdin

    async def resolve(self, command: str | None = None) -> Role:
        settings = self._settings
        if command:
            return Role.SEND_COMMAND

        if not os.path.exists(settings.socket_path):
            _remove(settings.mirror_path)
            return Role.PRIMARY

        if settings.replace:
            await self._confirm_replace()
            _remove(settings.socket_path)
            _remove(settings.mirror_path)
            return Role.PRIMARY

        try:
            reply = await send_command(settings.socket_path, MIRROR_COMMAND,
                                       settings.control_timeout)
        except ControlUnavailable as e:
            logger.info("Stale control socket %s (%s), taking over", settings.socket_path, e)
            _remove(settings.socket_path)
            _remove(settings.mirror_path)
            return Role.PRIMARY
        except ControlError as e:
            raise CoordinationError(f"running instance did not answer: {e}") from e

        if reply != MIRROR_OK:
            raise CoordinationError(f"running instance refused to share output: {reply!r}")
        # stderr: stdout belongs to the bar
        self._err.write("waybar-mpris is already running. This instance will clone its output.\n")
        self._err.flush()
        return Role.MIRROR

    # ── SEND_COMMAND ──

    async def send(self, command: str) -> str:
        try:
            reply = await send_command(self._settings.socket_path, command,
                                       self._settings.control_timeout)
        except ControlError as e:
            raise CoordinationError(f"couldn't send {command!r}: {e}") from e
        self._out.write("Sent.\n")
        if command == "list":
            self._out.write("Response:\n")
            self._out.write(reply)
        self._out.flush()
        return reply

    # ── --replace ──

    async def _confirm_replace(self):
        timeout = self._settings.replace_timeout
        self._err.write(
            f"Socket {self._settings.socket_path} already exists, this could mean "
            "waybar-mpris is already running.\n"
            "Starting this instance will overwrite the file, possibly stopping "
            "other instances from accepting commands.\n"
            "Continue? [y/n]: ")
        self._err.flush()
        answer = await self._ask(timeout)
        if answer is None:
            self._err.write("\nRemoving due to lack of input.\n")
            self._err.flush()
            logger.warning("No answer within %.0fs, replacing %s", timeout, self._settings.socket_path)
            return
        if answer.strip().lower().startswith("n"):
            raise CoordinationError("replace declined by operator")
        logger.warning("Replacing existing instance at %s", self._settings.socket_path)

    async def _ask(self, timeout: float) -> str | None:
        """One line from stdin, or None if nothing arrives within *timeout*."""
        loop = asyncio.get_running_loop()
        answer = loop.create_future()

        def _on_input():
            if not answer.done():
                answer.set_result(self._stdin.readline())

        try:
            fd = self._stdin.fileno()
            loop.add_reader(fd, _on_input)
        except (OSError, ValueError, NotImplementedError):
            # stdin is not pollable (closed, regular file, captured)
            await asyncio.sleep(timeout)
            return None
        try:
            line = await asyncio.wait_for(answer, timeout)
        except asyncio.TimeoutError:
            return None
        finally:
            loop.remove_reader(fd)
        return line or None

    # ── MIRROR ──

    async def attach_mirror(self, stop: asyncio.Event | None = None):
        """Follow the duplication file and reprint every complete line.

        Starts at the last complete line already written (the current status)
        and polls for growth, reading at most MIRROR_CHUNK bytes at a time.
        A trailing partial line stays buffered until its newline arrives.
        Runs until *stop* is set (or forever).
        """
        path = self._settings.mirror_path
        offset = None
        pending = b""
        logger.info("Mirroring %s", path)
        while stop is None or not stop.is_set():
            try:
                size = os.path.getsize(path)
            except FileNotFoundError:
                size = None
                if offset is None:
                    offset = 0
            if size is not None:
                if offset is not None and size < offset:
                    logger.debug("%s truncated, rewinding", path)
                    offset, pending = 0, b""
                if offset is None or size > offset:
                    with open(path, "rb") as f:
                        if offset is None:
                            offset = _tail_start(f, size)
                        f.seek(offset)
                        while offset < size:
                            chunk = f.read(min(MIRROR_CHUNK, size - offset))
                            if not chunk:
                                break
                            offset += len(chunk)
                            pending = self._print_lines(pending + chunk)
                    self._out.flush()
            await asyncio.sleep(MIRROR_POLL)

    def _print_lines(self, data: bytes) -> bytes:
        """Write the complete non-empty lines in *data*; return the remainder."""
        *lines, rest = data.split(b"\n")
        for line in lines:
            if line:
                self._out.write(line.decode(errors="replace") + "\n")
        return rest


def _tail_start(f, size: int) -> int:
    """Offset where the last complete line of a *size*-byte file begins."""
    pos, tail = size, b""
    while pos > 0:
        step = min(MIRROR_CHUNK, pos)
        pos -= step
        f.seek(pos)
        tail = f.read(step) + tail
        end = tail.rfind(b"\n")
        if end > 0:
            start = tail.rfind(b"\n", 0, end)
            if start >= 0:
                return pos + start + 1
    return 0
