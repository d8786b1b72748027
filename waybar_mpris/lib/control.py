# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Control socket that lets other invocations drive the running primary.

One short text command per connection on a Unix socket:

    player-next / player-prev   rotate the selected player   → "ok"
    next / prev / toggle        control the selected player  → "ok"
    list                        numbered player listing      → text
    share                       start mirroring output       → "success"

Action commands are acknowledged before they run, so a peer never waits on
slow players; a single worker then applies them in arrival order.  Queries
(list, share) reply with their result.

Unknown commands are logged and the connection is closed without a reply.
A misbehaving peer only ever costs its own connection; the listener keeps
accepting.

Peer side:
    response = await send_command("/tmp/waybar-mpris.sock", "list")
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger(__name__)

COMMANDS = ("player-next", "player-prev", "next", "prev", "toggle", "list")
MIRROR_COMMAND = "share"
MIRROR_OK = "success"
ACK = "ok"
NO_PLAYERS = "no players"

MAX_COMMAND_BYTES = 512


class ControlError(Exception):
    """Peer-side failure talking to the control socket."""


class ControlUnavailable(ControlError):
    """Nobody is listening on the control socket (missing or stale)."""


async def send_command(path: str, command: str, timeout: float = 2.0) -> str:
    """Send *command* to the primary listening on *path*; return its reply."""
    try:
        reader, writer = await asyncio.wait_for(asyncio.open_unix_connection(path), timeout)
    except (OSError, asyncio.TimeoutError) as e:
        raise ControlUnavailable(f"could not connect to {path}: {e}") from e
    try:
        writer.write(command.encode())
        await writer.drain()
        if writer.can_write_eof():
            writer.write_eof()
        data = await asyncio.wait_for(reader.read(), timeout)
    except (OSError, asyncio.TimeoutError) as e:
        raise ControlError(f"no reply to {command!r}: {e}") from e
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
    return data.decode(errors="replace")


def _bind(path: str) -> socket.socket:
    """Bind a listening socket at *path*.

    Unlike ``start_unix_server(path=...)`` this never unlinks an existing
    file first, so a live primary's socket raises EADDRINUSE.
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
    except OSError:
        sock.close()
        raise
    return sock


class ControlServer:
    """Accept loop bound to the well-known socket path of the primary."""

    def __init__(self, settings, registry, sink):
        self._settings = settings
        self._path = settings.socket_path
        self._registry = registry
        self._sink = sink
        self._server: asyncio.AbstractServer | None = None
        self._worker: asyncio.Task | None = None
        self._pending: asyncio.Queue = asyncio.Queue()
        self._actions = {
            "player-next": registry.select_next,
            "player-prev": registry.select_previous,
            "next": self._next,
            "prev": self._prev,
            "toggle": self._toggle,
        }
        self._queries = {
            "list": self._list,
            MIRROR_COMMAND: self._share,
        }

    @property
    def path(self) -> str:
        return self._path

    async def start(self):
        """Bind the socket.  Raises OSError if the path is taken."""
        sock = _bind(self._path)
        try:
            self._server = await asyncio.start_unix_server(self._handle_client, sock=sock)
        except OSError:
            sock.close()
            os.unlink(self._path)
            raise
        self._worker = asyncio.create_task(self._run_actions())
        logger.info("Control socket listening on %s", self._path)

    async def stop(self):
        """Close the listener and remove the socket file (only if we bound it)."""
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        try:
            os.unlink(self._path)
        except FileNotFoundError:
            pass
        logger.info("Control socket closed")

    # ── Connection handling ──

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        try:
            data = await asyncio.wait_for(reader.read(MAX_COMMAND_BYTES),
                                          self._settings.control_timeout)
            command = data.decode(errors="replace").strip()
            if not command:
                logger.debug("Control peer closed without a command")
                return
            logger.debug("Control command: %s", command)
            if command in self._actions:
                response = self._acknowledge(command)
            elif command in self._queries:
                response = await self._queries[command]()
            else:
                logger.warning("Invalid command: %r", command[:64])
                return
            if response:
                writer.write(response.encode())
                await writer.drain()
        except asyncio.TimeoutError:
            logger.warning("Control peer sent nothing within %.1fs", self._settings.control_timeout)
        except OSError as e:
            logger.warning("Control peer error: %s", e)
        except Exception:
            logger.exception("Control command failed")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    def _acknowledge(self, command: str) -> str:
        """Queue an action command and return the reply for the peer."""
        if command in ("next", "prev", "toggle") and not len(self._registry):
            logger.info("%s requested but no players are known", command)
            return NO_PLAYERS
        self._pending.put_nowait(command)
        return ACK

    async def _run_actions(self):
        """Apply acknowledged action commands one at a time."""
        while True:
            command = await self._pending.get()
            try:
                await self._actions[command]()
            except Exception:
                logger.exception("Control command %s failed", command)
            finally:
                self._pending.task_done()

    # ── Commands ──

    async def _control_current(self, action: str):
        async with self._registry.lock:
            player = self._registry.current()
            if player is None:
                logger.info("%s requested but no players are known", action)
                return
            await getattr(player, action)()

    async def _next(self):
        await self._control_current("next")

    async def _prev(self):
        await self._control_current("previous")

    async def _toggle(self):
        await self._control_current("toggle")

    async def _list(self) -> str:
        async with self._registry.lock:
            return self._registry.describe()

    async def _share(self) -> str:
        async with self._registry.lock:
            if self._sink.mirroring:
                return MIRROR_OK
            try:
                self._sink.start_mirroring(self._settings.mirror_path)
            except OSError as e:
                logger.error("Could not open %s for mirroring: %s", self._settings.mirror_path, e)
                return f"Failed: {e}"
        return MIRROR_OK
