# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
MprisService — the primary instance.

Owns the bus connection, the player registry, the control socket and the
output sink.  Tasks:
  reconciler   bus notifications → registry
  drain        registry change events → one status line on the sink
  poll         (position display only) re-render while playing
  watchdog     systemd heartbeat when WatchdogSec= is set
  control      one short task per control-socket connection
"""

import asyncio
import logging
import signal

from .lib.config import Settings
from .lib.control import ControlServer
from .lib.coordinator import CoordinationError
from .lib.reconciler import BusReconciler, is_player_name
from .lib.registry import PlayerRegistry
from .lib.render import render_player
from .lib.sink import OutputSink
from .lib.transport import BusTransport, TransportError
from .lib.watchdog import notify_ready, notify_stopping, watchdog_loop

log = logging.getLogger(__name__)


class MprisService:
    def __init__(self, settings: Settings, transport=None, sink: OutputSink | None = None):
        self.settings = settings
        self.transport = transport if transport is not None else BusTransport()
        self.registry = PlayerRegistry(self.transport, autofocus=settings.autofocus)
        self.sink = sink if sink is not None else OutputSink()
        self.reconciler = BusReconciler(self.transport, self.registry, autofocus=settings.autofocus)
        self.control = ControlServer(settings, self.registry, self.sink)
        self._tasks: list[asyncio.Task] = []
        self._stop = asyncio.Event()
        self.running = False

    async def start(self):
        """Bind the control socket, connect to the bus, load current players.

        Raises CoordinationError if the socket cannot be bound and
        TransportError if the session bus is unreachable.
        """
        try:
            await self.control.start()
        except OSError as e:
            raise CoordinationError(
                f"Couldn't establish socket connection at {self.control.path} ({e})") from e
        self.running = True
        await self.transport.connect()

        try:
            added = await self.registry.reload(is_player_name)
            log.info("Found %d player(s) on the bus", added)
        except TransportError as e:
            log.warning("Could not list bus names: %s", e)
        await self.registry.sort()

        await self.reconciler.start()
        await self.emit(force=True)
        notify_ready(self.status())

        self._tasks.append(asyncio.create_task(self._drain_events()))
        if self.settings.show_position:
            self._tasks.append(asyncio.create_task(self._poll_position()))
        self._tasks.append(asyncio.create_task(watchdog_loop(self.status)))

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._stop.set)
        try:
            await self.start()
            await self._stop.wait()
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            await self.shutdown()

    async def shutdown(self):
        """Remove the control socket and duplication file, drop the bus."""
        self.running = False
        notify_stopping()
        await self.reconciler.stop()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        await self.control.stop()
        self.sink.close(remove=True)
        await self.transport.disconnect()
        log.info("Primary stopped")

    def status(self) -> str:
        """One-line summary for systemd's STATUS= field."""
        player = self.registry.current()
        if player is None:
            return "No players"
        return f"{len(self.registry)} player(s), showing {player.name}"

    # ── Output ──

    async def emit(self, force: bool = False):
        """Render the current player and write it if it changed."""
        async with self.registry.lock:
            player = self.registry.current()
            position = ""
            if player is not None and self.settings.show_position:
                position = await player.position_text(self.settings.interpolate,
                                                      self.settings.poll_interval)
            line = render_player(player, self.settings, position)
            if force or line != self.sink.last_line:
                self.sink.write(line)

    async def _drain_events(self):
        """Apply change events in order; a burst collapses into one line."""
        events = self.registry.events
        while True:
            event = await events.get()
            coalesced = 0
            while not events.empty():
                event = events.get_nowait()
                coalesced += 1
            log.debug("Change event %s (+%d coalesced)", event.kind.value, coalesced)
            if not await self._emit_or_stop():
                return

    async def _poll_position(self):
        """Re-render once per poll interval while the selection is playing."""
        while True:
            await asyncio.sleep(self.settings.poll_interval)
            player = self.registry.current()
            if player is not None and player.playing and not await self._emit_or_stop():
                return

    async def _emit_or_stop(self) -> bool:
        try:
            await self.emit()
        except BrokenPipeError:
            log.error("stdout closed by the status bar, stopping")
            self._stop.set()
            return False
        return True
