# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Keeps the player registry in step with the session bus.

Two notification kinds arrive from the transport:
  NameOwnerChanged(name)      → pid != 0: add, pid == 0: remove
  PropertiesChanged(iface)    → refresh every player (resort if autofocus)

Notifications are queued synchronously by the transport callbacks and
applied by a single consumer task, so they take effect in arrival order.
"""

import asyncio
import logging
from typing import NamedTuple

from .transport import MPRIS_PREFIX, PLAYER_INTERFACE, TransportError

logger = logging.getLogger(__name__)

# Proxy that mirrors whichever player is active; it would duplicate entries.
EXCLUDED_NAMES = ("playerctld",)


def is_player_name(name: str) -> bool:
    """True for MPRIS bus names we track."""
    if not name.startswith(MPRIS_PREFIX + "."):
        return False
    return not any(excluded in name for excluded in EXCLUDED_NAMES)


class Notification(NamedTuple):
    kind: str   # "owner" | "properties"
    value: str  # bus name or interface name


class BusReconciler:
    def __init__(self, transport, registry, autofocus: bool = False):
        self._transport = transport
        self._registry = registry
        self._autofocus = autofocus
        self._queue: asyncio.Queue[Notification] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    # ── Transport callbacks (synchronous, must not block) ──

    def on_owner_changed(self, name: str):
        if is_player_name(name):
            self._queue.put_nowait(Notification("owner", name))

    def on_properties_changed(self, interface: str):
        if PLAYER_INTERFACE in interface:
            self._queue.put_nowait(Notification("properties", interface))

    # ── Lifecycle ──

    async def start(self):
        await self._transport.subscribe(self.on_owner_changed, self.on_properties_changed)
        self._task = asyncio.create_task(self.run())

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run(self):
        """Consume notifications forever."""
        while True:
            notification = await self._queue.get()
            try:
                await self.handle(notification)
            except TransportError as e:
                logger.warning("Bus error while handling %s: %s", notification, e)

    async def handle(self, notification: Notification):
        if notification.kind == "owner":
            await self.owner_changed(notification.value)
        else:
            await self.properties_changed()

    async def owner_changed(self, name: str):
        pid = await self._transport.get_pid(name)
        if pid == 0:
            logger.debug("%s lost its owner", name)
            await self._registry.remove(name)
        else:
            logger.debug("%s owned by pid %d", name, pid)
            await self._registry.add(name)

    async def properties_changed(self):
        await self._registry.refresh_all(resort=self._autofocus)
