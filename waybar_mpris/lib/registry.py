# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
PlayerRegistry — the ordered list of known players plus the current selection.

All mutation goes through the public coroutines below, each of which holds
``registry.lock`` for its whole duration and queues exactly one ChangeEvent
when it changes something.  Readers that need a consistent view (rendering,
the ``list`` command) and every write to the output sink take the same lock.

Selection is an index.  ``add`` only ever appends, so the selected identity
is stable across adds; ``remove`` renumbers the index to follow the
selected identity; ``sort`` and removal of the selected player reset it to 0.
"""

import asyncio
import enum
import logging
from typing import NamedTuple

from .player import Player

logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    ADDED = "added"
    REMOVED = "removed"
    REFRESHED = "refreshed"


class ChangeEvent(NamedTuple):
    """Tagged change notification.  Carries no player content: consumers
    re-read ``registry.current()``."""

    kind: EventKind
    identity: str | None = None

    @classmethod
    def added(cls, identity: str) -> "ChangeEvent":
        return cls(EventKind.ADDED, identity)

    @classmethod
    def removed(cls, identity: str) -> "ChangeEvent":
        return cls(EventKind.REMOVED, identity)

    @classmethod
    def refreshed(cls) -> "ChangeEvent":
        return cls(EventKind.REFRESHED)


class PlayerRegistry:
    def __init__(self, transport, autofocus: bool = False):
        self._transport = transport
        self._autofocus = autofocus
        self._players: list[Player] = []
        self._current = 0
        self.lock = asyncio.Lock()
        self.events: asyncio.Queue[ChangeEvent] = asyncio.Queue()

    # ── Read access (caller holds ``lock`` when consistency matters) ──

    def __len__(self):
        return len(self._players)

    def __contains__(self, identity: str):
        return self._index_of(identity) is not None

    @property
    def players(self) -> list[Player]:
        return list(self._players)

    @property
    def current_index(self) -> int:
        return self._current

    def current(self) -> Player | None:
        """The selected player, or None when the registry is empty."""
        if not self._players:
            return None
        return self._players[self._current]

    def describe(self) -> str:
        """Numbered listing, '*' marks the selection:

            0*: Name: org.mpris.MediaPlayer2.spotify; Playing: true; PID: 1234
            1: Name: org.mpris.MediaPlayer2.vlc; Playing: false; PID: 5678
        """
        pad = len(str(len(self._players))) if self._players else 0
        lines = []
        for i, player in enumerate(self._players):
            marker = "*" if i == self._current else ""
            lines.append(f"{i:0{pad}d}{marker}: {player.describe()}\n")
        return "".join(lines)

    def _index_of(self, identity: str) -> int | None:
        for i, player in enumerate(self._players):
            if player.identity == identity:
                return i
        return None

    def _emit(self, event: ChangeEvent):
        self.events.put_nowait(event)

    # ── Mutation ──

    async def add(self, identity: str) -> Player | None:
        """Create a player for *identity* (one blocking fetch) and append it."""
        async with self.lock:
            if self._index_of(identity) is not None:
                logger.debug("Player %s already known, not adding again", identity)
                return None
            player = await Player.create(self._transport, identity)
            self._players.append(player)
            if self._autofocus:
                self._current = len(self._players) - 1
            logger.info("Player added: %s (%s, pid %d)", identity, player.name, player.pid)
            self._emit(ChangeEvent.added(identity))
            return player

    async def remove(self, identity: str) -> bool:
        """Drop *identity*.  If it was selected, the selection resets to the
        first player and a Refreshed event follows even when nothing else
        changed, so the bar never keeps showing a vanished player."""
        async with self.lock:
            index = self._index_of(identity)
            if index is None:
                logger.debug("Remove for unknown player %s ignored", identity)
                return False
            was_current = index == self._current
            del self._players[index]
            if was_current:
                self._current = 0
            elif index < self._current:
                self._current -= 1
            logger.info("Player removed: %s", identity)
            self._emit(ChangeEvent.removed(identity))
            if was_current:
                await self._refresh_all_locked(resort=self._autofocus)
            return True

    async def refresh_all(self, resort: bool = False):
        """Re-fetch every player; with *resort* apply ``sort`` before the
        Refreshed event goes out."""
        async with self.lock:
            await self._refresh_all_locked(resort)

    async def _refresh_all_locked(self, resort: bool = False):
        for player in self._players:
            await player.refresh()
        if resort:
            self._sort_locked()
        self._emit(ChangeEvent.refreshed())

    async def sort(self):
        """Playing players first, otherwise stable; selection resets to 0."""
        async with self.lock:
            self._sort_locked()

    def _sort_locked(self):
        self._players.sort(key=lambda p: not p.playing)
        self._current = 0

    async def select_next(self) -> bool:
        return await self._rotate(1)

    async def select_previous(self) -> bool:
        return await self._rotate(-1)

    async def _rotate(self, step: int) -> bool:
        async with self.lock:
            if len(self._players) < 2:
                return False
            self._current = (self._current + step) % len(self._players)
            logger.info("Selected player %d: %s", self._current,
                        self._players[self._current].identity)
            await self._refresh_all_locked()
            return True

    async def reload(self, accept) -> int:
        """Add every currently owned bus name for which ``accept(name)`` is
        true.  Returns how many players were added."""
        names = await self._transport.list_names()
        added = 0
        for name in names:
            if accept(name) and await self.add(name) is not None:
                added += 1
        return added
