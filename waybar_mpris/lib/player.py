# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Player — one MPRIS media player session on the bus.

A player's identity is its bus name and never changes.  Everything else
(playback state, metadata) is replaced wholesale on each refresh.  When the
bus cannot answer (the player vanished between notification and fetch) the
player degrades to Stopped with empty metadata instead of raising.
"""

import enum
import logging

from .transport import MPRIS_PREFIX, Metadata, TransportError

log = logging.getLogger(__name__)

KNOWN_PLAYERS = {
    "plasma-browser-integration": "Browser",
    "noson": "Noson",
}

KNOWN_BROWSERS = {
    "mozilla": "Firefox",
    "chromium": "Chromium",
    "chrome": "Chrome",
}


class PlaybackState(enum.Enum):
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"

    @classmethod
    def parse(cls, status: str) -> "PlaybackState":
        if "Playing" in status:
            return cls.PLAYING
        if "Paused" in status:
            return cls.PAUSED
        return cls.STOPPED


def _read_cmdline(pid: int) -> str:
    try:
        with open(f"/proc/{pid}/cmdline", "rb") as f:
            return f.read().decode(errors="replace")
    except OSError:
        return ""


def resolve_display_name(identity: str, pid: int) -> str:
    """Human name for a bus name: 'org.mpris.MediaPlayer2.vlc' -> 'vlc'."""
    name = identity
    if name.startswith(MPRIS_PREFIX + "."):
        name = name[len(MPRIS_PREFIX) + 1:]
    # Multi-instance players append ".instance<pid>"
    head, sep, tail = name.partition(".instance")
    if sep and tail.isdigit():
        name = head

    for key, val in KNOWN_PLAYERS.items():
        if key in identity:
            name = val
            break

    if name == "Browser" and pid:
        cmd = _read_cmdline(pid)
        for key, val in KNOWN_BROWSERS.items():
            if key in cmd:
                name = val
                break
    return name


def _us_to_string(us: int) -> str:
    seconds = us // 1_000_000
    minutes = seconds // 60
    seconds -= minutes * 60
    return f"{minutes:02d}:{seconds:02d}"


class Player:
    def __init__(self, transport, identity: str, pid: int = 0, name: str | None = None):
        self._transport = transport
        self.identity = identity
        self.pid = pid
        self.name = name or resolve_display_name(identity, pid)
        self.state = PlaybackState.STOPPED
        self.metadata = Metadata()
        self.position = 0  # last raw position, microseconds

    @classmethod
    async def create(cls, transport, identity: str) -> "Player":
        """Look up the owner pid, then fetch state once."""
        pid = await transport.get_pid(identity)
        player = cls(transport, identity, pid)
        await player.refresh()
        return player

    def __repr__(self):
        return f"<Player {self.identity} {self.state.value}>"

    @property
    def playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    def _clear(self):
        self.state = PlaybackState.STOPPED
        self.metadata = Metadata()

    async def refresh(self):
        """Re-fetch playback status and metadata from the bus."""
        try:
            status = await self._transport.playback_status(self.identity)
        except TransportError as e:
            log.debug("PlaybackStatus failed for %s: %s", self.identity, e)
            self._clear()
            return
        try:
            metadata = await self._transport.metadata(self.identity)
        except TransportError as e:
            log.debug("Metadata failed for %s: %s", self.identity, e)
            self._clear()
            return
        self.state = PlaybackState.parse(status)
        self.metadata = metadata

    async def position_text(self, interpolate: bool = False, poll_interval: float = 1.0) -> str:
        """Current position as 'MM:SS/MM:SS', or '' when unknown.

        With *interpolate*, a position that renders the same as last time is
        advanced by one poll interval (for players that rarely update it).
        """
        length = self.metadata.length
        if length is None:
            return ""
        try:
            pos = await self._transport.position(self.identity)
        except TransportError as e:
            log.debug("Position failed for %s: %s", self.identity, e)
            return ""
        if pos is None:
            return ""
        position = _us_to_string(pos)
        if interpolate and position == _us_to_string(self.position):
            position = _us_to_string(self.position + int(poll_interval * 1_000_000))
        self.position = pos
        return f"{position}/{_us_to_string(length)}"

    # ── Playback control ──

    async def _call(self, member: str) -> bool:
        try:
            await self._transport.call_player(self.identity, member)
            return True
        except TransportError as e:
            log.warning("%s on %s failed: %s", member, self.identity, e)
            return False

    async def next(self) -> bool:
        return await self._call("Next")

    async def previous(self) -> bool:
        return await self._call("Previous")

    async def toggle(self) -> bool:
        return await self._call("PlayPause")

    def describe(self) -> str:
        playing = "true" if self.playing else "false"
        return f"Name: {self.identity}; Playing: {playing}; PID: {self.pid}"
