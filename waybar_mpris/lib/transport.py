# waybar-mpris
# Copyright (C) 2026 waybar-mpris contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Session-bus transport for MPRIS media players.

Wraps a dbus-next ``MessageBus`` and exposes only what the registry needs:
name listing, pid lookup, the three Player properties we read, the three
Player methods we call, and a subscription for NameOwnerChanged /
PropertiesChanged signals.  D-Bus variants are decoded here, once, so the
rest of the code only sees plain ``str`` / ``int`` values.

Usage:
    transport = BusTransport()
    await transport.connect()
    names = await transport.list_names()
    status = await transport.playback_status("org.mpris.MediaPlayer2.spotify")
    await transport.subscribe(on_owner_changed, on_properties_changed)
    await transport.disconnect()
"""

import asyncio
import logging
from typing import Callable, NamedTuple

from dbus_next import BusType, Message, MessageType, Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError

logger = logging.getLogger(__name__)

MPRIS_PREFIX = "org.mpris.MediaPlayer2"
MPRIS_PATH = "/org/mpris/MediaPlayer2"
PLAYER_INTERFACE = MPRIS_PREFIX + ".Player"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

DBUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"

# NameOwnerChanged from the bus daemon
MATCH_NOC = ("type='signal',path='/org/freedesktop/DBus',"
             "interface='org.freedesktop.DBus',member='NameOwnerChanged'")
# PropertiesChanged on the MPRIS object path; the interface argument is
# checked by hand because arg0 matching is unreliable across bus daemons.
MATCH_PC = ("type='signal',path='/org/mpris/MediaPlayer2',"
            "interface='org.freedesktop.DBus.Properties'")

CALL_TIMEOUT = 2.0  # seconds per bus round-trip


class TransportError(Exception):
    """A bus call failed: error reply, timeout, or lost connection."""


class Metadata(NamedTuple):
    """Decoded ``Metadata`` property of one player."""

    title: str = ""
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    length: int | None = None  # microseconds


def _variant_text(variant: Variant | None) -> str:
    """Decode a string-ish variant; lists of strings are joined with ', '."""
    if variant is None:
        return ""
    if variant.signature in ("s", "o"):
        return variant.value
    if variant.signature == "as":
        return ", ".join(variant.value)
    return ""


def _variant_int(variant: Variant | None) -> int | None:
    if variant is None:
        return None
    if variant.signature in ("x", "t", "i", "u", "n", "q"):
        return int(variant.value)
    return None


def decode_metadata(raw: dict) -> Metadata:
    """Turn an ``a{sv}`` metadata dict into a ``Metadata`` value."""
    return Metadata(
        title=_variant_text(raw.get("xesam:title")),
        artist=_variant_text(raw.get("xesam:artist")),
        album=_variant_text(raw.get("xesam:album")),
        album_artist=_variant_text(raw.get("xesam:albumArtist")),
        length=_variant_int(raw.get("mpris:length")),
    )


class BusTransport:
    """The only object in the daemon that talks to D-Bus."""

    def __init__(self, bus_type: BusType = BusType.SESSION):
        self._bus_type = bus_type
        self._bus: MessageBus | None = None
        self._handler = None

    async def connect(self):
        try:
            self._bus = await MessageBus(bus_type=self._bus_type).connect()
        except (DBusError, OSError) as e:
            raise TransportError(f"could not connect to the session bus: {e}") from e
        logger.info("Connected to session D-Bus as %s", self._bus.unique_name)

    async def disconnect(self):
        if self._bus is None:
            return
        if self._handler is not None:
            self._bus.remove_message_handler(self._handler)
            self._handler = None
        self._bus.disconnect()
        self._bus = None
        logger.info("Disconnected from D-Bus")

    # --- Low level -----------------------------------------------------------

    async def _call(self, message: Message) -> list:
        if self._bus is None:
            raise TransportError("not connected")
        try:
            reply = await asyncio.wait_for(self._bus.call(message), CALL_TIMEOUT)
        except asyncio.TimeoutError as e:
            raise TransportError(f"{message.member} on {message.destination} timed out") from e
        except (DBusError, OSError, EOFError) as e:
            raise TransportError(f"{message.member} on {message.destination}: {e}") from e
        if reply.message_type == MessageType.ERROR:
            detail = reply.body[0] if reply.body else ""
            raise TransportError(f"{reply.error_name}: {detail}")
        return reply.body

    async def _bus_method(self, member: str, signature: str = "", body: list | None = None) -> list:
        return await self._call(Message(
            destination=DBUS_NAME,
            path=DBUS_PATH,
            interface=DBUS_NAME,
            member=member,
            signature=signature,
            body=body or [],
        ))

    async def _get_property(self, name: str, prop: str) -> Variant:
        body = await self._call(Message(
            destination=name,
            path=MPRIS_PATH,
            interface=PROPERTIES_INTERFACE,
            member="Get",
            signature="ss",
            body=[PLAYER_INTERFACE, prop],
        ))
        return body[0]

    # --- Requests used by the registry ----------------------------------------

    async def list_names(self) -> list[str]:
        body = await self._bus_method("ListNames")
        return list(body[0])

    async def get_pid(self, name: str) -> int:
        """Owning process id of *name*, or 0 when the name has no owner."""
        try:
            body = await self._bus_method("GetConnectionUnixProcessID", "s", [name])
        except TransportError as e:
            logger.debug("No pid for %s: %s", name, e)
            return 0
        return int(body[0])

    async def playback_status(self, name: str) -> str:
        return _variant_text(await self._get_property(name, "PlaybackStatus"))

    async def metadata(self, name: str) -> Metadata:
        variant = await self._get_property(name, "Metadata")
        if variant.signature != "a{sv}":
            return Metadata()
        return decode_metadata(variant.value)

    async def position(self, name: str) -> int | None:
        return _variant_int(await self._get_property(name, "Position"))

    async def call_player(self, name: str, member: str):
        """Invoke a no-argument method (Next, Previous, PlayPause) on *name*."""
        await self._call(Message(
            destination=name,
            path=MPRIS_PATH,
            interface=PLAYER_INTERFACE,
            member=member,
        ))

    # --- Signals ---------------------------------------------------------------

    async def subscribe(self,
                        on_owner_changed: Callable[[str], None],
                        on_properties_changed: Callable[[str], None]):
        """Deliver NameOwnerChanged (bus name) and PropertiesChanged
        (interface name) notifications to the given callbacks.

        Callbacks run synchronously inside the bus reader, in arrival order;
        they must not block.
        """
        if self._bus is None:
            raise TransportError("not connected")

        def _dbus_msg_handler(msg: Message):
            if msg.message_type != MessageType.SIGNAL or not msg.body:
                return None
            if msg.member == "NameOwnerChanged" and msg.interface == DBUS_NAME:
                name = msg.body[0]
                if isinstance(name, str):
                    on_owner_changed(name)
            elif msg.member == "PropertiesChanged" and msg.path == MPRIS_PATH:
                iface = msg.body[0]
                if isinstance(iface, str):
                    on_properties_changed(iface)
            return None

        self._handler = _dbus_msg_handler
        self._bus.add_message_handler(_dbus_msg_handler)
        for rule in (MATCH_NOC, MATCH_PC):
            await self._bus_method("AddMatch", "s", [rule])
        logger.info("Subscribed to NameOwnerChanged and PropertiesChanged")
