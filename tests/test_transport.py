"""Test D-Bus decoding and the BusTransport call/subscribe plumbing."""

from types import SimpleNamespace

import pytest
from dbus_next import MessageType, Variant

from waybar_mpris.lib.transport import (
    DBUS_NAME,
    MPRIS_PATH,
    PLAYER_INTERFACE,
    BusTransport,
    Metadata,
    TransportError,
    decode_metadata,
)


class FakeBus:
    """Answers every call with the queued replies, recording the messages."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.sent = []
        self.handlers = []
        self.unique_name = ":1.99"

    async def call(self, message):
        self.sent.append(message)
        return self.replies.pop(0) if self.replies else ok()

    def add_message_handler(self, handler):
        self.handlers.append(handler)

    def remove_message_handler(self, handler):
        self.handlers.remove(handler)

    def disconnect(self):
        pass


def ok(*body):
    return SimpleNamespace(message_type=MessageType.METHOD_RETURN, body=list(body))


def error(name="org.freedesktop.DBus.Error.ServiceUnknown", detail="no such name"):
    return SimpleNamespace(message_type=MessageType.ERROR, error_name=name, body=[detail])


def connected(*replies):
    transport = BusTransport()
    transport._bus = FakeBus(*replies)
    return transport


def test_decode_metadata_full():
    """Strings, string lists and the integer length decode to plain values."""
    raw = {
        "xesam:title": Variant("s", "Paranoid Android"),
        "xesam:artist": Variant("as", ["Radiohead"]),
        "xesam:album": Variant("s", "OK Computer"),
        "xesam:albumArtist": Variant("as", ["Radiohead", "Nigel Godrich"]),
        "mpris:length": Variant("x", 383_000_000),
        "mpris:trackid": Variant("o", "/org/mpris/MediaPlayer2/Track/1"),
    }
    assert decode_metadata(raw) == Metadata(
        title="Paranoid Android",
        artist="Radiohead",
        album="OK Computer",
        album_artist="Radiohead, Nigel Godrich",
        length=383_000_000,
    )


def test_decode_metadata_missing_and_mistyped():
    """Absent keys and unexpected signatures fall back to empty values."""
    raw = {
        "xesam:title": Variant("i", 7),
        "mpris:length": Variant("s", "long"),
    }
    assert decode_metadata(raw) == Metadata()
    assert decode_metadata({}).length is None


def test_decode_metadata_unsigned_length():
    """Some players send the length as an unsigned integer."""
    assert decode_metadata({"mpris:length": Variant("t", 1_000_000)}).length == 1_000_000


@pytest.mark.asyncio
async def test_calls_fail_when_not_connected():
    """Every request raises TransportError before connect()."""
    transport = BusTransport()
    with pytest.raises(TransportError):
        await transport.list_names()
    with pytest.raises(TransportError):
        await transport.subscribe(lambda name: None, lambda iface: None)


@pytest.mark.asyncio
async def test_error_reply_raises():
    """An error reply from the bus becomes TransportError."""
    transport = connected(error())
    with pytest.raises(TransportError, match="ServiceUnknown"):
        await transport.playback_status("org.mpris.MediaPlayer2.gone")


@pytest.mark.asyncio
async def test_get_pid_returns_zero_without_owner():
    """A name without an owner resolves to pid 0 instead of raising."""
    transport = connected(error("org.freedesktop.DBus.Error.NameHasNoOwner"))
    assert await transport.get_pid("org.mpris.MediaPlayer2.gone") == 0

    transport = connected(ok(4242))
    assert await transport.get_pid("org.mpris.MediaPlayer2.vlc") == 4242


@pytest.mark.asyncio
async def test_property_reads():
    """Property reads go to the MPRIS object and decode their variants."""
    transport = connected(
        ok(Variant("s", "Playing")),
        ok(Variant("a{sv}", {"xesam:title": Variant("s", "Song")})),
        ok(Variant("x", 65_000_000)),
        ok(Variant("s", "not a dict")),
    )
    name = "org.mpris.MediaPlayer2.vlc"

    assert await transport.playback_status(name) == "Playing"
    assert (await transport.metadata(name)).title == "Song"
    assert await transport.position(name) == 65_000_000
    assert await transport.metadata(name) == Metadata()

    sent = transport._bus.sent[0]
    assert sent.destination == name
    assert sent.path == MPRIS_PATH
    assert sent.body == [PLAYER_INTERFACE, "PlaybackStatus"]


@pytest.mark.asyncio
async def test_call_player_targets_player_interface():
    """Next/Previous/PlayPause are invoked on the Player interface."""
    transport = connected()
    await transport.call_player("org.mpris.MediaPlayer2.vlc", "PlayPause")

    sent = transport._bus.sent[0]
    assert sent.interface == PLAYER_INTERFACE
    assert sent.member == "PlayPause"


@pytest.mark.asyncio
async def test_subscribe_dispatches_signals():
    """Signals reach the callbacks; replies and foreign signals do not."""
    transport = connected()
    owners, ifaces = [], []
    await transport.subscribe(owners.append, ifaces.append)

    bus = transport._bus
    assert [m.member for m in bus.sent] == ["AddMatch", "AddMatch"]
    handler = bus.handlers[0]

    handler(SimpleNamespace(message_type=MessageType.SIGNAL, member="NameOwnerChanged",
                            interface=DBUS_NAME, path="/org/freedesktop/DBus",
                            body=["org.mpris.MediaPlayer2.vlc", "", ":1.5"]))
    handler(SimpleNamespace(message_type=MessageType.SIGNAL, member="PropertiesChanged",
                            interface="org.freedesktop.DBus.Properties", path=MPRIS_PATH,
                            body=[PLAYER_INTERFACE, {}, []]))
    handler(SimpleNamespace(message_type=MessageType.METHOD_RETURN, member=None,
                            interface=None, path=None, body=["ignored"]))
    handler(SimpleNamespace(message_type=MessageType.SIGNAL, member="PropertiesChanged",
                            interface="org.freedesktop.DBus.Properties", path="/other",
                            body=[PLAYER_INTERFACE, {}, []]))

    assert owners == ["org.mpris.MediaPlayer2.vlc"]
    assert ifaces == [PLAYER_INTERFACE]

    await transport.disconnect()
    assert bus.handlers == []
