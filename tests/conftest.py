"""Shared fixtures for waybar-mpris tests."""

import shutil
import tempfile

import pytest

from waybar_mpris.lib import config as config_module
from waybar_mpris.lib.config import Settings
from waybar_mpris.lib.transport import Metadata, TransportError

SPOTIFY = "org.mpris.MediaPlayer2.spotify"
VLC = "org.mpris.MediaPlayer2.vlc"
MPD = "org.mpris.MediaPlayer2.mpd"


class FakeTransport:
    """In-memory stand-in for BusTransport.

    Players live in ``self.players`` keyed by bus name.  Names listed in
    ``self.failing`` answer every request with TransportError, like a player
    that vanished between notification and fetch.
    """

    def __init__(self):
        self.players: dict[str, dict] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.connected = False
        self.subscribed = False
        self.on_owner_changed = None
        self.on_properties_changed = None

    def add_player(self, name, status="Paused", pid=100, position=0, **meta):
        self.players[name] = {
            "status": status,
            "pid": pid,
            "position": position,
            "metadata": Metadata(**meta),
        }

    def set_status(self, name, status):
        self.players[name]["status"] = status

    def _get(self, name):
        if name in self.failing or name not in self.players:
            raise TransportError(f"org.freedesktop.DBus.Error.ServiceUnknown: {name}")
        return self.players[name]

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    async def list_names(self):
        return ["org.freedesktop.DBus", ":1.42", *self.players]

    async def get_pid(self, name):
        player = self.players.get(name)
        return player["pid"] if player else 0

    async def playback_status(self, name):
        return self._get(name)["status"]

    async def metadata(self, name):
        return self._get(name)["metadata"]

    async def position(self, name):
        return self._get(name)["position"]

    async def call_player(self, name, member):
        self._get(name)
        self.calls.append((name, member))

    async def subscribe(self, on_owner_changed, on_properties_changed):
        self.subscribed = True
        self.on_owner_changed = on_owner_changed
        self.on_properties_changed = on_properties_changed


@pytest.fixture(autouse=True)
def no_config_file():
    """Keep a developer's real config.json out of the tests."""
    config_module._config = {}
    yield
    config_module._config = None


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def short_tmp():
    """Temp dir with a short path; AF_UNIX socket paths are limited to ~108 bytes."""
    path = tempfile.mkdtemp(prefix="wbm-", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def settings(short_tmp):
    return Settings(
        socket_path=f"{short_tmp}/ctl.sock",
        mirror_path=f"{short_tmp}/out",
        log_path=f"{short_tmp}/log",
        replace_timeout=0.2,
        control_timeout=1.0,
    )
