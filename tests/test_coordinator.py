"""Test startup role resolution and output mirroring."""

import asyncio
import io
import os
import socket
from dataclasses import replace

import pytest

from waybar_mpris.lib import coordinator as coordinator_module
from waybar_mpris.lib.control import ControlServer
from waybar_mpris.lib.coordinator import CoordinationError, InstanceCoordinator, Role
from waybar_mpris.lib.registry import PlayerRegistry
from waybar_mpris.lib.sink import OutputSink

from .conftest import SPOTIFY


def stale_socket(path):
    """Leave a socket file behind with nobody listening, like a crashed primary."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.bind(path)
    sock.close()


def coordinator(settings):
    out, err = io.StringIO(), io.StringIO()
    return InstanceCoordinator(settings, out=out, err=err), out, err


@pytest.mark.asyncio
async def test_command_means_send(settings):
    coord, _, _ = coordinator(settings)
    assert await coord.resolve("toggle") is Role.SEND_COMMAND


@pytest.mark.asyncio
async def test_no_socket_means_primary(settings):
    """Without a socket this process is primary and an old mirror file goes away."""
    with open(settings.mirror_path, "w") as f:
        f.write("old\n")
    coord, _, _ = coordinator(settings)

    assert await coord.resolve() is Role.PRIMARY
    assert not os.path.exists(settings.mirror_path)


@pytest.mark.asyncio
async def test_stale_socket_means_primary(settings):
    """A socket nobody answers on is cleaned up and this process takes over."""
    stale_socket(settings.socket_path)
    coord, _, _ = coordinator(settings)

    assert await coord.resolve() is Role.PRIMARY
    assert not os.path.exists(settings.socket_path)


@pytest.mark.asyncio
async def test_live_primary_means_mirror(settings, transport):
    """A live primary is asked to share and this process becomes a mirror."""
    sink = OutputSink(io.StringIO())
    sink.write('{"text": "now"}')
    control = ControlServer(settings, PlayerRegistry(transport), sink)
    await control.start()
    try:
        coord, out, err = coordinator(settings)
        assert await coord.resolve() is Role.MIRROR
    finally:
        await control.stop()

    assert sink.mirroring
    assert "already running" in err.getvalue()
    assert out.getvalue() == ""
    with open(settings.mirror_path) as f:
        assert f.read() == '{"text": "now"}\n'
    sink.close()


@pytest.mark.asyncio
async def test_replace_without_answer_takes_over(settings, monkeypatch):
    """--replace proceeds when nobody answers the prompt."""
    stale_socket(settings.socket_path)
    coord, _, err = coordinator(replace(settings, replace=True))

    async def no_answer(timeout):
        return None

    monkeypatch.setattr(coord, "_ask", no_answer)
    assert await coord.resolve() is Role.PRIMARY
    assert not os.path.exists(settings.socket_path)
    assert "Continue? [y/n]" in err.getvalue()


@pytest.mark.asyncio
async def test_replace_declined(settings, monkeypatch):
    """Answering 'n' aborts and leaves the socket alone."""
    stale_socket(settings.socket_path)
    coord, _, _ = coordinator(replace(settings, replace=True))

    async def answer_no(timeout):
        return "n\n"

    monkeypatch.setattr(coord, "_ask", answer_no)
    with pytest.raises(CoordinationError):
        await coord.resolve()
    assert os.path.exists(settings.socket_path)


@pytest.mark.asyncio
async def test_ask_times_out_on_unpollable_stdin(settings):
    """A stdin without a file descriptor counts as no answer."""
    coord = InstanceCoordinator(settings, out=io.StringIO(), err=io.StringIO(),
                                stdin=io.StringIO("y\n"))
    assert await coord._ask(0.05) is None


@pytest.mark.asyncio
async def test_send_prints_list_reply(settings, transport):
    transport.add_player(SPOTIFY, pid=1234)
    registry = PlayerRegistry(transport)
    await registry.add(SPOTIFY)
    control = ControlServer(settings, registry, OutputSink(io.StringIO()))
    await control.start()
    try:
        coord, out, _ = coordinator(settings)
        await coord.send("list")
        await coord.send("toggle")
    finally:
        await control.stop()

    assert out.getvalue() == (
        "Sent.\nResponse:\n"
        f"0*: Name: {SPOTIFY}; Playing: false; PID: 1234\n"
        "Sent.\n"
    )


@pytest.mark.asyncio
async def test_send_without_primary_fails(settings):
    coord, out, _ = coordinator(settings)
    with pytest.raises(CoordinationError):
        await coord.send("toggle")
    assert out.getvalue() == ""


@pytest.mark.asyncio
async def test_attach_mirror_follows_complete_lines(settings):
    """A late mirror starts at the current line and holds back partial ones."""
    with open(settings.mirror_path, "w") as f:
        f.write("one\n\ntwo\npar")
    coord, out, _ = coordinator(settings)
    stop = asyncio.Event()
    task = asyncio.create_task(coord.attach_mirror(stop))

    await asyncio.sleep(0.3)
    assert out.getvalue() == "two\n"

    with open(settings.mirror_path, "a") as f:
        f.write("tial\nthree\n")
    await asyncio.sleep(0.3)
    stop.set()
    await asyncio.wait_for(task, 1.0)

    assert out.getvalue() == "two\npartial\nthree\n"


@pytest.mark.asyncio
async def test_attach_mirror_rewinds_after_truncation(settings):
    """A truncated duplication file is read again from the start."""
    with open(settings.mirror_path, "w") as f:
        f.write("a fairly long first line\n")
    coord, out, _ = coordinator(settings)
    stop = asyncio.Event()
    task = asyncio.create_task(coord.attach_mirror(stop))
    await asyncio.sleep(0.3)

    with open(settings.mirror_path, "w") as f:
        f.write("short\n")
    await asyncio.sleep(0.3)
    stop.set()
    await asyncio.wait_for(task, 1.0)

    assert out.getvalue() == "a fairly long first line\nshort\n"


@pytest.mark.asyncio
async def test_attach_mirror_reads_in_bounded_chunks(settings, monkeypatch):
    """A long backlog is skipped and new output is read a chunk at a time."""
    monkeypatch.setattr(coordinator_module, "MIRROR_CHUNK", 4)
    with open(settings.mirror_path, "w") as f:
        f.writelines(f"status {i}\n" for i in range(50))
    coord, out, _ = coordinator(settings)
    reads = []
    real_open = open

    class RecordingFile:
        def __init__(self, f):
            self._f = f

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            self._f.close()

        def seek(self, pos):
            return self._f.seek(pos)

        def read(self, n=-1):
            reads.append(n)
            return self._f.read(n)

    def recording_open(*args, **kwargs):
        return RecordingFile(real_open(*args, **kwargs))

    monkeypatch.setattr(coordinator_module, "open", recording_open, raising=False)
    stop = asyncio.Event()
    task = asyncio.create_task(coord.attach_mirror(stop))
    await asyncio.sleep(0.3)

    with real_open(settings.mirror_path, "a") as f:
        f.write("status 50\nstatus 51\n")
    await asyncio.sleep(0.3)
    stop.set()
    await asyncio.wait_for(task, 1.0)

    assert out.getvalue() == "status 49\nstatus 50\nstatus 51\n"
    assert reads and all(0 < n <= 4 for n in reads)


@pytest.mark.asyncio
async def test_attach_mirror_waits_for_file(settings):
    """A duplication file created after the mirror starts is read from the top."""
    coord, out, _ = coordinator(settings)
    stop = asyncio.Event()
    task = asyncio.create_task(coord.attach_mirror(stop))
    await asyncio.sleep(0.2)

    with open(settings.mirror_path, "w") as f:
        f.write("first\nsecond\n")
    await asyncio.sleep(0.3)
    stop.set()
    await asyncio.wait_for(task, 1.0)

    assert out.getvalue() == "first\nsecond\n"
