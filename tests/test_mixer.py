import asyncio
from unittest.mock import MagicMock

import pytest

from pyvbanmatrix.exceptions import NotInitializedError, UnknownEndpointError
from pyvbanmatrix.listener import LoggingListener, MatrixListener
from pyvbanmatrix.mixer import VBANMatrix

from tests.fakes import FakeTransport, device_replies

CANDIDATES = ["WIN1", "VBAN1"]


def _matrix(replies=None):
    transport = FakeTransport(device_replies() if replies is None else replies)
    return VBANMatrix("matrix.local", transport=transport, candidates=CANDIDATES), transport


@pytest.mark.asyncio
async def test_nothing_before_discovery():
    matrix, _ = _matrix()
    assert matrix.topology is None
    assert matrix.snapshot is None
    with pytest.raises(NotInitializedError):
        await matrix.fetch_full_snapshot()
    with pytest.raises(NotInitializedError):
        await matrix.fetch_live_point("WIN1", "WIN1", "Mic", "Speakers")
    with pytest.raises(NotInitializedError):
        await matrix.apply("Mic", "Speakers", "reset")


@pytest.mark.asyncio
async def test_refresh_installs_topology_and_snapshot():
    matrix, _ = _matrix()
    topology, snapshot = await matrix.refresh()
    assert matrix.topology is topology
    assert matrix.snapshot is snapshot
    assert list(topology) == CANDIDATES
    assert "WIN1 → VBAN1" in snapshot


@pytest.mark.asyncio
async def test_rediscovery_replaces_topology():
    matrix, transport = _matrix()
    first = await matrix.discover()
    transport.replies = {}
    second = await matrix.discover()
    assert second is not first
    assert len(second) == 0
    assert matrix.topology is second
    # The old object is untouched
    assert list(first) == CANDIDATES


@pytest.mark.asyncio
async def test_readers_see_old_topology_during_discovery():
    matrix, transport = _matrix()
    first = await matrix.discover()

    release = asyncio.Event()
    original_query = transport.query

    async def slow_query(command, stream_name=None, timeout=None):
        await release.wait()
        return await original_query(command, stream_name, timeout)

    transport.query = slow_query
    task = asyncio.create_task(matrix.discover())
    await asyncio.sleep(0)
    assert matrix.topology is first
    release.set()
    second = await task
    assert matrix.topology is second
    assert second == first


@pytest.mark.asyncio
async def test_listeners_are_notified():
    matrix, transport = _matrix()
    listener = MagicMock(spec=MatrixListener)
    matrix.register_listener(listener)

    topology, snapshot = await matrix.refresh()
    listener.topology_discovered.assert_called_once_with(topology)
    listener.snapshot_refreshed.assert_called_once_with(snapshot)

    command = await matrix.apply("Mic", "Speakers", "mute", True)
    assert transport.sent == [command]
    listener.action_sent.assert_called_once_with("Mic", "Speakers", "mute", command)

    with pytest.raises(UnknownEndpointError):
        await matrix.fetch_live_point("WIN1", "WIN1", "Nope", "Speakers")
    listener.error.assert_called_once()

    matrix.unregister_listener(listener)
    await matrix.discover()
    listener.topology_discovered.assert_called_once()


@pytest.mark.asyncio
async def test_live_point_after_action():
    replies = device_replies()
    point = "Point(WIN1.IN[1..2],WIN1.OUT[1..2])"
    replies[f"{point}.dBGain = ?"] = f"{point}.dBGain = -6.0, -inf, -inf, -6.0;"
    replies[f"{point}.Mute = ?"] = f"{point}.Mute = 0, 0;"
    matrix, transport = _matrix(replies)
    matrix.register_listener(LoggingListener())
    await matrix.discover()

    await matrix.apply("Mic", "Speakers", "gain", -6)
    state = await matrix.fetch_live_point("WIN1", "WIN1", "Mic", "Speakers")

    assert transport.sent == [f"{point}.dBGain=-6;"]
    assert state.connected is True
    assert state.gain == -6.0
    assert state.mute is False
