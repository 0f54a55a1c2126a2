import pytest

from pyvbanmatrix.discovery import discover, discover_slot
from pyvbanmatrix.exceptions import QueryTimeoutError, TransportError
from pyvbanmatrix.topology import STEREO

from tests.fakes import FakeTransport, device_replies


@pytest.mark.asyncio
async def test_discovers_slots_and_pairs():
    transport = FakeTransport(device_replies())
    topology = await discover(transport, ["WIN1", "WIN2", "VBAN1"])

    assert list(topology) == ["WIN1", "VBAN1"]
    win1 = topology["WIN1"]
    assert list(win1.inputs) == ["Mic", "Aux"]
    assert win1.inputs["Mic"].kind == STEREO
    assert win1.inputs["Aux"].index_range == "3"
    assert list(win1.outputs) == ["Speakers"]
    assert win1.outputs["Speakers"].index_range == "1..2"


@pytest.mark.asyncio
async def test_sub_slot_fallback_and_unnamed_channels():
    transport = FakeTransport(device_replies())
    slot = await discover_slot(transport, "VBAN1")

    assert "Slot(VBAN1.IN).Info = ?" in transport.queries
    assert "Slot(VBAN1.OUT).Info = ?" in transport.queries
    # Input 2 has an empty name and is dropped
    assert list(slot.inputs) == ["Stream In"]
    assert list(slot.outputs) == ["Stream Out"]


@pytest.mark.asyncio
async def test_info_is_queried_before_names():
    transport = FakeTransport(device_replies())
    await discover_slot(transport, "WIN1")
    assert transport.queries[0] == "Slot(WIN1).Info = ?"
    assert transport.queries[1:] == [
        "Input(WIN1.IN[1]).Name = ?",
        "Input(WIN1.IN[2]).Name = ?",
        "Input(WIN1.IN[3]).Name = ?",
        "Output(WIN1.OUT[1]).Name = ?",
        "Output(WIN1.OUT[2]).Name = ?",
    ]


@pytest.mark.asyncio
async def test_zero_channels_skips_slot():
    transport = FakeTransport({"Slot(WIN2).Info = ?": "Slot(WIN2).Info = In:0,Out:0;"})
    assert await discover_slot(transport, "WIN2") is None
    assert transport.queries == ["Slot(WIN2).Info = ?"]


@pytest.mark.asyncio
async def test_slot_without_named_channels_is_discarded():
    transport = FakeTransport({
        "Slot(WIN2).Info = ?": "Slot(WIN2).Info = In:1,Out:0;",
        "Input(WIN2.IN[1]).Name = ?": 'Input(WIN2.IN[1]).Name = "";',
    })
    assert await discover_slot(transport, "WIN2") is None


@pytest.mark.asyncio
async def test_timeout_on_one_candidate_does_not_stop_the_rest():
    replies = {
        "Slot(WIN1).Info = ?": "Slot(WIN1).Info = In:1,Out:0;",
        "Input(WIN1.IN[1]).Name = ?": '"One"',
        "Slot(WIN2).Info = ?": QueryTimeoutError("timeout"),
        "Slot(WIN3).Info = ?": "Slot(WIN3).Info = In:0,Out:1;",
        "Output(WIN3.OUT[1]).Name = ?": '"Three"',
    }
    transport = FakeTransport(replies)
    topology = await discover(transport, ["WIN1", "WIN2", "WIN3"])

    assert list(topology) == ["WIN1", "WIN3"]
    assert "Slot(WIN3).Info = ?" in transport.queries


@pytest.mark.asyncio
async def test_transport_error_is_absorbed():
    transport = FakeTransport({"Slot(WIN1).Info = ?": TransportError("network unreachable")})
    topology = await discover(transport, ["WIN1"])
    assert len(topology) == 0


@pytest.mark.asyncio
async def test_rediscovery_is_stable():
    first = await discover(FakeTransport(device_replies()), ["WIN1", "VBAN1"])
    second = await discover(FakeTransport(device_replies()), ["WIN1", "VBAN1"])
    assert first == second
    assert first.to_dict() == second.to_dict()
