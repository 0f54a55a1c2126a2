import pytest

from pyvbanmatrix.actions import apply_action, build_action_command
from pyvbanmatrix.exceptions import InvalidActionError, NotInitializedError, UnknownEndpointError
from pyvbanmatrix.topology import Channel, Slot, Topology

from tests.fakes import FakeTransport, sample_topology


@pytest.mark.asyncio
async def test_reset_sends_once_without_querying():
    transport = FakeTransport()
    await apply_action(transport, sample_topology(), "Mic", "Speakers", "reset")
    assert transport.sent == ["Point(WIN1.IN[1..2],WIN1.OUT[1..2]).Reset;"]
    assert transport.queries == []


@pytest.mark.asyncio
async def test_gain():
    transport = FakeTransport()
    await apply_action(transport, sample_topology(), "Aux", "Stream Out", "gain", -6.5)
    assert transport.sent == ["Point(WIN1.IN[3],VBAN1.OUT[1]).dBGain=-6.5;"]


@pytest.mark.asyncio
async def test_gain_from_string_value():
    transport = FakeTransport()
    await apply_action(transport, sample_topology(), "Stream In", "Speakers", "gain", "0")
    assert transport.sent == ["Point(VBAN1.IN[1],WIN1.OUT[1..2]).dBGain=0;"]


@pytest.mark.parametrize("value, flag", [(True, 1), (1, 1), (False, 0), (None, 0), (0, 0)])
def test_mute(value, flag):
    command = build_action_command(sample_topology(), "Mic", "Stream Out", "mute", value)
    assert command == f"Point(WIN1.IN[1..2],VBAN1.OUT[1]).Mute={flag};"


def test_gain_needs_a_number():
    with pytest.raises(InvalidActionError):
        build_action_command(sample_topology(), "Mic", "Speakers", "gain", "loud")
    with pytest.raises(InvalidActionError):
        build_action_command(sample_topology(), "Mic", "Speakers", "gain")


def test_unknown_action():
    with pytest.raises(InvalidActionError):
        build_action_command(sample_topology(), "Mic", "Speakers", "solo")


@pytest.mark.asyncio
async def test_unknown_names_send_nothing():
    transport = FakeTransport()
    with pytest.raises(UnknownEndpointError):
        await apply_action(transport, sample_topology(), "Guitar", "Speakers", "mute", True)
    with pytest.raises(UnknownEndpointError):
        await apply_action(transport, sample_topology(), "Mic", "Headphones", "mute", True)
    assert transport.sent == []


def test_requires_topology():
    with pytest.raises(NotInitializedError):
        build_action_command(None, "Mic", "Speakers", "reset")


def test_source_prefers_outputs_and_target_prefers_inputs():
    topology = Topology([
        Slot.from_channels("WIN1", [Channel(1, "Bus")], [Channel(4, "Bus")]),
        Slot.from_channels("WIN2", [Channel(2, "Bus")], [Channel(5, "Bus")]),
    ])
    command = build_action_command(topology, "Bus", "Bus", "reset")
    assert command == "Point(WIN1.IN[4],WIN1.OUT[1]).Reset;"


def test_first_slot_wins_for_duplicate_names():
    topology = Topology([
        Slot.from_channels("VAIO1", [Channel(1, "Mic")], [Channel(1, "Out")]),
        Slot.from_channels("WIN1", [Channel(3, "Mic")], []),
    ])
    command = build_action_command(topology, "Mic", "Out", "reset")
    assert command == "Point(VAIO1.IN[1],VAIO1.OUT[1]).Reset;"
