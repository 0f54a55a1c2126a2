"""Topology discovery.

Probes a fixed list of slot ids, reads channel counts and names, and builds
a Topology out of every slot that answers with at least one named channel.
A slot that times out or answers with garbage is treated as not present.
"""

import logging
from typing import Optional

from pyvbanmatrix.exceptions import MatrixError
from pyvbanmatrix.parser import (
    is_error,
    parse_info,
    parse_input_count,
    parse_name,
    parse_output_count,
)
from pyvbanmatrix.topology import Channel, Slot, Topology

# Slot ids the matrix can expose: Windows audio points, VBAN streams, VAIO drivers
SLOT_CANDIDATES = (
    "WIN1", "WIN2", "WIN3", "WIN4",
    "VBAN1", "VBAN2", "VBAN3", "VBAN4",
    "VAIO1", "VAIO2", "VAIO3", "VAIO4",
)

_logger = logging.getLogger(__name__)


def command_query_info(slot_id: str) -> str:
    return f"Slot({slot_id}).Info = ?"


def command_query_input_name(slot_id: str, index: int) -> str:
    return f"Input({slot_id}.IN[{index}]).Name = ?"


def command_query_output_name(slot_id: str, index: int) -> str:
    return f"Output({slot_id}.OUT[{index}]).Name = ?"


async def _query_or_none(transport, command: str) -> Optional[str]:
    try:
        return await transport.query(command)
    except MatrixError as e:
        _logger.debug(f"No answer to '{command}': {e}")
        return None


async def _query_channel_counts(transport, slot_id: str) -> Optional[tuple[int, int]]:
    info = await _query_or_none(transport, command_query_info(slot_id))
    if info is not None and not is_error(info):
        return parse_info(info)

    # Some slots only answer per direction (WIN1.IN / WIN1.OUT)
    in_info = await _query_or_none(transport, command_query_info(f"{slot_id}.IN"))
    out_info = await _query_or_none(transport, command_query_info(f"{slot_id}.OUT"))
    if in_info is None and out_info is None:
        return None
    return parse_input_count(in_info), parse_output_count(out_info)


async def _query_channels(transport, count: int, command_builder, slot_id: str) -> list[Channel]:
    channels = []
    for index in range(1, count + 1):
        reply = await _query_or_none(transport, command_builder(slot_id, index))
        name = parse_name(reply)
        if name:
            channels.append(Channel(index, name))
    return channels


async def discover_slot(transport, slot_id: str) -> Optional[Slot]:
    """Probe one slot id. Returns None when the slot is absent or has no named channels."""
    counts = await _query_channel_counts(transport, slot_id)
    if counts is None:
        _logger.debug(f"Slot {slot_id}: no info")
        return None
    inputs, outputs = counts
    if inputs + outputs == 0:
        _logger.debug(f"Slot {slot_id}: no channels")
        return None

    input_channels = await _query_channels(transport, inputs, command_query_input_name, slot_id)
    output_channels = await _query_channels(transport, outputs, command_query_output_name, slot_id)
    if not input_channels and not output_channels:
        _logger.debug(f"Slot {slot_id}: {inputs} in / {outputs} out but none named")
        return None

    slot = Slot.from_channels(slot_id, input_channels, output_channels)
    _logger.info(
        f"Discovered slot {slot_id}: inputs={list(slot.inputs)} outputs={list(slot.outputs)}"
    )
    return slot


async def discover(transport, candidates=SLOT_CANDIDATES) -> Topology:
    """Probe every candidate slot and return the resulting Topology.

    Never fails as a whole: a candidate whose probe fails is skipped.
    """
    slots = []
    for slot_id in candidates:
        try:
            slot = await discover_slot(transport, slot_id)
        except MatrixError as e:
            _logger.warning(f"Discovery of slot {slot_id} failed: {e}")
            continue
        if slot is not None:
            slots.append(slot)
    _logger.info(f"Discovery complete: {len(slots)} slot(s) {[slot.id for slot in slots]}")
    return Topology(slots)
