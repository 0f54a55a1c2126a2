"""Routing point state: gain and mute for every input x output intersection."""

import asyncio
import json
import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pyvbanmatrix.exceptions import MatrixError, NotInitializedError, UnknownEndpointError
from pyvbanmatrix.parser import parse_gain_list, parse_mute_list
from pyvbanmatrix.topology import ChannelPair, Topology

ARROW = "→"

_logger = logging.getLogger(__name__)


class PointState:
    """Connection state of one routing point.

    ``gains`` holds one value per subchannel link, negative infinity meaning
    no route. ``gain`` is the mean of the finite ones rounded to 0.1 dB, or
    None when the point is not connected at all.
    """

    def __init__(self, gains: Optional[list[float]] = None, mute: bool = False):
        self._gains = tuple(gains or ())
        self._mute = mute

    @classmethod
    def disconnected(cls) -> "PointState":
        return cls()

    @property
    def gains(self) -> tuple[float, ...]:
        return self._gains

    @property
    def connected(self) -> bool:
        return any(gain != -math.inf for gain in self._gains)

    @property
    def gain(self) -> Optional[float]:
        finite = [gain for gain in self._gains if gain != -math.inf]
        if not finite:
            return None
        # Ties round away from zero: -5.25 -> -5.3
        mean = Decimal(sum(finite) / len(finite))
        return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

    @property
    def mute(self) -> bool:
        return self._mute

    def to_dict(self) -> dict:
        # -inf is not valid JSON
        return {
            "connected": self.connected,
            "gain": self.gain,
            "gains": [None if gain == -math.inf else gain for gain in self._gains],
            "mute": self._mute,
        }

    def __eq__(self, other):
        if not isinstance(other, PointState):
            return NotImplemented
        return (self._gains, self._mute) == (other._gains, other._mute)

    def __repr__(self):
        return f"PointState(connected={self.connected}, gain={self.gain}, gains={list(self._gains)}, mute={self._mute})"


def point_address(src_slot: str, input_pair: ChannelPair, dst_slot: str, output_pair: ChannelPair) -> str:
    """Point(WIN1.IN[1..2],VBAN1.OUT[3])"""
    return f"Point({src_slot}.IN[{input_pair.index_range}],{dst_slot}.OUT[{output_pair.index_range}])"


def command_query_gain(point: str) -> str:
    return f"{point}.dBGain = ?"


def command_query_mute(point: str) -> str:
    return f"{point}.Mute = ?"


def section_key(src_slot: str, dst_slot: str) -> str:
    return f"{src_slot} {ARROW} {dst_slot}"


def point_key(input_name: str, output_name: str) -> str:
    return f"{input_name} {ARROW} {output_name}"


async def _query_point(transport, point: str) -> PointState:
    gains = parse_gain_list(await transport.query(command_query_gain(point)))
    mutes = parse_mute_list(await transport.query(command_query_mute(point)))
    return PointState(gains, mute=any(value == 1 for value in mutes))


async def _query_point_absorbing(transport, point: str) -> PointState:
    try:
        gains = parse_gain_list(await transport.query(command_query_gain(point)))
    except MatrixError as e:
        _logger.warning(f"Error querying {point}: {e}")
        return PointState.disconnected()
    state = PointState(gains)
    if not state.connected:
        return state
    try:
        mutes = parse_mute_list(await transport.query(command_query_mute(point)))
    except MatrixError as e:
        _logger.warning(f"Error querying mute of {point}: {e}")
        return state
    return PointState(gains, mute=any(value == 1 for value in mutes))


async def fetch_full_snapshot(transport, topology: Topology, concurrency: int = 1) -> dict:
    """Query gain (and mute for connected points) of every point in the topology.

    Returns {"SRC → DST": {"In → Out": PointState}}. Per-point failures
    degrade that point to disconnected; the snapshot itself never fails.
    Points are queried one after another unless ``concurrency`` > 1; each
    point still reads gain before mute.
    """
    if topology is None:
        raise NotInitializedError("Matrix not initialized")

    snapshot: dict[str, dict[str, PointState]] = {}
    jobs = []
    for src_id, src in topology.items():
        for dst_id, dst in topology.items():
            section = snapshot.setdefault(section_key(src_id, dst_id), {})
            for in_name, input_pair in src.inputs.items():
                for out_name, output_pair in dst.outputs.items():
                    point = point_address(src_id, input_pair, dst_id, output_pair)
                    label = point_key(in_name, out_name)
                    section[label] = PointState.disconnected()
                    jobs.append((section, label, point))

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _fetch(section, label, point):
        async with semaphore:
            section[label] = await _query_point_absorbing(transport, point)

    if concurrency > 1:
        await asyncio.gather(*(_fetch(*job) for job in jobs))
    else:
        for job in jobs:
            await _fetch(*job)

    _logger.info(f"Fetched {len(jobs)} point(s) across {len(snapshot)} section(s)")
    if _logger.isEnabledFor(logging.DEBUG):
        _logger.debug(f"Full matrix state (Input -> Output):\n{json.dumps(snapshot_to_dict(snapshot), indent=2, ensure_ascii=False)}")
    return snapshot


def snapshot_to_dict(snapshot: dict) -> dict:
    return {
        section: {label: state.to_dict() for label, state in points.items()}
        for section, points in snapshot.items()
    }


def resolve_point(topology: Topology, src_slot: str, dst_slot: str, in_name: str, out_name: str) -> str:
    """Point address for a named input of src_slot and output of dst_slot."""
    if topology is None:
        raise NotInitializedError("Matrix not initialized")
    src = topology.get(src_slot)
    dst = topology.get(dst_slot)
    if src is None or dst is None:
        raise UnknownEndpointError(f"Invalid source/destination slot: {src_slot} / {dst_slot}")
    input_pair = src.inputs.get(in_name)
    output_pair = dst.outputs.get(out_name)
    if input_pair is None or output_pair is None:
        raise UnknownEndpointError(f"Unknown input/output: {in_name} / {out_name}")
    return point_address(src_slot, input_pair, dst_slot, output_pair)


async def fetch_live_point(transport, topology: Topology, src_slot: str, dst_slot: str,
                           in_name: str, out_name: str) -> PointState:
    """Query one point's gain and mute now. Errors propagate to the caller."""
    point = resolve_point(topology, src_slot, dst_slot, in_name, out_name)
    return await _query_point(transport, point)
