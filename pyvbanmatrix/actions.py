import logging
from typing import Optional

from pyvbanmatrix.exceptions import InvalidActionError, NotInitializedError, UnknownEndpointError
from pyvbanmatrix.state import point_address
from pyvbanmatrix.topology import ChannelPair, Topology

ACTION_GAIN = "gain"
ACTION_MUTE = "mute"
ACTION_RESET = "reset"
ACTIONS = (ACTION_GAIN, ACTION_MUTE, ACTION_RESET)

_logger = logging.getLogger(__name__)


def _find(topology: Topology, name: str, directions: tuple[str, ...]) -> Optional[tuple[str, ChannelPair]]:
    # Bare names are ambiguous across slots: first slot in discovery order wins
    for direction in directions:
        for slot_id, slot in topology.items():
            pair = getattr(slot, direction).get(name)
            if pair is not None:
                return slot_id, pair
    return None


def command_set_gain(point: str, value) -> str:
    return f"{point}.dBGain={value};"


def command_set_mute(point: str, muted: bool) -> str:
    return f"{point}.Mute={1 if muted else 0};"


def command_reset(point: str) -> str:
    return f"{point}.Reset;"


def build_action_command(topology: Topology, source_name: str, target_name: str, action: str, value=None) -> str:
    """Translate (source, target, action) into a matrix control command.

    The source is looked up among outputs, then inputs, of all slots; the
    target among inputs, then outputs.
    """
    if topology is None:
        raise NotInitializedError("Matrix not initialized yet")
    if action not in ACTIONS:
        raise InvalidActionError(f"Unknown action '{action}', expected one of {', '.join(ACTIONS)}")

    source = _find(topology, source_name, ("outputs", "inputs"))
    target = _find(topology, target_name, ("inputs", "outputs"))
    if source is None or target is None:
        raise UnknownEndpointError(f"Unknown source or target: {source_name} / {target_name}")
    src_slot, src_pair = source
    dst_slot, dst_pair = target
    point = point_address(src_slot, src_pair, dst_slot, dst_pair)

    if action == ACTION_GAIN:
        try:
            gain = float(value)
        except (TypeError, ValueError):
            raise InvalidActionError(f"Gain action needs a numeric value, got {value!r}") from None
        return command_set_gain(point, f"{gain:g}")
    if action == ACTION_MUTE:
        return command_set_mute(point, bool(value))
    return command_reset(point)


async def apply_action(transport, topology: Topology, source_name: str, target_name: str,
                       action: str, value=None):
    """Send one control command and return without waiting for a reply.

    The write is unconfirmed and at most once: re-fetch the point to see
    whether the matrix took it.
    """
    command = build_action_command(topology, source_name, target_name, action, value)
    _logger.info(f"Executing: {command}")
    await transport.send(command)
    return command
