"""Discovered matrix layout: slots, channels and stereo pairs.

Everything in here is read-only once built. A new discovery produces a
whole new Topology; nothing is patched in place.
"""

import logging
import re
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Optional

MONO = "mono"
STEREO = "stereo"

# "Mic (L)" and "Mic (R)" share the base name "Mic"
STEREO_MARKER = re.compile(r"\s*\((?:L|R)\)", re.IGNORECASE)

_logger = logging.getLogger(__name__)


def base_name(name: str) -> str:
    return STEREO_MARKER.sub("", name).strip()


class Channel:
    """A single named channel on a slot, indexed from 1."""

    __slots__ = ("_index", "_name")

    def __init__(self, index: int, name: str):
        self._index = index
        self._name = name

    @property
    def index(self) -> int:
        return self._index

    @property
    def name(self) -> str:
        return self._name

    def __eq__(self, other):
        if not isinstance(other, Channel):
            return NotImplemented
        return (self._index, self._name) == (other._index, other._name)

    def __hash__(self):
        return hash((self._index, self._name))

    def __repr__(self):
        return f"Channel({self._index}, {self._name!r})"


class ChannelPair:
    """One mono channel, or two adjacent channels addressed as a stereo pair."""

    __slots__ = ("_left", "_right")

    def __init__(self, left: Channel, right: Optional[Channel] = None):
        self._left = left
        self._right = right

    @property
    def left(self) -> Channel:
        return self._left

    @property
    def right(self) -> Optional[Channel]:
        return self._right

    @property
    def kind(self) -> str:
        return STEREO if self._right is not None else MONO

    @property
    def name(self) -> str:
        return base_name(self._left.name)

    @property
    def index_range(self) -> str:
        """Channel address as used in Point(...) commands: '3' or '1..2'."""
        if self._right is None:
            return f"{self._left.index}"
        return f"{self._left.index}..{self._right.index}"

    def to_dict(self) -> dict:
        return {
            "chL": self._left.index,
            "chR": self._right.index if self._right else None,
            "type": self.kind,
        }

    def __eq__(self, other):
        if not isinstance(other, ChannelPair):
            return NotImplemented
        return (self._left, self._right) == (other._left, other._right)

    def __hash__(self):
        return hash((self._left, self._right))

    def __repr__(self):
        return f"ChannelPair({self.kind}, {self.name!r}, {self.index_range})"


def pair_channels(channels: list[Channel]) -> dict[str, ChannelPair]:
    """Group channels into mono/stereo pairs keyed by base name.

    Single greedy pass in index order: a channel merges with the one right
    after it when both have the same base name, otherwise it stays mono.
    A repeated base name replaces the earlier entry.
    """
    pairs: dict[str, ChannelPair] = {}
    i = 0
    while i < len(channels):
        current = channels[i]
        name = base_name(current.name)
        following = channels[i + 1] if i + 1 < len(channels) else None
        if following is not None and base_name(following.name) == name:
            pair = ChannelPair(current, following)
            i += 2
        else:
            pair = ChannelPair(current)
            i += 1
        if name in pairs:
            _logger.warning(f"Duplicate channel name '{name}', keeping {pair.index_range}")
        pairs[name] = pair
    return pairs


class Slot:
    """A device sub-unit (e.g. WIN1, VBAN2) and its paired channels."""

    def __init__(self, slot_id: str, inputs: Mapping[str, ChannelPair], outputs: Mapping[str, ChannelPair]):
        self._id = slot_id
        self._inputs = MappingProxyType(dict(inputs))
        self._outputs = MappingProxyType(dict(outputs))

    @classmethod
    def from_channels(cls, slot_id: str, inputs: list[Channel], outputs: list[Channel]) -> "Slot":
        return cls(slot_id, pair_channels(inputs), pair_channels(outputs))

    @property
    def id(self) -> str:
        return self._id

    @property
    def inputs(self) -> Mapping[str, ChannelPair]:
        return self._inputs

    @property
    def outputs(self) -> Mapping[str, ChannelPair]:
        return self._outputs

    def to_dict(self) -> dict:
        return {
            "inputs": {name: pair.to_dict() for name, pair in self._inputs.items()},
            "outputs": {name: pair.to_dict() for name, pair in self._outputs.items()},
        }

    def __eq__(self, other):
        if not isinstance(other, Slot):
            return NotImplemented
        return (
            self._id == other._id
            and dict(self._inputs) == dict(other._inputs)
            and dict(self._outputs) == dict(other._outputs)
        )

    def __repr__(self):
        return f"Slot({self._id!r}, inputs={list(self._inputs)}, outputs={list(self._outputs)})"


class Topology(Mapping):
    """Slot id -> Slot, in discovery order."""

    def __init__(self, slots: Optional[list[Slot]] = None):
        self._slots: dict[str, Slot] = {slot.id: slot for slot in slots or []}

    def __getitem__(self, slot_id: str) -> Slot:
        return self._slots[slot_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def to_dict(self) -> dict:
        return {slot_id: slot.to_dict() for slot_id, slot in self._slots.items()}

    def __repr__(self):
        return f"Topology({list(self._slots.values())})"
