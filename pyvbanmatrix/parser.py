import math
import re
from typing import Optional

from pyvbanmatrix.exceptions import ReplyParseError

# Matrix replies are loose ASCII, echoing the request with the value after '='
# Any reply containing "Err" is an error report, e.g. "Slot(WIN9).Info = Err: unknown SUID;"
ERROR_MARKER = re.compile(r"err", re.IGNORECASE)

# Slot info reply: "Slot(WIN1).Info = In:2,Out:2;"
INFO_RESPONSE = re.compile(r"In:\s*(\d+)\s*,\s*Out:\s*(\d+)", re.IGNORECASE)

# Sub-slot info replies only carry one meaningful side: "Slot(WIN1.IN).Info = In:2,Out:0;"
INPUT_COUNT_RESPONSE = re.compile(r"In:\s*(\d+)", re.IGNORECASE)
OUTPUT_COUNT_RESPONSE = re.compile(r"Out:\s*(\d+)", re.IGNORECASE)

# Name reply: 'Input(WIN1.IN[1]).Name = "PC-01 (L)";'
QUOTED_NAME = re.compile(r'"([^"]*)"')
EMPTY_NAME = re.compile(r'Name\s*=\s*""', re.IGNORECASE)

# Structural tokens stripped from unquoted name replies
NAME_NOISE = re.compile(
    r'\bInput\b|\bOutput\b|\(.*?\)|\bName\b|[=;"]|\b(?:WIN|VBAN|VAIO)\d+\b|\bOUT\b|\bIN\b',
    re.IGNORECASE,
)

INFINITY_TOKEN = re.compile(r"inf", re.IGNORECASE)


def is_error(reply: Optional[str]) -> bool:
    return not reply or ERROR_MARKER.search(reply) is not None


def parse_info(reply: Optional[str]) -> Optional[tuple[int, int]]:
    """Return (inputs, outputs) from a slot info reply, or None."""
    if is_error(reply):
        return None
    match = INFO_RESPONSE.search(reply)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_input_count(reply: Optional[str]) -> int:
    """Input count from a sub-slot info reply; 0 when absent."""
    if is_error(reply):
        return 0
    match = INPUT_COUNT_RESPONSE.search(reply)
    return int(match.group(1)) if match else 0


def parse_output_count(reply: Optional[str]) -> int:
    """Output count from a sub-slot info reply; 0 when absent."""
    if is_error(reply):
        return 0
    match = OUTPUT_COUNT_RESPONSE.search(reply)
    return int(match.group(1)) if match else 0


def parse_name(reply: Optional[str]) -> str:
    """Extract a channel name from a name reply.

    The quoted value wins. Without quotes, structural tokens (directions,
    parenthetical addresses, '=' ';' and slot tags) are stripped and whatever
    remains is the name. An empty string means "no usable name".
    """
    if not reply:
        return ""
    match = QUOTED_NAME.search(reply)
    if match:
        return match.group(1).strip()
    if EMPTY_NAME.search(reply) or is_error(reply):
        return ""
    return NAME_NOISE.sub("", reply).strip(" \t\r\n.,")


def _values(reply: str) -> list[str]:
    if is_error(reply):
        raise ReplyParseError(f"Device returned an error: {reply}")
    rhs = reply.split("=")[-1].strip()
    if rhs.endswith(";"):
        rhs = rhs[:-1]
    return [token.strip() for token in rhs.split(",") if token.strip()]


def parse_gain_list(reply: str) -> list[float]:
    """Parse '... .dBGain = -inf, -6.0;' into per-subchannel gains.

    Infinity tokens map to negative infinity (no route).
    """
    gains = []
    for token in _values(reply):
        if INFINITY_TOKEN.search(token):
            gains.append(-math.inf)
            continue
        try:
            gain = float(token)
        except ValueError:
            gain = math.nan
        if math.isnan(gain):
            raise ReplyParseError(f"Invalid gain value '{token}' in reply: {reply}")
        gains.append(gain)
    return gains


def parse_mute_list(reply: str) -> list[int]:
    """Parse '... .Mute = 0, 1;' into per-subchannel 0/1 flags."""
    try:
        return [int(token) for token in _values(reply)]
    except ValueError:
        raise ReplyParseError(f"Invalid mute value in reply: {reply}") from None
