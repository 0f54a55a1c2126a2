import struct

from pyvbanmatrix.exceptions import ReplyParseError

# VBAN packets start with a 28 byte header:
# 'VBAN' | sub-protocol + rate | samples | channels | format | stream name[16] | frame counter
# Text packets use sub-protocol 0x40 and the rate bits select the (unused) baud rate.
VBAN_MAGIC = b"VBAN"
VBAN_HEADER = struct.Struct("<4sBBBB16sI")
VBAN_HEADER_SIZE = VBAN_HEADER.size  # 28

VBAN_PROTOCOL_TXT = 0x40
VBAN_PROTOCOL_MASK = 0xE0
VBAN_DATATYPE_BYTE8 = 0x00
VBAN_TXT_UTF8 = 0x10

STREAM_NAME_SIZE = 16


def encode_text_packet(text: str, stream_name: str, frame_counter: int = 0) -> bytes:
    """Frame a text command as a VBAN-TEXT packet.

    Args:
        text: Command string, e.g. 'Point(WIN1.IN[1],WIN1.OUT[1]).dBGain = ?'
        stream_name: Stream tag the receiver filters on (max 16 bytes)
        frame_counter: Packet counter, wraps at 32 bits
    """
    name = stream_name.encode("ascii")
    if len(name) > STREAM_NAME_SIZE:
        raise ValueError(f"Stream name '{stream_name}' is longer than {STREAM_NAME_SIZE} bytes")
    header = VBAN_HEADER.pack(
        VBAN_MAGIC,
        VBAN_PROTOCOL_TXT,
        0,
        0,
        VBAN_DATATYPE_BYTE8 | VBAN_TXT_UTF8,
        name.ljust(STREAM_NAME_SIZE, b"\x00"),
        frame_counter & 0xFFFFFFFF,
    )
    return header + text.encode("utf-8")


def decode_text_packet(data: bytes) -> tuple[str, str]:
    """Split a received VBAN packet into (stream_name, text)."""
    if len(data) < VBAN_HEADER_SIZE:
        raise ReplyParseError(f"Packet too short for a VBAN header: {len(data)} bytes")
    magic, _protocol, _samples, _channels, _fmt, name, _counter = VBAN_HEADER.unpack_from(data)
    if magic != VBAN_MAGIC:
        raise ReplyParseError(f"Not a VBAN packet: {data[:4]!r}")
    stream_name = name.rstrip(b"\x00").decode("ascii", errors="ignore")
    text = data[VBAN_HEADER_SIZE:].decode("utf-8", errors="replace").replace("\x00", "")
    return stream_name, text
