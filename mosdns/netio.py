"""Reading and writing DNS messages over byte streams.

TCP framing follows RFC 1035: each message is prefixed with a two-byte
big-endian length.
"""

from __future__ import annotations

from typing import BinaryIO

import dns.exception
import dns.message

MAX_MSG_SIZE = 65535
MIN_MSG_SIZE = 512


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            break
        data += chunk
    if len(data) < size:
        if not data:
            raise EOFError("end of stream")
        raise EOFError(f"unexpected end of stream: got {len(data)} of {size} bytes")
    return bytes(data)


def _unpack(data: bytes) -> dns.message.Message:
    try:
        return dns.message.from_wire(data)
    except (dns.exception.DNSException, ValueError) as err:
        raise ValueError(f"failed to unpack msg [{data.hex()}], {err}") from err


def read_raw_msg_from_tcp(stream: BinaryIO) -> bytes:
    """Read one length-prefixed message and return its payload."""
    header = _read_exactly(stream, 2)
    length = int.from_bytes(header, "big")
    if length == 0:
        raise ValueError("zero length msg")
    return _read_exactly(stream, length)


def read_msg_from_tcp(stream: BinaryIO) -> dns.message.Message:
    """Read and parse one length-prefixed message."""
    return _unpack(read_raw_msg_from_tcp(stream))


def write_raw_msg_to_tcp(stream: BinaryIO, data: bytes) -> int:
    """Write data with its length prefix; return the number of bytes written."""
    if len(data) > MAX_MSG_SIZE:
        raise ValueError(f"payload length {len(data)} is greater than dns max msg size")
    frame = len(data).to_bytes(2, "big") + bytes(data)
    written = stream.write(frame)
    return len(frame) if written is None else written


def write_msg_to_tcp(stream: BinaryIO, msg: dns.message.Message) -> int:
    """Pack msg and write it with its length prefix."""
    return write_raw_msg_to_tcp(stream, msg.to_wire())


def write_msg_to_udp(stream: BinaryIO, msg: dns.message.Message) -> int:
    """Pack msg and write it as one datagram."""
    wire = msg.to_wire()
    written = stream.write(wire)
    return len(wire) if written is None else written


def read_msg_from_udp(stream: BinaryIO, buf_size: int = MIN_MSG_SIZE) -> dns.message.Message:
    """Read one datagram of at most buf_size bytes (at least 512) and parse it."""
    data = stream.read(max(buf_size, MIN_MSG_SIZE))
    if not data:
        raise EOFError("end of stream")
    return _unpack(data)