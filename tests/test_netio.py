import io

import dns.message
import dns.rdatatype
import pytest

from mosdns.netio import (
    read_msg_from_tcp,
    read_msg_from_udp,
    read_raw_msg_from_tcp,
    write_msg_to_tcp,
    write_msg_to_udp,
    write_raw_msg_to_tcp,
)


def query():
    return dns.message.make_query("example.com.", dns.rdatatype.A)


def test_raw_tcp_framing():
    stream = io.BytesIO()
    n = write_raw_msg_to_tcp(stream, b"abc")
    assert n == len(b"abc") + 2
    assert stream.getvalue() == b"\x00\x03abc"


def test_raw_tcp_round_trip():
    stream = io.BytesIO()
    write_raw_msg_to_tcp(stream, b"first")
    write_raw_msg_to_tcp(stream, b"second")
    stream.seek(0)
    assert read_raw_msg_from_tcp(stream) == b"first"
    assert read_raw_msg_from_tcp(stream) == b"second"
    with pytest.raises(EOFError):
        read_raw_msg_from_tcp(stream)


def test_raw_tcp_zero_length():
    with pytest.raises(ValueError, match="zero length"):
        read_raw_msg_from_tcp(io.BytesIO(b"\x00\x00"))


def test_raw_tcp_truncated():
    with pytest.raises(EOFError):
        read_raw_msg_from_tcp(io.BytesIO(b"\x00\x05ab"))
    with pytest.raises(EOFError):
        read_raw_msg_from_tcp(io.BytesIO(b"\x00"))


def test_raw_tcp_too_large():
    stream = io.BytesIO()
    with pytest.raises(ValueError):
        write_raw_msg_to_tcp(stream, bytes(65536))
    assert stream.getvalue() == b""


def test_msg_tcp_round_trip():
    q = query()
    stream = io.BytesIO()
    n = write_msg_to_tcp(stream, q)
    assert n == len(q.to_wire()) + 2
    stream.seek(0)
    assert read_msg_from_tcp(stream) == q


def test_msg_tcp_garbage():
    stream = io.BytesIO()
    write_raw_msg_to_tcp(stream, b"abc")
    stream.seek(0)
    with pytest.raises(ValueError, match="616263"):
        read_msg_from_tcp(stream)


def test_msg_udp_round_trip_with_small_buffer():
    q = query()
    stream = io.BytesIO()
    assert write_msg_to_udp(stream, q) == len(q.to_wire())
    assert stream.getvalue() == q.to_wire()
    stream.seek(0)
    # A buffer below the minimum message size is raised to it.
    assert read_msg_from_udp(stream, 10) == q


def test_msg_udp_empty():
    with pytest.raises(EOFError):
        read_msg_from_udp(io.BytesIO(b""), 512)