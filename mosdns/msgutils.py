"""Helpers for inspecting and building DNS messages."""

from __future__ import annotations

from collections.abc import Iterator

import dns.flags
import dns.message
import dns.name
import dns.opcode
import dns.rdataclass
import dns.rdatatype
import dns.rrset
from dns.rdtypes.ANY.SOA import SOA

FAKE_SOA_NS = "fake-ns.mosdns.fake.root."
FAKE_SOA_MBOX = "fake-mbox.mosdns.fake.root."
FAKE_SOA_TTL = 300


def _rrsets(msg: dns.message.Message) -> Iterator[dns.rrset.RRset]:
    """All rrsets of the answer, authority and additional sections but OPT."""
    for section in (msg.answer, msg.authority, msg.additional):
        for rrset in section:
            if rrset.rdtype != dns.rdatatype.OPT:
                yield rrset


def get_minimal_ttl(msg: dns.message.Message) -> int:
    """Return the smallest TTL in msg, or 0 if msg has no record."""
    return min((rrset.ttl for rrset in _rrsets(msg)), default=0)


def set_ttl(msg: dns.message.Message, ttl: int) -> None:
    """Set the TTL of every record in msg."""
    for rrset in _rrsets(msg):
        rrset.ttl = ttl


def apply_maximum_ttl(msg: dns.message.Message, ttl: int) -> None:
    """Lower every TTL above ttl to ttl."""
    for rrset in _rrsets(msg):
        if rrset.ttl > ttl:
            rrset.ttl = ttl


def apply_minimal_ttl(msg: dns.message.Message, ttl: int) -> None:
    """Raise every TTL below ttl to ttl."""
    for rrset in _rrsets(msg):
        if rrset.ttl < ttl:
            rrset.ttl = ttl


def subtract_ttl(msg: dns.message.Message, delta: int) -> bool:
    """Subtract delta from every TTL.

    A TTL not greater than delta becomes 1; the return value tells whether
    that happened to any record.
    """
    overflowed = False
    for rrset in _rrsets(msg):
        if rrset.ttl > delta:
            rrset.ttl -= delta
        else:
            rrset.ttl = 1
            overflowed = True
    return overflowed


def qclass_to_string(value: int) -> str:
    """Return the mnemonic of a query class, or its number."""
    text = dns.rdataclass.to_text(value)
    if text.startswith(("CLASS", "RESERVED")):
        return str(value)
    return text


def qtype_to_string(value: int) -> str:
    """Return the mnemonic of a query type, or its number."""
    text = dns.rdatatype.to_text(value)
    if text.startswith("TYPE"):
        return str(value)
    return text


def fake_soa(name: str | dns.name.Name) -> dns.rrset.RRset:
    """Return a placeholder SOA record for name."""
    if not isinstance(name, dns.name.Name):
        name = dns.name.from_text(name)
    rdata = SOA(
        dns.rdataclass.IN,
        dns.rdatatype.SOA,
        dns.name.from_text(FAKE_SOA_NS),
        dns.name.from_text(FAKE_SOA_MBOX),
        2021110400,
        1800,
        900,
        604800,
        86400,
    )
    return dns.rrset.from_rdata(name, FAKE_SOA_TTL, rdata)


def gen_empty_reply(query: dns.message.Message, rcode: int) -> dns.message.Message:
    """Build an empty reply to query with rcode and a fake SOA record."""
    reply = dns.message.Message(id=query.id)
    reply.flags = dns.flags.QR
    opcode = query.opcode()
    reply.set_opcode(opcode)
    if opcode == dns.opcode.QUERY:
        reply.flags |= query.flags & (dns.flags.RD | dns.flags.CD)
    reply.question = list(query.question[:1])
    reply.set_rcode(rcode)
    reply.flags |= dns.flags.RA

    name = query.question[0].name if len(query.question) > 1 else dns.name.root
    reply.authority = [fake_soa(name)]
    return reply


def get_msg_key(msg: dns.message.Message, salt: int) -> bytes:
    """Return the wire form of msg with its id replaced by the 16-bit salt."""
    wire = msg.to_wire()
    return salt.to_bytes(2, "big") + wire[2:]


def get_msg_key_with_bytes_salt(msg: dns.message.Message, salt: bytes) -> bytes:
    """Return the wire form of msg with a zero id, followed by salt."""
    wire = msg.to_wire()
    return b"\x00\x00" + wire[2:] + bytes(salt)


def get_msg_key_with_int64_salt(msg: dns.message.Message, salt: int) -> bytes:
    """Like get_msg_key_with_bytes_salt, with salt as a big-endian int64."""
    return get_msg_key_with_bytes_salt(msg, salt.to_bytes(8, "big", signed=True))