"""Answering A and AAAA queries from a hosts table."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Protocol

import dns.flags
import dns.message
import dns.opcode
import dns.rdataclass
import dns.rdatatype
import dns.rrset

from mosdns.msgutils import fake_soa

HOSTS_TTL = 10


@dataclass
class IPs:
    """The addresses of one host."""

    ipv4: list[ipaddress.IPv4Address] = field(default_factory=list)
    ipv6: list[ipaddress.IPv6Address] = field(default_factory=list)


class HostsMatcher(Protocol):
    """Finds the IPs of a fully qualified domain name, or None."""

    def match(self, fqdn: str) -> IPs | None: ...


def parse_ips(s: str) -> tuple[str, IPs]:
    """Parse a hosts line "pattern ip ip ..." into (pattern, IPs)."""
    fields = s.split()
    if not fields:
        raise ValueError("empty string")
    pattern, *addresses = fields
    ips = IPs()
    for text in addresses:
        try:
            ip = ipaddress.ip_address(text)
        except ValueError as err:
            raise ValueError(f"invalid ip addr {text}, {err}") from err
        if ip.version == 4:
            ips.ipv4.append(ip)
        else:
            ips.ipv6.append(ip)
    return pattern, ips


class Hosts:
    """A hosts table backed by a domain matcher."""

    def __init__(self, matcher: HostsMatcher) -> None:
        self._matcher = matcher

    def lookup(self, fqdn: str) -> tuple[list[ipaddress.IPv4Address], list[ipaddress.IPv6Address]]:
        """Return the (ipv4, ipv6) addresses of fqdn; both empty if unknown."""
        ips = self._matcher.match(fqdn)
        if ips is None:
            return [], []
        return list(ips.ipv4), list(ips.ipv6)

    def lookup_msg(self, msg: dns.message.Message) -> dns.message.Message | None:
        """Answer an A or AAAA query from the table, or return None."""
        if len(msg.question) != 1:
            return None
        question = msg.question[0]
        qtype = question.rdtype
        if question.rdclass != dns.rdataclass.IN or qtype not in (
            dns.rdatatype.A,
            dns.rdatatype.AAAA,
        ):
            return None

        ipv4, ipv6 = self.lookup(question.name.to_text())
        if not ipv4 and not ipv6:
            return None

        reply = dns.message.Message(id=msg.id)
        opcode = msg.opcode()
        reply.flags = dns.flags.QR | dns.flags.RA
        reply.set_opcode(opcode)
        if opcode == dns.opcode.QUERY:
            reply.flags |= msg.flags & (dns.flags.RD | dns.flags.CD)
        reply.question = [question]

        addresses = ipv4 if qtype == dns.rdatatype.A else ipv6
        if addresses:
            reply.answer = [
                dns.rrset.from_text_list(
                    question.name,
                    HOSTS_TTL,
                    dns.rdataclass.IN,
                    qtype,
                    [str(ip) for ip in addresses],
                )
            ]
        else:
            reply.authority = [fake_soa(question.name)]
        return reply