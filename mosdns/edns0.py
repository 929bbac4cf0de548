"""EDNS0 helpers: OPT record, option, client-subnet and padding handling."""

from __future__ import annotations

import ipaddress

import dns.edns
import dns.message
import dns.rrset

MIN_MSG_SIZE = 512
_OPTION_HEADER_LEN = 4
_OPT_RR_LEN = 11

ECS_CODE = dns.edns.OptionType.ECS
PADDING_CODE = dns.edns.OptionType.PADDING


def _set_options(msg: dns.message.Message, options: list[dns.edns.Option]) -> None:
    """Replace the EDNS0 options of msg, keeping its other EDNS0 settings."""
    msg.use_edns(
        msg.edns,
        ednsflags=msg.ednsflags,
        payload=msg.payload,
        request_payload=msg.request_payload,
        options=options,
        pad=msg.pad,
    )


def _padding(length: int) -> dns.edns.GenericOption:
    return dns.edns.GenericOption(PADDING_CODE, bytes(length))


def _find_option(msg: dns.message.Message, code: int) -> int | None:
    for index, option in enumerate(msg.options):
        if option.otype == code:
            return index
    return None


def upgrade_edns0(msg: dns.message.Message) -> dns.rrset.RRset:
    """Enable EDNS0 on msg with a 512-byte UDP size and return its OPT record."""
    msg.use_edns(0, payload=MIN_MSG_SIZE)
    return msg.opt


def remove_edns0(msg: dns.message.Message) -> None:
    """Remove the OPT record from msg."""
    msg.use_edns(False)


def remove_edns0_option(msg: dns.message.Message, code: int) -> None:
    """Remove the first EDNS0 option of the given code, if any."""
    if msg.opt is None:
        return
    index = _find_option(msg, code)
    if index is None:
        return
    options = list(msg.options)
    del options[index]
    _set_options(msg, options)


def get_edns0_option(msg: dns.message.Message, code: int) -> dns.edns.Option | None:
    """Return the first EDNS0 option of the given code, or None."""
    index = _find_option(msg, code)
    return None if index is None else msg.options[index]


def get_msg_ecs(msg: dns.message.Message) -> dns.edns.ECSOption | None:
    """Return the client-subnet option of msg, or None."""
    return get_edns0_option(msg, ECS_CODE)


def remove_msg_ecs(msg: dns.message.Message) -> None:
    """Remove the client-subnet option of msg, if any."""
    remove_edns0_option(msg, ECS_CODE)


def add_ecs(msg: dns.message.Message, ecs: dns.edns.ECSOption, overwrite: bool = False) -> bool:
    """Add ecs to msg. Return True if msg had no client-subnet option before."""
    if msg.opt is None:
        raise ValueError("message has no EDNS0 record")
    index = _find_option(msg, ECS_CODE)
    if index is not None:
        if overwrite:
            options = list(msg.options)
            options[index] = ecs
            _set_options(msg, options)
        return False
    _set_options(msg, [*msg.options, ecs])
    return True


def new_edns0_subnet(
    ip: str | bytes | ipaddress.IPv4Address | ipaddress.IPv6Address,
    mask: int,
    v6: bool,
) -> dns.edns.ECSOption:
    """Build a client-subnet option for a query (scope prefix length 0)."""
    addr = ipaddress.ip_address(ip)
    if v6 and addr.version == 4:
        addr = ipaddress.IPv6Address(f"::ffff:{addr}")
    elif not v6 and addr.version == 6:
        mapped = addr.ipv4_mapped
        if mapped is None:
            raise ValueError(f"{addr} is not an IPv4 address")
        addr = mapped
    return dns.edns.ECSOption(str(addr), srclen=mask, scopelen=0)


def pad_to_minimum(msg: dns.message.Message, min_len: int) -> tuple[bool, bool]:
    """Pad msg to at least min_len bytes on the wire.

    Returns (upgraded, new_padding): whether msg was upgraded to EDNS0 and
    whether the padding option is new to msg.
    """
    length = len(msg.to_wire())
    if length >= min_len:
        return False, False

    if msg.opt is not None:
        options = list(msg.options)
        index = _find_option(msg, PADDING_CODE)
        if index is not None:
            padding_len = min_len - length + len(options[index].to_wire())
            if padding_len < 0:
                return False, False
            options[index] = _padding(padding_len)
            _set_options(msg, options)
            return False, False
        padding_len = min_len - _OPTION_HEADER_LEN - length
        if padding_len < 0:
            return False, False
        options.append(_padding(padding_len))
        _set_options(msg, options)
        return False, True

    padding_len = min_len - _OPTION_HEADER_LEN - _OPT_RR_LEN - length
    if padding_len < 0:
        return False, False
    upgrade_edns0(msg)
    _set_options(msg, [_padding(padding_len)])
    return True, True