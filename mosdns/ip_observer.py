"""Observers notified of client IP addresses."""

from __future__ import annotations

import abc
import ipaddress
from dataclasses import dataclass

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class IPObserver(abc.ABC):
    """Something that wants to be told about client addresses."""

    @abc.abstractmethod
    def observe(self, addr: IPAddress) -> None:
        """Notify the observer of addr, which must be a valid address."""


@dataclass(frozen=True)
class NopObserver(IPObserver):
    """An observer that ignores every address."""

    def observe(self, addr: IPAddress) -> None:
        return None