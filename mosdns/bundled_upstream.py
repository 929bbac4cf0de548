"""Querying several upstreams at once and taking the first good answer."""

from __future__ import annotations

import abc
import asyncio
import logging
from collections.abc import Iterable

import dns.message
import dns.rcode

from mosdns.chain import NOP_LOGGER


class Upstream(abc.ABC):
    """A DNS server that queries can be sent to."""

    @abc.abstractmethod
    async def exchange(self, query: dns.message.Message) -> dns.message.Message:
        """Send query and return the response; raise on failure."""

    @property
    @abc.abstractmethod
    def trusted(self) -> bool:
        """Whether responses are accepted whatever their rcode."""

    @property
    @abc.abstractmethod
    def address(self) -> str:
        """The address of the upstream, for logging."""


class AllUpstreamsFailed(Exception):
    """No upstream returned an acceptable response."""


async def exchange_parallel(
    query: dns.message.Message,
    upstreams: Iterable[Upstream],
    logger: logging.Logger | None = None,
) -> dns.message.Message:
    """Send query to every upstream and return the first acceptable response.

    A response is acceptable if it comes from a trusted upstream or has
    rcode NOERROR. With a single upstream its result is returned as is.
    Upstreams still running when a response is accepted are cancelled.
    """
    logger = logger or NOP_LOGGER
    upstreams = list(upstreams)
    if len(upstreams) == 1:
        return await upstreams[0].exchange(query)

    shared_query = dns.message.from_wire(query.to_wire())

    async def attempt(upstream: Upstream):
        try:
            return upstream, await upstream.exchange(shared_query), None
        except Exception as err:  # noqa: BLE001
            return upstream, None, err

    tasks = [asyncio.ensure_future(attempt(u)) for u in upstreams]
    try:
        for finished in asyncio.as_completed(tasks):
            upstream, response, error = await finished
            if error is not None:
                logger.warning(
                    "upstream err",
                    extra={"fields": {"addr": upstream.address, "error": str(error)}},
                )
                continue
            if response is None:
                continue
            if upstream.trusted or response.rcode() == dns.rcode.NOERROR:
                return response
    finally:
        for task in tasks:
            task.cancel()
    raise AllUpstreamsFailed("all upstreams failed")