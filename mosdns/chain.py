"""Executable chains: the nodes a query passes through, and matchers."""

from __future__ import annotations

import abc
import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import dns.message

from mosdns.msgutils import qclass_to_string, qtype_to_string

NOP_LOGGER = logging.getLogger("mosdns.nop")
NOP_LOGGER.addHandler(logging.NullHandler())
NOP_LOGGER.propagate = False

_query_ids = itertools.count(1)


def _copy_message(msg: dns.message.Message | None) -> dns.message.Message | None:
    if msg is None:
        return None
    return dns.message.from_wire(msg.to_wire())


@dataclass(eq=False)
class QueryContext:
    """A query being handled, together with its response once there is one."""

    query: dns.message.Message
    client_addr: Any = None
    response: dns.message.Message | None = None
    id: int = field(default_factory=lambda: next(_query_ids))
    start_time: float = field(default_factory=time.monotonic)

    def copy(self) -> QueryContext:
        """Return an independent copy with copied messages and the same id."""
        return QueryContext(
            query=_copy_message(self.query),
            client_addr=self.client_addr,
            response=_copy_message(self.response),
            id=self.id,
            start_time=self.start_time,
        )

    def info(self) -> dict[str, Any]:
        """Fields that identify this query in log entries."""
        fields: dict[str, Any] = {"uqid": self.id}
        if self.query.question:
            question = self.query.question[0]
            fields["qname"] = question.name.to_text()
            fields["qtype"] = qtype_to_string(question.rdtype)
            fields["qclass"] = qclass_to_string(question.rdclass)
        if self.client_addr is not None:
            fields["client"] = str(self.client_addr)
        return fields


class Executable(abc.ABC):
    """Something that acts on a query and then usually runs the next node."""

    @abc.abstractmethod
    async def exec(self, qctx: QueryContext, next: ChainNode | None) -> None:
        """Handle qctx; continue with next unless the chain should stop here."""


class Matcher(abc.ABC):
    """Something that tells whether a query matches a pattern."""

    @abc.abstractmethod
    async def match(self, qctx: QueryContext) -> bool:
        """Return whether qctx matches."""


class ChainNode(Executable):
    """An Executable that is also a node of a singly linked chain."""

    def __init__(self) -> None:
        self.next: ChainNode | None = None

    def link_next(self, node: ChainNode | None) -> None:
        self.next = node


class ExecutableNodeWrapper(ChainNode):
    """Turns a plain Executable into a ChainNode."""

    def __init__(self, executable: Executable) -> None:
        super().__init__()
        self.executable = executable

    async def exec(self, qctx: QueryContext, next: ChainNode | None) -> None:
        await self.executable.exec(qctx, next)


def wrap_executable(executable: Executable) -> ChainNode:
    """Return executable as a ChainNode, wrapping it if needed."""
    if isinstance(executable, ChainNode):
        return executable
    return ExecutableNodeWrapper(executable)


def last_node(node: ChainNode) -> ChainNode:
    """Return the last node of the chain starting at node."""
    while node.next is not None:
        node = node.next
    return node


async def exec_chain_node(qctx: QueryContext, node: ChainNode | None) -> None:
    """Run node (and, through it, the rest of its chain). None is a no-op."""
    if node is None:
        return
    await node.exec(qctx, node.next)


class NoResponseError(Exception):
    """No branch produced a response."""


@dataclass
class BranchResult:
    """The outcome of one concurrently run branch."""

    qctx: QueryContext
    error: BaseException | None
    source: int


_background: set[asyncio.Future] = set()


def _forget(task: asyncio.Future) -> None:
    _background.discard(task)
    if not task.cancelled():
        task.exception()


def _detach(task: asyncio.Future) -> None:
    _background.add(task)
    task.add_done_callback(_forget)


async def wait_first_response(
    qctx: QueryContext,
    results: Iterable[Awaitable[BranchResult | None]],
    logger: logging.Logger | None = None,
) -> None:
    """Take the response of the first branch that finishes with one.

    Branches that fail, finish without a response or yield None are
    skipped. Branches still running when a response arrives keep running
    in the background. Raises NoResponseError if no branch responds.
    """
    logger = logger or NOP_LOGGER
    tasks = [asyncio.ensure_future(result) for result in results]
    try:
        for finished in asyncio.as_completed(tasks):
            try:
                result = await finished
            except Exception as err:  # noqa: BLE001
                logger.warning("sequence failed", extra={"fields": {**qctx.info(), "error": str(err)}})
                continue
            if result is None:
                continue
            fields = {**qctx.info(), "sequence": result.source}
            if result.error is not None:
                logger.warning("sequence failed", extra={"fields": {**fields, "error": str(result.error)}})
                continue
            if result.qctx.response is not None:
                logger.debug("sequence returned a response", extra={"fields": fields})
                qctx.response = result.qctx.response
                return
            logger.debug("sequence returned with an empty response", extra={"fields": fields})
    finally:
        for task in tasks:
            if not task.done():
                _detach(task)
    raise NoResponseError("no response")


@dataclass
class DummyMatcher(Matcher):
    """A matcher with a fixed result, or a fixed error."""

    matched: bool = False
    error: BaseException | None = None

    async def match(self, qctx: QueryContext) -> bool:
        if self.error is not None:
            raise self.error
        return self.matched


@dataclass
class DummyExecutable(Executable):
    """An executable with a scripted behaviour, for building test chains.

    It sleeps for sleep seconds, then stops the chain if skip is set,
    raises error if set, sets response if set and otherwise continues.
    """

    skip: bool = False
    sleep: float = 0.0
    response: dns.message.Message | None = None
    error: BaseException | None = None

    async def exec(self, qctx: QueryContext, next: ChainNode | None) -> None:
        if self.sleep:
            await asyncio.sleep(self.sleep)
        if self.skip:
            return
        if self.error is not None:
            raise self.error
        if self.response is not None:
            qctx.response = self.response
        await exec_chain_node(qctx, next)


async def logical_and_matcher_group(qctx: QueryContext, matchers: Sequence[Matcher]) -> bool:
    """Return True if every matcher matches; False for an empty group."""
    if not matchers:
        return False
    for matcher in matchers:
        if not await matcher.match(qctx):
            return False
    return True