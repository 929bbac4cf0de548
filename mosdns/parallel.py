"""A chain node that runs several branches at once."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable

from mosdns.chain import (
    NOP_LOGGER,
    BranchResult,
    ChainNode,
    Executable,
    QueryContext,
    exec_chain_node,
    wait_first_response,
)

DEFAULT_PARALLEL_TIMEOUT = 5.0  # seconds


async def run_branch(
    qctx: QueryContext,
    work: Awaitable[None],
    source: int,
    timeout: float,
) -> BranchResult:
    """Await work within timeout seconds and report its outcome for qctx."""
    try:
        await asyncio.wait_for(work, timeout)
    except Exception as err:  # noqa: BLE001
        return BranchResult(qctx, err, source)
    return BranchResult(qctx, None, source)


class ParallelNode(Executable):
    """Runs every branch on its own copy of the query and keeps the first response.

    Each branch gets timeout seconds; a non-positive timeout selects the
    default of five seconds. Raises NoResponseError if no branch responds.
    """

    def __init__(
        self,
        branches: Iterable[ChainNode] = (),
        timeout: float = 0.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.branches: list[ChainNode] = list(branches)
        self.timeout = timeout
        self._logger = logger or NOP_LOGGER

    async def exec(self, qctx: QueryContext, next: ChainNode | None) -> None:
        await self._exec(qctx)
        await exec_chain_node(qctx, next)

    async def _exec(self, qctx: QueryContext) -> None:
        if not self.branches:
            return
        timeout = self.timeout if self.timeout > 0 else DEFAULT_PARALLEL_TIMEOUT
        runs = []
        for index, branch in enumerate(self.branches):
            branch_qctx = qctx.copy()
            runs.append(
                run_branch(branch_qctx, exec_chain_node(branch_qctx, branch), index, timeout)
            )
        await wait_first_response(qctx, runs, self._logger)