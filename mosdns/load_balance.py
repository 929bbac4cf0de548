"""A chain node that spreads queries over its branches in turn."""

from __future__ import annotations

import itertools
from collections.abc import Iterable

from mosdns.chain import ChainNode, QueryContext, exec_chain_node, last_node


class LBNode(ChainNode):
    """Runs one branch per query, round robin, starting with the second.

    Every branch is linked to the node that follows this one.
    """

    def __init__(self, branches: Iterable[ChainNode] = ()) -> None:
        super().__init__()
        self.branches: list[ChainNode] = list(branches)
        self._picks = itertools.count(1)

    def link_next(self, node: ChainNode | None) -> None:
        self.next = node
        for branch in self.branches:
            last_node(branch).link_next(node)

    def _pick(self) -> int:
        return next(self._picks) % len(self.branches)

    async def exec(self, qctx: QueryContext, next: ChainNode | None) -> None:
        if not self.branches:
            await exec_chain_node(qctx, next)
            return
        index = self._pick()
        try:
            await exec_chain_node(qctx, self.branches[index])
        except Exception as err:
            err.add_note(f"command sequence #{index}")
            raise