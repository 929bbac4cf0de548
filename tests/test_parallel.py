import asyncio

import dns.message
import pytest

from mosdns.chain import (
    DummyExecutable,
    NoResponseError,
    QueryContext,
    exec_chain_node,
    wrap_executable,
)
from mosdns.parallel import ParallelNode, run_branch

R1 = dns.message.Message()
R2 = dns.message.Message()
ER = RuntimeError("")


def _qctx() -> QueryContext:
    return QueryContext(query=dns.message.Message())


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "r1, e1, r2, e2, want_r, want_err",
    [
        (None, ER, None, ER, None, True),
        (None, None, None, None, None, True),
        (R1, None, None, None, R1, False),
        (R1, None, None, ER, R1, False),
        (None, None, R2, None, R2, False),
        (None, ER, R2, None, R2, False),
    ],
    ids=["failed1", "failed2", "p1_resp1", "p1_resp2", "p2_resp1", "p2_resp2"],
)
async def test_parallel_node(r1, e1, r2, e2, want_r, want_err):
    p1 = DummyExecutable(response=r1, error=e1)
    p2 = DummyExecutable(response=r2, error=e2)
    node = ParallelNode([wrap_executable(p1), wrap_executable(p2)])
    qctx = _qctx()
    if want_err:
        with pytest.raises(NoResponseError):
            await exec_chain_node(qctx, wrap_executable(node))
    else:
        await exec_chain_node(qctx, wrap_executable(node))
    assert qctx.response is want_r


@pytest.mark.asyncio
async def test_parallel_node_continues_with_next():
    node = wrap_executable(ParallelNode([wrap_executable(DummyExecutable(response=R1))]))
    node.link_next(wrap_executable(DummyExecutable(response=R2)))
    qctx = _qctx()
    await exec_chain_node(qctx, node)
    assert qctx.response is R2


@pytest.mark.asyncio
async def test_empty_parallel_node_just_continues():
    node = wrap_executable(ParallelNode([]))
    node.link_next(wrap_executable(DummyExecutable(response=R1)))
    qctx = _qctx()
    await exec_chain_node(qctx, node)
    assert qctx.response is R1


@pytest.mark.asyncio
async def test_parallel_branch_timeout_counts_as_failure():
    slow = DummyExecutable(sleep=0.2, response=R1)
    node = ParallelNode([wrap_executable(slow)], timeout=0.05)
    qctx = _qctx()
    with pytest.raises(NoResponseError):
        await node.exec(qctx, None)
    assert qctx.response is None


@pytest.mark.asyncio
async def test_run_branch_reports_error_and_source():
    qctx = _qctx()
    result = await run_branch(qctx, DummyExecutable(error=ER).exec(qctx, None), 7, 1.0)
    assert result.error is ER
    assert result.source == 7
    assert result.qctx is qctx


@pytest.mark.asyncio
async def test_run_branch_timeout():
    qctx = _qctx()
    result = await run_branch(qctx, asyncio.sleep(1), 3, 0.01)
    assert isinstance(result.error, TimeoutError)
    assert result.source == 3
    assert result.qctx is qctx
    assert result.qctx.response is None