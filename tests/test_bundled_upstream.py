import asyncio

import dns.message
import dns.rcode
import pytest

from mosdns.bundled_upstream import AllUpstreamsFailed, Upstream, exchange_parallel


class UpErr(Exception):
    pass


class FakeUpstream(Upstream):
    def __init__(self, response=None, error=None, delay=0.0, trusted=False, address="fake"):
        self._response = response
        self._error = error
        self._delay = delay
        self._trusted = trusted
        self._address = address
        self.received = []

    @property
    def trusted(self):
        return self._trusted

    @property
    def address(self):
        return self._address

    async def exchange(self, query):
        self.received.append(query)
        await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._response


def _query():
    return dns.message.make_query("example.com.", "A")


def _response(query, rcode=dns.rcode.NOERROR):
    r = dns.message.make_response(query)
    r.set_rcode(rcode)
    return r


@pytest.mark.asyncio
async def test_single_upstream_result_returned_as_is():
    q = _query()
    bad = _response(q, dns.rcode.SERVFAIL)
    assert await exchange_parallel(q, [FakeUpstream(response=bad)]) is bad


@pytest.mark.asyncio
async def test_single_upstream_error_raised():
    with pytest.raises(UpErr):
        await exchange_parallel(_query(), [FakeUpstream(error=UpErr())])


@pytest.mark.asyncio
async def test_failed_upstream_skipped():
    q = _query()
    good = _response(q)
    ups = [FakeUpstream(error=UpErr()), FakeUpstream(response=good, delay=0.01)]
    assert await exchange_parallel(q, ups) is good


@pytest.mark.asyncio
async def test_untrusted_error_rcode_skipped():
    q = _query()
    bad = _response(q, dns.rcode.SERVFAIL)
    good = _response(q)
    ups = [FakeUpstream(response=bad), FakeUpstream(response=good, delay=0.01)]
    assert await exchange_parallel(q, ups) is good


@pytest.mark.asyncio
async def test_trusted_error_rcode_accepted():
    q = _query()
    bad = _response(q, dns.rcode.SERVFAIL)
    good = _response(q)
    ups = [FakeUpstream(response=bad, trusted=True), FakeUpstream(response=good, delay=0.2)]
    assert await exchange_parallel(q, ups) is bad


@pytest.mark.asyncio
async def test_all_failed():
    q = _query()
    ups = [
        FakeUpstream(error=UpErr()),
        FakeUpstream(response=None),
        FakeUpstream(response=_response(q, dns.rcode.REFUSED)),
    ]
    with pytest.raises(AllUpstreamsFailed):
        await exchange_parallel(q, ups)


@pytest.mark.asyncio
async def test_no_upstreams():
    with pytest.raises(AllUpstreamsFailed):
        await exchange_parallel(_query(), [])


@pytest.mark.asyncio
async def test_upstreams_share_a_copy_of_the_query():
    q = _query()
    a = FakeUpstream(response=_response(q))
    b = FakeUpstream(response=_response(q))
    await exchange_parallel(q, [a, b])
    assert a.received[0] is b.received[0]
    assert a.received[0] is not q
    assert a.received[0].id == q.id
    assert a.received[0].question == q.question