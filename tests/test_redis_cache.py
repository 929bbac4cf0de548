import time

import pytest

from mosdns.redis_cache import (
    KV,
    RedisCache,
    RedisCacheOptions,
    pack_redis_data,
    unpack_redis_value,
)


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def set(self, key, value, px=None):
        self.ops.append((key, value, px))

    def execute(self):
        for key, value, px in self.ops:
            self.client.set(key, value, px=px)
        return [True] * len(self.ops)


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.px = {}
        self.get_calls = 0
        self.fail_get = False

    def get(self, key):
        self.get_calls += 1
        if self.fail_get:
            raise ConnectionError("down")
        return self.data.get(key)

    def set(self, key, value, px=None):
        self.data[key] = value
        self.px[key] = px

    def ping(self):
        return True

    def dbsize(self):
        return len(self.data)

    def pipeline(self):
        return FakePipeline(self)


def test_redis_value_round_trip():
    stored = time.time()
    expiration = stored + 1
    value = bytes(1024)
    data = pack_redis_data(stored, expiration, value)
    got_stored, got_expiration, got_value = unpack_redis_value(data)
    assert got_stored == int(stored)
    assert got_expiration == int(expiration)
    assert got_value == value


def test_pack_layout():
    assert pack_redis_data(1, 2, b"x") == (1).to_bytes(8, "big") + (2).to_bytes(8, "big") + b"x"


def test_unpack_too_short():
    with pytest.raises(ValueError, match="too short"):
        unpack_redis_value(b"\x00" * 15)


def test_options_require_client():
    with pytest.raises(ValueError, match="nil client"):
        RedisCacheOptions(client=None)


def test_options_default_timeout():
    assert RedisCacheOptions(client=FakeRedis(), client_timeout=0).client_timeout == 1.0


def test_store_and_get():
    client = FakeRedis()
    cache = RedisCache(RedisCacheOptions(client=client))
    now = time.time()
    cache.store("k", b"value", now, now + 60)
    assert 0 < client.px["k"] <= 60_000
    got = cache.get("k")
    assert got.value == b"value"
    assert got.stored_time == int(now)
    assert got.expiration_time == int(now + 60)
    assert cache.get("missing") is None
    assert len(cache) == 1
    cache.close()


def test_expired_store_skipped():
    client = FakeRedis()
    cache = RedisCache(RedisCacheOptions(client=client))
    now = time.time()
    cache.store("k", b"v", now, now - 1)
    assert client.data == {}
    cache.close()


def test_bad_data_returns_none():
    client = FakeRedis()
    client.data["k"] = b"short"
    cache = RedisCache(RedisCacheOptions(client=client))
    assert cache.get("k") is None
    assert not cache.disabled
    cache.close()


def test_batch_store():
    client = FakeRedis()
    cache = RedisCache(RedisCacheOptions(client=client))
    now = time.time()
    cache.batch_store(
        [
            KV("a", b"1", now, now + 60),
            KV("b", b"2", now, now - 5),
            KV("c", b"3", now, now + 60),
        ]
    )
    assert sorted(client.data) == ["a", "c"]
    assert cache.get("c").value == b"3"
    cache.close()


def test_error_disables_then_recovers():
    client = FakeRedis()
    client.fail_get = True
    cache = RedisCache(RedisCacheOptions(client=client))
    assert cache.get("k") is None
    assert cache.disabled
    calls = client.get_calls
    assert cache.get("k") is None
    assert client.get_calls == calls

    client.fail_get = False
    for _ in range(100):
        if not cache.disabled:
            break
        time.sleep(0.05)
    assert not cache.disabled
    cache.close()


def test_close_calls_closer():
    closed = []
    cache = RedisCache(RedisCacheOptions(client=FakeRedis(), client_closer=lambda: closed.append(1)))
    cache.close()
    assert closed == [1]