import threading
import time

from mosdns.mem_cache import CachedValue, MemCache


def test_mem_cache_store_get_and_bound():
    with MemCache(1024, 0) as cache:
        for i in range(128):
            key = str(i)
            now = time.time()
            cache.store(key, bytes([i]), now, now + 0.2)
            got = cache.get(key)
            assert got is not None
            assert got.value[0] == i

        for i in range(1024 * 4):
            now = time.time()
            cache.store(str(i), b"", now, now + 0.2)

        assert len(cache) <= 1024


def test_mem_cache_cleaner():
    with MemCache(1024, 0.01) as cache:
        for i in range(64):
            now = time.time()
            cache.store(str(i), b"", now, now + 0.01)
        time.sleep(0.1)
        assert len(cache) == 0


def test_mem_cache_race():
    with MemCache(1024, -1) as cache:
        errors = []

        def worker():
            try:
                for i in range(256):
                    now = time.time()
                    cache.store(str(i), b"", now, now + 60)
                    cache.get(str(i))
                    cache.clean_expired()
            except Exception as err:  # noqa: BLE001
                errors.append(err)

        threads = [threading.Thread(target=worker) for _ in range(32)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert 0 < len(cache) <= 256


def test_get_returns_times():
    with MemCache() as cache:
        now = time.time()
        cache.store("k", b"abc", now, now + 30)
        assert cache.get("k") == CachedValue(b"abc", now, now + 30)
        assert cache.get("missing") is None


def test_expired_store_is_noop():
    with MemCache() as cache:
        now = time.time()
        cache.store("k", b"v", now - 10, now - 1)
        assert cache.get("k") is None
        assert len(cache) == 0


def test_store_keeps_a_copy():
    with MemCache() as cache:
        data = bytearray(b"abc")
        now = time.time()
        cache.store("k", data, now, now + 30)
        data[0] = ord("z")
        assert cache.get("k").value == b"abc"


def test_closed_cache_is_noop():
    cache = MemCache()
    now = time.time()
    cache.store("k", b"v", now, now + 30)
    cache.close()
    assert cache.closed
    assert cache.get("k") is None
    cache.store("other", b"v", now, now + 30)
    assert len(cache) == 1


def test_clean_expired_counts():
    with MemCache() as cache:
        now = time.time()
        cache.store("short", b"", now, now + 0.01)
        cache.store("long", b"", now, now + 60)
        time.sleep(0.03)
        assert cache.clean_expired() == 1
        assert cache.get("long") is not None