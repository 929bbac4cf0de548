"""A cache backend stored in a redis server.

The client is any object with the redis-py style methods get, set (with a
px argument), ping, dbsize and pipeline (whose result offers set and
execute).
"""

from __future__ import annotations

import logging
import math
import random
import struct
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from mosdns.mem_cache import CacheBackend, CachedValue

_HEADER = struct.Struct(">qq")
_MAX_BACKOFF = 30.0
_PING_TIMEOUT = 0.5
_DBSIZE_TIMEOUT = 0.05

_NOP_LOGGER = logging.getLogger("mosdns.redis_cache.nop")
_NOP_LOGGER.addHandler(logging.NullHandler())
_NOP_LOGGER.propagate = False


@dataclass
class RedisCacheOptions:
    """Options of RedisCache. client_timeout is in seconds; zero selects 1s."""

    client: Any
    client_closer: Callable[[], Any] | None = None
    client_timeout: float = 1.0
    logger: logging.Logger | None = None

    def __post_init__(self) -> None:
        if self.client is None:
            raise ValueError("nil client")
        if self.client_timeout <= 0:
            self.client_timeout = 1.0
        if self.logger is None:
            self.logger = _NOP_LOGGER


@dataclass
class KV:
    """One entry for RedisCache.batch_store."""

    key: str
    value: bytes
    stored_time: float
    expiration_time: float


def pack_redis_data(stored_time: float, expiration_time: float, value: bytes) -> bytes:
    """Pack both times (as whole Unix seconds) and value into one byte string."""
    return _HEADER.pack(math.floor(stored_time), math.floor(expiration_time)) + bytes(value)


def unpack_redis_value(data: bytes) -> tuple[int, int, bytes]:
    """Split data made by pack_redis_data into (stored_time, expiration_time, value)."""
    if len(data) < _HEADER.size:
        raise ValueError("b is too short")
    stored_time, expiration_time = _HEADER.unpack_from(data)
    return stored_time, expiration_time, bytes(data[_HEADER.size:])


class RedisCache(CacheBackend):
    """A CacheBackend backed by redis.

    On a client error the cache disables itself and pings the server in the
    background with a growing backoff until it answers again.
    """

    def __init__(self, options: RedisCacheOptions) -> None:
        self._opts = options
        self._logger: logging.Logger = options.logger or _NOP_LOGGER
        self._disabled = False
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="redis-cache")

    @property
    def disabled(self) -> bool:
        with self._lock:
            return self._disabled

    def _call(self, timeout: float, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return self._executor.submit(func, *args, **kwargs).result(timeout)

    def _disable_client(self) -> None:
        with self._lock:
            if self._disabled:
                return
            self._disabled = True
        self._logger.warning("redis temporarily disabled")
        threading.Thread(target=self._recover, name="redis-cache-recover", daemon=True).start()

    def _recover(self) -> None:
        backoff = 0.1
        while True:
            time.sleep(backoff)
            try:
                self._call(_PING_TIMEOUT, self._opts.client.ping)
            except Exception as err:  # noqa: BLE001
                if backoff >= _MAX_BACKOFF:
                    backoff = _MAX_BACKOFF
                else:
                    backoff += random.randrange(1000) / 1000 + 1.0
                self._logger.warning("redis ping failed: %s, next ping in %.1fs", err, backoff)
                continue
            with self._lock:
                self._disabled = False
            return

    def get(self, key: str) -> CachedValue | None:
        if self.disabled:
            return None
        try:
            raw = self._call(self._opts.client_timeout, self._opts.client.get, key)
        except Exception as err:  # noqa: BLE001
            self._logger.warning("redis get: %s", err)
            self._disable_client()
            return None
        if raw is None:
            return None
        try:
            stored_time, expiration_time, value = unpack_redis_value(bytes(raw))
        except ValueError as err:
            self._logger.warning("redis data unpack error: %s", err)
            return None
        return CachedValue(value, float(stored_time), float(expiration_time))

    def store(self, key: str, value: bytes, stored_time: float, expiration_time: float) -> None:
        if self.disabled:
            return
        ttl = expiration_time - time.time()
        if ttl <= 0:  # a zero ttl would mean no expiration in redis
            return
        data = pack_redis_data(stored_time, expiration_time, value)
        try:
            self._call(
                self._opts.client_timeout,
                self._opts.client.set,
                key,
                data,
                px=max(1, int(ttl * 1000)),
            )
        except Exception as err:  # noqa: BLE001
            self._logger.warning("redis set: %s", err)
            self._disable_client()

    def batch_store(self, items: Iterable[KV]) -> None:
        """Store a batch of entries through one redis pipeline."""
        if self.disabled:
            return

        def run() -> None:
            pipeline = self._opts.client.pipeline()
            for kv in items:
                ttl = kv.expiration_time - time.time()
                if ttl <= 0:
                    continue
                data = pack_redis_data(kv.stored_time, kv.expiration_time, kv.value)
                pipeline.set(kv.key, data, px=max(1, int(ttl * 1000)))
            pipeline.execute()

        try:
            self._call(self._opts.client_timeout, run)
        except Exception as err:  # noqa: BLE001
            self._logger.warning("redis pipeline set: %s", err)
            self._disable_client()

    def close(self) -> None:
        """Close the client through client_closer, if one was given."""
        self._executor.shutdown(wait=False)
        if self._opts.client_closer is not None:
            self._opts.client_closer()

    def __len__(self) -> int:
        try:
            return int(self._call(_DBSIZE_TIMEOUT, self._opts.client.dbsize))
        except Exception as err:  # noqa: BLE001
            self._logger.error("dbsize: %s", err)
            return 0