from __future__ import annotations

from typing import Any, Optional

import redis
from redis.exceptions import RedisError

from .backend import BackendError


DEFAULT_MAX_CONNECTIONS = 10
DEFAULT_POOL_TIMEOUT = 20.0


class RedisBackend:
    """
    Redis-backed storage for one-time secrets.

    - `set_if_absent` maps to `SET key value NX EX ttl`.
    - `pop` queues `GET` and `DEL` inside `MULTI/EXEC`, so the read and the
      delete execute as one unit for every Redis client.
    - `incr` maps to `INCR`.

    Connections come from a bounded `BlockingConnectionPool`. redis-py takes a
    connection per command (or per pipeline execution) and returns it to the
    pool on every exit path. Waiting longer than `pool_timeout` for a free
    connection surfaces as `BackendError` like any other outage.
    """

    def __init__(
        self,
        *,
        client: Optional[Any] = None,
        url: str = "redis://localhost:6379/0",
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        pool_timeout: float = DEFAULT_POOL_TIMEOUT,
    ) -> None:
        if client is None:
            pool = redis.BlockingConnectionPool.from_url(
                url, max_connections=max_connections, timeout=pool_timeout
            )
            client = redis.Redis(connection_pool=pool)
        self._client = client

    def set_if_absent(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        try:
            # SET ... NX replies nil when the key exists
            return bool(self._client.set(key, value, nx=True, ex=ttl_seconds))
        except RedisError as ex:
            raise BackendError(f"SET NX failed: {ex}") from ex

    def pop(self, key: str) -> Optional[bytes]:
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.get(key)
                pipe.delete(key)
                value, _deleted = pipe.execute()
        except RedisError as ex:
            raise BackendError(f"MULTI GET/DEL failed: {ex}") from ex
        if not value:
            return None
        if isinstance(value, str):
            value = value.encode("utf-8")
        return value

    def incr(self, key: str) -> int:
        try:
            return int(self._client.incr(key))
        except RedisError as ex:
            raise BackendError(f"INCR {key} failed: {ex}") from ex

    def close(self) -> None:
        self._client.close()
