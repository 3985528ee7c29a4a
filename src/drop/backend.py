from __future__ import annotations

from typing import Optional, Protocol


class BackendError(RuntimeError):
    """Raised by backends when the key-value store cannot be reached or fails."""


class SecretBackend(Protocol):
    """
    Key-value operations the secret store relies on.

    Implementations:
    - `drop.redis_backend.RedisBackend`: Redis via redis-py
    - `drop.dynamo_backend.DynamoBackend`: DynamoDB via boto3
    - `drop.memory_backend.MemoryBackend`: single-process, for development and tests

    Every method raises `BackendError` on failure.
    """

    def set_if_absent(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """Store `value` under `key` with a TTL only if `key` holds nothing.

        Returns True when written, False when the key is already taken.
        """
        ...

    def pop(self, key: str) -> Optional[bytes]:
        """Read and delete `key` as one atomic step.

        Returns the stored bytes, or None if nothing live was stored. No two
        callers, in this or any other process, may both receive the value.
        """
        ...

    def incr(self, key: str) -> int:
        """Atomically increment the integer counter at `key`; returns the new value."""
        ...
