from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional, Tuple


class MemoryBackend:
    """
    In-process storage for local development and tests.

    - Entries are `(value, expires_at)` pairs; expiry is checked lazily.
    - A single lock makes each operation atomic within the process.

    Not shared between processes, so it gives no single-read guarantee across
    several workers. Use Redis or DynamoDB for real deployments.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[bytes, float]] = {}
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str, now: float) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if now >= expires_at:
            del self._entries[key]
            return None
        return value

    def set_if_absent(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        with self._lock:
            now = self._clock()
            if self._live(key, now) is not None:
                return False
            self._entries[key] = (bytes(value), now + ttl_seconds)
            return True

    def pop(self, key: str) -> Optional[bytes]:
        with self._lock:
            value = self._live(key, self._clock())
            self._entries.pop(key, None)
            return value

    def incr(self, key: str) -> int:
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + 1
            return self._counters[key]

    def counter(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, exp in self._entries.values() if now < exp)
