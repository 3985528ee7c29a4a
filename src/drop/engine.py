from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from common import mnemo
from common.retry import retry_until
from common.settings import DEFAULT_LIFETIME_SECONDS, DEFAULT_MAX_TRIES, Settings

from .backend import BackendError, SecretBackend
from .models import SecretRecord


STORED_COUNTER = "KeeDropStoredKeysCounter"
RETRIEVED_COUNTER = "KeeDropRetrievedKeysCounter"


class SecretStoreError(RuntimeError):
    """Base error for the secret store; messages are safe to log, not to show."""


class StoreError(SecretStoreError):
    """The secret could not be stored under any mnemo."""


class RetrieveError(SecretStoreError):
    """The backend failed, or the stored secret was unreadable (and is now gone)."""


class SecretStore:
    """
    One-time secret storage on top of a key-value backend.

    - `store(record)` writes the record under a fresh mnemo with a TTL and
      returns the mnemo. The backend's set-if-absent guarantees no live
      record is overwritten; collisions are retried with a new mnemo.
    - `retrieve(mnemo)` reads and deletes the record in one atomic backend
      step. The first successful call gets the record, every later call gets
      None. A record that cannot be decoded is consumed all the same.
    - Usage counters are best-effort: a failed increment is logged and never
      fails the surrounding operation.

    Create one instance per process and share it; it holds no mutable state
    besides the backend handle.
    """

    def __init__(
        self,
        backend: SecretBackend,
        *,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
        max_tries: int = DEFAULT_MAX_TRIES,
        new_mnemo: Callable[[], str] = mnemo.generate,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if lifetime_seconds <= 0:
            raise ValueError("lifetime_seconds must be > 0")
        if max_tries <= 0:
            raise ValueError("max_tries must be > 0")
        self._backend = backend
        self._lifetime = lifetime_seconds
        self._max_tries = max_tries
        self._new_mnemo = new_mnemo
        self._log = logger or logging.getLogger(__name__)

    # -------- Core operations --------
    def store(self, record: SecretRecord) -> str:
        """Store `record` and return its mnemo.

        Raises StoreError if the backend is unavailable or no unused mnemo was
        found within `max_tries` attempts.
        """
        try:
            payload = record.to_bytes()
        except (TypeError, ValueError) as ex:
            self._log.error("Could not serialize secret: %s", ex)
            raise StoreError("could not serialize secret") from ex

        def attempt(n: int) -> Optional[str]:
            candidate = self._new_mnemo()
            try:
                if self._backend.set_if_absent(candidate, payload, self._lifetime):
                    return candidate
                self._log.error(
                    "Could not write secret, key collision (attempt %d/%d)", n, self._max_tries
                )
            except BackendError as ex:
                self._log.error(
                    "Could not write secret (attempt %d/%d): %s", n, self._max_tries, ex
                )
            return None

        token = retry_until(attempt, accept=lambda t: t is not None, max_attempts=self._max_tries)
        if token is None:
            self._log.error("Could not find unused mnemo after %d tries", self._max_tries)
            raise StoreError(f"no unused mnemo after {self._max_tries} tries")

        self._increment(STORED_COUNTER)
        return token

    def retrieve(self, token: str) -> Optional[SecretRecord]:
        """Return the record stored under `token` and delete it; None if absent.

        Raises RetrieveError on backend failure or when the stored bytes are
        not a valid record (the record is deleted either way).
        """
        self._log.debug("Reading data for mnemo: %s", token)
        if not mnemo.is_mnemo(token):
            # Never generated here, so nothing to consume
            return None

        try:
            data = self._backend.pop(token)
        except BackendError as ex:
            self._log.error("Could not read secret: %s", ex)
            raise RetrieveError("backend failure while reading secret") from ex

        if not data:
            return None

        try:
            record = SecretRecord.from_bytes(data)
        except (UnicodeDecodeError, ValueError, ValidationError) as ex:
            self._log.error(
                "Could not decode stored secret for mnemo %s (%s)", token, type(ex).__name__
            )
            raise RetrieveError("stored secret is corrupt") from ex

        self._increment(RETRIEVED_COUNTER)
        return record

    # -------- Counters --------
    def _increment(self, name: str) -> None:
        try:
            self._backend.incr(name)
        except BackendError as ex:
            self._log.warning("Could not increase counter %s: %s", name, ex)


def build_backend(settings: Settings) -> SecretBackend:
    """Instantiate the backend selected by `settings.backend`."""
    if settings.backend == "redis":
        from .redis_backend import RedisBackend

        return RedisBackend(
            url=settings.redis_url,
            max_connections=settings.redis_max_connections,
            pool_timeout=settings.redis_pool_timeout,
        )
    if settings.backend == "dynamodb":
        from .dynamo_backend import DynamoBackend

        return DynamoBackend(table=settings.secrets_table or "")
    if settings.backend == "memory":
        from .memory_backend import MemoryBackend

        return MemoryBackend()
    raise RuntimeError(f"Unsupported backend: {settings.backend!r}")


def build_store(settings: Optional[Settings] = None) -> SecretStore:
    settings = settings or Settings.from_env()
    return SecretStore(
        build_backend(settings),
        lifetime_seconds=settings.lifetime_seconds,
        max_tries=settings.max_tries,
    )
