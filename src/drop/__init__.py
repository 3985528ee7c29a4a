"""
One-time secret storage.

A secret is stored under a short random mnemo with a fixed lifetime and can be
read exactly once; reading deletes it. The atomicity behind that guarantee
comes from the key-value backend (Redis, DynamoDB, or in-memory for tests).
"""

from .backend import BackendError, SecretBackend
from .engine import RetrieveError, SecretStore, SecretStoreError, StoreError
from .models import SecretRecord

__all__ = [
    "BackendError",
    "RetrieveError",
    "SecretBackend",
    "SecretRecord",
    "SecretStore",
    "SecretStoreError",
    "StoreError",
]
