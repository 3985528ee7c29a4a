from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import boto3
from botocore.exceptions import ClientError


# Environment variable names (aligned with the Lambda deployment)
ENV_BACKEND = "KEEDROP_BACKEND"
ENV_REDIS_URL = "REDIS_URL"
ENV_REDIS_MAX_CONNECTIONS = "REDIS_MAX_CONNECTIONS"
ENV_REDIS_POOL_TIMEOUT = "REDIS_POOL_TIMEOUT"
ENV_SECRETS_TABLE = "SECRETS_TABLE"
ENV_SECRET_LIFETIME = "SECRET_LIFETIME_SECONDS"
ENV_MAX_TRIES = "MNEMO_MAX_TRIES"
ENV_PARAM_PREFIX = "PARAM_PREFIX"

BACKENDS = ("redis", "dynamodb", "memory")

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_REDIS_MAX_CONNECTIONS = 10
DEFAULT_REDIS_POOL_TIMEOUT = 20.0
DEFAULT_LIFETIME_SECONDS = 60 * 60 * 24
DEFAULT_MAX_TRIES = 10


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        val = int(raw)
    except ValueError as ex:
        raise RuntimeError(f"Invalid integer for {name}: {raw!r}") from ex
    if val <= 0:
        raise RuntimeError(f"{name} must be > 0, got {val}")
    return val


def _getfloat(name: str, default: float) -> float:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        val = float(raw)
    except ValueError as ex:
        raise RuntimeError(f"Invalid number for {name}: {raw!r}") from ex
    if val <= 0:
        raise RuntimeError(f"{name} must be > 0, got {val}")
    return val


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            # Leave as None if parameter missing or access denied
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                out[name] = None
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


@dataclass(frozen=True)
class Settings:
    """
    Deploy-time configuration for the secret relay.

    Environment variables
    - `KEEDROP_BACKEND`: "redis" (default), "dynamodb" or "memory"
    - `REDIS_URL`: Redis connection URL; when unset and `PARAM_PREFIX` is set,
      read from the SSM parameter `{PARAM_PREFIX}redis_url`
    - `REDIS_MAX_CONNECTIONS`, `REDIS_POOL_TIMEOUT`: connection pool bounds
    - `SECRETS_TABLE`: DynamoDB table name (required for "dynamodb")
    - `SECRET_LIFETIME_SECONDS`, `MNEMO_MAX_TRIES`: store behaviour
    """

    backend: str = "redis"
    redis_url: str = DEFAULT_REDIS_URL
    redis_max_connections: int = DEFAULT_REDIS_MAX_CONNECTIONS
    redis_pool_timeout: float = DEFAULT_REDIS_POOL_TIMEOUT
    secrets_table: Optional[str] = None
    lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS
    max_tries: int = DEFAULT_MAX_TRIES

    @classmethod
    def from_env(cls) -> "Settings":
        backend = (_getenv(ENV_BACKEND, "redis") or "redis").lower()
        if backend not in BACKENDS:
            raise RuntimeError(
                f"Unsupported {ENV_BACKEND}: {backend!r} (expected one of {', '.join(BACKENDS)})"
            )

        redis_url = _getenv(ENV_REDIS_URL)
        prefix = _getenv(ENV_PARAM_PREFIX)
        if backend == "redis" and redis_url is None and prefix:
            redis_url = _load_ssm_params(prefix, ["redis_url"]).get("redis_url")

        table = _getenv(ENV_SECRETS_TABLE)
        if backend == "dynamodb":
            table = _require(table, ENV_SECRETS_TABLE)

        return cls(
            backend=backend,
            redis_url=redis_url or DEFAULT_REDIS_URL,
            redis_max_connections=_getint(ENV_REDIS_MAX_CONNECTIONS, DEFAULT_REDIS_MAX_CONNECTIONS),
            redis_pool_timeout=_getfloat(ENV_REDIS_POOL_TIMEOUT, DEFAULT_REDIS_POOL_TIMEOUT),
            secrets_table=table,
            lifetime_seconds=_getint(ENV_SECRET_LIFETIME, DEFAULT_LIFETIME_SECONDS),
            max_tries=_getint(ENV_MAX_TRIES, DEFAULT_MAX_TRIES),
        )
