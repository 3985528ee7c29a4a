from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from common.logging_setup import setup_logging
from drop.engine import RetrieveError, SecretStore, StoreError, build_store
from drop.models import SecretRecord


logger = logging.getLogger(__name__)

SECRET_PATH = "/api/secret"
SECRET_ITEM_ROUTE = "/api/secret/{mnemo}"
_SECRET_ITEM_RE = re.compile(r"(?:^|/)api/secret/([^/]+)/?$")

JSON_HEADERS = {"Content-Type": "application/json; charset=utf-8"}

# Shared by all invocations served by one Lambda container
_STORE: Optional[SecretStore] = None


def _get_store() -> SecretStore:
    global _STORE
    if _STORE is None:
        setup_logging()
        _STORE = build_store()
    return _STORE


def _response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": dict(JSON_HEADERS),
        "body": json.dumps(body, separators=(",", ":")),
    }


def _error(status: int, message: str) -> Dict[str, Any]:
    return _response(status, {"error": message})


def _method_and_path(event: Dict[str, Any]) -> Tuple[str, str]:
    """Extract HTTP method and path from a REST (v1) or HTTP API (v2) proxy event."""
    method = event.get("httpMethod")
    if not method:
        http = (event.get("requestContext") or {}).get("http") or {}
        method = http.get("method") or ""
    path = event.get("rawPath") or event.get("path") or ""
    return str(method).upper(), str(path)


def _route_template(event: Dict[str, Any], method: str, path: str) -> Tuple[str, Optional[str]]:
    """Return `(template, mnemo)` for the matched route, e.g. ("/api/secret/{mnemo}", "Ab3...").

    Prefers the gateway's own route: `routeKey` (v2) or `resource` (v1). Those
    never carry the stage prefix that `rawPath` has on named stages. Raw path
    matching is the fallback for `$default` / `{proxy+}` integrations.
    """
    template = None
    route_key = event.get("routeKey")
    if isinstance(route_key, str) and " " in route_key:
        key_method, key_path = route_key.split(" ", 1)
        if key_method.upper() == method:
            template = key_path
    if template is None:
        resource = event.get("resource")
        if isinstance(resource, str) and resource and "{proxy+}" not in resource:
            template = resource

    if template is not None:
        template = template.rstrip("/") or "/"
        if template != SECRET_ITEM_ROUTE:
            return template, None
        params = event.get("pathParameters") or {}
        val = params.get("mnemo") if isinstance(params, dict) else None
        if isinstance(val, str) and val:
            return template, val
        m = _SECRET_ITEM_RE.search(path)
        return template, (m.group(1) if m else None)

    if path.rstrip("/") == SECRET_PATH:
        return SECRET_PATH, None
    m = _SECRET_ITEM_RE.match(path)
    if m:
        return SECRET_ITEM_ROUTE, m.group(1)
    return path, None


def _parse_record(event: Dict[str, Any]) -> Optional[SecretRecord]:
    """Decode the request body into a SecretRecord; None if it is not valid."""
    body = event.get("body")
    if body is None:
        return None
    try:
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body)
        data = json.loads(body)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        return SecretRecord.model_validate(data)
    except ValidationError:
        return None


def store_secret(store: SecretStore, event: Dict[str, Any]) -> Dict[str, Any]:
    """POST /api/secret"""
    record = _parse_record(event)
    if record is None:
        return _error(400, "bad JSON data")
    try:
        token = store.store(record)
    except StoreError:
        return _error(500, "Could not store secret")
    return _response(200, {"mnemo": token})


def retrieve_secret(store: SecretStore, token: str) -> Dict[str, Any]:
    """GET /api/secret/{mnemo}"""
    try:
        record = store.retrieve(token)
    except RetrieveError:
        return _error(500, "Could not read secret")
    if record is None:
        return _error(404, "No such secret")
    return _response(200, record.to_wire())


def route(store: SecretStore, event: Dict[str, Any]) -> Dict[str, Any]:
    method, path = _method_and_path(event)
    template, token = _route_template(event, method, path)
    if method == "POST" and template == SECRET_PATH:
        return store_secret(store, event)
    if method == "GET" and template == SECRET_ITEM_ROUTE and token is not None:
        return retrieve_secret(store, token)
    logger.info("No route for %s %s", method, path)
    return _error(404, "Not found")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda entry for the secret API behind API Gateway (proxy integration).

    Routes:
    - POST /api/secret          -> {"mnemo": "..."}
    - GET  /api/secret/{mnemo}  -> {"pubkey": ..., "nonce": ..., "secret": ...}

    Environment: see `common.settings.Settings.from_env`.
    """
    return route(_get_store(), event)
