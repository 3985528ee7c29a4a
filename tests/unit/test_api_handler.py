from __future__ import annotations

import base64
import json
from typing import Any, Dict, Optional

import pytest

from drop.backend import BackendError
from drop.engine import SecretStore
from drop.models import SecretRecord


def _post_event(body: Optional[str], *, v2: bool = True, b64: bool = False) -> Dict[str, Any]:
    if b64 and body is not None:
        body = base64.b64encode(body.encode("utf-8")).decode("ascii")
    if v2:
        return {
            "version": "2.0",
            "routeKey": "POST /api/secret",
            "rawPath": "/api/secret",
            "requestContext": {"http": {"method": "POST", "path": "/api/secret"}},
            "body": body,
            "isBase64Encoded": b64,
        }
    return {
        "resource": "/api/secret",
        "path": "/api/secret",
        "httpMethod": "POST",
        "body": body,
        "isBase64Encoded": b64,
    }


def _get_event(mnemo: str, *, v2: bool = True) -> Dict[str, Any]:
    if v2:
        return {
            "version": "2.0",
            "routeKey": "GET /api/secret/{mnemo}",
            "rawPath": f"/api/secret/{mnemo}",
            "requestContext": {"http": {"method": "GET", "path": f"/api/secret/{mnemo}"}},
            "pathParameters": {"mnemo": mnemo},
        }
    return {
        "resource": "/api/secret/{mnemo}",
        "path": f"/api/secret/{mnemo}",
        "httpMethod": "GET",
        "pathParameters": None,
    }


def _json(resp: Dict[str, Any]) -> Any:
    assert resp["headers"]["Content-Type"].startswith("application/json")
    return json.loads(resp["body"])


class _DownBackend:
    def set_if_absent(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        raise BackendError("Error 111 connecting to localhost:6379. Connection refused.")

    def pop(self, key: str):
        raise BackendError("Error 111 connecting to localhost:6379. Connection refused.")

    def incr(self, key: str) -> int:
        raise BackendError("Error 111 connecting to localhost:6379. Connection refused.")


@pytest.fixture
def handler(monkeypatch: pytest.MonkeyPatch, store):
    from api import handler as api

    monkeypatch.setattr(api, "_STORE", store)
    return api


@pytest.mark.parametrize("v2", [True, False])
def test_store_then_read_once(handler, v2: bool):
    payload = {"pubkey": "A", "nonce": "B", "secret": "C"}
    resp = handler.lambda_handler(_post_event(json.dumps(payload), v2=v2), None)
    assert resp["statusCode"] == 200
    mnemo = _json(resp)["mnemo"]
    assert len(mnemo) == 10

    resp = handler.lambda_handler(_get_event(mnemo, v2=v2), None)
    assert resp["statusCode"] == 200
    assert _json(resp) == payload

    resp = handler.lambda_handler(_get_event(mnemo, v2=v2), None)
    assert resp["statusCode"] == 404
    assert _json(resp) == {"error": "No such secret"}


def test_base64_encoded_body(handler):
    payload = {"pubkey": "A", "nonce": "B", "secret": "C"}
    resp = handler.lambda_handler(_post_event(json.dumps(payload), b64=True), None)
    assert resp["statusCode"] == 200


def test_extra_fields_are_ignored(handler):
    payload = {"pubkey": "A", "nonce": "B", "secret": "C", "extra": 1}
    resp = handler.lambda_handler(_post_event(json.dumps(payload)), None)
    mnemo = _json(resp)["mnemo"]
    assert _json(handler.lambda_handler(_get_event(mnemo), None)) == {
        "pubkey": "A",
        "nonce": "B",
        "secret": "C",
    }


@pytest.mark.parametrize(
    "body",
    [
        json.dumps({"pubkey": "A", "secret": "C"}),
        json.dumps({"pubkey": "A", "nonce": "", "secret": "C"}),
        json.dumps({"pubkey": "A", "nonce": 5, "secret": "C"}),
        json.dumps({"public_key": "A", "nonce": "B", "ciphertext": "C"}),
        json.dumps(["A", "B", "C"]),
        "{not json",
        "",
        None,
    ],
)
def test_bad_post_body_is_400(handler, body):
    resp = handler.lambda_handler(_post_event(body), None)
    assert resp["statusCode"] == 400
    assert _json(resp) == {"error": "bad JSON data"}


def test_missing_nonce_scenario(handler):
    resp = handler.lambda_handler(_post_event('{"pubkey":"A","secret":"C"}'), None)
    assert resp["statusCode"] == 400
    assert resp["body"] == '{"error":"bad JSON data"}'


def test_unknown_mnemo_is_404(handler):
    resp = handler.lambda_handler(_get_event("Zz9Zz9Zz9Z"), None)
    assert resp["statusCode"] == 404
    assert _json(resp) == {"error": "No such secret"}


def test_store_failure_is_500_without_details(monkeypatch: pytest.MonkeyPatch):
    from api import handler as api

    monkeypatch.setattr(api, "_STORE", SecretStore(_DownBackend()))
    resp = api.lambda_handler(_post_event('{"pubkey":"A","nonce":"B","secret":"C"}'), None)
    assert resp["statusCode"] == 500
    assert resp["body"] == '{"error":"Could not store secret"}'


def test_read_failure_is_500_without_details(monkeypatch: pytest.MonkeyPatch):
    from api import handler as api

    monkeypatch.setattr(api, "_STORE", SecretStore(_DownBackend()))
    resp = api.lambda_handler(_get_event("Ab3dE6gH9k"), None)
    assert resp["statusCode"] == 500
    assert _json(resp) == {"error": "Could not read secret"}


def test_corrupt_record_is_500_then_404(handler, memory_backend):
    memory_backend.set_if_absent("CCCCCCCCCC", b"garbage", 3600)
    resp = handler.lambda_handler(_get_event("CCCCCCCCCC"), None)
    assert resp["statusCode"] == 500
    assert _json(resp) == {"error": "Could not read secret"}

    resp = handler.lambda_handler(_get_event("CCCCCCCCCC"), None)
    assert resp["statusCode"] == 404


@pytest.mark.parametrize(
    "event",
    [
        {"httpMethod": "GET", "path": "/"},
        {"httpMethod": "DELETE", "path": "/api/secret/Ab3dE6gH9k"},
        {"httpMethod": "PUT", "path": "/api/secret"},
        {"httpMethod": "GET", "path": "/api/secret/a/b"},
        {"requestContext": {"http": {"method": "GET"}}, "rawPath": "/api/other"},
    ],
)
def test_unknown_routes_are_404(handler, event):
    resp = handler.lambda_handler(event, None)
    assert resp["statusCode"] == 404
    assert _json(resp) == {"error": "Not found"}


def test_store_is_built_once_per_container(monkeypatch: pytest.MonkeyPatch, memory_backend):
    from api import handler as api

    built = []

    def fake_build_store():
        built.append(1)
        return SecretStore(memory_backend)

    monkeypatch.setattr(api, "_STORE", None)
    monkeypatch.setattr(api, "build_store", fake_build_store)
    monkeypatch.setattr(api, "setup_logging", lambda: None)

    api.lambda_handler(_get_event("Zz9Zz9Zz9Z"), None)
    api.lambda_handler(_get_event("Zz9Zz9Zz9Z"), None)
    assert built == [1]


def _staged_v2(method: str, route_key_path: str, raw_path: str, **extra) -> Dict[str, Any]:
    event = {
        "version": "2.0",
        "routeKey": f"{method} {route_key_path}",
        "rawPath": raw_path,
        "requestContext": {"stage": "prod", "http": {"method": method, "path": raw_path}},
    }
    event.update(extra)
    return event


def test_named_stage_routes_on_route_key(handler):
    payload = {"pubkey": "A", "nonce": "B", "secret": "C"}
    resp = handler.lambda_handler(
        _staged_v2("POST", "/api/secret", "/prod/api/secret", body=json.dumps(payload)), None
    )
    assert resp["statusCode"] == 200
    mnemo = _json(resp)["mnemo"]

    get = _staged_v2(
        "GET", "/api/secret/{mnemo}", f"/prod/api/secret/{mnemo}", pathParameters={"mnemo": mnemo}
    )
    resp = handler.lambda_handler(get, None)
    assert resp["statusCode"] == 200
    assert _json(resp) == payload


def test_default_route_key_falls_back_to_path(handler):
    payload = {"pubkey": "A", "nonce": "B", "secret": "C"}
    event = _post_event(json.dumps(payload))
    event["routeKey"] = "$default"
    resp = handler.lambda_handler(event, None)
    assert resp["statusCode"] == 200

    get = _get_event(_json(resp)["mnemo"])
    get["routeKey"] = "$default"
    get["pathParameters"] = {"proxy": get["rawPath"].lstrip("/")}
    assert handler.lambda_handler(get, None)["statusCode"] == 200


def test_proxy_resource_falls_back_to_path(handler):
    payload = {"pubkey": "A", "nonce": "B", "secret": "C"}
    event = _post_event(json.dumps(payload), v2=False)
    event["resource"] = "/{proxy+}"
    assert handler.lambda_handler(event, None)["statusCode"] == 200


@pytest.mark.parametrize("v2", [True, False])
def test_mnemo_parameter_on_other_route_does_not_consume(handler, store, v2: bool):
    token = store.store(SecretRecord(pubkey="A", nonce="B", secret="C"))
    if v2:
        event = _staged_v2(
            "GET", "/api/other/{mnemo}", f"/api/other/{token}", pathParameters={"mnemo": token}
        )
    else:
        event = {
            "resource": "/api/other/{mnemo}",
            "path": f"/api/other/{token}",
            "httpMethod": "GET",
            "pathParameters": {"mnemo": token},
        }

    resp = handler.lambda_handler(event, None)
    assert resp["statusCode"] == 404
    assert _json(resp) == {"error": "Not found"}
    assert store.retrieve(token) == SecretRecord(pubkey="A", nonce="B", secret="C")
