from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any

import pytest


class FakeResp:
    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self.content = json.dumps(payload).encode() if payload is not None else b""
        self.text = self.content.decode()

    def json(self):
        return self._payload


class Recorder:
    def __init__(self, *responses: FakeResp):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def __call__(self, method, url, json=None, params=None, headers=None, timeout=None):  # noqa: A002
        self.calls.append(
            {"method": method, "url": url, "json": json, "params": params, "headers": headers, "timeout": timeout}
        )
        return self.responses.pop(0)


def make_client():
    from funding_watcher.core_api import CoreApiClient

    return CoreApiClient(
        base_url="http://core-api:3001/",
        secret="jwt-secret",
        issuer="cryptopay-internal",
        audience="cryptopay-services",
        subject="base-watcher",
    )


def _b64decode(part: str) -> bytes:
    return base64.urlsafe_b64decode(part + "=" * (-len(part) % 4))


def test_service_token_claims_and_signature():
    from funding_watcher.signing import create_service_token

    token = create_service_token("jwt-secret", "iss", "aud", "solana-watcher", now=1_700_000_000)
    header, claims, sig = token.split(".")
    assert json.loads(_b64decode(header)) == {"alg": "HS256", "typ": "JWT"}
    body = json.loads(_b64decode(claims))
    assert body["sub"] == "solana-watcher"
    assert body["iss"] == "iss"
    assert body["aud"] == "aud"
    assert body["iat"] == 1_700_000_000
    assert body["exp"] == 1_700_000_060
    assert body["tokenType"] == "service"
    assert body["scope"] == ["watchers:internal"]
    expected = hmac.new(b"jwt-secret", f"{header}.{claims}".encode(), hashlib.sha256).digest()
    assert _b64decode(sig) == expected
    assert "=" not in token


def test_list_active_routes(monkeypatch):
    from funding_watcher.core_api import CoreApiRouteStore

    rec = Recorder(FakeResp(payload={"items": [{"token": "USDC", "depositAddress": "0xdep"}]}))
    monkeypatch.setattr("requests.request", rec)

    routes = CoreApiRouteStore(make_client()).list_active_routes("base")
    assert [(r.token, r.deposit_address) for r in routes] == [("USDC", "0xdep")]
    call = rec.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "http://core-api:3001/internal/v1/watchers/routes"
    assert call["params"] == {"chain": "base"}
    assert call["headers"]["authorization"].startswith("Bearer ")
    assert call["timeout"] == 8.0


def test_resolve_route_found_and_missing(monkeypatch):
    from funding_watcher.core_api import CoreApiRouteResolver

    rec = Recorder(
        FakeResp(payload={"found": True, "transferId": "tr_1"}),
        FakeResp(payload={"found": False}),
    )
    monkeypatch.setattr("requests.request", rec)

    resolver = CoreApiRouteResolver(make_client(), watcher_name="base-watcher")
    match = resolver.find_transfer_by_route("base", "USDC", "0xdep")
    assert match is not None and match.transfer_id == "tr_1"
    assert resolver.find_transfer_by_route("base", "USDC", "0xother") is None
    assert rec.calls[0]["json"] == {
        "watcherName": "base-watcher",
        "chain": "base",
        "token": "USDC",
        "depositAddress": "0xdep",
    }
    assert rec.calls[0]["url"].endswith("/internal/v1/watchers/resolve-route")


def test_checkpoint_get_and_save(monkeypatch):
    from funding_watcher.core_api import CoreApiCheckpointStore

    rec = Recorder(FakeResp(payload={"cursor": ""}), FakeResp(payload={"cursor": "123"}), FakeResp(204))
    monkeypatch.setattr("requests.request", rec)

    store = CoreApiCheckpointStore(make_client(), watcher_name="base-watcher", chain="base")
    assert store.get_cursor() == "0"
    assert store.get_cursor() == "123"
    store.save_cursor("456")

    assert rec.calls[0]["url"].endswith("/internal/v1/watchers/checkpoint/base-watcher")
    assert rec.calls[0]["params"] == {"chain": "base"}
    assert rec.calls[2]["method"] == "POST"
    assert rec.calls[2]["json"] == {"chain": "base", "cursor": "456"}


def test_dedupe_seen_and_mark(monkeypatch):
    from funding_watcher.core_api import CoreApiDedupeStore

    rec = Recorder(FakeResp(payload={"seen": True}), FakeResp(payload={"ok": True}))
    monkeypatch.setattr("requests.request", rec)

    store = CoreApiDedupeStore(make_client(), watcher_name="solana-watcher")
    assert store.seen("solana:sig:0") is True
    store.mark("solana:sig:0")
    assert rec.calls[0]["url"].endswith("/internal/v1/watchers/dedupe/check/solana-watcher")
    assert rec.calls[1]["url"].endswith("/internal/v1/watchers/dedupe/mark/solana-watcher")
    assert rec.calls[1]["json"] == {"eventKey": "solana:sig:0"}


def test_non_success_raises_core_api_error(monkeypatch):
    from funding_watcher.core_api import CoreApiDedupeStore
    from funding_watcher.errors import CoreApiError

    rec = Recorder(FakeResp(503, payload={"error": "unavailable"}))
    monkeypatch.setattr("requests.request", rec)

    with pytest.raises(CoreApiError) as exc:
        CoreApiDedupeStore(make_client(), watcher_name="w").seen("k")
    assert exc.value.status_code == 503


def test_client_requires_url_and_secret():
    from funding_watcher.core_api import CoreApiClient
    from funding_watcher.errors import ConfigurationError

    with pytest.raises(ConfigurationError):
        CoreApiClient(base_url="", secret="s", issuer="i", audience="a", subject="s")
    with pytest.raises(ConfigurationError):
        CoreApiClient(base_url="http://x", secret="", issuer="i", audience="a", subject="s")
