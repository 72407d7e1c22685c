from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests
from loguru import logger
from pydantic import BaseModel, Field

from funding_watcher.errors import ConfigurationError, CoreApiError
from funding_watcher.models import ActiveRoute, RouteMatch
from funding_watcher.signing import create_service_token

WATCHERS_PREFIX = "/internal/v1/watchers"


class _RoutesResponse(BaseModel):
    items: list[ActiveRoute] = []


class _ResolveRouteResponse(BaseModel):
    found: bool = False
    transfer_id: str = Field(default="", alias="transferId")


class _CursorResponse(BaseModel):
    cursor: str | None = None


class _SeenResponse(BaseModel):
    seen: bool = False


@dataclass
class CoreApiClient:
    """Authenticated JSON client for the internal core API."""

    base_url: str
    secret: str
    issuer: str
    audience: str
    subject: str
    timeout: float = 8.0

    def __post_init__(self):
        if not self.base_url:
            raise ConfigurationError("core api base url is required")
        if not self.secret:
            raise ConfigurationError("jwt secret is required")

    def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = self.base_url.rstrip("/") + path
        token = create_service_token(self.secret, self.issuer, self.audience, self.subject)
        headers = {"authorization": f"Bearer {token}"}
        if body is not None:
            headers["content-type"] = "application/json"
        r = requests.request(method, url, json=body, params=params, headers=headers, timeout=self.timeout)
        if not r.ok:
            raise CoreApiError(r.status_code, r.text)
        if not r.content:
            return None
        return r.json()


@dataclass
class CoreApiRouteStore:
    client: CoreApiClient

    def list_active_routes(self, chain: str) -> list[ActiveRoute]:
        data = self.client.request("GET", f"{WATCHERS_PREFIX}/routes", params={"chain": chain})
        return _RoutesResponse.model_validate(data or {}).items


@dataclass
class CoreApiRouteResolver:
    client: CoreApiClient
    watcher_name: str

    def find_transfer_by_route(self, chain: str, token: str, deposit_address: str) -> RouteMatch | None:
        data = self.client.request(
            "POST",
            f"{WATCHERS_PREFIX}/resolve-route",
            body={
                "watcherName": self.watcher_name,
                "chain": chain,
                "token": token,
                "depositAddress": deposit_address,
            },
        )
        out = _ResolveRouteResponse.model_validate(data or {})
        if not out.found:
            return None
        return RouteMatch(transfer_id=out.transfer_id)


@dataclass
class CoreApiCheckpointStore:
    client: CoreApiClient
    watcher_name: str
    chain: str

    def get_cursor(self) -> str:
        data = self.client.request(
            "GET", f"{WATCHERS_PREFIX}/checkpoint/{self.watcher_name}", params={"chain": self.chain}
        )
        out = _CursorResponse.model_validate(data or {})
        return out.cursor or "0"

    def save_cursor(self, cursor: str) -> None:
        self.client.request(
            "POST",
            f"{WATCHERS_PREFIX}/checkpoint/{self.watcher_name}",
            body={"chain": self.chain, "cursor": cursor},
        )
        logger.debug("{}: checkpoint saved chain={} cursor={}", self.watcher_name, self.chain, cursor)


@dataclass
class CoreApiDedupeStore:
    client: CoreApiClient
    watcher_name: str

    def seen(self, key: str) -> bool:
        data = self.client.request(
            "POST", f"{WATCHERS_PREFIX}/dedupe/check/{self.watcher_name}", body={"eventKey": key}
        )
        return _SeenResponse.model_validate(data or {}).seen

    def mark(self, key: str) -> None:
        self.client.request(
            "POST", f"{WATCHERS_PREFIX}/dedupe/mark/{self.watcher_name}", body={"eventKey": key}
        )
