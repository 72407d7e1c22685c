from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import requests
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from funding_watcher.errors import CallbackRejectedError, ConfigurationError
from funding_watcher.models import FundingConfirmedEvent
from funding_watcher.signing import sign_callback


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallbackPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_id: str = Field(alias="eventId")
    chain: str
    token: str
    tx_hash: str = Field(alias="txHash")
    log_index: int = Field(alias="logIndex")
    deposit_address: str = Field(alias="depositAddress")
    amount_usd: float = Field(alias="amountUsd")
    confirmed_at: str = Field(alias="confirmedAt")

    @classmethod
    def from_event(cls, event: FundingConfirmedEvent, confirmed_at: datetime) -> "CallbackPayload":
        return cls(
            event_id=event.event_id,
            chain=event.chain,
            token=event.token,
            tx_hash=event.tx_hash,
            log_index=event.log_index,
            deposit_address=event.deposit_address,
            amount_usd=float(event.amount_usd),
            confirmed_at=confirmed_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        )


@dataclass
class CallbackPublisher:
    endpoint: str
    secret: str
    timeout: float = 8.0
    now: Callable[[], datetime] = field(default=_utcnow)

    def __post_init__(self):
        if not self.endpoint:
            raise ConfigurationError("callback endpoint is required")
        if not self.secret:
            raise ConfigurationError("callback secret is required")

    def publish_funding_confirmed(self, event: FundingConfirmedEvent) -> None:
        now = self.now()
        body = CallbackPayload.from_event(event, now).model_dump_json(by_alias=True).encode("utf-8")
        timestamp_ms = str(int(now.timestamp() * 1000))
        headers = {
            "content-type": "application/json",
            "x-callback-timestamp": timestamp_ms,
            "x-callback-signature": sign_callback(timestamp_ms, body, self.secret),
            "idempotency-key": event.event_id,
        }
        r = requests.post(self.endpoint, data=body, headers=headers, timeout=self.timeout)
        if not r.ok:
            raise CallbackRejectedError(r.status_code)
        logger.info("Published funding confirmation {} ({} {})", event.event_id, event.amount_usd, event.token)
