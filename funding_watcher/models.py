from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class FundingCandidate:
    chain: str
    token: str
    tx_hash: str
    log_index: int
    deposit_address: str
    amount_usd: Decimal
    # EVM candidates carry a confirmation count, Solana candidates a finality flag
    confirmations: Optional[int] = None
    finalized: Optional[bool] = None

    @property
    def event_key(self) -> str:
        return f"{self.chain}:{self.tx_hash}:{self.log_index}"


@dataclass(frozen=True)
class RouteMatch:
    transfer_id: str


@dataclass(frozen=True)
class FundingConfirmedEvent:
    event_id: str
    chain: str
    token: str
    tx_hash: str
    log_index: int
    deposit_address: str
    amount_usd: Decimal


class ProcessResult(str, Enum):
    IGNORED = "ignored"
    CONFIRMED = "confirmed"
    ROUTE_NOT_FOUND = "route_not_found"


class ActiveRoute(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    deposit_address: str = Field(alias="depositAddress")


class RouteStore(Protocol):
    def list_active_routes(self, chain: str) -> list[ActiveRoute]: ...


def parse_cursor(cursor: str | None) -> int:
    """Ordinal view of an opaque cursor. Empty or non-numeric cursors read as 0."""
    try:
        return int((cursor or "").strip())
    except ValueError:
        return 0


def format_cursor(value: int) -> str:
    return str(value)
