from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from loguru import logger

from funding_watcher.errors import InvalidChainError
from funding_watcher.models import (
    FundingCandidate,
    FundingConfirmedEvent,
    ProcessResult,
    RouteMatch,
)


class RouteResolver(Protocol):
    def find_transfer_by_route(self, chain: str, token: str, deposit_address: str) -> Optional[RouteMatch]: ...


class EventPublisher(Protocol):
    def publish_funding_confirmed(self, event: FundingConfirmedEvent) -> None: ...


@dataclass
class Watcher:
    """
    Classifies a single candidate as ignored, route_not_found or confirmed.
    Only the confirmed path talks to the publisher, at most once per call.
    """

    chain: str
    resolver: RouteResolver
    publisher: EventPublisher
    min_confirmations: int = 1

    def is_ready(self, c: FundingCandidate) -> bool:
        if c.finalized is None and c.confirmations is None:
            return False
        if c.finalized is not None and not c.finalized:
            return False
        return not (c.confirmations is not None and c.confirmations < self.min_confirmations)

    def process_candidate(self, c: FundingCandidate) -> ProcessResult:
        if c.chain != self.chain:
            raise InvalidChainError(self.chain, c.chain)

        if not self.is_ready(c):
            logger.debug(
                "Candidate {} not ready (confirmations={}, finalized={})",
                c.event_key,
                c.confirmations,
                c.finalized,
            )
            return ProcessResult.IGNORED

        match = self.resolver.find_transfer_by_route(c.chain, c.token, c.deposit_address)
        if match is None:
            logger.info("No live route for {} {} {}", c.chain, c.token, c.deposit_address)
            return ProcessResult.ROUTE_NOT_FOUND

        event = FundingConfirmedEvent(
            event_id=f"{match.transfer_id}:{c.tx_hash}",
            chain=c.chain,
            token=c.token,
            tx_hash=c.tx_hash,
            log_index=c.log_index,
            deposit_address=c.deposit_address,
            amount_usd=c.amount_usd,
        )
        self.publisher.publish_funding_confirmed(event)
        return ProcessResult.CONFIRMED
