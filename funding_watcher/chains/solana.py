from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from loguru import logger
from solana.rpc.api import Client
from solana.rpc.commitment import Finalized
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey

from funding_watcher.config import AppSettings
from funding_watcher.constants import SOLANA_CHAIN, TOKEN_DECIMALS
from funding_watcher.errors import ConfigurationError
from funding_watcher.models import (
    FundingCandidate,
    RouteStore,
    format_cursor,
    parse_cursor,
)


def _sum_balances(balances: Any, owner: str, mint: str) -> Optional[int]:
    total = None
    for bal in balances or []:
        # Solana pubkeys are case-sensitive base58; compare exactly
        if str(getattr(bal, "owner", "") or "").strip() != owner:
            continue
        if str(getattr(bal, "mint", "") or "").strip() != mint:
            continue
        try:
            amount = int(bal.ui_token_amount.amount)
        except (AttributeError, TypeError, ValueError):
            continue
        total = amount if total is None else total + amount
    return total


def extract_token_credit(meta: Any, owner: str, mint: str, decimals: int = TOKEN_DECIMALS) -> Optional[Decimal]:
    """
    Amount credited to `owner` for `mint` by one transaction, from the
    pre/post token balances in its meta. None when the transaction is not a
    positive credit to that owner/mint.
    """
    if meta is None:
        return None
    owner = owner.strip()
    mint = mint.strip()
    post = _sum_balances(getattr(meta, "post_token_balances", None), owner, mint)
    if post is None:
        return None
    pre = _sum_balances(getattr(meta, "pre_token_balances", None), owner, mint) or 0
    delta = post - pre
    if delta <= 0:
        return None
    return Decimal(delta) / (Decimal(10) ** decimals)


@dataclass
class SolanaTransactionSource:
    """Finds finalized token credits to deposit addresses via signature listing."""

    client: Client
    routes: RouteStore
    token_mints: dict[str, str]
    chain: str = SOLANA_CHAIN
    limit: int = 100

    @classmethod
    def create(cls, settings: AppSettings, routes: RouteStore) -> SolanaTransactionSource:
        if not settings.solana_rpc_url:
            raise ConfigurationError("solana rpc url is required")
        client = Client(settings.solana_rpc_url, timeout=settings.rpc_timeout_sec)
        mints = settings.token_addresses(SOLANA_CHAIN)
        logger.info("Solana source via {} (tokens: {})", settings.solana_rpc_url, sorted(mints))
        return cls(
            client=client,
            routes=routes,
            token_mints=mints,
            limit=settings.solana_signature_limit,
        )

    def get_finalized_slot(self) -> int:
        return int(self.client.get_slot(commitment=Finalized).value)

    def get_signatures(self, address: str) -> list:
        resp = self.client.get_signatures_for_address(
            Pubkey.from_string(address), limit=self.limit if self.limit > 0 else 100, commitment=Finalized
        )
        return list(resp.value or [])

    def get_transaction_meta(self, signature: Any) -> Any:
        resp = self.client.get_transaction(
            signature,
            encoding="jsonParsed",
            commitment=Finalized,
            max_supported_transaction_version=0,
        )
        tx = resp.value
        if tx is None:
            return None
        return tx.transaction.meta

    def poll(self, cursor: str) -> tuple[list[FundingCandidate], str]:
        latest = self.get_finalized_slot()
        current = parse_cursor(cursor)
        if latest <= current:
            return [], format_cursor(current)

        candidates: list[FundingCandidate] = []
        for route in self.routes.list_active_routes(self.chain):
            token = route.token.upper()
            mint = self.token_mints.get(token)
            if not mint:
                continue

            for sig in self.get_signatures(route.deposit_address):
                if sig.err is not None or sig.slot <= current:
                    continue
                signature = str(sig.signature)
                try:
                    meta = self.get_transaction_meta(sig.signature)
                except (RPCException, AttributeError, TypeError, ValueError) as e:
                    # transport errors propagate and abort the poll
                    logger.debug("Skipping transaction {}: {}", signature, e)
                    continue

                amount = extract_token_credit(meta, route.deposit_address, mint)
                if amount is None:
                    continue

                candidates.append(
                    FundingCandidate(
                        chain=self.chain,
                        token=token,
                        tx_hash=signature,
                        log_index=0,
                        deposit_address=route.deposit_address,
                        amount_usd=amount,
                        finalized=True,
                    )
                )

        logger.debug("{}: scanned slots {}..{} -> {} candidate(s)", self.chain, current + 1, latest, len(candidates))
        return candidates, format_cursor(latest)
