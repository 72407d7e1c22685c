from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from loguru import logger
from web3 import Web3

from funding_watcher.config import AppSettings
from funding_watcher.constants import TOKEN_DECIMALS, TRANSFER_TOPIC
from funding_watcher.errors import ConfigurationError
from funding_watcher.models import (
    FundingCandidate,
    RouteStore,
    format_cursor,
    parse_cursor,
)


def encode_address_topic(address: str) -> str:
    """Left-pad a 20-byte address to a 32-byte log topic."""
    trimmed = address.strip().lower()
    if trimmed.startswith("0x"):
        trimmed = trimmed[2:]
    if len(trimmed) != 40:
        raise ValueError(f"invalid evm address length: {address}")
    try:
        bytes.fromhex(trimmed)
    except ValueError as e:
        raise ValueError(f"invalid evm address format: {address}") from e
    return "0x" + "0" * 24 + trimmed


def parse_hex_int(value: Any) -> int:
    # web3 usually hands back ints already; raw RPC payloads are hex strings
    if isinstance(value, bool):
        raise ValueError(f"invalid integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    trimmed = str(value).strip()
    if trimmed.startswith("0x"):
        trimmed = trimmed[2:]
    if not trimmed:
        return 0
    return int(trimmed, 16)


def token_amount_usd(data: Any, decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Decode a uint256 log data field into a USD amount for a stablecoin."""
    if isinstance(data, (bytes, bytearray)):
        raw = int.from_bytes(data, "big")
    else:
        trimmed = str(data or "").strip()
        if trimmed.startswith("0x"):
            trimmed = trimmed[2:]
        raw = int.from_bytes(bytes.fromhex(trimmed), "big") if trimmed else 0
    return Decimal(raw) / (Decimal(10) ** decimals)


def _hex_str(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


@dataclass
class EvmLogSource:
    """Scans ERC20 Transfer logs into the watched deposit addresses."""

    chain: str
    w3: Web3
    routes: RouteStore
    token_contracts: dict[str, str]

    @classmethod
    def create(cls, settings: AppSettings, routes: RouteStore) -> "EvmLogSource":
        if not settings.evm_rpc_url:
            raise ConfigurationError(f"{settings.evm_chain} rpc url is required")
        w3 = Web3(Web3.HTTPProvider(settings.evm_rpc_url, request_kwargs={"timeout": settings.rpc_timeout_sec}))
        contracts = settings.token_addresses(settings.evm_chain)
        logger.info("EVM source for {} via {} (tokens: {})", settings.evm_chain, settings.evm_rpc_url, sorted(contracts))
        return cls(chain=settings.evm_chain, w3=w3, routes=routes, token_contracts=contracts)

    def get_transfer_logs(self, contract: str, deposit_address: str, from_block: int, to_block: int) -> list:
        params = {
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": Web3.to_checksum_address(contract),
            "topics": [TRANSFER_TOPIC, None, encode_address_topic(deposit_address)],
        }
        return list(self.w3.eth.get_logs(params) or [])

    def poll(self, cursor: str) -> tuple[list[FundingCandidate], str]:
        latest = int(self.w3.eth.block_number)
        current = parse_cursor(cursor)
        if latest <= current:
            return [], format_cursor(current)

        from_block = current + 1
        candidates: list[FundingCandidate] = []
        for route in self.routes.list_active_routes(self.chain):
            token = route.token.upper()
            contract = self.token_contracts.get(token)
            if not contract:
                continue

            for log in self.get_transfer_logs(contract, route.deposit_address, from_block, latest):
                try:
                    amount = token_amount_usd(log.get("data"))
                    block_number = parse_hex_int(log.get("blockNumber"))
                    log_index = parse_hex_int(log.get("logIndex"))
                    tx_hash = _hex_str(log["transactionHash"])
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug("Dropping undecodable log for {}: {}", route.deposit_address, e)
                    continue

                candidates.append(
                    FundingCandidate(
                        chain=self.chain,
                        token=token,
                        tx_hash=tx_hash,
                        log_index=log_index,
                        deposit_address=route.deposit_address,
                        amount_usd=amount,
                        confirmations=latest - block_number + 1,
                    )
                )

        logger.debug("{}: scanned blocks {}..{} -> {} candidate(s)", self.chain, from_block, latest, len(candidates))
        return candidates, format_cursor(latest)
