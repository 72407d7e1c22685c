from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from funding_watcher.constants import (
    DEFAULT_DEVNET_USDC_MINT,
    DEFAULT_DEVNET_USDT_MINT,
    EVM_CHAIN_DEFAULT,
    SOLANA_CHAIN,
)


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="WATCHER_", extra="allow")

    # Core API (routes, checkpoints, dedupe)
    core_api_url: str = "http://localhost:3001"
    core_api_timeout_sec: float = 8.0
    auth_jwt_secret: str = "dev-jwt-secret-change-me"
    auth_jwt_issuer: str = "cryptopay-internal"
    auth_jwt_audience: str = "cryptopay-services"

    # Funding callback
    callback_url: str = "http://localhost:3001/internal/v1/funding-confirmed"
    callback_secret: str = "dev-callback-secret-change-me"
    callback_timeout_sec: float = 8.0

    # EVM
    evm_chain: str = EVM_CHAIN_DEFAULT
    evm_rpc_url: str | None = None
    evm_usdc_contract: str | None = None
    evm_usdt_contract: str | None = None
    evm_min_confirmations: int = 2
    evm_poll_interval_ms: int = 5000

    # Solana
    solana_rpc_url: str | None = None
    solana_usdc_mint: str | None = DEFAULT_DEVNET_USDC_MINT
    solana_usdt_mint: str | None = DEFAULT_DEVNET_USDT_MINT
    solana_signature_limit: int = 100
    solana_poll_interval_ms: int = 5000

    # Chain RPC
    rpc_timeout_sec: float = 10.0

    # Optional token map file, overlays the env-provided addresses
    tokens_config: str = "config/tokens.yaml"

    # Logging
    log_level: str = "INFO"

    # --- Validators to coerce empty strings in optional envs to None ---
    @field_validator(
        "evm_rpc_url",
        "evm_usdc_contract",
        "evm_usdt_contract",
        "solana_rpc_url",
        "solana_usdc_mint",
        "solana_usdt_mint",
        mode="before",
    )
    @classmethod
    def _empty_str_to_none(cls, v):
        if v == "":
            return None
        return v

    def token_addresses(self, chain: str) -> dict[str, str]:
        """Token symbol -> contract address (EVM) or mint (Solana) for `chain`."""
        import yaml

        chain = chain.lower()
        if chain == SOLANA_CHAIN:
            out = {"USDC": self.solana_usdc_mint, "USDT": self.solana_usdt_mint}
        elif chain == self.evm_chain.lower():
            out = {"USDC": self.evm_usdc_contract, "USDT": self.evm_usdt_contract}
        else:
            out = {}

        path = Path(self.tokens_config)
        if path.exists():
            data = yaml.safe_load(path.read_text()) or {}
            for item in data.get("tokens", []):
                if (item.get("chain") or "").lower() != chain:
                    continue
                symbol = (item.get("symbol") or "").strip().upper()
                if symbol:
                    out[symbol] = (item.get("address") or "").strip()

        return {symbol: addr for symbol, addr in out.items() if addr}

    @property
    def evm_poll_interval_sec(self) -> float:
        return self.evm_poll_interval_ms / 1000.0

    @property
    def solana_poll_interval_sec(self) -> float:
        return self.solana_poll_interval_ms / 1000.0
