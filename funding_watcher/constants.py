from __future__ import annotations

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

# USDC and USDT use 6 decimals on every supported chain
TOKEN_DECIMALS = 6

EVM_CHAIN_DEFAULT = "base"
SOLANA_CHAIN = "solana"

# Devnet mints, kept in sync with the web app's devnet config
DEFAULT_DEVNET_USDC_MINT = "6bDUveKHvCojQNt5VzsvLpScyQyDwScFVzw7mGTRP3Km"
DEFAULT_DEVNET_USDT_MINT = "2Seg9ZgkCyyqdEgTkNcxG2kszh9S2GrAzcY6XjPhtGJn"

SERVICE_TOKEN_TTL_SEC = 60
SERVICE_TOKEN_SCOPE = "watchers:internal"
