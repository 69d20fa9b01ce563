"""Chain and tracked-token configuration records."""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_EXPLORER_URL = "https://etherscan.io/tx/{tx_hash}"


@dataclass(frozen=True)
class TokenConfig:
    """An ERC-20 token whose caller balance is tracked around each round."""
    address: str
    symbol: str = "UNKNOWN"
    name: str = "Unknown Token"
    decimals: int = 18


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for one active chain; loaded once per run, never mutated."""
    name: str                                        # Internal name, e.g. "sepolia-base"
    chain_id: int
    rpc_url: str                                     # Endpoint, may contain "{api_key}"
    ledger_address: str                              # Clocktower contract
    tokens: tuple[TokenConfig, ...] = field(default_factory=tuple)
    display_name: Optional[str] = None
    explorer_url: str = DEFAULT_EXPLORER_URL         # Template with "{tx_hash}"
    is_testnet: bool = False

    @property
    def label(self) -> str:
        """Human-readable chain name for notifications."""
        return self.display_name or self.name

    def resolve_rpc_url(self, api_key: Optional[str]) -> str:
        """
        Build the concrete RPC endpoint.

        Templates containing ``{api_key}`` are formatted; otherwise the key is
        appended to the URL, matching provider URLs such as
        ``https://base-mainnet.g.alchemy.com/v2/``.
        """
        if "{api_key}" in self.rpc_url:
            return self.rpc_url.format(api_key=api_key or "")
        if api_key:
            return f"{self.rpc_url}{api_key}"
        return self.rpc_url

    def explorer_link(self, tx_hash: str) -> str:
        """Explorer URL for a transaction on this chain."""
        return self.explorer_url.format(tx_hash=tx_hash)
