"""Application configuration using pydantic-settings.

Static chain/token tables live in omniroute.chains; this module only holds
values that change between deployments (RPC endpoints, API hosts, timeouts).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Routing engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: str = Field(
        default="https://eth.llamarpc.com", description="Ethereum RPC URL"
    )
    bsc_rpc_url: str = Field(
        default="https://bsc-dataseed.binance.org", description="BNB Smart Chain RPC URL"
    )
    polygon_rpc_url: str = Field(
        default="https://polygon-rpc.com", description="Polygon RPC URL"
    )
    arbitrum_rpc_url: str = Field(
        default="https://arb1.arbitrum.io/rpc", description="Arbitrum One RPC URL"
    )
    optimism_rpc_url: str = Field(
        default="https://mainnet.optimism.io", description="Optimism RPC URL"
    )
    avalanche_rpc_url: str = Field(
        default="https://api.avax.network/ext/bc/C/rpc", description="Avalanche RPC URL"
    )

    # ======================
    # Venues and Bridges
    # ======================
    venues: str = Field(
        default="1:uniswap_v3,56:pancakeswap_v3,137:quickswap_v3",
        description="Comma-separated chain_id:venue pairs to build adapters for",
    )
    bridges: str = Field(
        default="stargate,hop,synapse",
        description="Comma-separated bridge provider keys",
    )
    stargate_api_url: str = Field(
        default="https://stargate.finance/api/v1", description="Stargate quote API"
    )
    layerzero_scan_api_url: str = Field(
        default="https://scan.layerzero-api.com/v1", description="LayerZero Scan API"
    )
    hop_api_url: str = Field(
        default="https://api.hop.exchange", description="Hop Protocol API"
    )
    hop_config_url: str = Field(
        default="https://assets.hop.exchange/mainnet/v1-core-config.json",
        description="Hop Protocol contract address book",
    )
    synapse_api_url: str = Field(
        default="https://api.synapseprotocol.com", description="Synapse REST API"
    )

    # ======================
    # Timeouts and Trading Defaults
    # ======================
    quote_timeout_seconds: float = Field(
        default=10.0, description="Per-venue / per-provider quote timeout"
    )
    rpc_timeout_seconds: float = Field(default=15.0, description="JSON-RPC HTTP timeout")
    http_timeout_seconds: float = Field(default=20.0, description="Bridge API HTTP timeout")
    tx_confirmation_timeout_seconds: int = Field(
        default=180, description="Maximum wait for a transaction receipt"
    )
    default_slippage_bps: int = Field(
        default=50, ge=0, le=10000, description="Slippage applied to requests that leave it unset (50 = 0.5%)"
    )
    deadline_minutes: int = Field(default=20, description="Swap deadline horizon")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_rpc_url(self, chain_id: int) -> Optional[str]:
        """Get RPC URL for an EVM chain id."""
        rpc_map = {
            1: self.eth_rpc_url,
            56: self.bsc_rpc_url,
            137: self.polygon_rpc_url,
            42161: self.arbitrum_rpc_url,
            10: self.optimism_rpc_url,
            43114: self.avalanche_rpc_url,
        }
        return rpc_map.get(chain_id)

    def venue_pairs(self) -> list[tuple[int, str]]:
        """Parse the configured venue list into (chain_id, venue_key) pairs."""
        pairs = []
        for item in self.venues.split(","):
            item = item.strip()
            if not item:
                continue
            chain, _, venue = item.partition(":")
            pairs.append((int(chain), venue.strip().lower()))
        return pairs

    def bridge_keys(self) -> list[str]:
        """Parse the configured bridge provider list."""
        return [b.strip().lower() for b in self.bridges.split(",") if b.strip()]

    def get_safe_dict(self) -> dict:
        """Return settings dict suitable for logging (RPC hosts only)."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "venues": self.venue_pairs(),
            "bridges": self.bridge_keys(),
            "rpc": {
                chain_id: self._redact_url(self.get_rpc_url(chain_id) or "")
                for chain_id in (1, 56, 137, 42161, 10, 43114)
            },
            "timeouts": {
                "quote": self.quote_timeout_seconds,
                "rpc": self.rpc_timeout_seconds,
                "confirmation": self.tx_confirmation_timeout_seconds,
            },
            "default_slippage_bps": self.default_slippage_bps,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Strip path components, which often carry provider API keys."""
        if "://" not in url:
            return url
        proto, rest = url.split("://", 1)
        host = rest.split("/", 1)[0]
        return f"{proto}://{host}" + ("/***" if "/" in rest.strip("/") else "")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
