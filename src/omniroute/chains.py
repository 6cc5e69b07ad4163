"""Static chain, token and venue tables for supported EVM networks.

Supports 6 chains:
- Ethereum (Uniswap V3), BNB Smart Chain (PancakeSwap V3), Polygon (QuickSwap V3)
- Arbitrum, Optimism, Avalanche (bridge endpoints only)

RPC endpoints are not stored here; see omniroute.config.Settings.get_rpc_url.
"""

from dataclasses import dataclass, field
from typing import Optional

from omniroute.routing.base import Token


@dataclass
class ChainConfig:
    """Configuration for an EVM chain."""

    chain_id: int
    name: str
    slug: str  # Identifier used by bridge APIs (ethereum, bsc, polygon, ...)
    native_symbol: str
    explorer_url: str
    native_decimals: int = 18


@dataclass
class VenueConfig:
    """On-chain deployment of a concentrated-liquidity DEX."""

    key: str
    name: str
    chains: list[int]
    router: str
    quoter: str
    factory: str
    default_fee: Optional[int] = None  # None for dynamic-fee (Algebra) pools
    fee_tiers: list[int] = field(default_factory=list)
    swap_gas_estimate: int = 180_000  # Used when the quoter reports no gas figure


# ======================
# Chains
# ======================

CHAINS: dict[int, ChainConfig] = {
    1: ChainConfig(1, "Ethereum", "ethereum", "ETH", "https://etherscan.io"),
    56: ChainConfig(56, "BSC", "bsc", "BNB", "https://bscscan.com"),
    137: ChainConfig(137, "Polygon", "polygon", "MATIC", "https://polygonscan.com"),
    42161: ChainConfig(42161, "Arbitrum", "arbitrum", "ETH", "https://arbiscan.io"),
    10: ChainConfig(10, "Optimism", "optimism", "ETH", "https://optimistic.etherscan.io"),
    43114: ChainConfig(43114, "Avalanche", "avalanche", "AVAX", "https://snowtrace.io"),
}


# ======================
# Tokens: chain_id -> symbol -> (address, decimals, name)
# ======================

TOKENS: dict[int, dict[str, tuple[str, int, str]]] = {
    1: {
        "WETH": ("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", 18, "Wrapped Ether"),
        "USDC": ("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6, "USD Coin"),
        "USDT": ("0xdAC17F958D2ee523a2206206994597C13D831ec7", 6, "Tether USD"),
        "DAI": ("0x6B175474E89094C44Da98b954EedeAC495271d0F", 18, "Dai Stablecoin"),
        "WBTC": ("0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", 8, "Wrapped BTC"),
    },
    56: {
        "WBNB": ("0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c", 18, "Wrapped BNB"),
        "USDC": ("0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", 18, "USD Coin"),
        "USDT": ("0x55d398326f99059fF775485246999027B3197955", 18, "Tether USD"),
        "BUSD": ("0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56", 18, "Binance USD"),
        "ETH": ("0x2170Ed0880ac9A755fd29B2688956BD959F933F8", 18, "Binance-Peg Ethereum"),
    },
    137: {
        "WMATIC": ("0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270", 18, "Wrapped Matic"),
        "USDC": ("0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", 6, "USD Coin (PoS)"),
        "USDT": ("0xc2132D05D31c914a87C6611C10748AEb04B58e8F", 6, "Tether USD (PoS)"),
        "DAI": ("0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063", 18, "Dai Stablecoin (PoS)"),
        "WETH": ("0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619", 18, "Wrapped Ether (PoS)"),
    },
    42161: {
        "WETH": ("0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", 18, "Wrapped Ether"),
        "USDC": ("0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8", 6, "USD Coin (Arb1)"),
        "USDT": ("0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", 6, "Tether USD"),
    },
    10: {
        "WETH": ("0x4200000000000000000000000000000000000006", 18, "Wrapped Ether"),
        "USDC": ("0x7F5c764cBc14f9669B88837ca1490cCa17c31607", 6, "USD Coin (Bridged)"),
    },
    43114: {
        "WAVAX": ("0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7", 18, "Wrapped AVAX"),
    },
}

# Bridge token preference order. Only tokens listed on both chains qualify.
STABLECOINS: list[str] = ["USDC", "USDT"]


# ======================
# Venues
# ======================

VENUES: dict[str, VenueConfig] = {
    "uniswap_v3": VenueConfig(
        key="uniswap_v3",
        name="Uniswap V3",
        chains=[1],
        router="0xE592427A0AEce92De3Edee1F18E0157C05861564",
        quoter="0x61fFE014bA17989E743c5F6cB21bF9697530B21e",  # QuoterV2
        factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
        default_fee=3000,
        fee_tiers=[500, 3000, 10000],
    ),
    "pancakeswap_v3": VenueConfig(
        key="pancakeswap_v3",
        name="PancakeSwap V3",
        chains=[56],
        router="0x13f4EA83D0bd40E75C8222255bc855a974568Dd4",  # SmartRouter
        quoter="0xB048Bbc1Ee6b733FFfCFb9e9CeF7375518e25997",  # QuoterV2
        factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
        default_fee=2500,
        fee_tiers=[100, 500, 2500, 10000],
    ),
    "quickswap_v3": VenueConfig(
        key="quickswap_v3",
        name="QuickSwap V3",
        chains=[137],
        router="0xf5b509bB0909a69B1c207E495f687a596C168E12",
        quoter="0xa15F0D7377B2A0C0c10262E4ABB0B37C4B9d8e0C",
        factory="0x411b0fAcC3489691f28ad58c47006AF5E3Ab3A28",
        swap_gas_estimate=200_000,
    ),
}


def get_chain_name(chain_id: int) -> str:
    """Get display name for a chain id."""
    chain = CHAINS.get(chain_id)
    return chain.name if chain else f"Chain {chain_id}"


def get_chain_slug(chain_id: int) -> Optional[str]:
    """Get the lowercase slug bridge APIs use for a chain id."""
    chain = CHAINS.get(chain_id)
    return chain.slug if chain else None


def get_token(chain_id: int, symbol: str) -> Optional[Token]:
    """Look up a known token by symbol on a chain."""
    entry = TOKENS.get(chain_id, {}).get(symbol.upper())
    if not entry:
        return None
    address, decimals, name = entry
    return Token(
        address=address,
        symbol=symbol.upper(),
        name=name,
        decimals=decimals,
        chain_id=chain_id,
    )


def find_token_by_address(chain_id: int, address: str) -> Optional[Token]:
    """Reverse lookup of a known token by contract address."""
    for symbol, (token_address, _, _) in TOKENS.get(chain_id, {}).items():
        if token_address.lower() == address.lower():
            return get_token(chain_id, symbol)
    return None
