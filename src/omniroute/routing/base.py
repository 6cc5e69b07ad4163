"""Abstract venue interface and same-chain trade types."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from decimal import ROUND_DOWN, Decimal
from typing import TYPE_CHECKING, Optional

from omniroute.errors import InvalidTradeParams

if TYPE_CHECKING:
    from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = Decimal("10000")
DEFAULT_SLIPPAGE_BPS = 50  # 0.5%


@dataclass(frozen=True)
class Token:
    """An ERC-20 token on a specific chain."""

    address: str
    symbol: str
    name: str
    decimals: int
    chain_id: int

    @property
    def key(self) -> tuple[str, int]:
        """Identity of the token: (lowercase address, chain id)."""
        return (self.address.lower(), self.chain_id)

    def same_as(self, other: "Token") -> bool:
        return self.key == other.key

    def with_chain(self, chain_id: int, address: str, decimals: Optional[int] = None) -> "Token":
        """The same asset deployed on another chain."""
        return replace(
            self,
            chain_id=chain_id,
            address=address,
            decimals=self.decimals if decimals is None else decimals,
        )

    def to_base_units(self, amount: Decimal) -> int:
        """Convert a human-readable amount to integer base units (floor)."""
        return int((Decimal(amount) * (Decimal(10) ** self.decimals)).to_integral_value(ROUND_DOWN))

    def from_base_units(self, amount: int) -> Decimal:
        """Convert integer base units to a human-readable amount."""
        return Decimal(amount) / (Decimal(10) ** self.decimals)

    def quantize(self, amount: Decimal) -> Decimal:
        """Truncate an amount to the token's precision."""
        return Decimal(amount).quantize(Decimal(1).scaleb(-self.decimals), rounding=ROUND_DOWN)


@dataclass
class TradeParams:
    """Parameters for a single same-chain swap."""

    token_in: Token
    token_out: Token
    amount_in: Decimal
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    deadline: Optional[int] = None  # unix timestamp
    recipient: Optional[str] = None

    def __post_init__(self):
        if self.token_in.chain_id != self.token_out.chain_id:
            raise InvalidTradeParams(
                f"tokenIn chain {self.token_in.chain_id} != tokenOut chain "
                f"{self.token_out.chain_id}; use a cross-chain swap"
            )
        if self.slippage_bps < 0 or self.slippage_bps > 10000:
            raise InvalidTradeParams(f"slippage_bps out of range: {self.slippage_bps}")
        self.amount_in = Decimal(self.amount_in)

    @property
    def chain_id(self) -> int:
        return self.token_in.chain_id


@dataclass
class QuoteResult:
    """A venue quote for one same-chain swap."""

    amount_out: Decimal
    price_impact_pct: Decimal
    route: list[str]
    gas_estimate: int
    minimum_amount_out: Decimal


@dataclass
class AggregatedQuote(QuoteResult):
    """A quote annotated by the aggregator with its venue and confidence."""

    venue_name: str = ""
    venue: Optional["VenueAdapter"] = field(default=None, repr=False, compare=False)
    confidence_score: int = 0


@dataclass
class BestRouteResult:
    """Outcome of ranking all venue quotes for a trade."""

    best_quote: AggregatedQuote
    all_quotes: list[AggregatedQuote]
    savings: Decimal
    savings_percentage: Decimal
    is_cross_chain: bool = False


@dataclass
class TradeResult:
    """Result of an executed same-chain swap."""

    tx_hash: str
    amount_in: Decimal
    amount_out: Decimal
    gas_used: int
    effective_price: Decimal
    price_impact_pct: Decimal
    venue_name: str = ""
    approval_tx_hash: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "tx_hash": self.tx_hash,
            "amount_in": str(self.amount_in),
            "amount_out": str(self.amount_out),
            "gas_used": self.gas_used,
            "effective_price": str(self.effective_price),
            "price_impact_pct": str(self.price_impact_pct),
            "venue": self.venue_name,
            "approval_tx_hash": self.approval_tx_hash,
        }


def calculate_minimum_amount_out(amount_out: Decimal, slippage_bps: int, decimals: int = 18) -> Decimal:
    """Apply slippage tolerance, truncated to the output token precision."""
    minimum = Decimal(amount_out) * (BPS_DENOMINATOR - Decimal(slippage_bps)) / BPS_DENOMINATOR
    return minimum.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)


def calculate_price_impact(amount_in: Decimal, amount_out: Decimal) -> Decimal:
    """Coarse price impact heuristic: |amount_in / amount_out - 1| * 100.

    Only a ranking signal; the venue's quoter already embeds the curve math.
    """
    if amount_out <= 0:
        return Decimal("100")
    return abs(Decimal(amount_in) / Decimal(amount_out) - 1) * 100


class VenueAdapter(ABC):
    """Abstract base class for a DEX deployment quoting and executing swaps."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Venue display name."""
        pass

    @abstractmethod
    def is_supported(self, chain_id: int) -> bool:
        """Check if this venue serves the chain."""
        pass

    @abstractmethod
    async def get_quote(self, params: TradeParams) -> QuoteResult:
        """
        Get a swap quote from the venue's on-chain quoter.

        Raises:
            UnsupportedChain: chain not served by this venue
            NoLiquidity: quoter reverted or returned zero output
        """
        pass

    @abstractmethod
    async def execute_trade(self, params: TradeParams, signer: "TransactionSigner") -> TradeResult:
        """
        Approve (if needed) and execute the swap.

        Raises:
            SlippageExceeded: the router rejected the output as too low
            TransactionError: submission or confirmation failed
        """
        pass

    @staticmethod
    def get_deadline(minutes: int = 20) -> int:
        """Unix timestamp `minutes` from now."""
        return int(time.time()) + minutes * 60

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
