"""Same-chain routing: venue adapters and quote aggregation.

Venues:
- Uniswap V3: Ethereum
- PancakeSwap V3: BNB Smart Chain
- QuickSwap V3 (Algebra): Polygon

Venue modules and the factory import omniroute.chains, which itself depends
on the types here; import them directly (omniroute.routing.factory).
"""

from omniroute.routing.aggregator import QuoteAggregator, calculate_confidence
from omniroute.routing.base import (
    AggregatedQuote,
    BestRouteResult,
    QuoteResult,
    Token,
    TradeParams,
    TradeResult,
    VenueAdapter,
    calculate_minimum_amount_out,
    calculate_price_impact,
)

__all__ = [
    # Types
    "Token",
    "TradeParams",
    "QuoteResult",
    "AggregatedQuote",
    "BestRouteResult",
    "TradeResult",
    # Interfaces
    "VenueAdapter",
    "QuoteAggregator",
    # Helpers
    "calculate_confidence",
    "calculate_minimum_amount_out",
    "calculate_price_impact",
]
