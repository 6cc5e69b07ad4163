"""Cross-chain transfers: bridge providers and quote aggregation.

Providers:
- LayerZero (Stargate V2)
- Hop Protocol
- Synapse Protocol
"""

from omniroute.bridges.aggregator import BridgeAggregator
from omniroute.bridges.base import (
    AggregatedBridgeQuote,
    BridgeFees,
    BridgeParams,
    BridgeProvider,
    BridgeQuote,
    BridgeResult,
    BridgeRouteStep,
)

__all__ = [
    "AggregatedBridgeQuote",
    "BridgeAggregator",
    "BridgeFees",
    "BridgeParams",
    "BridgeProvider",
    "BridgeQuote",
    "BridgeResult",
    "BridgeRouteStep",
]
