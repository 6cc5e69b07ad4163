"""Cross-chain swaps: plan composition, comparison, execution and tracking."""

from omniroute.crosschain.composer import (
    CrossChainSwapParams,
    CrossChainSwapResult,
    RouteComposer,
    SwapStep,
    find_optimal_bridge_token,
    get_bridge_tokens_for_route,
    get_cross_chain_routes,
)
from omniroute.crosschain.orchestrator import ExecutionOrchestrator
from omniroute.crosschain.planner import RoutePlanner, SameChainAlternative, SwapComparison
from omniroute.crosschain.tracker import StatusTracker

__all__ = [
    "CrossChainSwapParams",
    "CrossChainSwapResult",
    "ExecutionOrchestrator",
    "RouteComposer",
    "RoutePlanner",
    "SameChainAlternative",
    "StatusTracker",
    "SwapComparison",
    "SwapStep",
    "find_optimal_bridge_token",
    "get_bridge_tokens_for_route",
    "get_cross_chain_routes",
]
