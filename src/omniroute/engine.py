"""Routing engine: wires aggregators and the cross-chain components together.

Build one with RoutingEngine.from_settings() (or pass aggregators directly
in tests) and keep it for the life of the process.
"""

import logging
from typing import Optional, Union

from omniroute.bridges.aggregator import BridgeAggregator
from omniroute.bridges.base import BridgeResult
from omniroute.bridges.factory import create_bridge_aggregator
from omniroute.config import Settings, get_settings
from omniroute.contracts import CrossChainQuoteRequest, ExecuteRequest, QuoteRequest
from omniroute.crosschain.composer import (
    CrossChainSwapParams,
    CrossChainSwapResult,
    RouteComposer,
    get_cross_chain_routes,
)
from omniroute.crosschain.orchestrator import ExecutionOrchestrator
from omniroute.crosschain.planner import RoutePlanner, SwapComparison
from omniroute.crosschain.tracker import StatusTracker
from omniroute.errors import InvalidTradeParams
from omniroute.routing.aggregator import QuoteAggregator
from omniroute.routing.base import DEFAULT_SLIPPAGE_BPS, BestRouteResult, TradeParams, TradeResult
from omniroute.routing.factory import create_quote_aggregator
from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging: DEBUG when settings.debug, INFO otherwise."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class RoutingEngine:
    """Entry point for same-chain and cross-chain quoting and execution."""

    def __init__(
        self,
        quote_aggregator: QuoteAggregator,
        bridge_aggregator: BridgeAggregator,
        default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ):
        self.quote_aggregator = quote_aggregator
        self.bridge_aggregator = bridge_aggregator
        self.composer = RouteComposer(quote_aggregator, bridge_aggregator)
        self.planner = RoutePlanner(self.composer, quote_aggregator)
        self.orchestrator = ExecutionOrchestrator(self.composer, quote_aggregator, bridge_aggregator)
        self.tracker = StatusTracker(bridge_aggregator)
        # Applied to requests that leave slippage_bps unset
        self.default_slippage_bps = default_slippage_bps

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RoutingEngine":
        """Build venues and bridge providers from configuration."""
        settings = settings or get_settings()
        logger.info(f"Starting routing engine: {settings.get_safe_dict()}")
        return cls(
            create_quote_aggregator(settings),
            create_bridge_aggregator(settings),
            default_slippage_bps=settings.default_slippage_bps,
        )

    # ---------- same-chain ----------

    async def find_best_route(self, params: Union[TradeParams, QuoteRequest]) -> BestRouteResult:
        if isinstance(params, QuoteRequest):
            params = params.to_params(self.default_slippage_bps)
        return await self.quote_aggregator.find_best_route(params)

    async def execute_trade(self, params: Union[TradeParams, QuoteRequest], signer: TransactionSigner) -> TradeResult:
        if isinstance(params, QuoteRequest):
            params = params.to_params(self.default_slippage_bps)
        return await self.quote_aggregator.execute_best_trade(params, signer)

    # ---------- cross-chain ----------

    async def get_cross_chain_quote(
        self, params: Union[CrossChainSwapParams, CrossChainQuoteRequest]
    ) -> CrossChainSwapResult:
        if isinstance(params, CrossChainQuoteRequest):
            params = params.to_params(self.default_slippage_bps)
        return await self.composer.get_cross_chain_quote(params)

    async def compare_swap_options(
        self, params: Union[CrossChainSwapParams, CrossChainQuoteRequest]
    ) -> SwapComparison:
        if isinstance(params, CrossChainQuoteRequest):
            params = params.to_params(self.default_slippage_bps)
        return await self.planner.compare_swap_options(params)

    async def execute_cross_chain_swap(
        self, params: Union[CrossChainSwapParams, CrossChainQuoteRequest], signer: TransactionSigner
    ) -> CrossChainSwapResult:
        if isinstance(params, CrossChainQuoteRequest):
            params = params.to_params(self.default_slippage_bps)
        return await self.orchestrator.execute_cross_chain_swap(params, signer)

    async def execute(
        self, request: ExecuteRequest, signer: TransactionSigner
    ) -> Union[TradeResult, CrossChainSwapResult]:
        """Execute a validated request after checking the signer controls its address."""
        address = await signer.get_address()
        if address.lower() != request.signer_address.lower():
            raise InvalidTradeParams(
                f"Signer controls {address}, request is for {request.signer_address}"
            )
        if request.is_cross_chain:
            return await self.execute_cross_chain_swap(request.cross_chain, signer)
        return await self.execute_trade(request.trade, signer)

    async def track(self, tracking_id: str, from_chain: Optional[int] = None) -> BridgeResult:
        return await self.tracker.track_bridge_status(tracking_id, from_chain)

    # ---------- discovery ----------

    def supported_chains(self) -> list[int]:
        """Chains with at least one configured venue."""
        return self.quote_aggregator.supported_chains()

    def get_cross_chain_routes(self) -> list[dict]:
        """Chain pairs with a bridge token and at least one bridge provider."""
        bridged = {(r["from"], r["to"]) for r in self.bridge_aggregator.get_supported_routes()}
        return [r for r in get_cross_chain_routes() if (r["from"], r["to"]) in bridged]
