"""Compare a cross-chain plan against same-chain alternatives."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from omniroute.chains import get_chain_name, get_token
from omniroute.crosschain.composer import BRIDGE_CHAIN, CrossChainSwapParams, CrossChainSwapResult, RouteComposer
from omniroute.errors import InvalidTradeParams, NoQuotesAvailable
from omniroute.routing.aggregator import QuoteAggregator
from omniroute.routing.base import BestRouteResult, TradeParams

logger = logging.getLogger(__name__)

# Same-chain wins when it keeps at least this share of the cross-chain output
SAME_CHAIN_THRESHOLD = Decimal("0.95")

RECOMMEND_CROSS_CHAIN = "cross-chain"
RECOMMEND_SAME_CHAIN = "same-chain"


@dataclass
class SameChainAlternative:
    chain: int
    route: BestRouteResult


@dataclass
class SwapComparison:
    """Cross-chain plan, same-chain alternatives and the recommendation."""

    cross_chain: CrossChainSwapResult
    same_chain_alternatives: list[SameChainAlternative] = field(default_factory=list)
    recommendation: str = RECOMMEND_CROSS_CHAIN
    reasoning: str = ""


class RoutePlanner:
    """Weighs a cross-chain plan against swapping natively on either endpoint chain."""

    def __init__(self, composer: RouteComposer, quote_aggregator: QuoteAggregator):
        self.composer = composer
        self.quote_aggregator = quote_aggregator

    async def _same_chain_route(self, chain_id: int, params: CrossChainSwapParams):
        token_in = get_token(chain_id, params.token_in.symbol)
        token_out = get_token(chain_id, params.token_out.symbol)
        if token_in is None or token_out is None or token_in.same_as(token_out):
            return None
        try:
            trade = TradeParams(
                token_in=token_in,
                token_out=token_out,
                amount_in=params.amount_in,
                slippage_bps=params.slippage_bps,
            )
            return await self.quote_aggregator.find_best_route(trade)
        except (NoQuotesAvailable, InvalidTradeParams) as e:
            logger.debug(f"No same-chain alternative on {get_chain_name(chain_id)}: {e}")
            return None

    async def compare_swap_options(self, params: CrossChainSwapParams) -> SwapComparison:
        """Recommend same-chain only if it returns more than 95% of the cross-chain output."""
        cross_chain = await self.composer.get_cross_chain_quote(params)
        comparison = SwapComparison(
            cross_chain=cross_chain,
            reasoning="Cross-chain swap provides access to the requested token pair",
        )

        for chain_id in (params.from_chain, params.to_chain):
            route = await self._same_chain_route(chain_id, params)
            if route is not None:
                comparison.same_chain_alternatives.append(SameChainAlternative(chain=chain_id, route=route))

        if not comparison.same_chain_alternatives:
            return comparison

        best = max(comparison.same_chain_alternatives, key=lambda a: a.route.best_quote.amount_out)
        same_chain_out = best.route.best_quote.amount_out
        if same_chain_out > cross_chain.estimated_amount_out * SAME_CHAIN_THRESHOLD:
            comparison.recommendation = RECOMMEND_SAME_CHAIN
            comparison.reasoning = (
                f"Same-chain swap on {get_chain_name(best.chain)} returns {same_chain_out} "
                f"{params.token_out.symbol} vs {cross_chain.estimated_amount_out} cross-chain, "
                f"without bridge fees or bridge delay"
            )
        else:
            comparison.reasoning = (
                f"Cross-chain output {cross_chain.estimated_amount_out} {params.token_out.symbol} "
                f"beats the best same-chain swap ({same_chain_out} on {get_chain_name(best.chain)})"
            )

        logger.info(f"Recommendation: {comparison.recommendation} ({comparison.reasoning})")
        return comparison

    async def estimate_cross_chain_costs(self, params: CrossChainSwapParams) -> dict:
        """Gas units, bridge fees and a per-step breakdown for a plan."""
        plan = await self.composer.get_cross_chain_quote(params)
        fees = plan.bridge_quote.fees

        breakdown = []
        for step in plan.steps:
            if step.chain == BRIDGE_CHAIN:
                gas = plan.bridge_quote.gas_estimate
            elif plan.source_quote is not None and step is plan.source_step:
                gas = plan.source_quote.gas_estimate
            else:
                gas = plan.dest_quote.gas_estimate
            breakdown.append({
                "step_number": step.step_number,
                "action": step.action,
                "protocol": step.protocol,
                "gas_estimate": gas,
                "estimated_time_minutes": step.estimated_time_minutes,
            })

        return {
            "total_gas_estimate": plan.total_gas_estimate,
            "bridge_fee": fees.bridge_fee,
            "bridge_gas_fee": fees.gas_fee,
            "bridge_fee_usd": fees.total_fee_usd,
            "bridge_token": plan.bridge_token.symbol,
            "estimated_time_minutes": plan.estimated_time_minutes,
            "breakdown": breakdown,
        }
