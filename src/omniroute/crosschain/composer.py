"""Cross-chain plan composition.

A plan is up to three legs: swap into the bridge stablecoin on the source
chain, bridge it, swap out of it on the destination chain. Legs whose input
already is the bridge token are skipped.
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from itertools import permutations
from typing import Iterable, Optional

from omniroute.bridges.aggregator import BridgeAggregator
from omniroute.bridges.base import STATUS_PENDING, AggregatedBridgeQuote, BridgeParams, BridgeResult
from omniroute.chains import CHAINS, STABLECOINS, get_chain_name, get_token
from omniroute.errors import InvalidTradeParams, NoBridgeToken, NoQuotesAvailable, NoRouteAvailable
from omniroute.routing.aggregator import QuoteAggregator
from omniroute.routing.base import DEFAULT_SLIPPAGE_BPS, AggregatedQuote, Token, TradeParams, TradeResult

logger = logging.getLogger(__name__)

# Same-chain legs are a single transaction plus approval
SWAP_STEP_MINUTES = 3

BRIDGE_CHAIN = 0


# ======================
# Bridge token selection
# ======================


def get_bridge_tokens_for_route(from_chain: int, to_chain: int) -> list[Token]:
    """Stablecoins known on both chains, in preference order, as source-chain tokens."""
    tokens = []
    for symbol in STABLECOINS:
        source = get_token(from_chain, symbol)
        if source and get_token(to_chain, symbol):
            tokens.append(source)
    return tokens


def find_optimal_bridge_token(from_chain: int, to_chain: int) -> Token:
    """Preferred bridge stablecoin for a route (USDC, then USDT).

    Raises:
        NoBridgeToken: no preferred stablecoin exists on both chains
    """
    tokens = get_bridge_tokens_for_route(from_chain, to_chain)
    if not tokens:
        raise NoBridgeToken(from_chain, to_chain)
    return tokens[0]


def get_cross_chain_routes(chain_ids: Optional[Iterable[int]] = None) -> list[dict]:
    """Every ordered chain pair with at least one bridge token."""
    chains = sorted(chain_ids) if chain_ids is not None else sorted(CHAINS)
    routes = []
    for from_chain, to_chain in permutations(chains, 2):
        tokens = get_bridge_tokens_for_route(from_chain, to_chain)
        if tokens:
            routes.append({
                "from": from_chain,
                "to": to_chain,
                "bridge_tokens": [t.symbol for t in tokens],
            })
    return routes


# ======================
# Plan types
# ======================


@dataclass
class SwapStep:
    """One leg of a cross-chain plan, updated in place during execution."""

    step_number: int
    action: str
    chain: int  # 0 = cross-chain
    protocol: str
    estimated_time_minutes: int
    tx_hash: Optional[str] = None
    status: str = STATUS_PENDING

    def to_dict(self) -> dict:
        return {
            "step_number": self.step_number,
            "action": self.action,
            "chain": self.chain,
            "protocol": self.protocol,
            "estimated_time_minutes": self.estimated_time_minutes,
            "tx_hash": self.tx_hash,
            "status": self.status,
        }


@dataclass
class CrossChainSwapParams:
    """Swap ``token_in`` on ``from_chain`` into ``token_out`` on ``to_chain``."""

    from_chain: int
    to_chain: int
    token_in: Token
    token_out: Token
    amount_in: Decimal
    recipient: str
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    prioritize_speed: bool = False

    def __post_init__(self):
        if self.token_in.chain_id != self.from_chain:
            raise InvalidTradeParams(f"token_in lives on chain {self.token_in.chain_id}, not {self.from_chain}")
        if self.token_out.chain_id != self.to_chain:
            raise InvalidTradeParams(f"token_out lives on chain {self.token_out.chain_id}, not {self.to_chain}")
        if self.slippage_bps < 0 or self.slippage_bps > 10000:
            raise InvalidTradeParams(f"slippage_bps out of range: {self.slippage_bps}")
        self.amount_in = Decimal(self.amount_in)


@dataclass
class CrossChainSwapResult:
    """A cross-chain plan and, once executed, its per-leg results."""

    steps: list[SwapStep]
    total_gas_estimate: int
    estimated_time_minutes: int
    bridge_token: Token
    bridge_quote: AggregatedBridgeQuote
    estimated_amount_out: Decimal
    source_quote: Optional[AggregatedQuote] = field(default=None, repr=False)
    dest_quote: Optional[AggregatedQuote] = field(default=None, repr=False)
    source_swap_result: Optional[TradeResult] = None
    bridge_result: Optional[BridgeResult] = None
    dest_swap_result: Optional[TradeResult] = None

    @property
    def source_step(self) -> Optional[SwapStep]:
        return self.steps[0] if self.source_quote is not None else None

    @property
    def bridge_step(self) -> SwapStep:
        return next(s for s in self.steps if s.chain == BRIDGE_CHAIN)

    @property
    def dest_step(self) -> Optional[SwapStep]:
        return self.steps[-1] if self.dest_quote is not None else None

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "steps": [s.to_dict() for s in self.steps],
            "total_gas_estimate": self.total_gas_estimate,
            "estimated_time_minutes": self.estimated_time_minutes,
            "bridge_token": self.bridge_token.symbol,
            "bridge_provider": self.bridge_quote.provider,
            "source_venue": self.source_quote.venue_name if self.source_quote else None,
            "dest_venue": self.dest_quote.venue_name if self.dest_quote else None,
            "estimated_amount_out": str(self.estimated_amount_out),
            "source_swap": self.source_swap_result.to_dict() if self.source_swap_result else None,
            "bridge": self.bridge_result.to_dict() if self.bridge_result else None,
            "dest_swap": self.dest_swap_result.to_dict() if self.dest_swap_result else None,
        }


# ======================
# Composer
# ======================


class RouteComposer:
    """Builds cross-chain plans from same-chain and bridge quotes."""

    def __init__(self, quote_aggregator: QuoteAggregator, bridge_aggregator: BridgeAggregator):
        self.quote_aggregator = quote_aggregator
        self.bridge_aggregator = bridge_aggregator

    async def _best_leg(self, params: TradeParams) -> AggregatedQuote:
        try:
            route = await self.quote_aggregator.find_best_route(params)
        except NoQuotesAvailable as e:
            raise NoRouteAvailable(
                f"No route for {params.token_in.symbol} -> {params.token_out.symbol} "
                f"on {get_chain_name(params.chain_id)}",
                {"chain_id": params.chain_id},
            ) from e
        return route.best_quote

    async def _fees_in_usd(self, quote: AggregatedBridgeQuote, bridge_token: Token) -> Optional[Decimal]:
        """Bridge fee plus source gas fee in USD.

        The bridge fee is already in stablecoin units; gas is priced by quoting
        the wrapped native token into the bridge token. None when unpriceable.
        """
        total = quote.fees.bridge_fee
        if quote.fees.gas_fee:
            chain = CHAINS.get(bridge_token.chain_id)
            wrapped = get_token(bridge_token.chain_id, f"W{chain.native_symbol}") if chain else None
            if wrapped is None:
                return None
            price = await self.quote_aggregator.get_token_price(wrapped, bridge_token)
            if not price:
                return None
            total += quote.fees.gas_fee * price
        return total

    async def get_cross_chain_quote(self, params: CrossChainSwapParams) -> CrossChainSwapResult:
        """Compose the best plan for a cross-chain swap.

        Raises:
            InvalidTradeParams: source and destination chain are the same
            NoBridgeToken: no stablecoin is known on both chains
            NoRouteAvailable: a swap leg or the bridge leg could not be quoted
        """
        if params.from_chain == params.to_chain:
            raise InvalidTradeParams("Use a same-chain swap when from_chain == to_chain")

        from_name = get_chain_name(params.from_chain)
        to_name = get_chain_name(params.to_chain)
        bridge_token = find_optimal_bridge_token(params.from_chain, params.to_chain)
        dest_bridge_token = get_token(params.to_chain, bridge_token.symbol)

        logger.info(
            f"Planning {params.amount_in} {params.token_in.symbol} ({from_name}) -> "
            f"{params.token_out.symbol} ({to_name}) via {bridge_token.symbol}"
        )

        steps: list[SwapStep] = []
        total_gas = 0
        total_minutes = 0

        # Step 1: swap into the bridge token on the source chain
        source_quote = None
        bridge_amount = params.amount_in
        if not params.token_in.same_as(bridge_token):
            source_quote = await self._best_leg(
                TradeParams(
                    token_in=params.token_in,
                    token_out=bridge_token,
                    amount_in=params.amount_in,
                    slippage_bps=params.slippage_bps,
                )
            )
            steps.append(SwapStep(
                step_number=len(steps) + 1,
                action=f"Swap {params.token_in.symbol} to {bridge_token.symbol} on {from_name}",
                chain=params.from_chain,
                protocol=source_quote.venue_name,
                estimated_time_minutes=SWAP_STEP_MINUTES,
            ))
            total_gas += source_quote.gas_estimate
            total_minutes += SWAP_STEP_MINUTES
            bridge_amount = source_quote.amount_out

        # Step 2: bridge
        bridge_quote = await self.bridge_aggregator.find_best_bridge_route(
            BridgeParams(
                from_chain=params.from_chain,
                to_chain=params.to_chain,
                from_token=bridge_token,
                to_token=dest_bridge_token,
                amount=bridge_amount,
                recipient=params.recipient,
                slippage_bps=params.slippage_bps,
            ),
            prioritize_speed=params.prioritize_speed,
        )
        steps.append(SwapStep(
            step_number=len(steps) + 1,
            action=f"Bridge {bridge_token.symbol} from {from_name} to {to_name}",
            chain=BRIDGE_CHAIN,
            protocol=bridge_quote.provider,
            estimated_time_minutes=bridge_quote.estimated_time_minutes,
        ))
        fees_usd = await self._fees_in_usd(bridge_quote, bridge_token)
        bridge_quote.fees = replace(bridge_quote.fees, total_fee_usd=fees_usd)
        total_gas += bridge_quote.gas_estimate
        total_minutes += bridge_quote.estimated_time_minutes
        amount_out = bridge_quote.to_amount

        # Step 3: swap out of the bridge token on the destination chain
        dest_quote = None
        if not params.token_out.same_as(dest_bridge_token):
            dest_quote = await self._best_leg(
                TradeParams(
                    token_in=dest_bridge_token,
                    token_out=params.token_out,
                    amount_in=bridge_quote.to_amount,
                    slippage_bps=params.slippage_bps,
                )
            )
            steps.append(SwapStep(
                step_number=len(steps) + 1,
                action=f"Swap {dest_bridge_token.symbol} to {params.token_out.symbol} on {to_name}",
                chain=params.to_chain,
                protocol=dest_quote.venue_name,
                estimated_time_minutes=SWAP_STEP_MINUTES,
            ))
            total_gas += dest_quote.gas_estimate
            total_minutes += SWAP_STEP_MINUTES
            amount_out = dest_quote.amount_out

        logger.info(
            f"Cross-chain plan: {len(steps)} step(s), ~{total_minutes} min, "
            f"~{amount_out} {params.token_out.symbol} via {bridge_quote.provider}"
        )
        return CrossChainSwapResult(
            steps=steps,
            total_gas_estimate=total_gas,
            estimated_time_minutes=total_minutes,
            bridge_token=bridge_token,
            bridge_quote=bridge_quote,
            estimated_amount_out=amount_out,
            source_quote=source_quote,
            dest_quote=dest_quote,
        )
