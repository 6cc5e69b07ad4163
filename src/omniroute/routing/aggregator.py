"""Same-chain quote aggregation across venues."""

import asyncio
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional

from omniroute.errors import NoQuotesAvailable, UnsupportedChain
from omniroute.routing.base import (
    AggregatedQuote,
    BestRouteResult,
    QuoteResult,
    Token,
    TradeParams,
    TradeResult,
    VenueAdapter,
)

if TYPE_CHECKING:
    from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

# Small fixed reputation bonus by venue family (matched on lowercase name)
VENUE_REPUTATION = {
    "uniswap": 10,
    "pancakeswap": 5,
    "quickswap": 3,
}


def calculate_confidence(quote: QuoteResult, venue_name: str) -> int:
    """Confidence score in [0, 100] from price impact and venue reputation."""
    confidence = 100

    impact = quote.price_impact_pct
    if impact > 5:
        confidence -= 30
    elif impact > 2:
        confidence -= 15
    elif impact > 1:
        confidence -= 5

    lowered = venue_name.lower()
    for family, bonus in VENUE_REPUTATION.items():
        if family in lowered:
            confidence += bonus
            break

    return max(0, min(100, confidence))


def calculate_savings(best: Decimal, worst: Decimal, count: int) -> tuple[Decimal, Decimal]:
    """Absolute and percentage advantage of the best output over the worst."""
    savings = best - worst
    if count > 1 and worst > 0:
        return savings, savings / worst * 100
    return savings, Decimal(0)


class QuoteAggregator:
    """Fans a trade out to every venue serving its chain and ranks the results."""

    def __init__(self, venues: Optional[list[VenueAdapter]] = None, quote_timeout: float = 10.0):
        self.venues: list[VenueAdapter] = venues or []
        self.quote_timeout = quote_timeout

    def add_venue(self, venue: VenueAdapter) -> None:
        """Add a venue adapter."""
        self.venues.append(venue)

    def supported_chains(self, candidates: Optional[Iterable[int]] = None) -> list[int]:
        """Chains served by at least one venue, among ``candidates`` (default: every known chain)."""
        if candidates is None:
            from omniroute.chains import CHAINS  # chains imports this package

            candidates = CHAINS
        return sorted(c for c in set(candidates) if any(v.is_supported(c) for v in self.venues))

    async def _quote_venue(self, venue: VenueAdapter, params: TradeParams) -> AggregatedQuote:
        quote = await asyncio.wait_for(venue.get_quote(params), timeout=self.quote_timeout)
        return AggregatedQuote(
            amount_out=quote.amount_out,
            price_impact_pct=quote.price_impact_pct,
            route=quote.route,
            gas_estimate=quote.gas_estimate,
            minimum_amount_out=quote.minimum_amount_out,
            venue_name=venue.name,
            venue=venue,
            confidence_score=calculate_confidence(quote, venue.name),
        )

    async def get_all_quotes(self, params: TradeParams) -> list[AggregatedQuote]:
        """Get quotes from all venues supporting the chain.

        Never raises: a venue that errors or times out is logged and excluded.
        Results are sorted by amount_out, best first.
        """
        chain_id = params.chain_id
        venues = [v for v in self.venues if v.is_supported(chain_id)]

        logger.debug(
            f"Getting quotes for {params.amount_in} {params.token_in.symbol} -> "
            f"{params.token_out.symbol} on chain {chain_id} from {len(venues)} venue(s)"
        )

        results = await asyncio.gather(
            *(self._quote_venue(venue, params) for venue in venues),
            return_exceptions=True,
        )

        quotes: list[AggregatedQuote] = []
        errors = []
        for venue, result in zip(venues, results):
            if isinstance(result, AggregatedQuote):
                logger.info(
                    f"Quote from {venue.name}: {params.amount_in} {params.token_in.symbol} -> "
                    f"{result.amount_out} {params.token_out.symbol} "
                    f"(impact {result.price_impact_pct:.2f}%, confidence {result.confidence_score})"
                )
                quotes.append(result)
            elif isinstance(result, UnsupportedChain):
                logger.debug(f"{venue.name} skipped: {result}")
            elif isinstance(result, asyncio.TimeoutError):
                error_msg = f"{venue.name} quote timed out after {self.quote_timeout}s"
                logger.warning(error_msg)
                errors.append(error_msg)
            elif isinstance(result, Exception):
                error_msg = f"{venue.name} quote failed: {type(result).__name__}: {result}"
                logger.warning(error_msg)
                errors.append(error_msg)
            else:
                # CancelledError and friends are not ours to swallow
                raise result

        quotes.sort(key=lambda q: q.amount_out, reverse=True)

        if quotes:
            logger.info(
                f"Got {len(quotes)} quote(s) for {params.token_in.symbol}->{params.token_out.symbol}. "
                f"Best: {quotes[0].venue_name} ({quotes[0].amount_out})"
            )
        elif errors:
            logger.error(
                f"No quotes available for {params.token_in.symbol}->{params.token_out.symbol}. "
                f"Errors: {'; '.join(errors)}"
            )
        else:
            logger.warning(f"No venues support chain {chain_id}")

        return quotes

    async def find_best_route(self, params: TradeParams) -> BestRouteResult:
        """Best quote plus savings relative to the worst surviving quote.

        Raises:
            NoQuotesAvailable: every venue failed or none serves the chain
        """
        all_quotes = await self.get_all_quotes(params)
        if not all_quotes:
            raise NoQuotesAvailable(
                f"No quotes available for {params.token_in.symbol} -> {params.token_out.symbol} "
                f"on chain {params.chain_id}"
            )

        best = all_quotes[0]
        worst = all_quotes[-1]
        savings, savings_pct = calculate_savings(best.amount_out, worst.amount_out, len(all_quotes))

        logger.info(
            f"Selected best route: {best.venue_name} - {best.amount_out} {params.token_out.symbol} "
            f"(saves {savings} / {savings_pct:.2f}% vs worst)"
        )
        return BestRouteResult(
            best_quote=best,
            all_quotes=all_quotes,
            savings=savings,
            savings_percentage=savings_pct,
            is_cross_chain=False,
        )

    async def execute_best_trade(self, params: TradeParams, signer: "TransactionSigner") -> TradeResult:
        """Execute the trade on the venue with the best current quote."""
        route = await self.find_best_route(params)
        venue = route.best_quote.venue
        result = await venue.execute_trade(params, signer)
        result.venue_name = route.best_quote.venue_name
        return result

    async def get_token_price(self, token_a: Token, token_b: Token) -> Decimal:
        """Best output for one unit of token_a, or 0 if unquotable."""
        params = TradeParams(token_in=token_a, token_out=token_b, amount_in=Decimal(1), slippage_bps=100)
        try:
            route = await self.find_best_route(params)
        except NoQuotesAvailable as e:
            logger.error(f"Failed to get token price: {e}")
            return Decimal(0)
        return route.best_quote.amount_out

    async def estimate_gas_costs(self, params: TradeParams) -> dict[str, int]:
        """Gas units each venue expects for the trade."""
        quotes = await self.get_all_quotes(params)
        return {quote.venue_name: quote.gas_estimate for quote in quotes}
