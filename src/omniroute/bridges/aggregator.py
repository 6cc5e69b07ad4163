"""Cross-chain bridge quote aggregation and transfer tracking."""

import asyncio
import logging
from dataclasses import fields
from decimal import Decimal
from itertools import permutations
from typing import TYPE_CHECKING, Optional

from omniroute.bridges.base import (
    AggregatedBridgeQuote,
    BridgeParams,
    BridgeProvider,
    BridgeQuote,
    BridgeResult,
    split_tracking_id,
)
from omniroute.errors import NoRouteAvailable, UnknownTrackingId
from omniroute.routing.aggregator import calculate_savings

if TYPE_CHECKING:
    from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)


class BridgeAggregator:
    """Fans a transfer out to every bridge serving the route and ranks the results."""

    def __init__(self, providers: Optional[list[BridgeProvider]] = None, quote_timeout: float = 10.0):
        self.providers: list[BridgeProvider] = providers or []
        self.quote_timeout = quote_timeout

    def add_provider(self, provider: BridgeProvider) -> None:
        """Add a bridge provider."""
        self.providers.append(provider)

    def get_provider(self, name: str) -> Optional[BridgeProvider]:
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    async def get_all_bridge_quotes(self, params: BridgeParams) -> list[BridgeQuote]:
        """Get quotes from all providers supporting the route.

        Failed or timed-out providers are logged and excluded.
        Results are sorted by to_amount, best first.
        """
        providers = [p for p in self.providers if p.supports_route(params.from_chain, params.to_chain)]
        logger.debug(
            f"Getting bridge quotes for {params.amount} {params.from_token.symbol}: "
            f"{params.from_chain} -> {params.to_chain} from {len(providers)} provider(s)"
        )

        results = await asyncio.gather(
            *(asyncio.wait_for(p.get_quote(params), timeout=self.quote_timeout) for p in providers),
            return_exceptions=True,
        )

        quotes: list[BridgeQuote] = []
        errors = []
        for provider, result in zip(providers, results):
            if isinstance(result, BridgeQuote):
                logger.info(
                    f"Bridge quote from {provider.name}: {result.from_amount} -> {result.to_amount} "
                    f"{params.to_token.symbol} in ~{result.estimated_time_minutes} min"
                )
                quotes.append(result)
            elif isinstance(result, asyncio.TimeoutError):
                error_msg = f"{provider.name} bridge quote timed out after {self.quote_timeout}s"
                logger.warning(error_msg)
                errors.append(error_msg)
            elif isinstance(result, Exception):
                error_msg = f"{provider.name} bridge quote failed: {type(result).__name__}: {result}"
                logger.warning(error_msg)
                errors.append(error_msg)
            else:
                raise result

        quotes.sort(key=lambda q: q.to_amount, reverse=True)

        if not quotes and errors:
            logger.error(
                f"No bridge quotes for {params.from_chain} -> {params.to_chain}. Errors: {'; '.join(errors)}"
            )
        elif not quotes:
            logger.warning(f"No bridge provider supports {params.from_chain} -> {params.to_chain}")

        return quotes

    async def find_best_bridge_route(
        self,
        params: BridgeParams,
        prioritize_speed: bool = False,
    ) -> AggregatedBridgeQuote:
        """Best bridge quote by output (or by time with ``prioritize_speed``).

        Raises:
            NoRouteAvailable: no provider could quote the route
        """
        all_quotes = await self.get_all_bridge_quotes(params)
        if not all_quotes:
            raise NoRouteAvailable(
                f"No bridge routes available for {params.from_chain} -> {params.to_chain}",
                {"from_chain": params.from_chain, "to_chain": params.to_chain},
            )

        if prioritize_speed:
            best = min(all_quotes, key=lambda q: q.estimated_time_minutes)
        else:
            best = all_quotes[0]
        worst = all_quotes[-1]
        savings, savings_pct = calculate_savings(best.to_amount, worst.to_amount, len(all_quotes))

        logger.info(
            f"Selected bridge: {best.provider} - {best.to_amount} {params.to_token.symbol} "
            f"in ~{best.estimated_time_minutes} min"
        )
        values = {f.name: getattr(best, f.name) for f in fields(BridgeQuote)}
        return AggregatedBridgeQuote(**values, savings=savings, savings_percentage=savings_pct)

    async def execute_best_bridge(
        self,
        params: BridgeParams,
        signer: "TransactionSigner",
        prioritize_speed: bool = False,
    ) -> BridgeResult:
        """Execute the transfer with the provider of the best current quote."""
        best = await self.find_best_bridge_route(params, prioritize_speed)
        provider = self.get_provider(best.provider)
        if provider is None:
            raise NoRouteAvailable(f"Bridge provider {best.provider} not found")
        return await provider.execute_bridge(params, signer)

    async def track_bridge_status(self, tracking_id: str, from_chain: Optional[int] = None) -> BridgeResult:
        """Dispatch a tracking id to the provider owning its prefix.

        ``from_chain`` is handed to the provider for status APIs keyed by
        origin chain (a stored BridgeResult carries it).

        Raises:
            UnknownTrackingId: malformed id or no provider with that prefix
        """
        try:
            prefix, tx_hash = split_tracking_id(tracking_id)
        except ValueError as e:
            raise UnknownTrackingId(str(e), {"tracking_id": tracking_id}) from e

        for provider in self.providers:
            if provider.tracking_prefix == prefix:
                return await provider.get_transfer_status(tx_hash, from_chain)

        raise UnknownTrackingId(f"Unknown tracking ID: {tracking_id}", {"tracking_id": tracking_id})

    def get_supported_routes(self) -> list[dict]:
        """Every ordered chain pair at least one provider can bridge."""
        chains = sorted({c for p in self.providers for c in p.supported_chains})
        routes = []
        for from_chain, to_chain in permutations(chains, 2):
            names = [p.name for p in self.providers if p.supports_route(from_chain, to_chain)]
            if names:
                routes.append({"from": from_chain, "to": to_chain, "providers": names})
        return routes

    async def estimate_total_cost(self, params: BridgeParams) -> dict[str, Decimal]:
        """Bridge fee plus source-chain gas fee per provider.

        The two fees are summed as reported (token units and native units);
        the figure ranks providers rather than pricing the transfer.
        """
        quotes = await self.get_all_bridge_quotes(params)
        return {q.provider: q.fees.bridge_fee + q.fees.gas_fee for q in quotes}
