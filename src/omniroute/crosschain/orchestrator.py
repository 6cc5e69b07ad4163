"""Sequential execution of cross-chain plans.

The source swap and the bridge are executed with the caller's source-chain
signer. The destination swap needs a signer on the destination chain once
the bridge has delivered, so it is a separate call. Nothing is rolled back
or retried: a failure stops the plan and surfaces the partial result.
"""

import logging
from decimal import Decimal
from typing import NoReturn, Optional

from omniroute.bridges.aggregator import BridgeAggregator
from omniroute.bridges.base import STATUS_COMPLETED, STATUS_FAILED, BridgeParams
from omniroute.chains import get_token
from omniroute.crosschain.composer import CrossChainSwapParams, CrossChainSwapResult, RouteComposer, SwapStep
from omniroute.errors import InvalidTradeParams, NoRouteAvailable, StepExecutionError
from omniroute.routing.aggregator import QuoteAggregator
from omniroute.routing.base import TradeParams
from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)


class ExecutionOrchestrator:
    """Executes the legs of a cross-chain plan in order."""

    def __init__(
        self,
        composer: RouteComposer,
        quote_aggregator: QuoteAggregator,
        bridge_aggregator: BridgeAggregator,
    ):
        self.composer = composer
        self.quote_aggregator = quote_aggregator
        self.bridge_aggregator = bridge_aggregator

    @staticmethod
    def _complete(step: SwapStep, tx_hash: str) -> None:
        step.tx_hash = tx_hash
        step.status = STATUS_COMPLETED
        logger.info(f"Step {step.step_number} completed: {step.action} ({tx_hash})")

    @staticmethod
    def _fail(result: CrossChainSwapResult, step: SwapStep, error: Exception) -> NoReturn:
        step.status = STATUS_FAILED
        logger.error(f"Step {step.step_number} failed: {step.action}: {type(error).__name__}: {error}")
        raise StepExecutionError(step.step_number, result, error) from error

    async def execute_cross_chain_swap(
        self,
        params: CrossChainSwapParams,
        signer: TransactionSigner,
    ) -> CrossChainSwapResult:
        """Re-plan, then run the source swap (if any) and the bridge.

        The destination swap step is left pending; finish it with
        execute_destination_swap once the transfer is delivered.

        Raises:
            StepExecutionError: a leg failed; ``result`` carries the partial plan
        """
        result = await self.composer.get_cross_chain_quote(params)
        bridge_amount = params.amount_in

        source_step = result.source_step
        if source_step is not None:
            trade = TradeParams(
                token_in=params.token_in,
                token_out=result.bridge_token,
                amount_in=params.amount_in,
                slippage_bps=params.slippage_bps,
            )
            try:
                swap = await result.source_quote.venue.execute_trade(trade, signer)
            except Exception as e:
                self._fail(result, source_step, e)
            swap.venue_name = result.source_quote.venue_name
            result.source_swap_result = swap
            self._complete(source_step, swap.tx_hash)
            # Bridge what the swap actually produced
            bridge_amount = swap.amount_out

        bridge_step = result.bridge_step
        try:
            provider = self.bridge_aggregator.get_provider(result.bridge_quote.provider)
            if provider is None:
                raise NoRouteAvailable(f"Bridge provider {result.bridge_quote.provider} not configured")
            bridge_params = BridgeParams(
                from_chain=params.from_chain,
                to_chain=params.to_chain,
                from_token=result.bridge_token,
                to_token=get_token(params.to_chain, result.bridge_token.symbol),
                amount=result.bridge_token.quantize(bridge_amount),
                recipient=params.recipient,
                slippage_bps=params.slippage_bps,
            )
            bridge_result = await provider.execute_bridge(bridge_params, signer)
        except Exception as e:
            self._fail(result, bridge_step, e)
        result.bridge_result = bridge_result
        self._complete(bridge_step, bridge_result.tx_hash)

        logger.info(
            f"Cross-chain swap submitted: tracking {bridge_result.tracking_id}"
            + (", destination swap pending" if result.dest_step else "")
        )
        return result

    async def execute_destination_swap(
        self,
        result: CrossChainSwapResult,
        params: CrossChainSwapParams,
        dest_signer: TransactionSigner,
        amount_in: Optional[Decimal] = None,
    ) -> CrossChainSwapResult:
        """Swap the delivered bridge token into ``token_out`` on the destination chain.

        Args:
            result: Plan returned by execute_cross_chain_swap
            params: The original swap parameters
            dest_signer: Signer holding the delivered bridge tokens
            amount_in: Bridge token amount to swap; defaults to the amount the
                bridge reports as delivered, and is required when it reports none

        Raises:
            InvalidTradeParams: the plan has no destination swap, the bridge has not
                delivered, or the delivered amount is unknown and ``amount_in`` is unset
            StepExecutionError: the swap failed
        """
        dest_step = result.dest_step
        if dest_step is None:
            raise InvalidTradeParams("Plan has no destination swap")
        if result.bridge_result is None or result.bridge_result.status != STATUS_COMPLETED:
            raise InvalidTradeParams("Bridge transfer has not been delivered yet")

        if amount_in is None:
            amount_in = result.bridge_result.amount_received
        if amount_in is None:
            raise InvalidTradeParams(
                f"{result.bridge_result.provider} did not report the delivered amount; pass amount_in",
                {"tracking_id": result.bridge_result.tracking_id},
            )

        dest_token = get_token(params.to_chain, result.bridge_token.symbol)
        trade = TradeParams(
            token_in=dest_token,
            token_out=params.token_out,
            amount_in=amount_in,
            slippage_bps=params.slippage_bps,
            recipient=params.recipient,
        )
        try:
            swap = await self.quote_aggregator.execute_best_trade(trade, dest_signer)
        except Exception as e:
            self._fail(result, dest_step, e)
        result.dest_swap_result = swap
        self._complete(dest_step, swap.tx_hash)
        return result
