"""Uniswap V3 venue for Ethereum swaps.

Quotes through QuoterV2 (a revert-and-return static call) and executes
through SwapRouter.exactInputSingle. PancakeSwap V3 and QuickSwap V3 reuse
this flow and only swap out the contract encodings.

Contracts: https://docs.uniswap.org/contracts/v3/reference/deployments
"""

import logging
from decimal import Decimal
from typing import Optional

from eth_abi import decode

from omniroute.chains import VENUES, VenueConfig
from omniroute.errors import (
    InsufficientLiquidity,
    RpcError,
    SlippageExceeded,
    TransactionReverted,
    UnsupportedChain,
)
from omniroute.routing.base import (
    QuoteResult,
    Token,
    TradeParams,
    TradeResult,
    VenueAdapter,
    calculate_minimum_amount_out,
    calculate_price_impact,
)
from omniroute.rpc import EvmRpcClient, checksum, encode_call, ensure_allowance, event_topic, is_revert_error
from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

# Revert strings the routers use for the amountOutMinimum check
SLIPPAGE_REVERT_MARKERS = ("too little received", "slippage")


class UniswapV3Venue(VenueAdapter):
    """Uniswap V3 (SwapRouter + QuoterV2) on one chain."""

    QUOTE_SIGNATURE = "quoteExactInputSingle((address,address,uint256,uint24,uint160))"
    SWAP_SIGNATURE = "exactInputSingle((address,address,uint24,address,uint256,uint256,uint256,uint160))"
    SWAP_EVENT = "Swap(address,address,int256,int256,uint160,uint128,int24)"

    def __init__(
        self,
        rpc: EvmRpcClient,
        config: Optional[VenueConfig] = None,
        deadline_minutes: int = 20,
        confirmation_timeout: float = 180,
    ):
        """Initialize the venue.

        Args:
            rpc: JSON-RPC client for the chain this deployment lives on
            config: Contract addresses and fee tiers (defaults per venue class)
            deadline_minutes: Swap deadline horizon when params carry none
            confirmation_timeout: Seconds to wait for each receipt
        """
        self.config = config or self.default_config()
        self.rpc = rpc
        self.deadline_minutes = deadline_minutes
        self.confirmation_timeout = confirmation_timeout

    @classmethod
    def default_config(cls) -> VenueConfig:
        return VENUES["uniswap_v3"]

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def chain_id(self) -> int:
        return self.rpc.chain_id

    def is_supported(self, chain_id: int) -> bool:
        return chain_id == self.rpc.chain_id and chain_id in self.config.chains

    # ---------- encodings (overridden per venue) ----------

    def _encode_quote(self, params: TradeParams, amount_in: int, fee: Optional[int]) -> bytes:
        return encode_call(
            self.QUOTE_SIGNATURE,
            ["(address,address,uint256,uint24,uint160)"],
            [(checksum(params.token_in.address), checksum(params.token_out.address), amount_in, fee, 0)],
        )

    def _decode_quote(self, raw: bytes) -> tuple[int, int]:
        """Return (amount_out, gas_estimate) in base units / gas units."""
        amount_out, _sqrt_price_after, _ticks_crossed, gas_estimate = decode(
            ["uint256", "uint160", "uint32", "uint256"], raw
        )
        return amount_out, gas_estimate

    def _encode_swap(
        self,
        params: TradeParams,
        amount_in: int,
        min_amount_out: int,
        recipient: str,
        deadline: int,
        fee: Optional[int],
    ) -> bytes:
        return encode_call(
            self.SWAP_SIGNATURE,
            ["(address,address,uint24,address,uint256,uint256,uint256,uint160)"],
            [(
                checksum(params.token_in.address),
                checksum(params.token_out.address),
                fee,
                checksum(recipient),
                deadline,
                amount_in,
                min_amount_out,
                0,
            )],
        )

    # ---------- quoting ----------

    async def _quote_raw(self, params: TradeParams, amount_in: int, fee: Optional[int]) -> tuple[int, int]:
        data = self._encode_quote(params, amount_in, fee)
        try:
            raw = await self.rpc.eth_call(self.config.quoter, data)
        except RpcError as e:
            if is_revert_error(e):
                raise InsufficientLiquidity(
                    params.token_in.symbol, params.token_out.symbol, self.name
                ) from e
            raise
        if not raw:
            raise InsufficientLiquidity(params.token_in.symbol, params.token_out.symbol, self.name)
        return self._decode_quote(raw)

    async def get_quote(self, params: TradeParams) -> QuoteResult:
        """Get a quote from the on-chain quoter at the default fee tier."""
        if not self.is_supported(params.chain_id):
            raise UnsupportedChain(params.chain_id, self.name)

        amount_in_wei = params.token_in.to_base_units(params.amount_in)
        logger.debug(
            f"{self.name} quote: {params.amount_in} {params.token_in.symbol} -> "
            f"{params.token_out.symbol} (fee tier {self.config.default_fee})"
        )
        amount_out_wei, gas_estimate = await self._quote_raw(params, amount_in_wei, self.config.default_fee)
        if amount_out_wei == 0:
            raise InsufficientLiquidity(params.token_in.symbol, params.token_out.symbol, self.name)

        amount_out = params.token_out.from_base_units(amount_out_wei)
        return QuoteResult(
            amount_out=amount_out,
            price_impact_pct=calculate_price_impact(params.amount_in, amount_out),
            route=[params.token_in.symbol, params.token_out.symbol],
            gas_estimate=gas_estimate or self.config.swap_gas_estimate,
            minimum_amount_out=calculate_minimum_amount_out(
                amount_out, params.slippage_bps, params.token_out.decimals
            ),
        )

    async def get_best_fee_tier(self, token_a: Token, token_b: Token) -> int:
        """Probe fee tiers in order and return the first one that quotes one token_a.

        Falls back to the venue's default tier when none respond.
        """
        params = TradeParams(token_in=token_a, token_out=token_b, amount_in=Decimal(1))
        amount_in = token_a.to_base_units(params.amount_in)
        for fee in self.config.fee_tiers:
            try:
                amount_out, _ = await self._quote_raw(params, amount_in, fee)
            except (InsufficientLiquidity, RpcError):
                continue
            if amount_out > 0:
                return fee
        return self.config.default_fee

    # ---------- execution ----------

    async def execute_trade(self, params: TradeParams, signer: TransactionSigner) -> TradeResult:
        """Approve if needed, re-quote, swap and read the actual output."""
        if not self.is_supported(params.chain_id):
            raise UnsupportedChain(params.chain_id, self.name)

        sender = await signer.get_address()
        recipient = params.recipient or sender
        amount_in_wei = params.token_in.to_base_units(params.amount_in)

        approval_hash = await ensure_allowance(
            self.rpc,
            signer,
            params.token_in.address,
            self.config.router,
            amount_in_wei,
            self.confirmation_timeout,
        )

        # Fresh quote right before submission
        quote = await self.get_quote(params)
        min_out_wei = params.token_out.to_base_units(quote.minimum_amount_out)
        deadline = params.deadline or self.get_deadline(self.deadline_minutes)

        data = self._encode_swap(
            params, amount_in_wei, min_out_wei, recipient, deadline, self.config.default_fee
        )
        logger.info(
            f"{self.name} swap: {params.amount_in} {params.token_in.symbol} -> "
            f"min {quote.minimum_amount_out} {params.token_out.symbol}"
        )

        try:
            receipt = await self.rpc.send_transaction(
                signer,
                {"to": self.config.router, "data": data, "value": 0},
                self.confirmation_timeout,
            )
        except TransactionReverted as e:
            if _is_slippage_revert(e.reason):
                raise SlippageExceeded(
                    f"{self.name} rejected swap below minimum {quote.minimum_amount_out} "
                    f"{params.token_out.symbol}",
                    {"tx_hash": e.tx_hash},
                ) from e
            raise
        except RpcError as e:
            # eth_estimateGas reverts before broadcast when the price already moved
            if is_revert_error(e) and _is_slippage_revert(str(e)):
                raise SlippageExceeded(
                    f"{self.name} swap would return less than {quote.minimum_amount_out} "
                    f"{params.token_out.symbol}"
                ) from e
            raise

        amount_out = self._parse_amount_out(receipt, params)
        if amount_out is None:
            logger.warning(f"{self.name}: no Swap event in {receipt['transactionHash']}, using quote")
            amount_out = quote.amount_out

        effective_price = params.amount_in / amount_out if amount_out else Decimal(0)
        return TradeResult(
            tx_hash=receipt["transactionHash"],
            amount_in=params.amount_in,
            amount_out=amount_out,
            gas_used=int(receipt.get("gasUsed", "0x0"), 16),
            effective_price=effective_price,
            price_impact_pct=quote.price_impact_pct,
            venue_name=self.name,
            approval_tx_hash=approval_hash,
        )

    def _parse_amount_out(self, receipt: dict, params: TradeParams) -> Optional[Decimal]:
        """Read the pool's Swap event: the negative delta is what the pool paid out."""
        topic = event_topic(self.SWAP_EVENT)
        for log in receipt.get("logs", []):
            topics = log.get("topics") or []
            if not topics or topics[0].lower() != topic:
                continue
            try:
                amount0, amount1 = decode(["int256", "int256"], bytes.fromhex(log["data"][2:])[:64])
            except Exception as e:
                logger.debug(f"Unparseable Swap log: {e}")
                continue
            paid_out = min(amount0, amount1)
            if paid_out < 0:
                return params.token_out.from_base_units(-paid_out)
        return None


def _is_slippage_revert(reason: str) -> bool:
    reason = (reason or "").lower()
    return any(marker in reason for marker in SLIPPAGE_REVERT_MARKERS)
