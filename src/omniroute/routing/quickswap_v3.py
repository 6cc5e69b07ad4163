"""QuickSwap V3 venue for Polygon swaps.

QuickSwap V3 runs on Algebra: pools have a single dynamic fee, so neither
the quoter nor the router take a fee tier. The Algebra quoter returns the
pool fee instead of a gas estimate.
"""

import logging
from decimal import Decimal
from typing import Optional

from eth_abi import decode

from omniroute.chains import VENUES, VenueConfig
from omniroute.routing.base import Token, TradeParams
from omniroute.routing.uniswap_v3 import UniswapV3Venue
from omniroute.rpc import checksum, encode_call

logger = logging.getLogger(__name__)


class QuickSwapV3Venue(UniswapV3Venue):
    """QuickSwap V3 (Algebra SwapRouter + Quoter) on Polygon."""

    QUOTE_SIGNATURE = "quoteExactInputSingle(address,address,uint256,uint160)"
    SWAP_SIGNATURE = "exactInputSingle((address,address,address,uint256,uint256,uint256,uint160))"

    @classmethod
    def default_config(cls) -> VenueConfig:
        return VENUES["quickswap_v3"]

    def _encode_quote(self, params: TradeParams, amount_in: int, fee: Optional[int]) -> bytes:
        return encode_call(
            self.QUOTE_SIGNATURE,
            ["address", "address", "uint256", "uint160"],
            [checksum(params.token_in.address), checksum(params.token_out.address), amount_in, 0],
        )

    def _decode_quote(self, raw: bytes) -> tuple[int, int]:
        amount_out, pool_fee = decode(["uint256", "uint16"], raw)
        logger.debug(f"{self.name} pool fee: {pool_fee}")
        # Algebra quoter reports no gas; the caller falls back to the venue estimate
        return amount_out, 0

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
            ["(address,address,address,uint256,uint256,uint256,uint160)"],
            [(
                checksum(params.token_in.address),
                checksum(params.token_out.address),
                checksum(recipient),
                deadline,
                amount_in,
                min_amount_out,
                0,
            )],
        )

    async def get_best_fee_tier(self, token_a: Token, token_b: Token) -> int:
        """Algebra pools have one dynamic fee; report it from the quoter."""
        params = TradeParams(token_in=token_a, token_out=token_b, amount_in=Decimal(1))
        amount_in = token_a.to_base_units(params.amount_in)
        raw = await self.rpc.eth_call(self.config.quoter, self._encode_quote(params, amount_in, None))
        _, pool_fee = decode(["uint256", "uint16"], raw)
        return pool_fee
