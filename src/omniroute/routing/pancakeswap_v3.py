"""PancakeSwap V3 venue for BSC swaps.

Same QuoterV2 layout as Uniswap. The SmartRouter's exactInputSingle has no
deadline field, so the swap is wrapped in multicall(deadline, [call]).
Pools emit a Swap event with two extra protocol-fee fields.
"""

import logging
from typing import Optional

from omniroute.chains import VENUES, VenueConfig
from omniroute.routing.base import TradeParams
from omniroute.routing.uniswap_v3 import UniswapV3Venue
from omniroute.rpc import checksum, encode_call

logger = logging.getLogger(__name__)


class PancakeSwapV3Venue(UniswapV3Venue):
    """PancakeSwap V3 (SmartRouter + QuoterV2) on BSC."""

    SWAP_SIGNATURE = "exactInputSingle((address,address,uint24,address,uint256,uint256,uint160))"
    MULTICALL_SIGNATURE = "multicall(uint256,bytes[])"
    SWAP_EVENT = "Swap(address,address,int256,int256,uint160,uint128,int24,uint128,uint128)"

    @classmethod
    def default_config(cls) -> VenueConfig:
        return VENUES["pancakeswap_v3"]

    def _encode_swap(
        self,
        params: TradeParams,
        amount_in: int,
        min_amount_out: int,
        recipient: str,
        deadline: int,
        fee: Optional[int],
    ) -> bytes:
        swap_call = encode_call(
            self.SWAP_SIGNATURE,
            ["(address,address,uint24,address,uint256,uint256,uint160)"],
            [(
                checksum(params.token_in.address),
                checksum(params.token_out.address),
                fee,
                checksum(recipient),
                amount_in,
                min_amount_out,
                0,
            )],
        )
        return encode_call(self.MULTICALL_SIGNATURE, ["uint256", "bytes[]"], [deadline, [swap_call]])
