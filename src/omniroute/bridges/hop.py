"""Hop Protocol bridge integration.

Quotes and transfer status come from the Hop REST API; bridge contract
addresses come from Hop's published core config. Transfers out of Ethereum
call L1_Bridge.sendToL2, transfers out of an L2 call the AMM wrapper's
swapAndSend.

API docs: https://docs.hop.exchange/developer-docs/api/api
"""

import logging
import time
from decimal import Decimal
from typing import Optional

import httpx

from omniroute.bridges.base import (
    STATUS_COMPLETED,
    STATUS_PENDING,
    BridgeFees,
    BridgeParams,
    BridgeQuote,
    BridgeResult,
    HttpBridgeProvider,
    parse_amount,
)
from omniroute.chains import get_chain_slug
from omniroute.errors import BridgeApiError, BridgeStatusUnavailable
from omniroute.rpc import EvmRpcClient, checksum, encode_call, ensure_allowance
from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

HOP_CHAINS = [1, 137, 42161, 10]
HOP_TOKENS = {"USDC", "USDT", "DAI"}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

SEND_TO_L2 = "sendToL2(uint256,address,uint256,uint256,uint256,address,uint256)"
SWAP_AND_SEND = "swapAndSend(uint256,address,uint256,uint256,uint256,uint256,uint256,uint256)"

GAS_ESTIMATES = {
    "l1": 160_000,
    "l2": 280_000,
}

# Hop has no time estimate endpoint: L2 -> L2 is bonded within minutes,
# anything touching Ethereum waits for L1 finality
L2_TRANSFER_MINUTES = 3
L1_TRANSFER_MINUTES = 20


class HopBridge(HttpBridgeProvider):
    """Hop Protocol bonded transfers between Ethereum and its rollups."""

    BASE_CONFIDENCE = 90

    def __init__(
        self,
        api_url: str = "https://api.hop.exchange",
        config_url: str = "https://assets.hop.exchange/mainnet/v1-core-config.json",
        rpc_clients: Optional[dict[int, EvmRpcClient]] = None,
        timeout: float = 20.0,
        confirmation_timeout: float = 180,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_url, rpc_clients, timeout, confirmation_timeout, transport)
        self.config_url = config_url
        self._core_config: Optional[dict] = None

    @property
    def name(self) -> str:
        return "Hop Protocol"

    @property
    def tracking_prefix(self) -> str:
        return "hop"

    @property
    def supported_chains(self) -> list[int]:
        return HOP_CHAINS

    @staticmethod
    def estimated_minutes(from_chain: int, to_chain: int) -> int:
        if from_chain == 1 or to_chain == 1:
            return L1_TRANSFER_MINUTES
        return L2_TRANSFER_MINUTES

    def _check_token(self, params: BridgeParams) -> None:
        if params.from_token.symbol.upper() not in HOP_TOKENS:
            raise BridgeApiError(f"Hop does not bridge {params.from_token.symbol}")

    async def _fetch_quote(self, params: BridgeParams) -> dict:
        self._check_route(params)
        self._check_token(params)
        slippage_bps = self._slippage_bps(params)
        query = {
            "amount": str(params.from_token.to_base_units(params.amount)),
            "token": params.from_token.symbol.upper(),
            "fromChain": get_chain_slug(params.from_chain),
            "toChain": get_chain_slug(params.to_chain),
            "slippage": str(Decimal(slippage_bps) / 100),
        }
        logger.debug(f"Hop quote request: {query}")
        data = await self._get_json(f"{self.api_url}/v1/quote", query)
        if not isinstance(data, dict) or data.get("error"):
            raise BridgeApiError(f"Hop quote error: {(data or {}).get('error', 'empty response')}")
        return data

    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        data = await self._fetch_quote(params)

        # Hop amounts are denominated in the source token's base units
        to_amount = params.from_token.from_base_units(parse_amount(data.get("estimatedRecieved")))
        bonder_fee = params.from_token.from_base_units(parse_amount(data.get("bonderFee")))
        gas_estimate = GAS_ESTIMATES["l1" if params.from_chain == 1 else "l2"]
        minutes = self.estimated_minutes(params.from_chain, params.to_chain)

        return BridgeQuote(
            provider=self.name,
            from_amount=params.amount,
            to_amount=to_amount,
            estimated_time_minutes=minutes,
            fees=BridgeFees(
                bridge_fee=bonder_fee,
                gas_fee=await self._estimate_gas_fee(params.from_chain, gas_estimate),
            ),
            route=self._build_route(
                params,
                minutes,
                ("Deposit to Hop bridge", "Bond transfer cross-chain", "Withdraw on destination"),
            ),
            confidence_score=self.BASE_CONFIDENCE,
            gas_estimate=gas_estimate,
        )

    async def get_core_config(self) -> dict:
        """Hop's contract address book, fetched once per provider."""
        if self._core_config is None:
            self._core_config = await self._get_json(self.config_url)
        return self._core_config

    async def get_bridge_address(self, symbol: str, chain_id: int) -> str:
        """L1 bridge on Ethereum, AMM wrapper on L2s."""
        config = await self.get_core_config()
        slug = get_chain_slug(chain_id)
        entry = config.get("bridges", {}).get(symbol.upper(), {}).get(slug) or {}
        address = entry.get("l1Bridge") if chain_id == 1 else entry.get("l2AmmWrapper")
        if not address or address == ZERO_ADDRESS:
            raise BridgeApiError(f"Hop has no {symbol} bridge contract on {slug}")
        return address

    async def execute_bridge(self, params: BridgeParams, signer: TransactionSigner) -> BridgeResult:
        data = await self._fetch_quote(params)
        bridge_address = await self.get_bridge_address(params.from_token.symbol, params.from_chain)
        amount = params.from_token.to_base_units(params.amount)
        recipient = checksum(params.recipient)

        dest_min = parse_amount(data.get("destinationAmountOutMin"))
        dest_deadline = parse_amount(data.get("destinationDeadline"))
        if params.from_chain == 1:
            call = encode_call(
                SEND_TO_L2,
                ["uint256", "address", "uint256", "uint256", "uint256", "address", "uint256"],
                [params.to_chain, recipient, amount, dest_min, dest_deadline, ZERO_ADDRESS, 0],
            )
        else:
            call = encode_call(
                SWAP_AND_SEND,
                ["uint256", "address", "uint256", "uint256", "uint256", "uint256", "uint256", "uint256"],
                [
                    params.to_chain,
                    recipient,
                    amount,
                    parse_amount(data.get("bonderFee")),
                    parse_amount(data.get("amountOutMin")),
                    parse_amount(data.get("deadline")),
                    dest_min,
                    dest_deadline,
                ],
            )

        rpc = self._rpc(params.from_chain)
        await ensure_allowance(
            rpc, signer, params.from_token.address, bridge_address, amount, self.confirmation_timeout
        )
        tx_hash = await self._submit(params.from_chain, signer, {"to": bridge_address, "data": call, "value": 0})

        result = self.make_result(params, tx_hash, self.estimated_minutes(params.from_chain, params.to_chain))
        logger.info(
            f"Bridging {params.amount} {params.from_token.symbol} via Hop: "
            f"{params.from_chain} -> {params.to_chain} ({result.tracking_id})"
        )
        return self._remember(result)

    async def get_transfer_status(self, tx_hash: str, from_chain: Optional[int] = None) -> BridgeResult:
        known = self._known_transfer(tx_hash)
        data = await self._get_json(
            f"{self.api_url}/v1/transfer-status",
            {"transactionHash": tx_hash},
            allow_missing=True,
        )
        if not data or (isinstance(data, dict) and data.get("error")):
            if known:
                return known
            raise BridgeStatusUnavailable(f"Hop has no transfer for {tx_hash}")

        result = known or BridgeResult(
            provider=self.name,
            tx_hash=tx_hash,
            status=STATUS_PENDING,
            from_chain=int(data.get("sourceChainId") or from_chain or 0),
            to_chain=int(data.get("destinationChainId") or 0),
            estimated_completion_time=int(time.time()),
            tracking_id=self.make_tracking_id(tx_hash),
        )
        if data.get("bonded"):
            result.status = STATUS_COMPLETED
            result.dest_tx_hash = data.get("bondTransactionHash") or result.dest_tx_hash
            if data.get("amountReceivedFormatted") is not None:
                result.amount_received = Decimal(str(data["amountReceivedFormatted"]))
        else:
            result.status = STATUS_PENDING
        return self._settle(result)
