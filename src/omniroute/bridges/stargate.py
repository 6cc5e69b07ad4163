"""Stargate (LayerZero) bridge integration.

Quotes come from the Stargate API, which also returns the ready-to-sign
approve and bridge transactions. Delivery status is read from LayerZero Scan.

API docs: https://stargateprotocol.gitbook.io/stargate/v2-developer-docs
"""

import logging
import math
import time
from decimal import Decimal
from typing import Optional

import httpx

from omniroute.bridges.base import (
    STATUS_COMPLETED,
    STATUS_FAILED,
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
from omniroute.rpc import EvmRpcClient
from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

STARGATE_CHAINS = [1, 56, 137, 42161, 10, 43114]

# LayerZero V2 endpoint ids
LAYERZERO_ENDPOINT_IDS = {
    1: 30101,
    56: 30102,
    43114: 30106,
    137: 30109,
    42161: 30110,
    10: 30111,
}

# Stargate V2 taxi send; approvals are counted separately by the signer's RPC
STARGATE_GAS_ESTIMATE = 350_000

LZ_COMPLETED = {"DELIVERED"}
LZ_FAILED = {"FAILED", "BLOCKED"}


def _chain_for_endpoint(eid: Optional[int]) -> int:
    for chain_id, endpoint_id in LAYERZERO_ENDPOINT_IDS.items():
        if endpoint_id == eid:
            return chain_id
    return 0


class StargateBridge(HttpBridgeProvider):
    """Stargate V2 liquidity transfers over LayerZero messaging."""

    BASE_CONFIDENCE = 95

    def __init__(
        self,
        api_url: str = "https://stargate.finance/api/v1",
        scan_url: str = "https://scan.layerzero-api.com/v1",
        rpc_clients: Optional[dict[int, EvmRpcClient]] = None,
        timeout: float = 20.0,
        confirmation_timeout: float = 180,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_url, rpc_clients, timeout, confirmation_timeout, transport)
        self.scan_url = scan_url.rstrip("/")

    @property
    def name(self) -> str:
        return "LayerZero"

    @property
    def tracking_prefix(self) -> str:
        return "lz"

    @property
    def supported_chains(self) -> list[int]:
        return STARGATE_CHAINS

    async def _fetch_quote(self, params: BridgeParams, sender: str) -> dict:
        """Best route from the Stargate quote endpoint."""
        self._check_route(params)
        minimum = self._minimum_received(params, params.amount)
        query = {
            "srcToken": params.from_token.address,
            "dstToken": params.to_token.address,
            "srcAddress": sender,
            "dstAddress": params.recipient,
            "srcChainKey": get_chain_slug(params.from_chain),
            "dstChainKey": get_chain_slug(params.to_chain),
            "srcAmount": str(params.from_token.to_base_units(params.amount)),
            "dstAmountMin": str(params.to_token.to_base_units(minimum)),
        }
        logger.debug(f"Stargate quote request: {query}")
        data = await self._get_json(f"{self.api_url}/quotes", query)

        quotes = data.get("quotes", []) if isinstance(data, dict) else []
        usable = [q for q in quotes if not q.get("error")]
        if not usable:
            errors = [q.get("error") for q in quotes if q.get("error")]
            raise BridgeApiError(
                f"Stargate has no route for {params.from_token.symbol} "
                f"{params.from_chain} -> {params.to_chain}",
                {"errors": errors},
            )
        return max(usable, key=lambda q: parse_amount(q.get("dstAmount")))

    @staticmethod
    def _duration_minutes(raw: dict) -> int:
        seconds = float((raw.get("duration") or {}).get("estimated") or 0)
        return max(1, math.ceil(seconds / 60))

    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        raw = await self._fetch_quote(params, params.recipient)

        to_amount = params.to_token.from_base_units(parse_amount(raw.get("dstAmount")))
        src_slug = get_chain_slug(params.from_chain)
        messaging_fee = sum(
            (parse_amount(fee.get("amount")) for fee in raw.get("fees", []) if fee.get("chainKey") == src_slug),
            0,
        )
        gas_fee = Decimal(messaging_fee) / Decimal(10) ** 18
        gas_fee += await self._estimate_gas_fee(params.from_chain, STARGATE_GAS_ESTIMATE)

        minutes = self._duration_minutes(raw)
        return BridgeQuote(
            provider=self.name,
            from_amount=params.amount,
            to_amount=to_amount,
            estimated_time_minutes=minutes,
            fees=BridgeFees(bridge_fee=params.amount - to_amount, gas_fee=gas_fee),
            route=self._build_route(
                params,
                minutes,
                ("Lock tokens on source chain", "Relay message cross-chain", "Release tokens on destination chain"),
            ),
            confidence_score=self.BASE_CONFIDENCE,
            gas_estimate=STARGATE_GAS_ESTIMATE,
            tx_requests=[
                {"type": step.get("type"), **(step.get("transaction") or {})}
                for step in raw.get("steps", [])
            ],
        )

    async def execute_bridge(self, params: BridgeParams, signer: TransactionSigner) -> BridgeResult:
        """Submit the quoted approve/bridge transactions in order."""
        sender = await signer.get_address()
        raw = await self._fetch_quote(params, sender)

        bridge_hash = None
        for step in raw.get("steps", []):
            tx = step.get("transaction") or {}
            tx_hash = await self._submit(
                params.from_chain,
                signer,
                {"to": tx["to"], "data": tx.get("data", "0x"), "value": parse_amount(tx.get("value", 0))},
            )
            logger.info(f"Stargate {step.get('type')} transaction confirmed: {tx_hash}")
            if step.get("type") == "bridge":
                bridge_hash = tx_hash

        if bridge_hash is None:
            raise BridgeApiError("Stargate quote carried no bridge transaction")

        result = self.make_result(params, bridge_hash, self._duration_minutes(raw))
        logger.info(
            f"Bridging {params.amount} {params.from_token.symbol} via Stargate: "
            f"{params.from_chain} -> {params.to_chain} ({result.tracking_id})"
        )
        return self._remember(result)

    async def get_transfer_status(self, tx_hash: str, from_chain: Optional[int] = None) -> BridgeResult:
        known = self._known_transfer(tx_hash)
        data = await self._get_json(f"{self.scan_url}/messages/tx/{tx_hash}", allow_missing=True)
        messages = (data or {}).get("data") or []
        if not messages:
            if known:
                return known
            raise BridgeStatusUnavailable(f"LayerZero Scan has no message for {tx_hash}")

        message = messages[0]
        status_name = str((message.get("status") or {}).get("name", "")).upper()
        dest_tx = ((message.get("destination") or {}).get("tx") or {}).get("txHash")
        pathway = message.get("pathway") or {}

        result = known or BridgeResult(
            provider=self.name,
            tx_hash=tx_hash,
            status=STATUS_PENDING,
            from_chain=_chain_for_endpoint(pathway.get("srcEid")) or from_chain or 0,
            to_chain=_chain_for_endpoint(pathway.get("dstEid")),
            estimated_completion_time=int(time.time()),
            tracking_id=self.make_tracking_id(tx_hash),
        )
        if status_name in LZ_COMPLETED:
            result.status = STATUS_COMPLETED
        elif status_name in LZ_FAILED:
            result.status = STATUS_FAILED
        else:
            result.status = STATUS_PENDING
        result.dest_tx_hash = dest_tx or result.dest_tx_hash
        return self._settle(result)
