"""Synapse Protocol bridge integration.

The Synapse REST API quotes a route and returns the router calldata to
submit on the origin chain. Status lookups need the origin chain id, which
is taken from transfers submitted through this provider.

API docs: https://api.synapseprotocol.com/api-docs
"""

import logging
import math
import time
from decimal import Decimal
from typing import Optional

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
from omniroute.errors import BridgeApiError, BridgeStatusUnavailable
from omniroute.rpc import ensure_allowance
from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

SYNAPSE_CHAINS = [1, 56, 137, 42161, 10, 43114]

SYNAPSE_GAS_ESTIMATE = 300_000


def _quote_output(quote: dict) -> Decimal:
    """Human-unit output; the API exposes it under a couple of names."""
    for key in ("maxAmountOutStr", "expectedToAmount"):
        if quote.get(key) not in (None, ""):
            return Decimal(str(quote[key]))
    return Decimal(0)


class SynapseBridge(HttpBridgeProvider):
    """Synapse bridge router (CCTP, RFQ and pool-based modules)."""

    BASE_CONFIDENCE = 85

    @property
    def name(self) -> str:
        return "Synapse Protocol"

    @property
    def tracking_prefix(self) -> str:
        return "syn"

    @property
    def supported_chains(self) -> list[int]:
        return SYNAPSE_CHAINS

    async def _fetch_quote(self, params: BridgeParams, sender: str) -> dict:
        self._check_route(params)
        query = {
            "fromChain": params.from_chain,
            "toChain": params.to_chain,
            "fromToken": params.from_token.address,
            "toToken": params.to_token.address,
            "amount": str(params.amount),
            "originUserAddress": sender,
            "destAddress": params.recipient,
        }
        logger.debug(f"Synapse quote request: {query}")
        data = await self._get_json(f"{self.api_url}/bridge", query)

        quotes = data if isinstance(data, list) else []
        usable = [q for q in quotes if _quote_output(q) > 0 and q.get("callData")]
        if not usable:
            raise BridgeApiError(
                f"Synapse has no route for {params.from_token.symbol} "
                f"{params.from_chain} -> {params.to_chain}"
            )
        return max(usable, key=_quote_output)

    @staticmethod
    def _duration_minutes(raw: dict) -> int:
        return max(1, math.ceil(float(raw.get("estimatedTime") or 0) / 60))

    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        raw = await self._fetch_quote(params, params.recipient)
        to_amount = _quote_output(raw)
        bridge_fee = raw.get("bridgeFeeFormatted")
        minutes = self._duration_minutes(raw)

        return BridgeQuote(
            provider=self.name,
            from_amount=params.amount,
            to_amount=to_amount,
            estimated_time_minutes=minutes,
            fees=BridgeFees(
                bridge_fee=Decimal(str(bridge_fee)) if bridge_fee else params.amount - to_amount,
                gas_fee=await self._estimate_gas_fee(params.from_chain, SYNAPSE_GAS_ESTIMATE),
            ),
            route=self._build_route(
                params,
                minutes,
                ("Deposit to Synapse router", "Bridge cross-chain", "Receive on destination"),
            ),
            confidence_score=self.BASE_CONFIDENCE,
            gas_estimate=SYNAPSE_GAS_ESTIMATE,
            tx_requests=[dict(raw["callData"])],
        )

    async def execute_bridge(self, params: BridgeParams, signer: TransactionSigner) -> BridgeResult:
        sender = await signer.get_address()
        raw = await self._fetch_quote(params, sender)
        call = raw["callData"]
        router = call["to"]
        amount = params.from_token.to_base_units(params.amount)

        await ensure_allowance(
            self._rpc(params.from_chain),
            signer,
            params.from_token.address,
            router,
            amount,
            self.confirmation_timeout,
        )
        tx_hash = await self._submit(
            params.from_chain,
            signer,
            {"to": router, "data": call.get("data", "0x"), "value": parse_amount(call.get("value", 0))},
        )

        result = self.make_result(params, tx_hash, self._duration_minutes(raw))
        logger.info(
            f"Bridging {params.amount} {params.from_token.symbol} via Synapse "
            f"({raw.get('bridgeModuleName', 'router')}): {params.from_chain} -> {params.to_chain} "
            f"({result.tracking_id})"
        )
        return self._remember(result)

    async def get_transfer_status(self, tx_hash: str, from_chain: Optional[int] = None) -> BridgeResult:
        """Status of a transfer; ``from_chain`` is needed once the transfer is not remembered here."""
        known = self._known_transfer(tx_hash)
        origin = known.from_chain if known else from_chain
        if origin is None:
            raise BridgeStatusUnavailable(
                f"Synapse status for {tx_hash} needs the origin chain id",
                {"tx_hash": tx_hash},
            )

        data = await self._get_json(
            f"{self.api_url}/destinationTx",
            {"originChainId": origin, "txHash": tx_hash},
        )
        to_info = (data or {}).get("toInfo") or {}

        result = known or BridgeResult(
            provider=self.name,
            tx_hash=tx_hash,
            status=STATUS_PENDING,
            from_chain=origin,
            to_chain=int(to_info.get("chainID") or 0),
            estimated_completion_time=int(time.time()),
            tracking_id=self.make_tracking_id(tx_hash),
        )
        if str((data or {}).get("status", "")).lower() == STATUS_COMPLETED:
            result.status = STATUS_COMPLETED
            result.dest_tx_hash = to_info.get("txnHash") or result.dest_tx_hash
            if to_info.get("formattedValue") is not None:
                result.amount_received = Decimal(str(to_info["formattedValue"]))
        else:
            result.status = STATUS_PENDING
        return self._settle(result)
