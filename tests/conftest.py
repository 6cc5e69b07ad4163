"""Pytest configuration and fixtures."""

import asyncio
import json
import os
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Optional

import httpx
import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"

from omniroute.bridges.base import (
    STATUS_COMPLETED,
    STATUS_PENDING,
    BridgeFees,
    BridgeParams,
    BridgeProvider,
    BridgeQuote,
    BridgeResult,
)
from omniroute.chains import get_token
from omniroute.errors import BridgeStatusUnavailable, UnsupportedChain
from omniroute.routing.base import (
    QuoteResult,
    Token,
    TradeParams,
    TradeResult,
    VenueAdapter,
    calculate_minimum_amount_out,
    calculate_price_impact,
)
from omniroute.signing.base import TransactionSigner

SIGNER_ADDRESS = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"


# ======================
# Fakes
# ======================


class FakeSigner(TransactionSigner):
    """Signer that records what it signs and returns opaque bytes."""

    def __init__(self, address: str = SIGNER_ADDRESS):
        self.address = address
        self.signed: list[dict] = []

    async def get_address(self) -> str:
        return self.address

    async def sign_transaction(self, tx: dict) -> bytes:
        self.signed.append(tx)
        return b"\xf8" + len(self.signed).to_bytes(4, "big")


class FakeVenue(VenueAdapter):
    """Venue quoting fixed per-pair rates on one chain."""

    def __init__(
        self,
        name: str,
        chain_id: int,
        rates: Optional[dict[tuple[str, str], Decimal]] = None,
        gas: int = 150_000,
        error: Optional[Exception] = None,
        execute_error: Optional[Exception] = None,
        delay: float = 0,
    ):
        self._name = name
        self.chain_id = chain_id
        self.rates = rates or {}
        self.gas = gas
        self.error = error
        self.execute_error = execute_error
        self.delay = delay
        self.trades: list[TradeParams] = []

    @property
    def name(self) -> str:
        return self._name

    def is_supported(self, chain_id: int) -> bool:
        return chain_id == self.chain_id

    async def get_quote(self, params: TradeParams) -> QuoteResult:
        if not self.is_supported(params.chain_id):
            raise UnsupportedChain(params.chain_id, self.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        rate = self.rates.get((params.token_in.symbol, params.token_out.symbol), Decimal(1))
        amount_out = params.token_out.quantize(params.amount_in * rate)
        return QuoteResult(
            amount_out=amount_out,
            price_impact_pct=calculate_price_impact(params.amount_in, amount_out),
            route=[params.token_in.symbol, params.token_out.symbol],
            gas_estimate=self.gas,
            minimum_amount_out=calculate_minimum_amount_out(
                amount_out, params.slippage_bps, params.token_out.decimals
            ),
        )

    async def execute_trade(self, params: TradeParams, signer: TransactionSigner) -> TradeResult:
        if self.execute_error:
            raise self.execute_error
        quote = await self.get_quote(params)
        self.trades.append(params)
        return TradeResult(
            tx_hash=f"0x{self.name.lower().replace(' ', '')}{len(self.trades)}",
            amount_in=params.amount_in,
            amount_out=quote.amount_out,
            gas_used=self.gas,
            effective_price=params.amount_in / quote.amount_out,
            price_impact_pct=quote.price_impact_pct,
            venue_name=self.name,
        )


class FakeBridge(BridgeProvider):
    """Bridge charging a fixed fraction, with settable transfer status."""

    def __init__(
        self,
        name: str,
        prefix: str,
        chains: tuple[int, ...] = (1, 56, 137),
        fee: Decimal = Decimal("0.001"),
        minutes: int = 10,
        gas: int = 200_000,
        error: Optional[Exception] = None,
        execute_error: Optional[Exception] = None,
    ):
        self._name = name
        self._prefix = prefix
        self._chains = list(chains)
        self.fee = fee
        self.minutes = minutes
        self.gas = gas
        self.error = error
        self.execute_error = execute_error
        self.executed: list[BridgeParams] = []
        self.results: dict[str, BridgeResult] = {}
        self.statuses: dict[str, str] = {}
        # Amount credited on completion; defaults to the amount minus the fee
        self.delivered: dict[str, Decimal] = {}
        self.status_requests: list[tuple[str, Optional[int]]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def tracking_prefix(self) -> str:
        return self._prefix

    @property
    def supported_chains(self) -> list[int]:
        return self._chains

    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        if self.error:
            raise self.error
        to_amount = params.to_token.quantize(params.amount * (1 - self.fee))
        return BridgeQuote(
            provider=self.name,
            from_amount=params.amount,
            to_amount=to_amount,
            estimated_time_minutes=self.minutes,
            fees=BridgeFees(bridge_fee=params.amount - to_amount, gas_fee=Decimal("0.002")),
            route=[],
            confidence_score=90,
            gas_estimate=self.gas,
        )

    async def execute_bridge(self, params: BridgeParams, signer: TransactionSigner) -> BridgeResult:
        if self.execute_error:
            raise self.execute_error
        self.executed.append(params)
        tx_hash = f"0x{self._prefix}bridge{len(self.executed)}"
        result = self.make_result(params, tx_hash, self.minutes)
        self.results[tx_hash] = result
        self.statuses[tx_hash] = STATUS_PENDING
        self.delivered[tx_hash] = params.to_token.quantize(params.amount * (1 - self.fee))
        return result

    async def get_transfer_status(self, tx_hash: str, from_chain: Optional[int] = None) -> BridgeResult:
        self.status_requests.append((tx_hash, from_chain))
        if tx_hash not in self.results:
            raise BridgeStatusUnavailable(f"unknown transfer {tx_hash}")
        status = self.statuses[tx_hash]
        received = self.delivered[tx_hash] if status == STATUS_COMPLETED else None
        return replace(self.results[tx_hash], status=status, amount_received=received)


class RpcFailure:
    """JSON-RPC error response for jsonrpc_transport handlers."""

    def __init__(self, message: str, code: int = 3):
        self.message = message
        self.code = code


def jsonrpc_transport(handlers: dict[str, object]) -> httpx.MockTransport:
    """MockTransport answering JSON-RPC methods from ``handlers``.

    A handler is a literal result, an RpcFailure, or a callable taking the
    params list and returning either. Requests are recorded on ``.calls``.
    """
    calls: list[dict] = []

    def handle(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        calls.append(payload)
        result = handlers[payload["method"]]
        if callable(result):
            result = result(payload["params"])
        if isinstance(result, RpcFailure):
            body = {"jsonrpc": "2.0", "id": payload["id"], "error": {"code": result.code, "message": result.message}}
        else:
            body = {"jsonrpc": "2.0", "id": payload["id"], "result": result}
        return httpx.Response(200, json=body)

    transport = httpx.MockTransport(handle)
    transport.calls = calls
    return transport


def json_transport(routes: dict[str, Callable[[httpx.Request], httpx.Response]]) -> httpx.MockTransport:
    """MockTransport dispatching on URL path; unknown paths return 404."""
    calls: list[httpx.Request] = []

    def handle(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        for path, responder in routes.items():
            if request.url.path.endswith(path):
                return responder(request)
        return httpx.Response(404, json={"error": "not found"})

    transport = httpx.MockTransport(handle)
    transport.calls = calls
    return transport


# ======================
# Fixtures
# ======================


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def weth() -> Token:
    return get_token(1, "WETH")


@pytest.fixture
def usdc_eth() -> Token:
    return get_token(1, "USDC")


@pytest.fixture
def usdc_bsc() -> Token:
    return get_token(56, "USDC")


@pytest.fixture
def wbnb() -> Token:
    return get_token(56, "WBNB")


@pytest.fixture
def usdc_polygon() -> Token:
    return get_token(137, "USDC")


@pytest.fixture
def eth_venue() -> FakeVenue:
    return FakeVenue(
        "Uniswap V3",
        1,
        rates={("WETH", "USDC"): Decimal("2000"), ("USDC", "WETH"): Decimal("0.0005")},
        gas=120_000,
    )


@pytest.fixture
def bsc_venue() -> FakeVenue:
    return FakeVenue(
        "PancakeSwap V3",
        56,
        rates={("USDC", "WBNB"): Decimal("0.0033"), ("WBNB", "USDC"): Decimal("300")},
        gas=110_000,
    )


@pytest.fixture
def bridges() -> list[FakeBridge]:
    """Three providers: LayerZero is cheapest, Synapse is fastest."""
    return [
        FakeBridge("LayerZero", "lz", fee=Decimal("0.001"), minutes=10),
        FakeBridge("Hop Protocol", "hop", fee=Decimal("0.003"), minutes=20),
        FakeBridge("Synapse Protocol", "syn", fee=Decimal("0.005"), minutes=4),
    ]
