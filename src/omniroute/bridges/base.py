"""Abstract bridge provider interface and cross-chain transfer types."""

import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

import httpx

from omniroute.errors import BridgeApiError, InvalidTradeParams, RpcError, UnsupportedChain
from omniroute.routing.base import DEFAULT_SLIPPAGE_BPS, Token, calculate_minimum_amount_out
from omniroute.rpc import EvmRpcClient

if TYPE_CHECKING:
    from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

# Transfer lifecycle shared with SwapStep.status
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

# Submitted transfers kept for status lookups, oldest evicted first
MAX_REMEMBERED_TRANSFERS = 1024
NATIVE_UNIT = Decimal(10) ** 18


@dataclass
class BridgeParams:
    """Parameters for one cross-chain transfer."""

    from_chain: int
    to_chain: int
    from_token: Token
    to_token: Token
    amount: Decimal
    recipient: str
    slippage_bps: Optional[int] = None

    def __post_init__(self):
        if self.from_chain == self.to_chain:
            raise InvalidTradeParams(f"Bridge source and destination are both chain {self.from_chain}")
        if self.from_token.chain_id != self.from_chain or self.to_token.chain_id != self.to_chain:
            raise InvalidTradeParams("Bridge tokens must live on their respective chains")
        self.amount = Decimal(self.amount)


@dataclass
class BridgeFees:
    """Fees charged for a transfer."""

    bridge_fee: Decimal  # In units of the bridged token
    gas_fee: Decimal  # In units of the source chain's native token
    total_fee_usd: Optional[Decimal] = None  # Both fees in USD, when a price is known


@dataclass
class BridgeRouteStep:
    """One phase of a provider's transfer (lock, relay, mint, ...)."""

    step: int
    action: str
    chain: int  # 0 = cross-chain
    protocol: str
    estimated_time_minutes: int


@dataclass
class BridgeQuote:
    """A transfer quote from one bridge provider."""

    provider: str
    from_amount: Decimal
    to_amount: Decimal
    estimated_time_minutes: int
    fees: BridgeFees
    route: list[BridgeRouteStep]
    confidence_score: int
    gas_estimate: int
    # Provider-built transactions to submit in order, when the API returns them
    tx_requests: list[dict] = field(default_factory=list, repr=False)


@dataclass
class AggregatedBridgeQuote(BridgeQuote):
    """Best bridge quote with its advantage over the worst alternative."""

    savings: Decimal = Decimal(0)
    savings_percentage: Decimal = Decimal(0)


@dataclass
class BridgeResult:
    """A submitted transfer and its last known status."""

    provider: str
    tx_hash: str
    status: str
    from_chain: int
    to_chain: int
    estimated_completion_time: int  # unix seconds
    tracking_id: str
    dest_tx_hash: Optional[str] = None
    # Bridge tokens credited on the destination chain, once the provider reports it
    amount_received: Optional[Decimal] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "provider": self.provider,
            "tx_hash": self.tx_hash,
            "status": self.status,
            "from_chain": self.from_chain,
            "to_chain": self.to_chain,
            "estimated_completion_time": self.estimated_completion_time,
            "tracking_id": self.tracking_id,
            "dest_tx_hash": self.dest_tx_hash,
            "amount_received": str(self.amount_received) if self.amount_received is not None else None,
        }


class BridgeProvider(ABC):
    """Abstract base class for a cross-chain bridge protocol."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider display name."""
        pass

    @property
    @abstractmethod
    def tracking_prefix(self) -> str:
        """Namespace for tracking ids (``{prefix}_{tx_hash}``)."""
        pass

    @property
    @abstractmethod
    def supported_chains(self) -> list[int]:
        """Chain ids the provider can bridge between."""
        pass

    @abstractmethod
    async def get_quote(self, params: BridgeParams) -> BridgeQuote:
        """Quote a transfer. Raises on unsupported routes or API failure."""
        pass

    @abstractmethod
    async def execute_bridge(self, params: BridgeParams, signer: "TransactionSigner") -> BridgeResult:
        """Submit the source-chain transaction(s) for a transfer."""
        pass

    @abstractmethod
    async def get_transfer_status(self, tx_hash: str, from_chain: Optional[int] = None) -> BridgeResult:
        """Query the provider for a transfer's current status.

        ``from_chain`` is the origin chain of the transfer when the caller
        knows it; providers whose status API is keyed by origin chain need it
        for transfers they did not submit themselves.
        """
        pass

    def supports_route(self, from_chain: int, to_chain: int) -> bool:
        """Check if this provider can bridge between the two chains."""
        chains = self.supported_chains
        return from_chain != to_chain and from_chain in chains and to_chain in chains

    def make_tracking_id(self, tx_hash: str) -> str:
        return f"{self.tracking_prefix}_{tx_hash}"

    def make_result(self, params: BridgeParams, tx_hash: str, estimated_minutes: int) -> BridgeResult:
        """A freshly submitted, pending transfer."""
        return BridgeResult(
            provider=self.name,
            tx_hash=tx_hash,
            status=STATUS_PENDING,
            from_chain=params.from_chain,
            to_chain=params.to_chain,
            estimated_completion_time=int(time.time()) + estimated_minutes * 60,
            tracking_id=self.make_tracking_id(tx_hash),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


def split_tracking_id(tracking_id: str) -> tuple[str, str]:
    """Split ``prefix_txhash`` into its parts."""
    prefix, sep, tx_hash = tracking_id.partition("_")
    if not sep or not prefix or not tx_hash:
        raise ValueError(f"Malformed tracking id: {tracking_id!r}")
    return prefix, tx_hash


def parse_amount(value: Any) -> int:
    """Integer from an API amount: int, decimal or hex string, or ``{"hex": ...}``."""
    if isinstance(value, dict):
        value = value.get("hex", value.get("value", 0))
    if isinstance(value, int):
        return value
    text = str(value or "0").strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(Decimal(text))


class HttpBridgeProvider(BridgeProvider):
    """Bridge provider quoting through a public HTTP API.

    Source-chain transactions go through the RPC client registered for that
    chain. Submitted transfers are remembered until their status is final
    (at most MAX_REMEMBERED_TRANSFERS of them), so status lookups can report
    the route before the provider's API has indexed the transfer.
    """

    BASE_CONFIDENCE = 80

    def __init__(
        self,
        api_url: str,
        rpc_clients: Optional[dict[int, EvmRpcClient]] = None,
        timeout: float = 20.0,
        confirmation_timeout: float = 180,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.rpc_clients = rpc_clients or {}
        self.timeout = timeout
        self.confirmation_timeout = confirmation_timeout
        self._transport = transport
        self._transfers: OrderedDict[str, BridgeResult] = OrderedDict()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _get_json(self, url: str, params: Optional[dict] = None, allow_missing: bool = False) -> Any:
        """GET a JSON document, raising BridgeApiError on any failure.

        With ``allow_missing`` a 404 returns None instead.
        """
        try:
            async with self._client() as client:
                response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise BridgeApiError(f"{self.name} request failed: {e}") from e

        if response.status_code == 404 and allow_missing:
            return None
        if response.status_code != 200:
            raise BridgeApiError(
                f"{self.name} API error: HTTP {response.status_code}",
                {"url": url, "body": response.text[:200]},
            )
        try:
            return response.json()
        except ValueError as e:
            raise BridgeApiError(f"{self.name} returned invalid JSON") from e

    def _check_route(self, params: BridgeParams) -> None:
        if not self.supports_route(params.from_chain, params.to_chain):
            unsupported = params.from_chain if params.from_chain not in self.supported_chains else params.to_chain
            raise UnsupportedChain(unsupported, self.name)

    def _rpc(self, chain_id: int) -> EvmRpcClient:
        rpc = self.rpc_clients.get(chain_id)
        if rpc is None:
            raise UnsupportedChain(chain_id, self.name)
        return rpc

    async def _estimate_gas_fee(self, chain_id: int, gas_units: int) -> Decimal:
        """Native-token cost of ``gas_units`` at the current gas price (0 if unknown)."""
        rpc = self.rpc_clients.get(chain_id)
        if rpc is None:
            return Decimal(0)
        try:
            gas_price = await rpc.gas_price()
        except RpcError as e:
            logger.debug(f"{self.name}: gas price unavailable on chain {chain_id}: {e}")
            return Decimal(0)
        return Decimal(gas_price * gas_units) / NATIVE_UNIT

    @staticmethod
    def _slippage_bps(params: BridgeParams) -> int:
        return params.slippage_bps if params.slippage_bps is not None else DEFAULT_SLIPPAGE_BPS

    def _minimum_received(self, params: BridgeParams, amount: Decimal) -> Decimal:
        return calculate_minimum_amount_out(amount, self._slippage_bps(params), params.to_token.decimals)

    def _build_route(
        self,
        params: BridgeParams,
        total_minutes: int,
        actions: tuple[str, str, str],
    ) -> list[BridgeRouteStep]:
        """Source, relay and destination phases; the relay takes the bulk of the time."""
        edge = 1 if total_minutes >= 3 else 0
        relay = max(total_minutes - 2 * edge, 1)
        chains = (params.from_chain, 0, params.to_chain)
        minutes = (edge, relay, edge)
        return [
            BridgeRouteStep(
                step=i + 1,
                action=actions[i],
                chain=chains[i],
                protocol=self.name,
                estimated_time_minutes=minutes[i],
            )
            for i in range(3)
        ]

    async def _submit(self, chain_id: int, signer: "TransactionSigner", tx: dict) -> str:
        receipt = await self._rpc(chain_id).send_transaction(signer, tx, self.confirmation_timeout)
        return receipt["transactionHash"]

    def _remember(self, result: BridgeResult) -> BridgeResult:
        self._transfers[result.tx_hash.lower()] = result
        while len(self._transfers) > MAX_REMEMBERED_TRANSFERS:
            self._transfers.popitem(last=False)
        return result

    def _settle(self, result: BridgeResult) -> BridgeResult:
        """Stop remembering a transfer once its status is final."""
        if result.status in (STATUS_COMPLETED, STATUS_FAILED):
            self._transfers.pop(result.tx_hash.lower(), None)
        return result

    def _known_transfer(self, tx_hash: str) -> Optional[BridgeResult]:
        known = self._transfers.get(tx_hash.lower())
        return replace(known) if known else None
