"""Error taxonomy for quoting, routing and execution.

Quote-time errors (UnsupportedChain, NoLiquidity) are recovered by the
aggregators: the failing venue is logged and dropped. Everything raised
during execution propagates to the caller unchanged.
"""

from typing import Any, Optional


class RoutingError(Exception):
    """Base class for all routing engine errors."""

    code = "ROUTING_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidTradeParams(RoutingError):
    """Parameters violate a structural invariant (e.g. chain mismatch)."""

    code = "INVALID_PARAMS"


class UnsupportedChain(RoutingError):
    """A venue or provider does not serve the requested chain."""

    code = "UNSUPPORTED_CHAIN"

    def __init__(self, chain_id: int, venue_name: str):
        super().__init__(
            f"Chain {chain_id} not supported by {venue_name}",
            {"chain_id": chain_id, "venue": venue_name},
        )
        self.chain_id = chain_id
        self.venue_name = venue_name


class NoLiquidity(RoutingError):
    """The venue's quoting call reverted or returned a degenerate result."""

    code = "NO_LIQUIDITY"


class InsufficientLiquidity(NoLiquidity):
    """No pool (or not enough depth) for the requested pair."""

    code = "INSUFFICIENT_LIQUIDITY"

    def __init__(self, symbol_a: str, symbol_b: str, venue_name: str = ""):
        suffix = f" on {venue_name}" if venue_name else ""
        super().__init__(
            f"Insufficient liquidity for {symbol_a}/{symbol_b} pair{suffix}",
            {"pair": [symbol_a, symbol_b], "venue": venue_name},
        )


class NoQuotesAvailable(RoutingError):
    """Every venue failed or none supports the trade."""

    code = "NO_QUOTES"


class NoRouteAvailable(RoutingError):
    """A required leg of a cross-chain plan could not be quoted."""

    code = "NO_ROUTE"


class NoBridgeToken(RoutingError):
    """No preferred stablecoin is known on both chains."""

    code = "NO_BRIDGE_TOKEN"

    def __init__(self, from_chain: int, to_chain: int):
        super().__init__(
            f"No suitable bridge token found for route {from_chain} -> {to_chain}",
            {"from_chain": from_chain, "to_chain": to_chain},
        )


class SlippageExceeded(RoutingError):
    """The venue reverted the swap because output fell below the minimum."""

    code = "SLIPPAGE_EXCEEDED"


class BridgeApiError(RoutingError):
    """A bridge provider's HTTP API failed or returned no usable quote."""

    code = "BRIDGE_API_ERROR"


class UnknownTrackingId(RoutingError):
    """A tracking id does not match any configured bridge provider."""

    code = "UNKNOWN_TRACKING_ID"


class BridgeTimeout(RoutingError):
    """A bridge transfer did not reach a final state in time."""

    code = "BRIDGE_TIMEOUT"


class BridgeStatusUnavailable(RoutingError):
    """The provider cannot report on a transfer (e.g. unknown origin)."""

    code = "BRIDGE_STATUS_UNAVAILABLE"


class KeyMaterialRejected(RoutingError):
    """A request attempted to carry private key material."""

    code = "KEY_MATERIAL_REJECTED"


class TransactionError(RoutingError):
    """Submitting or confirming a transaction failed."""

    code = "TRANSACTION_ERROR"


class RpcError(TransactionError):
    """JSON-RPC transport or node-level error."""

    code = "RPC_ERROR"

    def __init__(self, message: str, rpc_code: Optional[int] = None, data: Any = None):
        super().__init__(message, {"rpc_code": rpc_code, "data": data})
        self.rpc_code = rpc_code
        self.data = data


class TransactionReverted(TransactionError):
    """Transaction was mined with status 0. Gas was spent."""

    code = "TRANSACTION_REVERTED"

    def __init__(self, tx_hash: str, receipt: Optional[dict] = None, reason: str = ""):
        message = f"Transaction {tx_hash} reverted"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"tx_hash": tx_hash})
        self.tx_hash = tx_hash
        self.receipt = receipt or {}
        self.reason = reason


class StepExecutionError(RoutingError):
    """A cross-chain plan stopped at a specific step.

    ``result`` holds the partial CrossChainSwapResult: steps before
    ``step_number`` are completed on-chain, the failing step is marked failed.
    """

    code = "STEP_FAILED"

    def __init__(self, step_number: int, result: Any, cause: BaseException):
        super().__init__(
            f"Cross-chain swap failed at step {step_number}: {cause}",
            {"step_number": step_number},
        )
        self.step_number = step_number
        self.result = result
        self.cause = cause
