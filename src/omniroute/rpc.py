"""Minimal async JSON-RPC client for EVM chains.

Read calls (eth_call, allowance, receipts) and signed-transaction submission
over plain HTTP JSON-RPC with httpx. ABI encoding uses eth_abi; checksums and
selectors come from web3.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional, Sequence

import httpx
from eth_abi import decode, encode
from web3 import Web3

from omniroute.errors import RpcError, TransactionReverted
from omniroute.signing.base import TransactionSigner

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1

# Gas limit multiplier applied on top of eth_estimateGas (in percent)
GAS_LIMIT_BUFFER_PCT = 120

_request_ids = itertools.count(1)


def function_selector(signature: str) -> bytes:
    """4-byte selector for a canonical function signature."""
    return bytes(Web3.keccak(text=signature)[:4])


def encode_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> bytes:
    """ABI-encode a function call: selector + encoded arguments."""
    return function_selector(signature) + encode(list(arg_types), list(args))


def event_topic(signature: str) -> str:
    """topic[0] hex string for an event signature."""
    return "0x" + bytes(Web3.keccak(text=signature)).hex()


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


def is_revert_error(error: RpcError) -> bool:
    """Whether a JSON-RPC error is an EVM revert rather than a transport fault."""
    return error.rpc_code == 3 or "revert" in str(error).lower()


class EvmRpcClient:
    """JSON-RPC client bound to one chain."""

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: float = 2.0,
    ):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def call(self, method: str, params: list) -> Any:
        """Perform one JSON-RPC request and return its result."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(_request_ids),
        }
        try:
            async with self._client() as client:
                response = await client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise RpcError(f"{method} transport error on chain {self.chain_id}: {e}") from e

        if response.status_code != 200:
            raise RpcError(f"{method} HTTP {response.status_code} on chain {self.chain_id}")

        data = response.json()
        if data.get("error"):
            error = data["error"]
            raise RpcError(
                f"{method} failed: {error.get('message', error)}",
                rpc_code=error.get("code"),
                data=error.get("data"),
            )
        return data.get("result")

    # ---------- reads ----------

    async def eth_call(self, to: str, data: bytes, block: str = "latest", sender: Optional[str] = None) -> bytes:
        """Execute a read-only contract call. Reverts raise RpcError."""
        call = {"to": checksum(to), "data": "0x" + data.hex()}
        if sender:
            call["from"] = checksum(sender)
        result = await self.call("eth_call", [call, block])
        if not result or result == "0x":
            return b""
        return bytes.fromhex(result[2:])

    async def get_transaction_count(self, address: str) -> int:
        result = await self.call("eth_getTransactionCount", [checksum(address), "pending"])
        return int(result, 16)

    async def gas_price(self) -> int:
        result = await self.call("eth_gasPrice", [])
        return int(result, 16)

    async def estimate_gas(self, tx: dict) -> int:
        result = await self.call("eth_estimateGas", [self._to_rpc_tx(tx)])
        return int(result, 16)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        """ERC-20 allowance(owner, spender)."""
        data = encode_call(
            "allowance(address,address)",
            ["address", "address"],
            [checksum(owner), checksum(spender)],
        )
        raw = await self.eth_call(token, data)
        if not raw:
            return 0
        (allowance,) = decode(["uint256"], raw)
        return allowance

    # ---------- writes ----------

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        return await self.call("eth_sendRawTransaction", ["0x" + raw_tx.hex()])

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 180) -> dict:
        """Poll for a receipt until mined or timeout.

        Raises:
            RpcError: receipt not available within timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            try:
                receipt = await self.get_transaction_receipt(tx_hash)
            except RpcError as e:
                logger.warning(f"Receipt poll failed for {tx_hash}: {e}")
                receipt = None
            if receipt is not None:
                return receipt
            if loop.time() >= deadline:
                raise RpcError(f"Transaction {tx_hash} not confirmed after {timeout}s")
            await asyncio.sleep(self.poll_interval)

    async def send_transaction(
        self,
        signer: TransactionSigner,
        tx: dict,
        confirmation_timeout: float = 180,
    ) -> dict:
        """Populate, sign, broadcast and confirm a transaction.

        Args:
            signer: Caller-supplied signer
            tx: Partial transaction with at least ``to`` and ``data``

        Returns:
            Mined receipt with status 1

        Raises:
            TransactionReverted: mined with status 0 (reason decoded when possible)
            RpcError: broadcast or confirmation failed
        """
        sender = await signer.get_address()
        populated = {
            "from": checksum(sender),
            "to": checksum(tx["to"]),
            "data": tx.get("data", b""),
            "value": int(tx.get("value", 0)),
            "chainId": self.chain_id,
        }
        if isinstance(populated["data"], bytes):
            populated["data"] = "0x" + populated["data"].hex()

        # Nonce is read per transaction: approval and swap are sequenced by it
        populated["nonce"] = await self.get_transaction_count(sender)
        populated["gasPrice"] = await self.gas_price()
        if tx.get("gas"):
            populated["gas"] = int(tx["gas"])
        else:
            estimated = await self.estimate_gas(populated)
            populated["gas"] = estimated * GAS_LIMIT_BUFFER_PCT // 100

        signing_tx = {k: v for k, v in populated.items() if k != "from"}
        raw = await signer.sign_transaction(signing_tx)
        tx_hash = await self.send_raw_transaction(raw)
        logger.info(f"Broadcast tx {tx_hash} on chain {self.chain_id} (nonce {populated['nonce']})")

        receipt = await self.wait_for_receipt(tx_hash, timeout=confirmation_timeout)
        if int(receipt.get("status", "0x0"), 16) != 1:
            reason = await self._revert_reason(populated, receipt.get("blockNumber", "latest"))
            logger.error(f"Transaction {tx_hash} reverted: {reason or 'no reason'}")
            raise TransactionReverted(tx_hash, receipt, reason)

        logger.info(f"Transaction {tx_hash} confirmed in block {int(receipt['blockNumber'], 16)}")
        return receipt

    async def _revert_reason(self, tx: dict, block: str) -> str:
        """Replay a reverted transaction as eth_call to recover its reason."""
        try:
            await self.call("eth_call", [self._to_rpc_tx(tx), block])
        except RpcError as e:
            return str(e)
        return ""

    @staticmethod
    def _to_rpc_tx(tx: dict) -> dict:
        rpc_tx = {}
        for key in ("from", "to", "data"):
            if tx.get(key):
                rpc_tx[key] = tx[key]
        for key in ("value", "gas", "gasPrice", "nonce"):
            if tx.get(key) is not None:
                rpc_tx[key] = hex(int(tx[key]))
        return rpc_tx


def build_approve_tx(token: str, spender: str, amount: int) -> dict:
    """Unsigned ERC-20 approve(spender, amount) transaction."""
    return {
        "to": checksum(token),
        "data": encode_call("approve(address,uint256)", ["address", "uint256"], [checksum(spender), amount]),
        "value": 0,
    }


async def ensure_allowance(
    rpc: EvmRpcClient,
    signer: TransactionSigner,
    token: str,
    spender: str,
    amount: int,
    confirmation_timeout: float = 180,
) -> Optional[str]:
    """Approve ``spender`` for ``amount`` only if the current allowance is short.

    Returns:
        Approval tx hash if an approval was submitted and confirmed, None otherwise
    """
    owner = await signer.get_address()
    allowance = await rpc.get_allowance(token, owner, spender)
    if allowance >= amount:
        logger.debug(f"Allowance sufficient for {spender}: {allowance} >= {amount}")
        return None

    logger.info(f"Approving {token} for {spender}: allowance {allowance} < {amount}")
    receipt = await rpc.send_transaction(
        signer, build_approve_tx(token, spender, amount), confirmation_timeout
    )
    return receipt["transactionHash"]
