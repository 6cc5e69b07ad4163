"""Tests for the JSON-RPC client, ABI helpers and signers."""

import httpx
import pytest
from eth_abi import encode
from eth_account import Account

from conftest import SIGNER_ADDRESS, RpcFailure, jsonrpc_transport
from omniroute.errors import RpcError, TransactionReverted
from omniroute.rpc import (
    EvmRpcClient,
    encode_call,
    ensure_allowance,
    event_topic,
    function_selector,
    is_revert_error,
)
from omniroute.signing import LocalAccountSigner, SigningError

TOKEN = "0x4444444444444444444444444444444444444444"
SPENDER = "0x5555555555555555555555555555555555555555"


def _client(handlers) -> EvmRpcClient:
    return EvmRpcClient("http://node.test", 1, transport=jsonrpc_transport(handlers), poll_interval=0)


def _mined(status: str = "0x1"):
    return lambda params: {"transactionHash": params[0], "status": status, "blockNumber": "0x2a"}


class TestAbiHelpers:
    """Tests for selectors, topics and call encoding."""

    def test_function_selector(self):
        assert function_selector("transfer(address,uint256)").hex() == "a9059cbb"

    def test_event_topic(self):
        assert event_topic("Transfer(address,address,uint256)") == (
            "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
        )

    def test_encode_call(self):
        data = encode_call("approve(address,uint256)", ["address", "uint256"], [SPENDER, 7])
        assert data[:4].hex() == "095ea7b3"
        assert data[4:] == encode(["address", "uint256"], [SPENDER, 7])

    def test_revert_detection(self):
        assert is_revert_error(RpcError("eth_call failed", rpc_code=3))
        assert is_revert_error(RpcError("execution reverted: STF"))
        assert not is_revert_error(RpcError("eth_call HTTP 502 on chain 1"))


class TestEvmRpcClient:
    """Tests for EvmRpcClient request handling."""

    @pytest.mark.asyncio
    async def test_call_returns_result(self):
        rpc = _client({"eth_gasPrice": "0x3b9aca00"})
        assert await rpc.gas_price() == 1_000_000_000

    @pytest.mark.asyncio
    async def test_rpc_error_carries_code(self):
        rpc = _client({"eth_call": RpcFailure("execution reverted", code=3)})

        with pytest.raises(RpcError) as exc_info:
            await rpc.eth_call(TOKEN, b"\x00")

        assert exc_info.value.rpc_code == 3
        assert "execution reverted" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
        rpc = EvmRpcClient("http://node.test", 1, transport=transport)
        with pytest.raises(RpcError):
            await rpc.gas_price()

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        rpc = EvmRpcClient("http://node.test", 1, transport=httpx.MockTransport(refuse))
        with pytest.raises(RpcError):
            await rpc.gas_price()

    @pytest.mark.asyncio
    async def test_empty_call_result(self):
        rpc = _client({"eth_call": "0x"})
        assert await rpc.eth_call(TOKEN, b"\x00") == b""

    @pytest.mark.asyncio
    async def test_get_allowance(self):
        rpc = _client({"eth_call": "0x" + encode(["uint256"], [12345]).hex()})
        assert await rpc.get_allowance(TOKEN, SIGNER_ADDRESS, SPENDER) == 12345

    @pytest.mark.asyncio
    async def test_receipt_timeout(self):
        rpc = _client({"eth_getTransactionReceipt": None})
        with pytest.raises(RpcError):
            await rpc.wait_for_receipt("0xabc", timeout=0)


class TestSendTransaction:
    """Tests for populate / sign / broadcast / confirm."""

    @pytest.mark.asyncio
    async def test_explicit_gas_skips_estimate(self, signer):
        rpc = _client({
            "eth_getTransactionCount": "0x7",
            "eth_gasPrice": "0x1",
            "eth_sendRawTransaction": "0xfeed",
            "eth_getTransactionReceipt": _mined(),
        })

        receipt = await rpc.send_transaction(signer, {"to": TOKEN, "data": b"\x01", "gas": 50_000})

        assert receipt["transactionHash"] == "0xfeed"
        assert signer.signed[0]["gas"] == 50_000
        assert signer.signed[0]["nonce"] == 7
        assert signer.signed[0]["data"] == "0x01"
        methods = [c["method"] for c in rpc._transport.calls]
        assert "eth_estimateGas" not in methods

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, signer):
        rpc = _client({
            "eth_getTransactionCount": "0x0",
            "eth_gasPrice": "0x1",
            "eth_estimateGas": "0x5208",
            "eth_sendRawTransaction": "0xdead",
            "eth_getTransactionReceipt": _mined("0x0"),
            "eth_call": RpcFailure("execution reverted: STF"),
        })

        with pytest.raises(TransactionReverted) as exc_info:
            await rpc.send_transaction(signer, {"to": TOKEN, "data": b""})

        assert exc_info.value.tx_hash == "0xdead"
        assert "STF" in exc_info.value.reason


class TestEnsureAllowance:
    """Tests for the approve-if-needed helper."""

    @pytest.mark.asyncio
    async def test_sufficient_allowance_sends_nothing(self, signer):
        rpc = _client({"eth_call": "0x" + encode(["uint256"], [10**6]).hex()})

        assert await ensure_allowance(rpc, signer, TOKEN, SPENDER, 10**6) is None
        assert signer.signed == []

    @pytest.mark.asyncio
    async def test_short_allowance_approves_exact_amount(self, signer):
        rpc = _client({
            "eth_call": "0x" + encode(["uint256"], [0]).hex(),
            "eth_getTransactionCount": "0x0",
            "eth_gasPrice": "0x1",
            "eth_estimateGas": "0xb411",
            "eth_sendRawTransaction": "0xa11",
            "eth_getTransactionReceipt": _mined(),
        })

        assert await ensure_allowance(rpc, signer, TOKEN, SPENDER, 500) == "0xa11"
        expected = "0x" + encode_call("approve(address,uint256)", ["address", "uint256"], [SPENDER, 500]).hex()
        assert signer.signed[0]["data"] == expected


class TestLocalAccountSigner:
    """Tests for the eth_account-backed signer."""

    @pytest.fixture
    def account(self):
        return Account.from_key("0x" + "11" * 32)

    @pytest.mark.asyncio
    async def test_address(self, account):
        assert await LocalAccountSigner(account).get_address() == account.address

    @pytest.mark.asyncio
    async def test_signs_legacy_transaction(self, account):
        tx = {
            "to": TOKEN,
            "value": 0,
            "data": "0x",
            "gas": 21_000,
            "gasPrice": 10**9,
            "nonce": 0,
            "chainId": 1,
        }
        raw = await LocalAccountSigner(account).sign_transaction(tx)

        assert isinstance(raw, bytes)
        assert len(raw) > 0

    @pytest.mark.asyncio
    async def test_invalid_transaction(self, account):
        with pytest.raises(SigningError):
            await LocalAccountSigner(account).sign_transaction({"to": TOKEN})

    def test_repr_has_no_key(self, account):
        text = repr(LocalAccountSigner(account))
        assert account.address in text
        assert "11" * 32 not in text
