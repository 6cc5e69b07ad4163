"""Tests for the on-chain venue adapters against a mocked JSON-RPC node."""

from decimal import Decimal
from itertools import count

import pytest
from eth_abi import decode, encode

from conftest import RpcFailure, jsonrpc_transport
from omniroute.chains import VENUES
from omniroute.errors import InsufficientLiquidity, SlippageExceeded, TransactionReverted, UnsupportedChain
from omniroute.routing.base import TradeParams
from omniroute.routing.pancakeswap_v3 import PancakeSwapV3Venue
from omniroute.routing.quickswap_v3 import QuickSwapV3Venue
from omniroute.routing.uniswap_v3 import UniswapV3Venue
from omniroute.rpc import MAX_UINT256, EvmRpcClient, event_topic, function_selector

UNISWAP = VENUES["uniswap_v3"]
ALLOWANCE_SELECTOR = "0x" + function_selector("allowance(address,address)").hex()
APPROVE_SELECTOR = "0x" + function_selector("approve(address,uint256)").hex()


def _hex(types, values) -> str:
    return "0x" + encode(types, values).hex()


def _uniswap_quote(amount_out: int, gas: int = 120_000) -> str:
    return _hex(["uint256", "uint160", "uint32", "uint256"], [amount_out, 0, 1, gas])


def _swap_log(amount0: int, amount1: int) -> dict:
    return {
        "topics": [event_topic(UniswapV3Venue.SWAP_EVENT)],
        "data": _hex(["int256", "int256", "uint160", "uint128", "int24"], [amount0, amount1, 1, 1, 0]),
    }


class ChainStub:
    """JSON-RPC node state for one venue test."""

    def __init__(self, allowance: int = MAX_UINT256, quote: str = None, logs=None, status: str = "0x1"):
        self.allowance = allowance
        self.quote = quote or _uniswap_quote(1_995_000_000)
        self.logs = logs if logs is not None else [_swap_log(10**18, -1_995_000_000)]
        self.status = status
        self.sent: list[str] = []
        self.router_revert = "execution reverted: Too little received"
        self._hashes = count(1)

    def eth_call(self, params):
        call = params[0]
        if call["data"].startswith(ALLOWANCE_SELECTOR):
            return _hex(["uint256"], [self.allowance])
        if call["to"].lower() == UNISWAP.quoter.lower():
            return self.quote
        # Replay of a reverted router transaction
        return RpcFailure(self.router_revert)

    def send_raw(self, params):
        tx_hash = f"0x{next(self._hashes):064x}"
        self.sent.append(tx_hash)
        return tx_hash

    def receipt(self, params):
        tx_hash = params[0]
        is_swap = tx_hash == self.sent[-1] and self.status is not None
        return {
            "transactionHash": tx_hash,
            "status": self.status if is_swap else "0x1",
            "blockNumber": "0x10",
            "gasUsed": "0x249f0",
            "logs": self.logs if is_swap else [],
        }

    def transport(self):
        return jsonrpc_transport({
            "eth_call": self.eth_call,
            "eth_getTransactionCount": "0x5",
            "eth_gasPrice": "0x3b9aca00",
            "eth_estimateGas": "0x30d40",
            "eth_sendRawTransaction": self.send_raw,
            "eth_getTransactionReceipt": self.receipt,
        })


def _venue(stub: ChainStub, cls=UniswapV3Venue, chain_id: int = 1):
    transport = stub.transport()
    rpc = EvmRpcClient("http://node.test", chain_id, transport=transport, poll_interval=0)
    return cls(rpc), transport


class TestUniswapV3Quotes:
    """Tests for quoting through QuoterV2."""

    @pytest.mark.asyncio
    async def test_get_quote(self, weth, usdc_eth):
        venue, _ = _venue(ChainStub(quote=_uniswap_quote(2_000_000_000, gas=130_000)))
        params = TradeParams(token_in=weth, token_out=usdc_eth, amount_in=Decimal("1"))

        quote = await venue.get_quote(params)

        assert quote.amount_out == Decimal("2000")
        assert quote.gas_estimate == 130_000
        assert quote.minimum_amount_out == Decimal("1990")
        assert quote.route == ["WETH", "USDC"]

    @pytest.mark.asyncio
    async def test_quoter_revert_is_insufficient_liquidity(self, weth, usdc_eth):
        stub = ChainStub()
        stub.quote = RpcFailure("execution reverted")
        venue, _ = _venue(stub)
        params = TradeParams(token_in=weth, token_out=usdc_eth, amount_in=Decimal("1"))

        with pytest.raises(InsufficientLiquidity):
            await venue.get_quote(params)

    @pytest.mark.asyncio
    async def test_zero_output_is_insufficient_liquidity(self, weth, usdc_eth):
        venue, _ = _venue(ChainStub(quote=_uniswap_quote(0)))
        params = TradeParams(token_in=weth, token_out=usdc_eth, amount_in=Decimal("1"))

        with pytest.raises(InsufficientLiquidity):
            await venue.get_quote(params)

    @pytest.mark.asyncio
    async def test_other_chain_is_unsupported(self, usdc_bsc, wbnb):
        venue, transport = _venue(ChainStub())
        params = TradeParams(token_in=usdc_bsc, token_out=wbnb, amount_in=Decimal("1"))

        assert venue.is_supported(56) is False
        with pytest.raises(UnsupportedChain):
            await venue.get_quote(params)
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_best_fee_tier_skips_empty_pools(self, weth, usdc_eth):
        stub = ChainStub()
        tiers = iter([RpcFailure("execution reverted"), _uniswap_quote(2_000_000_000)])
        stub.eth_call = lambda params: next(tiers)
        venue, _ = _venue(stub)

        assert await venue.get_best_fee_tier(weth, usdc_eth) == 3000


class TestUniswapV3Execution:
    """Tests for approve + swap execution."""

    @pytest.fixture
    def params(self, weth, usdc_eth):
        return TradeParams(token_in=weth, token_out=usdc_eth, amount_in=Decimal("1"))

    @pytest.mark.asyncio
    async def test_skips_approval_when_allowance_suffices(self, params, signer):
        stub = ChainStub()
        venue, _ = _venue(stub)

        result = await venue.execute_trade(params, signer)

        assert len(stub.sent) == 1
        assert result.approval_tx_hash is None
        assert result.tx_hash == stub.sent[0]
        assert result.amount_out == Decimal("1995")
        assert result.gas_used == 0x249f0
        assert result.venue_name == "Uniswap V3"

    @pytest.mark.asyncio
    async def test_approves_when_allowance_short(self, params, signer):
        stub = ChainStub(allowance=0)
        venue, _ = _venue(stub)

        result = await venue.execute_trade(params, signer)

        assert len(stub.sent) == 2
        assert result.approval_tx_hash == stub.sent[0]
        assert result.tx_hash == stub.sent[1]
        assert signer.signed[0]["data"].startswith(APPROVE_SELECTOR)
        assert signer.signed[0]["to"].lower() == params.token_in.address.lower()

    @pytest.mark.asyncio
    async def test_swap_transaction_fields(self, params, signer):
        venue, _ = _venue(ChainStub())

        await venue.execute_trade(params, signer)

        swap_tx = signer.signed[-1]
        assert swap_tx["to"].lower() == UNISWAP.router.lower()
        assert swap_tx["chainId"] == 1
        assert swap_tx["nonce"] == 5
        # 200_000 estimated, 20% buffer
        assert swap_tx["gas"] == 240_000
        assert "from" not in swap_tx

    @pytest.mark.asyncio
    async def test_falls_back_to_quote_without_swap_event(self, params, signer):
        venue, _ = _venue(ChainStub(logs=[]))

        result = await venue.execute_trade(params, signer)

        assert result.amount_out == Decimal("1995")

    @pytest.mark.asyncio
    async def test_too_little_received_is_slippage(self, params, signer):
        venue, _ = _venue(ChainStub(status="0x0"))

        with pytest.raises(SlippageExceeded):
            await venue.execute_trade(params, signer)

    @pytest.mark.asyncio
    async def test_other_revert_propagates(self, params, signer):
        stub = ChainStub(status="0x0")
        stub.router_revert = "execution reverted: STF"
        venue, _ = _venue(stub)

        with pytest.raises(TransactionReverted) as exc_info:
            await venue.execute_trade(params, signer)
        assert "STF" in exc_info.value.reason


class TestPancakeSwapV3:
    """Tests for the PancakeSwap SmartRouter encoding."""

    def test_swap_wrapped_in_multicall_with_deadline(self, usdc_bsc, wbnb):
        venue = PancakeSwapV3Venue(EvmRpcClient("http://node.test", 56))
        params = TradeParams(token_in=usdc_bsc, token_out=wbnb, amount_in=Decimal("100"))

        data = venue._encode_swap(params, 10**20, 1, "0x" + "22" * 20, 1_700_000_000, 2500)

        assert data[:4] == function_selector("multicall(uint256,bytes[])")
        deadline, calls = decode(["uint256", "bytes[]"], data[4:])
        assert deadline == 1_700_000_000
        assert calls[0][:4] == function_selector(PancakeSwapV3Venue.SWAP_SIGNATURE)

    def test_default_config(self):
        venue = PancakeSwapV3Venue(EvmRpcClient("http://node.test", 56))
        assert venue.name == "PancakeSwap V3"
        assert venue.config.default_fee == 2500
        assert venue.is_supported(56)
        assert not venue.is_supported(1)


class TestQuickSwapV3:
    """Tests for the Algebra-based QuickSwap venue."""

    @pytest.mark.asyncio
    async def test_quote_uses_venue_gas_estimate(self):
        from omniroute.chains import get_token

        quote_data = _hex(["uint256", "uint16"], [5 * 10**17, 500])
        transport = jsonrpc_transport({"eth_call": quote_data})
        venue = QuickSwapV3Venue(EvmRpcClient("http://node.test", 137, transport=transport))
        params = TradeParams(
            token_in=get_token(137, "USDC"),
            token_out=get_token(137, "WETH"),
            amount_in=Decimal("1000"),
        )

        quote = await venue.get_quote(params)

        assert quote.amount_out == Decimal("0.5")
        assert quote.gas_estimate == 200_000
        assert await venue.get_best_fee_tier(params.token_in, params.token_out) == 500
