"""Tests for settings, factories and the RoutingEngine facade."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from conftest import RECIPIENT, SIGNER_ADDRESS, FakeSigner
from omniroute.bridges.aggregator import BridgeAggregator
from omniroute.bridges.base import STATUS_PENDING
from omniroute.bridges.factory import create_bridge_aggregator, create_bridge_provider, create_rpc_clients
from omniroute.bridges.hop import HopBridge
from omniroute.bridges.stargate import StargateBridge
from omniroute.config import Settings
from omniroute.contracts import CrossChainQuoteRequest, ExecuteRequest, QuoteRequest
from omniroute.engine import RoutingEngine
from omniroute.errors import InvalidTradeParams
from omniroute.routing.aggregator import QuoteAggregator
from omniroute.routing.factory import create_quote_aggregator, create_rpc_client, create_venue
from omniroute.routing.pancakeswap_v3 import PancakeSwapV3Venue

WETH = {"chain_id": 1, "symbol": "WETH"}
USDC = {"chain_id": 1, "symbol": "USDC"}
WBNB = {"chain_id": 56, "symbol": "WBNB"}


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = _settings()
        assert settings.venue_pairs() == [(1, "uniswap_v3"), (56, "pancakeswap_v3"), (137, "quickswap_v3")]
        assert settings.bridge_keys() == ["stargate", "hop", "synapse"]
        assert settings.get_rpc_url(56) == "https://bsc-dataseed.binance.org"
        assert settings.get_rpc_url(250) is None

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("BRIDGES", " Hop , synapse,")
        monkeypatch.setenv("QUOTE_TIMEOUT_SECONDS", "2.5")

        settings = _settings()

        assert settings.bridge_keys() == ["hop", "synapse"]
        assert settings.quote_timeout_seconds == 2.5

    def test_test_environment_flags(self):
        settings = _settings()
        assert settings.environment == "test"
        assert settings.debug is True
        assert settings.is_production is False

    def test_default_slippage_bounds(self):
        with pytest.raises(ValidationError):
            _settings(default_slippage_bps=10001)

    def test_safe_dict_redacts_rpc_paths(self):
        settings = _settings(eth_rpc_url="https://mainnet.infura.io/v3/secret-project-key")

        safe = settings.get_safe_dict()

        assert safe["rpc"][1] == "https://mainnet.infura.io/***"
        assert safe["rpc"][56] == "https://bsc-dataseed.binance.org"
        assert "secret-project-key" not in str(safe)


class TestVenueFactory:
    """Tests for building venues from configuration."""

    def test_create_quote_aggregator(self):
        aggregator = create_quote_aggregator(_settings())

        assert [v.name for v in aggregator.venues] == ["Uniswap V3", "PancakeSwap V3", "QuickSwap V3"]
        assert aggregator.supported_chains([1, 56, 137, 10]) == [1, 56, 137]

    def test_bad_pairs_skipped(self):
        settings = _settings(venues="1:uniswap_v3,1:sushiswap,56:uniswap_v3")
        aggregator = create_quote_aggregator(settings)
        assert [v.name for v in aggregator.venues] == ["Uniswap V3"]

    def test_create_venue(self):
        venue = create_venue(56, "pancakeswap_v3", _settings(deadline_minutes=5))

        assert isinstance(venue, PancakeSwapV3Venue)
        assert venue.chain_id == 56
        assert venue.deadline_minutes == 5

    def test_unknown_venue(self):
        with pytest.raises(ValueError):
            create_venue(1, "sushiswap", _settings())

    def test_rpc_client_needs_url(self):
        with pytest.raises(ValueError):
            create_rpc_client(250, _settings())


class TestBridgeFactory:
    """Tests for building bridge providers from configuration."""

    def test_create_rpc_clients(self):
        clients = create_rpc_clients(_settings())
        assert sorted(clients) == [1, 10, 56, 137, 42161, 43114]
        assert clients[137].chain_id == 137

    def test_create_bridge_aggregator(self):
        aggregator = create_bridge_aggregator(_settings(bridges="stargate,bogus,hop"))
        assert [p.name for p in aggregator.providers] == ["LayerZero", "Hop Protocol"]

    def test_provider_settings(self):
        settings = _settings(hop_api_url="https://hop.internal/", http_timeout_seconds=3)

        hop = create_bridge_provider("HOP", settings, rpc_clients={})
        stargate = create_bridge_provider("stargate", settings, rpc_clients={})

        assert isinstance(hop, HopBridge)
        assert hop.api_url == "https://hop.internal"
        assert hop.timeout == 3
        assert isinstance(stargate, StargateBridge)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_bridge_provider("wormhole", _settings(), rpc_clients={})


class TestRoutingEngine:
    """Tests for the engine facade over fakes."""

    @pytest.fixture
    def engine(self, eth_venue, bsc_venue, bridges) -> RoutingEngine:
        return RoutingEngine(QuoteAggregator([eth_venue, bsc_venue]), BridgeAggregator(bridges))

    def test_from_settings(self):
        engine = RoutingEngine.from_settings(_settings(bridges="synapse"))

        assert len(engine.quote_aggregator.venues) == 3
        assert [p.name for p in engine.bridge_aggregator.providers] == ["Synapse Protocol"]
        assert engine.orchestrator.composer is engine.composer
        assert engine.default_slippage_bps == 50

    def test_from_settings_slippage(self):
        engine = RoutingEngine.from_settings(_settings(default_slippage_bps=75))
        assert engine.default_slippage_bps == 75

    @pytest.mark.asyncio
    async def test_default_slippage_applied_to_requests(self, eth_venue, bsc_venue, bridges, signer):
        engine = RoutingEngine(
            QuoteAggregator([eth_venue, bsc_venue]), BridgeAggregator(bridges), default_slippage_bps=120
        )

        await engine.execute_trade(QuoteRequest(token_in=WETH, token_out=USDC, amount="1"), signer)
        explicit = QuoteRequest(token_in=WETH, token_out=USDC, amount="1", slippage_bps=10)
        await engine.execute_trade(explicit, signer)
        cross = CrossChainQuoteRequest(token_in=WETH, token_out=WBNB, amount="1", recipient=RECIPIENT)
        await engine.execute_cross_chain_swap(cross, signer)

        assert [t.slippage_bps for t in eth_venue.trades] == [120, 10, 120]
        assert bridges[0].executed[0].slippage_bps == 120

    @pytest.mark.asyncio
    async def test_find_best_route_from_request(self, engine):
        route = await engine.find_best_route(QuoteRequest(token_in=WETH, token_out=USDC, amount="1"))
        assert route.best_quote.venue_name == "Uniswap V3"
        assert route.best_quote.amount_out == Decimal("2000")

    @pytest.mark.asyncio
    async def test_cross_chain_quote_from_request(self, engine):
        request = CrossChainQuoteRequest(token_in=WETH, token_out=WBNB, amount="1", recipient=RECIPIENT)
        plan = await engine.get_cross_chain_quote(request)
        assert len(plan.steps) == 3

    @pytest.mark.asyncio
    async def test_execute_trade_request(self, engine, signer, eth_venue):
        request = ExecuteRequest(
            signer_address=SIGNER_ADDRESS,
            trade={"token_in": WETH, "token_out": USDC, "amount": "1"},
        )

        result = await engine.execute(request, signer)

        assert result.venue_name == "Uniswap V3"
        assert len(eth_venue.trades) == 1

    @pytest.mark.asyncio
    async def test_execute_cross_chain_request_then_track(self, engine, signer):
        request = ExecuteRequest(
            signer_address=SIGNER_ADDRESS,
            cross_chain={"token_in": WETH, "token_out": WBNB, "amount": "1", "recipient": RECIPIENT},
        )

        result = await engine.execute(request, signer)
        status = await engine.track(result.bridge_result.tracking_id)

        assert result.bridge_result.provider == "LayerZero"
        assert status.status == STATUS_PENDING

    @pytest.mark.asyncio
    async def test_track_with_origin_chain(self, engine, signer, bridges):
        request = ExecuteRequest(
            signer_address=SIGNER_ADDRESS,
            cross_chain={"token_in": WETH, "token_out": WBNB, "amount": "1", "recipient": RECIPIENT},
        )
        result = await engine.execute(request, signer)

        await engine.track(result.bridge_result.tracking_id, from_chain=1)

        assert bridges[0].status_requests == [(result.bridge_result.tx_hash, 1)]

    @pytest.mark.asyncio
    async def test_execute_rejects_foreign_signer(self, engine, eth_venue):
        request = ExecuteRequest(
            signer_address=RECIPIENT,
            trade={"token_in": WETH, "token_out": USDC, "amount": "1"},
        )
        with pytest.raises(InvalidTradeParams):
            await engine.execute(request, FakeSigner())
        assert eth_venue.trades == []

    @pytest.mark.asyncio
    async def test_compare_swap_options(self, engine):
        request = CrossChainQuoteRequest(token_in=WETH, token_out=WBNB, amount="1", recipient=RECIPIENT)
        comparison = await engine.compare_swap_options(request)
        assert comparison.recommendation == "cross-chain"

    def test_supported_chains(self, engine):
        assert engine.supported_chains() == [1, 56]

    def test_cross_chain_routes_need_a_provider(self, engine):
        routes = engine.get_cross_chain_routes()

        pairs = {(r["from"], r["to"]) for r in routes}
        assert pairs == {(1, 56), (56, 1), (1, 137), (137, 1), (56, 137), (137, 56)}
