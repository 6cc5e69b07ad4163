"""Factory for creating bridge providers and the bridge aggregator."""

import logging
from typing import Optional

from omniroute.bridges.aggregator import BridgeAggregator
from omniroute.bridges.base import BridgeProvider
from omniroute.bridges.hop import HopBridge
from omniroute.bridges.stargate import StargateBridge
from omniroute.bridges.synapse import SynapseBridge
from omniroute.chains import CHAINS
from omniroute.config import Settings, get_settings
from omniroute.routing.factory import create_rpc_client
from omniroute.rpc import EvmRpcClient

logger = logging.getLogger(__name__)

BRIDGE_KEYS = ("stargate", "hop", "synapse")


def create_rpc_clients(settings: Optional[Settings] = None) -> dict[int, EvmRpcClient]:
    """One RPC client per known chain with a configured URL."""
    settings = settings or get_settings()
    clients = {}
    for chain_id in CHAINS:
        try:
            clients[chain_id] = create_rpc_client(chain_id, settings)
        except ValueError as e:
            logger.debug(f"No RPC client for chain {chain_id}: {e}")
    return clients


def create_bridge_provider(
    key: str,
    settings: Optional[Settings] = None,
    rpc_clients: Optional[dict[int, EvmRpcClient]] = None,
) -> BridgeProvider:
    """Create one bridge provider by key.

    Raises:
        ValueError: unknown provider key
    """
    settings = settings or get_settings()
    rpc_clients = rpc_clients if rpc_clients is not None else create_rpc_clients(settings)
    common = {
        "rpc_clients": rpc_clients,
        "timeout": settings.http_timeout_seconds,
        "confirmation_timeout": settings.tx_confirmation_timeout_seconds,
    }

    key = key.lower()
    if key == "stargate":
        return StargateBridge(
            api_url=settings.stargate_api_url,
            scan_url=settings.layerzero_scan_api_url,
            **common,
        )
    if key == "hop":
        return HopBridge(api_url=settings.hop_api_url, config_url=settings.hop_config_url, **common)
    if key == "synapse":
        return SynapseBridge(api_url=settings.synapse_api_url, **common)
    raise ValueError(f"Unknown bridge provider '{key}'. Available: {', '.join(BRIDGE_KEYS)}")


def create_bridge_aggregator(
    settings: Optional[Settings] = None,
    rpc_clients: Optional[dict[int, EvmRpcClient]] = None,
) -> BridgeAggregator:
    """Create a bridge aggregator with every configured provider."""
    settings = settings or get_settings()
    rpc_clients = rpc_clients if rpc_clients is not None else create_rpc_clients(settings)
    aggregator = BridgeAggregator(quote_timeout=settings.quote_timeout_seconds)

    for key in settings.bridge_keys():
        try:
            provider = create_bridge_provider(key, settings, rpc_clients)
        except ValueError as e:
            logger.warning(f"Skipping bridge provider: {e}")
            continue
        aggregator.add_provider(provider)
        logger.info(f"Added {provider.name} bridge provider")

    return aggregator
