"""Factory for creating venue adapters and the quote aggregator.

Adapters are built once at startup from the configured list of
(chain_id, venue) pairs and handed to callers by reference.
"""

import logging
from typing import Optional

from omniroute.chains import VENUES, get_chain_name
from omniroute.config import Settings, get_settings
from omniroute.routing.aggregator import QuoteAggregator
from omniroute.routing.base import VenueAdapter
from omniroute.routing.pancakeswap_v3 import PancakeSwapV3Venue
from omniroute.routing.quickswap_v3 import QuickSwapV3Venue
from omniroute.routing.uniswap_v3 import UniswapV3Venue
from omniroute.rpc import EvmRpcClient

logger = logging.getLogger(__name__)

VENUE_CLASSES: dict[str, type[UniswapV3Venue]] = {
    "uniswap_v3": UniswapV3Venue,
    "pancakeswap_v3": PancakeSwapV3Venue,
    "quickswap_v3": QuickSwapV3Venue,
}


def create_rpc_client(chain_id: int, settings: Optional[Settings] = None) -> EvmRpcClient:
    """Create a JSON-RPC client for a configured chain.

    Raises:
        ValueError: no RPC URL configured for the chain
    """
    settings = settings or get_settings()
    rpc_url = settings.get_rpc_url(chain_id)
    if not rpc_url:
        raise ValueError(f"No RPC URL configured for chain {chain_id}")
    return EvmRpcClient(rpc_url, chain_id, timeout=settings.rpc_timeout_seconds)


def create_venue(
    chain_id: int,
    venue_key: str,
    settings: Optional[Settings] = None,
    rpc: Optional[EvmRpcClient] = None,
) -> VenueAdapter:
    """Create one venue adapter for a chain.

    Raises:
        ValueError: unknown venue or venue not deployed on the chain
    """
    settings = settings or get_settings()
    venue_cls = VENUE_CLASSES.get(venue_key)
    if venue_cls is None:
        raise ValueError(f"Unknown venue '{venue_key}'")

    config = VENUES[venue_key]
    if chain_id not in config.chains:
        raise ValueError(f"{config.name} is not deployed on chain {chain_id}")

    return venue_cls(
        rpc or create_rpc_client(chain_id, settings),
        config=config,
        deadline_minutes=settings.deadline_minutes,
        confirmation_timeout=settings.tx_confirmation_timeout_seconds,
    )


def create_quote_aggregator(
    settings: Optional[Settings] = None,
    venue_pairs: Optional[list[tuple[int, str]]] = None,
) -> QuoteAggregator:
    """Create a quote aggregator from configured (chain_id, venue) pairs.

    Misconfigured pairs are logged and skipped so one bad entry does not
    take every venue down.
    """
    settings = settings or get_settings()
    aggregator = QuoteAggregator(quote_timeout=settings.quote_timeout_seconds)
    rpc_clients: dict[int, EvmRpcClient] = {}

    for chain_id, venue_key in venue_pairs or settings.venue_pairs():
        try:
            if chain_id not in rpc_clients:
                rpc_clients[chain_id] = create_rpc_client(chain_id, settings)
            venue = create_venue(chain_id, venue_key, settings, rpc=rpc_clients[chain_id])
        except ValueError as e:
            logger.warning(f"Skipping venue {venue_key} on chain {chain_id}: {e}")
            continue
        aggregator.add_venue(venue)
        logger.info(f"Added {venue.name} venue on {get_chain_name(chain_id)}")

    return aggregator
