"""Bridge transfer status tracking."""

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from omniroute.bridges.aggregator import BridgeAggregator
from omniroute.bridges.base import STATUS_COMPLETED, STATUS_FAILED, BridgeResult
from omniroute.crosschain.composer import CrossChainSwapResult
from omniroute.errors import BridgeTimeout

logger = logging.getLogger(__name__)

FINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)


class StatusTracker:
    """Polls bridge providers for transfer status. Holds no state of its own."""

    def __init__(self, bridge_aggregator: BridgeAggregator):
        self.bridge_aggregator = bridge_aggregator

    async def track_bridge_status(self, tracking_id: str, from_chain: Optional[int] = None) -> BridgeResult:
        return await self.bridge_aggregator.track_bridge_status(tracking_id, from_chain)

    async def track_cross_chain_swap(self, result: CrossChainSwapResult) -> CrossChainSwapResult:
        """Return a copy of ``result`` with the bridge status refreshed.

        The bridge step mirrors the transfer status. Plans that were never
        submitted are returned unchanged.
        """
        if result.bridge_result is None:
            return replace(result, steps=[replace(s) for s in result.steps])

        submitted = result.bridge_result
        status = await self.track_bridge_status(submitted.tracking_id, submitted.from_chain)
        refreshed = replace(result, steps=[replace(s) for s in result.steps], bridge_result=status)
        refreshed.bridge_step.status = status.status
        if status.status != submitted.status:
            logger.info(f"Bridge {status.tracking_id}: {submitted.status} -> {status.status}")
        return refreshed

    async def wait_for_bridge(
        self,
        tracking_id: str,
        timeout: float = 1800,
        poll_interval: float = 30,
        from_chain: Optional[int] = None,
    ) -> BridgeResult:
        """Poll until the transfer completes or fails.

        Raises:
            BridgeTimeout: still pending after ``timeout`` seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            status = await self.track_bridge_status(tracking_id, from_chain)
            if status.status in FINAL_STATUSES:
                logger.info(f"Bridge {tracking_id} finished: {status.status}")
                return status
            if loop.time() >= deadline:
                raise BridgeTimeout(
                    f"Bridge {tracking_id} still {status.status} after {timeout}s",
                    {"tracking_id": tracking_id},
                )
            logger.debug(f"Bridge {tracking_id} {status.status}, next poll in {poll_interval}s")
            await asyncio.sleep(poll_interval)
