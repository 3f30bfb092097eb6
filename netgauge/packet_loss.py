"""
Packet-loss estimation over HTTP.

Fifty short HEAD requests stand in for packets: a request that comes back
before its deadline counts as received, anything else as lost.  All probes
run at once, spread across several well-known origins, and each URL carries
a unique token so no cache can answer for the network.
"""
from __future__ import annotations

import asyncio
import logging
import math
import uuid
from typing import Callable, Optional, Sequence

from .constants import PACKET_COUNT, PACKET_LOSS_FALLBACK, PACKET_LOSS_URLS, PACKET_TIMEOUT
from .errors import ProbeFailure
from .models import PacketLossResult
from .probe import ProbeClient
from .stats import round1

logger = logging.getLogger(__name__)


def loss_percentage(sent: int, received: int) -> float:
    if sent <= 0:
        return 0.0
    return round1(100.0 * (sent - received) / sent)


def fallback_packet_loss(sent: int = PACKET_COUNT) -> PacketLossResult:
    received = math.floor(sent * (1 - PACKET_LOSS_FALLBACK / 100))
    return PacketLossResult(
        percentage=PACKET_LOSS_FALLBACK,
        sent=sent,
        received=received,
        estimated=True,
    )


class PacketLossEstimator:
    """Fire a batch of independent probes and count the survivors."""

    def __init__(
        self,
        probe: ProbeClient,
        on_progress: Optional[Callable[[float], None]] = None,
        endpoints: Sequence[str] = PACKET_LOSS_URLS,
        count: int = PACKET_COUNT,
        timeout: float = PACKET_TIMEOUT,
    ) -> None:
        self.probe = probe
        self.on_progress = on_progress
        self.endpoints = list(endpoints)
        self.count = count
        self.timeout = timeout

    def _url(self, index: int) -> str:
        endpoint = self.endpoints[index % len(self.endpoints)]
        return f"{endpoint}?nocache={uuid.uuid4().hex}-{index}"

    async def measure_packet_loss(self) -> PacketLossResult:
        received = 0
        completed = 0

        async def _send(index: int) -> bool:
            nonlocal received, completed
            try:
                await self.probe.request(self._url(index), method="HEAD", timeout=self.timeout)
                received += 1
                return True
            except ProbeFailure as exc:
                logger.debug("packet %d lost: %s", index, exc)
                return False
            finally:
                completed += 1
                if self.on_progress is not None:
                    self.on_progress(completed / self.count * 100)

        outcomes = await asyncio.gather(
            *[_send(i) for i in range(self.count)],
            return_exceptions=True,
        )
        errors = [o for o in outcomes if isinstance(o, Exception)]
        if errors:
            logger.error(
                "Packet-loss batch failed, reporting fallback loss",
                exc_info=errors[0],
            )
            return fallback_packet_loss(self.count)

        result = PacketLossResult(
            percentage=loss_percentage(self.count, received),
            sent=self.count,
            received=received,
        )
        logger.info("packet loss: %.1f%% (%d/%d)", result.percentage, received, self.count)
        return result
