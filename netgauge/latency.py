"""
HTTP round-trip latency measurement and server selection.

Latency is the wall-clock duration of a HEAD request against a tiny,
well-cached object.  A probe that fails still contributes a sample: an
``Estimated`` value drawn from a plausible range, so the sample count (and
therefore jitter) stays stable.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Union

from .api import SERVERS, TestServer
from .constants import (
    JITTER_FALLBACK,
    LATENCY_URL,
    PENALTY_LATENCY,
    PING_FALLBACK,
    PING_TIMEOUT,
    QUICK_PING_COUNT,
    SERVER_CANDIDATES,
    SERVER_PING_TIMEOUT,
)
from .errors import ProbeFailure
from .models import Estimated, Measured, Reading
from .probe import ProbeClient
from .stats import calculate_jitter, mean, round1, synthesize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

class LatencyMeter:
    """Measure latency and jitter with sequential HEAD probes."""

    def __init__(
        self,
        probe: ProbeClient,
        url: str = LATENCY_URL,
        timeout: float = PING_TIMEOUT,
    ) -> None:
        self.probe = probe
        self.url = url
        self.timeout = timeout

    async def ping_once(self) -> Reading:
        """One HEAD probe; failures become an estimated sample."""
        try:
            result = await self.probe.request(self.url, method="HEAD", timeout=self.timeout)
        except ProbeFailure as exc:
            return Estimated(synthesize(PING_FALLBACK), reason=f"ping {exc.cause.value}")
        return Measured(result.elapsed_ms)

    async def measure_latency(self, count: int = QUICK_PING_COUNT) -> Reading:
        """Mean of *count* sequential probes, rounded to one decimal."""
        samples: List[Reading] = []
        for _ in range(count):
            samples.append(await self.ping_once())

        avg = round1(mean([s.value for s in samples]))
        failed = sum(1 for s in samples if s.is_estimated)
        if failed:
            logger.debug("%d/%d latency probes estimated", failed, count)
            return Estimated(avg, reason=f"{failed}/{count} probes failed")
        return Measured(avg)

    @staticmethod
    def measure_jitter(samples: Sequence[Union[float, Reading]]) -> Reading:
        """
        Mean absolute difference between consecutive ping samples.

        *samples* may be plain millisecond values or readings; jitter derived
        from any estimated reading is itself estimated.
        """
        if len(samples) < 2:
            return Estimated(synthesize(JITTER_FALLBACK), reason="fewer than two samples")

        values = [getattr(s, "value", s) for s in samples]
        jitter = calculate_jitter(values)
        if any(getattr(s, "is_estimated", False) for s in samples):
            return Estimated(jitter, reason="derived from estimated pings")
        return Measured(jitter)


# ---------------------------------------------------------------------------
# Server selection
# ---------------------------------------------------------------------------

class ServerSelector:
    """Race a short candidate list and keep the lowest-latency server."""

    def __init__(
        self,
        probe: ProbeClient,
        candidates: Optional[Sequence[TestServer]] = None,
        timeout: float = SERVER_PING_TIMEOUT,
    ) -> None:
        self.probe = probe
        self.candidates = list(candidates if candidates is not None else SERVERS[:SERVER_CANDIDATES])
        self.timeout = timeout

    async def _score(self, server: TestServer) -> TestServer:
        try:
            result = await self.probe.request(server.host, method="HEAD", timeout=self.timeout)
        except ProbeFailure as exc:
            logger.debug("server %s unreachable: %s", server.name, exc)
            return server.with_latency(PENALTY_LATENCY)
        return server.with_latency(result.elapsed_ms)

    async def select_best_server(self) -> TestServer:
        """Return the fastest candidate; ties go to the earlier one."""
        if not self.candidates:
            raise ValueError("ServerSelector needs at least one candidate")

        scored = await asyncio.gather(*[self._score(s) for s in self.candidates])
        best = min(scored, key=lambda s: s.latency)
        logger.info("Selected server %s (%.1f ms)", best.name, best.latency)
        return best
