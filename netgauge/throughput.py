"""
Download and upload throughput measurement.

Both directions fan out ``parallel_connections`` transfers across a small
round-robin pool of public endpoints and wait for every one of them to
settle.  Only connection 0 reports live samples (capped at one per
``SAMPLE_INTERVAL``); the final speed is the mean of every connection's own
rate.  A connection that fails contributes an ``Estimated`` rate so the
average is always taken over the full connection count.
"""
from __future__ import annotations

import asyncio
import logging
import math
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .config import TestConfig
from .constants import (
    DOWNLOAD_BASE_SIZE,
    DOWNLOAD_FALLBACK,
    DOWNLOAD_SIZE_STEP,
    DOWNLOAD_TASK_FALLBACK,
    DOWNLOAD_URL_TEMPLATES,
    SAMPLE_INTERVAL,
    UPLOAD_BUFFER_SIZE,
    UPLOAD_FALLBACK,
    UPLOAD_TASK_FALLBACK,
    UPLOAD_URLS,
)
from .errors import ProbeFailure
from .models import Estimated, Measured, Phase, Reading
from .probe import ProbeClient
from .stats import ConnectionStats, bits_to_mbps, mean, synthesize

logger = logging.getLogger(__name__)

# (phase, seconds since the phase started, Mbps)
SampleCallback = Callable[[Phase, float, float], None]


class Direction(str, Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"

    @property
    def phase(self) -> Phase:
        return Phase.DOWNLOAD if self is Direction.DOWNLOAD else Phase.UPLOAD

    @property
    def fallbacks(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """(per-connection range, whole-phase range) for estimated rates."""
        if self is Direction.DOWNLOAD:
            return DOWNLOAD_TASK_FALLBACK, DOWNLOAD_FALLBACK
        return UPLOAD_TASK_FALLBACK, UPLOAD_FALLBACK


def download_url(index: int) -> str:
    size = DOWNLOAD_BASE_SIZE + index * DOWNLOAD_SIZE_STEP
    return DOWNLOAD_URL_TEMPLATES[index % len(DOWNLOAD_URL_TEMPLATES)].format(size=size)


def upload_url(index: int) -> str:
    return UPLOAD_URLS[index % len(UPLOAD_URLS)]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class ThroughputResult:
    """Outcome of one throughput phase."""

    direction: Direction
    speed: Reading
    duration_ms: float = 0.0
    connections: List[ConnectionStats] = field(default_factory=list)

    @property
    def bytes_total(self) -> int:
        return sum(c.bytes_transferred for c in self.connections)

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "speed_mbps": round(self.speed.value, 2),
            "estimated": self.speed.is_estimated,
            "bytes_total": self.bytes_total,
            "duration_ms": round(self.duration_ms, 2),
            "connections": [c.to_dict() for c in self.connections],
        }


# ---------------------------------------------------------------------------
# Measurer
# ---------------------------------------------------------------------------

class ThroughputMeasurer:
    """Parallel download / upload speed measurement."""

    def __init__(
        self,
        probe: ProbeClient,
        config: TestConfig,
        on_sample: Optional[SampleCallback] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.probe = probe
        self.config = config
        self.on_sample = on_sample
        self.clock = clock

    async def measure_download(self) -> ThroughputResult:
        return await self.measure(Direction.DOWNLOAD)

    async def measure_upload(self) -> ThroughputResult:
        return await self.measure(Direction.UPLOAD)

    async def measure(self, direction: Direction) -> ThroughputResult:
        connections = self.config.parallel_connections
        worker = self._download_worker if direction is Direction.DOWNLOAD else self._upload_worker

        phase_start = self.clock()
        stats = await asyncio.gather(*[worker(i, phase_start) for i in range(connections)])

        result = ThroughputResult(
            direction=direction,
            speed=self._aggregate(direction, stats),
            duration_ms=(self.clock() - phase_start) * 1000,
            connections=list(stats),
        )
        logger.info(
            "%s: %.1f Mbps over %d connections%s",
            direction.value,
            result.speed.value,
            connections,
            " (estimated)" if result.speed.is_estimated else "",
        )
        return result

    # -- Workers ------------------------------------------------------------

    async def _download_worker(self, index: int, phase_start: float) -> ConnectionStats:
        url = download_url(index)
        stats = ConnectionStats(id=index, url=url)
        t0 = self.clock()
        last_sample = t0

        def _on_chunk(n: int) -> None:
            nonlocal last_sample
            stats.bytes_transferred += n
            now = self.clock()
            if now - last_sample < SAMPLE_INTERVAL:
                return
            last_sample = now
            if index == 0:
                rate = bits_to_mbps(stats.bytes_transferred * 8, now - t0)
                self._emit(Phase.DOWNLOAD, now - phase_start, rate)

        try:
            await self.probe.stream(url, timeout=self.config.duration, on_chunk=_on_chunk)
        except ProbeFailure as exc:
            return self._estimate(stats, Direction.DOWNLOAD, exc)

        stats.duration_ms = (self.clock() - t0) * 1000
        stats.calculate()
        return stats

    async def _upload_worker(self, index: int, phase_start: float) -> ConnectionStats:
        url = upload_url(index)
        stats = ConnectionStats(id=index, url=url)
        payload = os.urandom(UPLOAD_BUFFER_SIZE)
        t0 = self.clock()

        try:
            await self.probe.request(url, method="POST", data=payload, timeout=self.config.duration)
        except ProbeFailure as exc:
            return self._estimate(stats, Direction.UPLOAD, exc)

        end = self.clock()
        stats.bytes_transferred = len(payload)
        stats.duration_ms = (end - t0) * 1000
        stats.calculate()
        if index == 0:
            self._emit(Phase.UPLOAD, end - phase_start, stats.speed_mbps)
        return stats

    # -- Internals ----------------------------------------------------------

    def _emit(self, phase: Phase, elapsed: float, speed: float) -> None:
        if self.on_sample is not None:
            self.on_sample(phase, elapsed, speed)

    @staticmethod
    def _estimate(stats: ConnectionStats, direction: Direction, exc: ProbeFailure) -> ConnectionStats:
        task_range, _ = direction.fallbacks
        stats.speed_mbps = synthesize(task_range)
        stats.estimated = True
        stats.error = str(exc)
        logger.debug("%s connection %d failed: %s", direction.value, stats.id, exc)
        return stats

    @staticmethod
    def _aggregate(direction: Direction, stats: List[ConnectionStats]) -> Reading:
        _, phase_range = direction.fallbacks
        total = len(stats)
        failed = sum(1 for s in stats if s.estimated)

        if failed == total:
            logger.warning("%s: every connection failed, estimating speed", direction.value)
            return Estimated(synthesize(phase_range), reason=f"all {total} connections failed")

        rates = [s.speed_mbps for s in stats if s.speed_mbps > 0 and math.isfinite(s.speed_mbps)]
        if not rates:
            return Estimated(synthesize(phase_range), reason="no connection produced a rate")

        if failed:
            return Estimated(mean(rates), reason=f"{failed}/{total} connections estimated")
        return Measured(mean(rates))
