"""
Latency-under-load ("bufferbloat") analysis.

A few large background downloads saturate the link while the latency
meter keeps sampling.  The increase over the idle baseline is graded A-F
by ``grading.rate_bufferbloat``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from .config import TestConfig
from .constants import (
    BUFFERBLOAT_FALLBACK,
    BUFFERBLOAT_LOAD_STREAMS,
    BUFFERBLOAT_LOAD_URL,
    BUFFERBLOAT_SAMPLES,
)
from .errors import ProbeFailure
from .grading import BufferbloatRating, rate_bufferbloat
from .latency import LatencyMeter
from .models import BufferbloatResult, Estimated, Measured, Reading
from .probe import ProbeClient
from .stats import mean, synthesize

logger = logging.getLogger(__name__)


class BufferbloatAnalyzer:
    """Compare loaded latency against an idle baseline."""

    def __init__(
        self,
        probe: ProbeClient,
        meter: LatencyMeter,
        config: TestConfig,
        on_progress: Optional[Callable[[float], None]] = None,
        load_url: str = BUFFERBLOAT_LOAD_URL,
        load_streams: int = BUFFERBLOAT_LOAD_STREAMS,
        samples: int = BUFFERBLOAT_SAMPLES,
    ) -> None:
        self.probe = probe
        self.meter = meter
        self.config = config
        self.on_progress = on_progress
        self.load_url = load_url
        self.load_streams = load_streams
        self.samples = samples

    def _report(self, progress: float) -> None:
        if self.on_progress is not None:
            self.on_progress(progress)

    async def _load(self) -> None:
        try:
            await self.probe.stream(self.load_url, timeout=self.config.duration)
        except ProbeFailure as exc:
            logger.debug("background load stream ended: %s", exc)

    async def measure_bufferbloat(self, baseline: Reading) -> BufferbloatResult:
        """Grade the latency increase under load; an estimated baseline taints it."""
        if not self.config.enable_bufferbloat:
            return BufferbloatResult(
                rating=BufferbloatRating.A,
                latency_increase=Estimated(0.0, reason="bufferbloat test disabled"),
            )

        self._report(50)
        try:
            loaded = await self._sample_under_load()
        except Exception:
            logger.exception("Bufferbloat probing failed, reporting fallback rating")
            return BufferbloatResult(
                rating=BufferbloatRating.B,
                latency_increase=Estimated(synthesize(BUFFERBLOAT_FALLBACK), reason="probing failed"),
            )

        increase = max(0.0, mean([r.value for r in loaded]) - baseline.value)
        estimated = sum(1 for r in loaded if r.is_estimated)
        reading: Reading
        if estimated:
            reading = Estimated(increase, reason=f"{estimated}/{len(loaded)} loaded samples estimated")
        elif baseline.is_estimated:
            reading = Estimated(increase, reason="baseline ping estimated")
        else:
            reading = Measured(increase)

        rating = rate_bufferbloat(increase)
        logger.info("bufferbloat: +%.1f ms under load, rating %s", increase, rating.value)
        return BufferbloatResult(rating=rating, latency_increase=reading)

    async def _sample_under_load(self) -> List[Reading]:
        load = [asyncio.ensure_future(self._load()) for _ in range(self.load_streams)]
        loaded: List[Reading] = []
        try:
            for i in range(self.samples):
                loaded.append(await self.meter.measure_latency())
                self._report(50 + (i / self.samples) * 50)
        finally:
            for task in load:
                task.cancel()
            await asyncio.gather(*load, return_exceptions=True)
        return loaded
