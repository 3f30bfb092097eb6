"""
Speed test orchestration.

``SpeedTestEngine`` runs the measurement phases strictly one after the
other::

    ping -> download -> upload -> packetLoss -> bufferbloat (optional)

Each phase fans out internally and settles completely before the next one
starts.  Progress events and graph samples are pushed to the optional sinks
as they happen.  The engine always returns exactly one ``SpeedTestResult``:
component failures surface as ``Estimated`` readings, and if the pipeline
itself breaks, a fully estimated result is synthesized instead of raising.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .api import IpApiLocator
from .bufferbloat import BufferbloatAnalyzer
from .config import TestConfig
from .constants import (
    FALLBACK_SERVER_LOCATION,
    PING_SAMPLES,
    RUN_BUFFERBLOAT_INCREASE,
    RUN_DOWNLOAD_FALLBACK,
    RUN_JITTER_FALLBACK,
    RUN_PACKET_LOSS,
    RUN_PING_FALLBACK,
    RUN_UPLOAD_FALLBACK,
)
from .grading import BufferbloatRating
from .latency import LatencyMeter, ServerSelector
from .models import (
    PLACEHOLDER_LOCATION,
    BufferbloatResult,
    Estimated,
    GraphDataPoint,
    Measured,
    PacketLossResult,
    Phase,
    Reading,
    SpeedTestResult,
    StabilityResult,
    TestProgress,
    UserLocation,
)
from .packet_loss import PacketLossEstimator
from .probe import CancelToken, ProbeClient
from .stats import calculate_stability, mean, round1, synthesize
from .throughput import ThroughputMeasurer

logger = logging.getLogger(__name__)

ProgressSink = Callable[[TestProgress], None]
GraphSink = Callable[[List[GraphDataPoint]], None]


def _notify(sink: Optional[Callable], payload: object) -> None:
    """Deliver *payload* to a sink; a misbehaving sink never stops a run."""
    if sink is None:
        return
    try:
        sink(payload)
    except Exception:
        logger.exception("Sink %r raised", sink)


# ---------------------------------------------------------------------------
# Graph buffer
# ---------------------------------------------------------------------------

class GraphBuffer:
    """Run-scoped, append-only sequence of graph samples."""

    def __init__(self, sink: Optional[GraphSink] = None) -> None:
        self.sink = sink
        self._points: List[GraphDataPoint] = []

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> List[GraphDataPoint]:
        return list(self._points)

    def reset(self) -> None:
        self._points = []

    def append(self, point: GraphDataPoint) -> None:
        self._points.append(point)
        _notify(self.sink, list(self._points))

    def speeds(self, phase: Phase) -> List[float]:
        return [p.speed for p in self._points if p.phase == phase.value]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SpeedTestEngine:
    """Sequence the measurement phases and assemble the final report."""

    def __init__(
        self,
        on_progress: Optional[ProgressSink] = None,
        on_graph_update: Optional[GraphSink] = None,
        config: Optional[TestConfig] = None,
        locator: Optional[IpApiLocator] = None,
        probe_factory: Callable[[CancelToken], ProbeClient] = ProbeClient,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.on_progress = on_progress
        self.config = (config or TestConfig()).validate()
        self.locator = locator or IpApiLocator()
        self.probe_factory = probe_factory
        self.clock = clock
        self.graph = GraphBuffer(on_graph_update)
        self._token: Optional[CancelToken] = None
        self._start = 0.0

    # -- Control ------------------------------------------------------------

    def abort(self) -> None:
        """Cancel every in-flight probe of the current run."""
        if self._token is not None and not self._token.cancelled:
            logger.info("Aborting speed test")
            self._token.cancel()

    async def run_speed_test(self) -> SpeedTestResult:
        token = CancelToken()
        self._token = token
        self.graph.reset()
        self._start = self.clock()

        try:
            async with self.probe_factory(token) as probe:
                result = await self._run_phases(probe)
        except Exception:
            logger.exception("Speed test pipeline failed, synthesizing fallback result")
            result = await self._fallback_result(token)

        self._report(Phase.COMPLETE, 100)
        return result

    # -- Phases -------------------------------------------------------------

    async def _run_phases(self, probe: ProbeClient) -> SpeedTestResult:
        logger.info("Phase: ping")
        self._report(Phase.PING, 10)
        server = await ServerSelector(probe).select_best_server()

        self._report(Phase.PING, 30)
        meter = LatencyMeter(probe)
        pings: List[Reading] = []
        for i in range(PING_SAMPLES):
            pings.append(await meter.measure_latency())
            self._report(Phase.PING, 30 + (i / PING_SAMPLES) * 20)

        ping = _average(pings)
        jitter = meter.measure_jitter(pings)

        throughput = ThroughputMeasurer(
            probe, self.config, on_sample=self._on_sample, clock=self.clock
        )

        logger.info("Phase: download")
        self._report(Phase.DOWNLOAD, 0)
        download = await throughput.measure_download()

        logger.info("Phase: upload")
        self._report(Phase.UPLOAD, 0)
        upload = await throughput.measure_upload()

        logger.info("Phase: packet loss")
        self._report(Phase.PACKET_LOSS, 0)
        packet_loss = await PacketLossEstimator(
            probe, on_progress=lambda p: self._report(Phase.PACKET_LOSS, p)
        ).measure_packet_loss()

        bufferbloat: Optional[BufferbloatResult] = None
        if self.config.enable_bufferbloat:
            logger.info("Phase: bufferbloat")
            bufferbloat = await BufferbloatAnalyzer(
                probe,
                meter,
                self.config,
                on_progress=lambda p: self._report(Phase.BUFFERBLOAT, p),
            ).measure_bufferbloat(ping)

        user_location = await self.locator.lookup(probe)

        return self._build_result(
            download_speed=download.speed,
            upload_speed=upload.speed,
            ping=ping,
            jitter=jitter,
            server_location=server.location,
            user_location=user_location,
            bufferbloat=bufferbloat,
            packet_loss=packet_loss,
            stability=self._stability(),
        )

    async def _fallback_result(self, token: CancelToken) -> SpeedTestResult:
        try:
            async with self.probe_factory(token) as probe:
                user_location = await self.locator.lookup(probe)
        except Exception as exc:
            logger.warning("Location lookup unavailable for fallback result: %s", exc)
            user_location = PLACEHOLDER_LOCATION

        reason = "speed test pipeline failed"
        bufferbloat = None
        if self.config.enable_bufferbloat:
            bufferbloat = BufferbloatResult(
                rating=BufferbloatRating.B,
                latency_increase=Estimated(RUN_BUFFERBLOAT_INCREASE, reason=reason),
            )
        percentage, sent, received = RUN_PACKET_LOSS

        return self._build_result(
            download_speed=Estimated(synthesize(RUN_DOWNLOAD_FALLBACK), reason=reason),
            upload_speed=Estimated(synthesize(RUN_UPLOAD_FALLBACK), reason=reason),
            ping=Estimated(synthesize(RUN_PING_FALLBACK), reason=reason),
            jitter=Estimated(synthesize(RUN_JITTER_FALLBACK), reason=reason),
            server_location=FALLBACK_SERVER_LOCATION,
            user_location=user_location,
            bufferbloat=bufferbloat,
            packet_loss=PacketLossResult(
                percentage=percentage, sent=sent, received=received, estimated=True
            ),
            stability=None,
        )

    # -- Internals ----------------------------------------------------------

    def _build_result(
        self,
        download_speed: Reading,
        upload_speed: Reading,
        ping: Reading,
        jitter: Reading,
        server_location: str,
        user_location: UserLocation,
        bufferbloat: Optional[BufferbloatResult],
        packet_loss: Optional[PacketLossResult],
        stability: Optional[StabilityResult],
    ) -> SpeedTestResult:
        timestamp = int(time.time() * 1000)
        return SpeedTestResult(
            id=str(timestamp),
            timestamp=timestamp,
            download_speed=download_speed.rounded(),
            upload_speed=upload_speed.rounded(),
            ping=ping.rounded(),
            jitter=jitter.rounded(),
            server_location=server_location,
            user_location=user_location,
            test_duration=self._elapsed(),
            bufferbloat=bufferbloat,
            packet_loss=packet_loss,
            stability=stability,
        )

    def _elapsed(self) -> float:
        return self.clock() - self._start

    def _report(self, phase: Phase, progress: float, current_speed: float = 0.0) -> None:
        event = TestProgress(
            phase=phase,
            progress=max(0.0, min(float(progress), 100.0)),
            current_speed=current_speed,
            elapsed_time=self._elapsed(),
        )
        _notify(self.on_progress, event)

    def _on_sample(self, phase: Phase, elapsed: float, speed: float) -> None:
        self._report(phase, elapsed / self.config.duration * 100, speed)
        self.graph.append(GraphDataPoint(time=elapsed * 1000, speed=speed, phase=phase.value))

    def _stability(self) -> Optional[StabilityResult]:
        speeds = self.graph.speeds(Phase.DOWNLOAD)
        if len(speeds) < 2:
            return None
        score, variance = calculate_stability(speeds)
        return StabilityResult(score=score, variance=variance)


def _average(samples: List[Reading]) -> Reading:
    avg = round1(mean([s.value for s in samples]))
    estimated = sum(1 for s in samples if s.is_estimated)
    if estimated:
        return Estimated(avg, reason=f"{estimated}/{len(samples)} ping samples estimated")
    return Measured(avg)
