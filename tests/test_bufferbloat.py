"""Tests for netgauge.bufferbloat -- latency under load."""

import asyncio
import unittest

from fakes import FakeProbe, estimated, hold_stream

from netgauge.bufferbloat import BufferbloatAnalyzer
from netgauge.config import TestConfig
from netgauge.grading import BufferbloatRating
from netgauge.models import Estimated, Measured


class FakeMeter:
    """Scripted stand-in for ``LatencyMeter.measure_latency``."""

    def __init__(self, readings=None, error=None):
        self.readings = list(readings or [])
        self.error = error
        self.calls = 0

    async def measure_latency(self, count=3):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if len(self.readings) > 1:
            return self.readings.pop(0)
        return self.readings[0]


class TestBufferbloatAnalyzer(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.progress = []
        self.config = TestConfig(duration=5.0)

    def _analyzer(self, probe, meter, config=None):
        return BufferbloatAnalyzer(
            probe, meter, config or self.config, on_progress=self.progress.append
        )

    async def test_increase_over_baseline(self):
        probe = FakeProbe(stream=hold_stream)
        meter = FakeMeter([Measured(85.0)])
        result = await self._analyzer(probe, meter).measure_bufferbloat(Measured(20.0))

        self.assertEqual(result.rating, BufferbloatRating.C)
        self.assertIsInstance(result.latency_increase, Measured)
        self.assertAlmostEqual(result.latency_increase.value, 65.0)
        self.assertEqual(meter.calls, 5)

    async def test_starts_load_streams(self):
        probe = FakeProbe(stream=hold_stream)
        await self._analyzer(probe, FakeMeter([Measured(30.0)])).measure_bufferbloat(Measured(20.0))
        self.assertEqual(len(probe.streams), 3)
        self.assertEqual(len(set(probe.streams)), 1)

    async def test_load_is_released_afterwards(self):
        probe = FakeProbe(stream=hold_stream)
        before = len(asyncio.all_tasks())
        await self._analyzer(probe, FakeMeter([Measured(30.0)])).measure_bufferbloat(Measured(20.0))
        await asyncio.sleep(0)
        self.assertEqual(len(asyncio.all_tasks()), before)

    async def test_loaded_below_baseline_clamps_to_zero(self):
        probe = FakeProbe(stream=hold_stream)
        result = await self._analyzer(probe, FakeMeter([Measured(12.0)])).measure_bufferbloat(Measured(20.0))
        self.assertEqual(result.latency_increase.value, 0.0)
        self.assertEqual(result.rating, BufferbloatRating.A)

    async def test_estimated_samples_mark_result(self):
        probe = FakeProbe(stream=hold_stream)
        meter = FakeMeter([Measured(40.0), estimated(40.0), Measured(40.0)])
        result = await self._analyzer(probe, meter).measure_bufferbloat(Measured(10.0))
        self.assertIsInstance(result.latency_increase, Estimated)
        self.assertAlmostEqual(result.latency_increase.value, 30.0)
        self.assertEqual(result.rating, BufferbloatRating.B)

    async def test_estimated_baseline_marks_result(self):
        probe = FakeProbe(stream=hold_stream)
        meter = FakeMeter([Measured(40.0)])
        result = await self._analyzer(probe, meter).measure_bufferbloat(estimated(10.0))
        self.assertIsInstance(result.latency_increase, Estimated)
        self.assertEqual(result.latency_increase.reason, "baseline ping estimated")
        self.assertAlmostEqual(result.latency_increase.value, 30.0)

    async def test_progress_covers_second_half(self):
        probe = FakeProbe(stream=hold_stream)
        await self._analyzer(probe, FakeMeter([Measured(30.0)])).measure_bufferbloat(Measured(20.0))
        self.assertEqual(self.progress[0], 50)
        self.assertEqual(self.progress, sorted(self.progress))
        self.assertTrue(all(50 <= p <= 100 for p in self.progress))

    async def test_disabled_skips_probing(self):
        probe = FakeProbe(stream=hold_stream)
        meter = FakeMeter([Measured(500.0)])
        config = TestConfig(enable_bufferbloat=False)
        result = await self._analyzer(probe, meter, config).measure_bufferbloat(Measured(20.0))

        self.assertEqual(result.rating, BufferbloatRating.A)
        self.assertEqual(result.latency_increase.value, 0.0)
        self.assertTrue(result.latency_increase.is_estimated)
        self.assertEqual(meter.calls, 0)
        self.assertEqual(probe.streams, [])

    async def test_probing_failure_reports_fallback(self):
        probe = FakeProbe(stream=hold_stream)
        meter = FakeMeter(error=RuntimeError("meter broke"))
        with self.assertLogs("netgauge.bufferbloat", level="ERROR"):
            result = await self._analyzer(probe, meter).measure_bufferbloat(Measured(20.0))

        self.assertEqual(result.rating, BufferbloatRating.B)
        self.assertIsInstance(result.latency_increase, Estimated)
        self.assertGreaterEqual(result.latency_increase.value, 20.0)
        self.assertLess(result.latency_increase.value, 70.0)


if __name__ == "__main__":
    unittest.main()
