"""Unit tests for netgauge.stats -- pure functions and dataclasses."""

import unittest
from unittest import mock

from netgauge.stats import (
    ConnectionStats,
    bits_to_mbps,
    calculate_iqm,
    calculate_jitter,
    calculate_percentile,
    calculate_stability,
    format_latency,
    format_speed,
    mean,
    round1,
    synthesize,
)


class TestCalculateJitter(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(calculate_jitter([]), 0.0)

    def test_single(self):
        self.assertEqual(calculate_jitter([10.0]), 0.0)

    def test_constant(self):
        self.assertAlmostEqual(calculate_jitter([5.0, 5.0, 5.0]), 0.0)

    def test_two_samples(self):
        self.assertAlmostEqual(calculate_jitter([10.0, 15.0]), 5.0)

    def test_varying(self):
        # |15-10| + |10-15| + |20-10| = 5 + 5 + 10 = 20 / 3
        result = calculate_jitter([10.0, 15.0, 10.0, 20.0])
        self.assertAlmostEqual(result, 20.0 / 3, places=3)


class TestCalculateIqm(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(calculate_iqm([]), 0.0)

    def test_few_samples(self):
        self.assertAlmostEqual(calculate_iqm([1.0, 2.0, 3.0]), 2.0)

    def test_normal(self):
        # sorted: [1..8]  Q1=2, Q3=6 -> middle=[3,4,5,6] -> mean=4.5
        result = calculate_iqm([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0])
        self.assertAlmostEqual(result, 4.5)

    def test_outlier_resistant(self):
        samples = [10.0, 10.0, 10.0, 10.0, 10.0, 10.0, 100.0, 0.5]
        self.assertAlmostEqual(calculate_iqm(samples), 10.0)


class TestCalculatePercentile(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(calculate_percentile([], 50), 0.0)

    def test_median_odd(self):
        self.assertAlmostEqual(calculate_percentile([1, 2, 3, 4, 5], 50), 3.0)

    def test_p0(self):
        self.assertAlmostEqual(calculate_percentile([10, 20, 30], 0), 10.0)

    def test_p100(self):
        self.assertAlmostEqual(calculate_percentile([10, 20, 30], 100), 30.0)


class TestRound1(unittest.TestCase):
    def test_half_rounds_up(self):
        self.assertEqual(round1(0.25), 0.3)
        self.assertEqual(round1(2.45), 2.5)

    def test_below_half_rounds_down(self):
        self.assertEqual(round1(18.33), 18.3)

    def test_already_rounded(self):
        self.assertEqual(round1(42.0), 42.0)


class TestMeanAndRates(unittest.TestCase):
    def test_mean_empty(self):
        self.assertEqual(mean([]), 0.0)

    def test_mean(self):
        self.assertAlmostEqual(mean([1.0, 2.0, 6.0]), 3.0)

    def test_bits_to_mbps(self):
        self.assertAlmostEqual(bits_to_mbps(100_000_000, 1.0), 100.0)

    def test_bits_to_mbps_zero_time(self):
        self.assertEqual(bits_to_mbps(1000, 0.0), 0.0)


class TestSynthesize(unittest.TestCase):
    def test_stays_in_half_open_range(self):
        for _ in range(200):
            value = synthesize((15.0, 45.0))
            self.assertGreaterEqual(value, 15.0)
            self.assertLess(value, 45.0)

    def test_lower_bound_reachable(self):
        with mock.patch("netgauge.stats.random.random", return_value=0.0):
            self.assertEqual(synthesize((25.0, 125.0)), 25.0)


class TestCalculateStability(unittest.TestCase):
    def test_flat_series_is_perfect(self):
        score, variance = calculate_stability([50.0, 50.0, 50.0])
        self.assertEqual(score, 100.0)
        self.assertEqual(variance, 0.0)

    def test_too_few_samples(self):
        self.assertEqual(calculate_stability([50.0]), (0.0, 0.0))

    def test_noisy_series_scores_lower(self):
        steady, _ = calculate_stability([95.0, 100.0, 105.0])
        noisy, _ = calculate_stability([20.0, 100.0, 180.0])
        self.assertGreater(steady, noisy)

    def test_score_floored_at_zero(self):
        score, _ = calculate_stability([0.1, 0.1, 0.1, 500.0])
        self.assertEqual(score, 0.0)


class TestFormatSpeed(unittest.TestCase):
    def test_mbps(self):
        self.assertEqual(format_speed(50.0), "50.00 Mbps")

    def test_gbps(self):
        self.assertEqual(format_speed(1500.0), "1.50 Gbps")

    def test_zero(self):
        self.assertEqual(format_speed(0.0), "0.00 Mbps")


class TestFormatLatency(unittest.TestCase):
    def test_ms(self):
        self.assertEqual(format_latency(25.3), "25.3 ms")

    def test_seconds(self):
        self.assertEqual(format_latency(1500.0), "1.50 s")


class TestConnectionStats(unittest.TestCase):
    def test_calculate(self):
        cs = ConnectionStats(bytes_transferred=12_500_000, duration_ms=1000)
        cs.calculate()
        self.assertAlmostEqual(cs.speed_mbps, 100.0)

    def test_zero_duration_keeps_speed(self):
        cs = ConnectionStats(bytes_transferred=100, duration_ms=0)
        cs.calculate()
        self.assertEqual(cs.speed_mbps, 0.0)

    def test_to_dict(self):
        cs = ConnectionStats(id=1, url="https://example.com/x", estimated=True)
        d = cs.to_dict()
        self.assertEqual(d["id"], 1)
        self.assertEqual(d["url"], "https://example.com/x")
        self.assertTrue(d["estimated"])


if __name__ == "__main__":
    unittest.main()
