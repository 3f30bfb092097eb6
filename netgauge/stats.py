"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects
beyond the random draws used to synthesize fallback values.
"""
from __future__ import annotations

import math
import random
import statistics
from dataclasses import dataclass
from typing import List, Sequence, Tuple


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ConnectionStats:
    """Per-connection statistics collected by download / upload workers."""

    id: int = 0
    url: str = ""
    bytes_transferred: int = 0
    duration_ms: float = 0.0
    speed_mbps: float = 0.0
    estimated: bool = False
    error: str = ""

    def calculate(self) -> None:
        if self.duration_ms > 0:
            self.speed_mbps = bits_to_mbps(self.bytes_transferred * 8, self.duration_ms / 1000)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "bytes": self.bytes_transferred,
            "duration_ms": round(self.duration_ms, 2),
            "speed_mbps": round(self.speed_mbps, 2),
            "estimated": self.estimated,
        }


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def round1(value: float) -> float:
    """Round half-up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def mean(samples: Sequence[float]) -> float:
    if not samples:
        return 0.0
    return statistics.mean(samples)


def bits_to_mbps(bits: float, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return bits / seconds / 1_000_000


def synthesize(bounds: Tuple[float, float]) -> float:
    """Draw a plausible stand-in value from ``[low, high)``."""
    low, high = bounds
    return low + random.random() * (high - low)


def calculate_jitter(samples: Sequence[float]) -> float:
    """Mean absolute difference between consecutive samples."""
    if len(samples) < 2:
        return 0.0
    diffs = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return statistics.mean(diffs)


def calculate_iqm(samples: List[float]) -> float:
    """Interquartile mean -- mean of values between Q1 and Q3."""
    if not samples:
        return 0.0
    if len(samples) < 4:
        return statistics.mean(samples)

    ordered = sorted(samples)
    n = len(ordered)
    middle = ordered[n // 4 : (3 * n) // 4]
    return statistics.mean(middle) if middle else statistics.mean(samples)


def calculate_percentile(samples: List[float], percentile: float) -> float:
    """Linear-interpolation percentile."""
    if not samples:
        return 0.0

    ordered = sorted(samples)
    n = len(ordered)
    idx = (percentile / 100) * (n - 1)
    lower = int(idx)
    upper = min(lower + 1, n - 1)
    weight = idx - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def calculate_stability(samples: Sequence[float]) -> Tuple[float, float]:
    """
    Return ``(score, variance)`` for a series of speed samples.

    ``score`` is 100 for a perfectly flat series and drops with the
    coefficient of variation, floored at 0.
    """
    if len(samples) < 2:
        return (0.0, 0.0)

    variance = statistics.pvariance(samples)
    avg = statistics.mean(samples)
    if avg <= 0:
        return (0.0, variance)

    cv = math.sqrt(variance) / avg
    return (max(0.0, min(100.0, 100.0 * (1.0 - cv))), variance)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
