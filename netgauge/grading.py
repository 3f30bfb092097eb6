"""
Bufferbloat grading and shareable result text.

Latency increase under load is bucketed into letter grades A-F; the
buckets are monotonic, so a larger increase never earns a better grade.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Tuple


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------

class BufferbloatRating(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, BufferbloatRating):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: Any) -> bool:
        if not isinstance(other, BufferbloatRating):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: Any) -> bool:
        if not isinstance(other, BufferbloatRating):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: Any) -> bool:
        if not isinstance(other, BufferbloatRating):
            return NotImplemented
        return self.rank >= other.rank


_ORDER: List[BufferbloatRating] = list(BufferbloatRating)

# (exclusive upper bound in ms, rating, display color)
_THRESHOLDS: List[Tuple[float, BufferbloatRating, str]] = [
    (20.0,  BufferbloatRating.A, "green"),
    (50.0,  BufferbloatRating.B, "green"),
    (100.0, BufferbloatRating.C, "yellow"),
    (200.0, BufferbloatRating.D, "red"),
]


def rate_bufferbloat(latency_increase_ms: float) -> BufferbloatRating:
    """Return the grade for a latency increase in milliseconds."""
    for bound, rating, _ in _THRESHOLDS:
        if latency_increase_ms < bound:
            return rating
    return BufferbloatRating.F


def rating_color(rating: BufferbloatRating) -> str:
    for _, candidate, color in _THRESHOLDS:
        if candidate is rating:
            return color
    return "red"


# ---------------------------------------------------------------------------
# Share result
# ---------------------------------------------------------------------------

def format_share_text(result: Any) -> str:
    """Generate a plain-text shareable block for a ``SpeedTestResult``."""
    lines = [
        "Network Test Results",
        f"Server: {result.server_location}",
        f"Ping: {result.ping.value:.1f} ms (jitter: {result.jitter.value:.1f} ms)",
        f"Download: {result.download_speed.value:.1f} Mbps",
        f"Upload: {result.upload_speed.value:.1f} Mbps",
    ]
    if result.packet_loss is not None:
        lines.append(f"Packet Loss: {result.packet_loss.percentage:.1f}%")
    if result.bufferbloat is not None:
        lines.append(
            f"Bufferbloat: {result.bufferbloat.rating.value} "
            f"(+{result.bufferbloat.latency_increase.value:.1f} ms under load)"
        )
    estimated = result.estimated_fields
    if estimated:
        lines.append(f"Estimated: {', '.join(estimated)}")
    return "\n".join(lines)
