"""
Data model shared by the measurement components and the engine.

Every number a component hands back is a *reading*: either ``Measured``
(observed on the wire) or ``Estimated`` (synthesized because the probe
failed).  The final ``SpeedTestResult`` keeps those tags so callers can
tell real data from stand-ins.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .grading import BufferbloatRating
from .stats import round1


class Phase(str, Enum):
    IDLE = "idle"
    PING = "ping"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    BUFFERBLOAT = "bufferbloat"
    PACKET_LOSS = "packetLoss"
    COMPLETE = "complete"


# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Measured:
    """A value observed on the network."""

    value: float
    is_estimated = False

    def rounded(self) -> Measured:
        return replace(self, value=round1(self.value))


@dataclass(frozen=True)
class Estimated:
    """A plausible stand-in for a value that could not be measured."""

    value: float
    reason: str = ""
    is_estimated = True

    def rounded(self) -> Estimated:
        return replace(self, value=round1(self.value))


Reading = Union[Measured, Estimated]


# ---------------------------------------------------------------------------
# Progress and graph events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestProgress:
    __test__ = False  # not a pytest test class

    phase: Phase
    progress: float
    current_speed: float = 0.0
    elapsed_time: float = 0.0


@dataclass(frozen=True)
class GraphDataPoint:
    time: float                     # ms since its throughput phase started
    speed: float                    # Mbps
    phase: str
    ping: Optional[float] = None


# ---------------------------------------------------------------------------
# Sub-results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BufferbloatResult:
    rating: BufferbloatRating
    latency_increase: Reading

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rating": self.rating.value,
            "latencyIncrease": round1(self.latency_increase.value),
        }


@dataclass(frozen=True)
class PacketLossResult:
    percentage: float
    sent: int
    received: int
    estimated: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.received <= self.sent:
            raise ValueError(
                f"received ({self.received}) must be between 0 and sent ({self.sent})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "sent": self.sent,
            "received": self.received,
        }


@dataclass(frozen=True)
class StabilityResult:
    score: float
    variance: float

    def to_dict(self) -> Dict[str, Any]:
        return {"score": round1(self.score), "variance": round1(self.variance)}


@dataclass(frozen=True)
class UserLocation:
    city: str
    country: str
    ip: str

    def to_dict(self) -> Dict[str, Any]:
        return {"city": self.city, "country": self.country, "ip": self.ip}


PLACEHOLDER_LOCATION = UserLocation(city="Your City", country="Your Country", ip="127.0.0.1")


# ---------------------------------------------------------------------------
# Final result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SpeedTestResult:
    """Immutable snapshot produced once at the end of every run."""

    id: str
    timestamp: int                  # epoch milliseconds
    download_speed: Reading
    upload_speed: Reading
    ping: Reading
    jitter: Reading
    server_location: str
    user_location: UserLocation
    test_duration: float            # seconds
    bufferbloat: Optional[BufferbloatResult] = None
    packet_loss: Optional[PacketLossResult] = None
    stability: Optional[StabilityResult] = None

    @property
    def estimated_fields(self) -> List[str]:
        """camelCase names of the fields that hold synthesized data."""
        names = []
        for key, reading in (
            ("downloadSpeed", self.download_speed),
            ("uploadSpeed", self.upload_speed),
            ("ping", self.ping),
            ("jitter", self.jitter),
        ):
            if reading.is_estimated:
                names.append(key)
        if self.bufferbloat and self.bufferbloat.latency_increase.is_estimated:
            names.append("bufferbloat")
        if self.packet_loss and self.packet_loss.estimated:
            names.append("packetLoss")
        return names

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "downloadSpeed": self.download_speed.value,
            "uploadSpeed": self.upload_speed.value,
            "ping": self.ping.value,
            "jitter": self.jitter.value,
            "serverLocation": self.server_location,
            "userLocation": self.user_location.to_dict(),
            "testDuration": self.test_duration,
            "estimated": self.estimated_fields,
        }
        if self.bufferbloat is not None:
            result["bufferbloat"] = self.bufferbloat.to_dict()
        if self.packet_loss is not None:
            result["packetLoss"] = self.packet_loss.to_dict()
        if self.stability is not None:
            result["stability"] = self.stability.to_dict()
        return result
