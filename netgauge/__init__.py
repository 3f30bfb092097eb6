"""netgauge -- HTTP-based network quality measurement engine."""

from .api import SERVERS, IpApiLocator, TestServer
from .bufferbloat import BufferbloatAnalyzer
from .config import TestConfig, load_test_config
from .engine import GraphBuffer, SpeedTestEngine
from .errors import ConfigError, NetgaugeError, ProbeCause, ProbeFailure
from .grading import BufferbloatRating, format_share_text, rate_bufferbloat
from .latency import LatencyMeter, ServerSelector
from .models import (
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
from .probe import CancelToken, ProbeClient, ProbeResult
from .stats import (
    ConnectionStats,
    calculate_jitter,
    calculate_stability,
    format_latency,
    format_speed,
)
from .throughput import Direction, ThroughputMeasurer, ThroughputResult

__version__ = "0.1.0"

__all__ = [
    "BufferbloatAnalyzer",
    "BufferbloatRating",
    "BufferbloatResult",
    "CancelToken",
    "ConfigError",
    "ConnectionStats",
    "Direction",
    "Estimated",
    "GraphBuffer",
    "GraphDataPoint",
    "IpApiLocator",
    "LatencyMeter",
    "Measured",
    "NetgaugeError",
    "PacketLossEstimator",
    "PacketLossResult",
    "Phase",
    "ProbeCause",
    "ProbeClient",
    "ProbeFailure",
    "ProbeResult",
    "Reading",
    "SERVERS",
    "ServerSelector",
    "SpeedTestEngine",
    "SpeedTestResult",
    "StabilityResult",
    "TestConfig",
    "TestProgress",
    "TestServer",
    "ThroughputMeasurer",
    "ThroughputResult",
    "UserLocation",
    "calculate_jitter",
    "calculate_stability",
    "format_latency",
    "format_share_text",
    "format_speed",
    "load_test_config",
    "rate_bufferbloat",
]
