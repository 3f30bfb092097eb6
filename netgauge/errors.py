"""Exception hierarchy and probe failure taxonomy."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ProbeCause(str, Enum):
    """Why a single network probe failed."""

    TIMEOUT = "timeout"
    HTTP_STATUS = "http-status"
    TRANSPORT = "transport"
    DECODE = "decode"


class NetgaugeError(Exception):
    """Base exception for this package"""


class ConfigError(NetgaugeError, ValueError):
    """Test configuration is out of range"""


class ProbeFailure(NetgaugeError):
    """A timed HTTP probe did not complete successfully"""

    def __init__(
        self,
        cause: ProbeCause,
        message: str = "",
        url: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        self.cause = cause
        self.url = url
        self.status = status
        super().__init__(message or cause.value)

    def __str__(self) -> str:
        text = f"{self.cause.value}: {self.args[0]}"
        if self.url:
            text += f" ({self.url})"
        return text
