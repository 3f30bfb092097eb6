"""
Test configuration and user config file support.

``TestConfig`` is the immutable value object handed to the engine.  The
optional JSON file at ``~/.netgauge/config.json`` stores the user's
preferred defaults.

Supported keys::

    duration = 10.0             # seconds per throughput phase
    parallel_connections = 4    # fan-out for throughput phases
    enable_bufferbloat = true
    enable_stress_test = false  # reserved
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

from .constants import (
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    MAX_CONNECTIONS,
    MAX_DURATION,
    MIN_CONNECTIONS,
    MIN_DURATION,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".netgauge")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Value object
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestConfig:
    """Parameters for one engine; fixed for the lifetime of every run."""

    __test__ = False  # not a pytest test class

    duration: float = DEFAULT_DURATION
    parallel_connections: int = DEFAULT_CONNECTIONS
    enable_bufferbloat: bool = True
    enable_stress_test: bool = False

    def validate(self) -> TestConfig:
        """Raise ``ConfigError`` if any parameter is out of range."""
        if not MIN_DURATION <= self.duration <= MAX_DURATION:
            raise ConfigError(f"Duration must be between {MIN_DURATION} and {MAX_DURATION} s")
        if not MIN_CONNECTIONS <= self.parallel_connections <= MAX_CONNECTIONS:
            raise ConfigError(
                f"Connections must be between {MIN_CONNECTIONS} and {MAX_CONNECTIONS}"
            )
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TestConfig:
        try:
            return cls(
                duration=float(data.get("duration", DEFAULT_DURATION)),
                parallel_connections=int(data.get("parallel_connections", DEFAULT_CONNECTIONS)),
                enable_bufferbloat=bool(data.get("enable_bufferbloat", True)),
                enable_stress_test=bool(data.get("enable_stress_test", False)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid configuration value: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = TestConfig().to_dict()


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def update_config(values: Dict[str, Any]) -> str:
    """Merge *values* into the stored config and persist.  Returns file path.

    Keys already in the file that *values* does not name are kept.
    """
    config = load_config()
    config.update(values)
    return save_config(config)


def load_test_config() -> TestConfig:
    """Build a validated ``TestConfig`` from the config file."""
    return TestConfig.from_dict(load_config()).validate()


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
