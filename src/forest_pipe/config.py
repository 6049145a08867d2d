"""Pipe configuration.

Defaults can be overridden from the environment:
- FOREST_PIPE_TIMEOUT: seconds to wait for a response (default 30)
- FOREST_PIPE_GRACE_DELAY: seconds between subscribing and sending (default 0.5)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TIMEOUT = 30.0
DEFAULT_GRACE_DELAY = 0.5

# Neutral origin used to split path and query string of relative request paths
DEFAULT_QUERY_BASE = "pipe://localhost"


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass
class PipeConfig:
    """Configuration shared by the dispatcher and correlator of one Pipe."""

    # Default upper bound for a whole outbound exchange
    timeout: float = DEFAULT_TIMEOUT

    # Wait after subscribing to a channel before transmitting. This is a
    # warm-up heuristic for transports whose listeners activate lazily; a
    # responder faster than this can still race it on such transports.
    grace_delay: float = DEFAULT_GRACE_DELAY

    query_base: str = DEFAULT_QUERY_BASE

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.grace_delay < 0:
            raise ValueError(f"grace_delay must not be negative, got {self.grace_delay}")

    @classmethod
    def from_env(cls) -> PipeConfig:
        """Build a config from FOREST_PIPE_* environment variables."""
        return cls(
            timeout=_float_from_env("FOREST_PIPE_TIMEOUT", DEFAULT_TIMEOUT),
            grace_delay=_float_from_env("FOREST_PIPE_GRACE_DELAY", DEFAULT_GRACE_DELAY),
        )
