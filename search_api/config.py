"""
Process configuration, read once from the environment at import time.

Nothing here is meant to change while the process runs: the failover
state that *does* change lives in ``FailoverController``.
"""

import os
from dataclasses import dataclass
from pathlib import Path

SERVICE_NAME = "search-api"
SERVICE_VERSION = "1.0.0"

ENGINE_SPHINX = "sphinx"
ENGINE_RELATIONAL = "relational"

# ``relational`` pins every search to the fallback engine
SEARCH_ENGINE = os.environ.get("SEARCH_ENGINE", ENGINE_SPHINX).strip().lower()

PROBE_INTERVAL_SECONDS = int(os.environ.get("PROBE_INTERVAL_SECONDS", "30"))
PROBE_TIMEOUT_SECONDS = float(os.environ.get("PROBE_TIMEOUT_SECONDS", "5"))
PROBE_WINDOW_SIZE = int(os.environ.get("PROBE_WINDOW_SIZE", "20"))

SPHINX_HOST = os.environ.get("SPHINX_HOST", "127.0.0.1")
SPHINX_PORT = int(os.environ.get("SPHINX_PORT", "9306"))
SPHINX_INDEX = os.environ.get("SPHINX_INDEX", "works")
SPHINX_CONNECT_TIMEOUT = int(os.environ.get("SPHINX_CONNECT_TIMEOUT", "5"))

DATABASE_PATH = Path(
    os.environ.get("DATABASE_PATH", str(Path(__file__).parent.parent / "works.db"))
)

REDIS_URL = os.environ.get("REDIS_URL")

CACHE_TTL = {
    "search": int(os.environ.get("CACHE_TTL_SEARCH", "300")),
    "search_fallback": 60,
    "statistics": int(os.environ.get("CACHE_TTL_STATISTICS", "86400")),
    "default": 1800,
}


@dataclass(frozen=True)
class RollbackThresholds:
    """Limits beyond which the search engine is taken out of rotation."""

    max_error_rate: float = 0.05
    max_avg_latency_ms: float = 100.0
    max_consecutive_failures: int = 5

    @classmethod
    def from_env(cls) -> "RollbackThresholds":
        return cls(
            max_error_rate=float(os.environ.get("ROLLBACK_MAX_ERROR_RATE", "0.05")),
            max_avg_latency_ms=float(os.environ.get("ROLLBACK_MAX_AVG_LATENCY_MS", "100")),
            max_consecutive_failures=int(
                os.environ.get("ROLLBACK_MAX_CONSECUTIVE_FAILURES", "5")
            ),
        )

    def as_dict(self) -> dict:
        return {
            "max_error_rate": self.max_error_rate,
            "max_avg_latency_ms": self.max_avg_latency_ms,
            "max_consecutive_failures": self.max_consecutive_failures,
        }
