"""
Bounded-time health probe against the search engine.

A probe failure is data, not a fault: ``HealthProbe.probe()`` always
returns a ``ProbeResult`` and never raises, whatever the client does.
"""

import logging
import threading
import time

from search_api.failover.window import ProbeResult

logger = logging.getLogger("probe")

DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0


class HealthProbe:
    """Run ``client.status_probe()`` with a hard deadline.

    The client call runs on a daemon thread; if it has not returned after
    ``timeout`` seconds the probe reports a failure and abandons the
    thread. A status mapping counts as healthy when its ``connected``
    field is truthy.

    Args:
        client: Object exposing ``status_probe() -> dict``.
        timeout: Seconds to wait for the status call.
    """

    def __init__(self, client, timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS):
        self.client = client
        self.timeout = timeout

    def probe(self) -> ProbeResult:
        outcome: dict = {}

        def _call():
            try:
                outcome["status"] = self.client.status_probe()
            except Exception as exc:
                outcome["error"] = exc

        start = time.perf_counter()
        worker = threading.Thread(target=_call, name="search-health-probe", daemon=True)
        worker.start()
        worker.join(self.timeout)
        latency_ms = (time.perf_counter() - start) * 1000

        if worker.is_alive():
            logger.warning("Search engine probe timed out after %.1fs", self.timeout)
            return ProbeResult(
                latency_ms=latency_ms,
                succeeded=False,
                error=f"probe timed out after {self.timeout:g}s",
            )

        if "error" in outcome:
            exc = outcome["error"]
            logger.warning("Search engine probe failed: %s", exc)
            return ProbeResult(latency_ms=latency_ms, succeeded=False, error=str(exc) or type(exc).__name__)

        status = outcome.get("status")
        if not isinstance(status, dict) or not status.get("connected"):
            return ProbeResult(
                latency_ms=latency_ms,
                succeeded=False,
                error="search engine not connected",
            )

        return ProbeResult(latency_ms=latency_ms, succeeded=True)
