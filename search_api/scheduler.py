"""
Background search-engine health monitor.

An asyncio task started from the FastAPI lifespan that runs one probe
immediately (so health is known before the first request) and then one
every ``PROBE_INTERVAL_SECONDS``:
  1. Probe the search engine (bounded by the probe timeout).
  2. Record the outcome in the controller's sliding window.
  3. Apply the rollback policy.

The blocking probe runs in a worker thread so request handling never
waits on it. Cancelling the task stops the loop; an in-flight probe thread
is abandoned.
"""

import asyncio
import logging

from search_api.config import PROBE_INTERVAL_SECONDS
from search_api.failover.controller import FailoverController

logger = logging.getLogger("scheduler")


def run_probe_check(controller: FailoverController) -> None:
    """Execute a single probe cycle (synchronous).

    Kept separate from the loop so tests can drive one cycle directly.
    """
    result = controller.run_probe_cycle()
    logger.debug(
        "Probe cycle: succeeded=%s latency=%.1fms rollback_active=%s",
        result.succeeded,
        result.latency_ms,
        controller.is_rolled_back(),
    )


async def probe_loop(
    controller: FailoverController,
    interval: float | None = None,
) -> None:
    """Run ``run_probe_check`` every *interval* seconds until cancelled.

    A failing iteration is logged with its traceback and the loop carries
    on; ``last_probe_at`` on the health endpoint shows whether it is still
    turning.
    """
    interval = interval or PROBE_INTERVAL_SECONDS

    logger.info("Search health monitor started (interval=%ss)", interval)

    while True:
        try:
            await asyncio.to_thread(run_probe_check, controller)
        except asyncio.CancelledError:
            logger.info("Search health monitor cancelled, shutting down")
            raise
        except Exception:
            logger.exception("Search health monitor iteration failed")

        await asyncio.sleep(interval)


async def stop_probe_loop(task: asyncio.Task | None) -> None:
    """Cancel the monitor task and wait for it to finish."""
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
