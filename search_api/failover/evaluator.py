"""
Rollback policy: maps window statistics to a go / no-go decision.

Any single breached limit is enough to roll back.
"""

from search_api.config import RollbackThresholds
from search_api.failover.window import WindowSnapshot


def rollback_reasons(snapshot: WindowSnapshot, thresholds: RollbackThresholds) -> list[str]:
    """List a tag for every limit ``snapshot`` breaches.

    Tags look like ``high_error_rate_12.0%``, ``slow_response_150ms`` and
    ``consecutive_failures_5``; they are diagnostic strings for alerts and
    the status endpoint, not a parsed contract.
    """
    reasons = []
    if snapshot.error_rate > thresholds.max_error_rate:
        reasons.append(f"high_error_rate_{snapshot.error_rate * 100:.1f}%")
    if snapshot.avg_latency_successful > thresholds.max_avg_latency_ms:
        reasons.append(f"slow_response_{snapshot.avg_latency_successful:.0f}ms")
    if snapshot.consecutive_failures >= thresholds.max_consecutive_failures:
        reasons.append(f"consecutive_failures_{snapshot.consecutive_failures}")
    return reasons


def should_rollback(
    snapshot: WindowSnapshot,
    thresholds: RollbackThresholds,
    currently_rolled_back: bool,
) -> bool:
    """Return True when traffic should move to the fallback engine.

    Always False while a rollback is already active: the rollback is a
    level, not an edge, and only a manual recovery ends it.
    """
    if currently_rolled_back:
        return False
    return bool(rollback_reasons(snapshot, thresholds))
