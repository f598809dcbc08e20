"""
Failover controller: the search-engine health state machine.

States::

    HEALTHY ──(probe breaches a threshold | manual_rollback)──▶ ROLLED_BACK
    ROLLED_BACK ──(manual_recovery with a passing re-probe)──▶ HEALTHY

There is no automatic way back to HEALTHY. While ROLLED_BACK the probe
loop keeps feeding the window so a later recovery has fresh data, but the
rollback policy is not evaluated.

Writers: this class only. ``_op_lock`` serialises whole operations (a
probe cycle, a manual rollback, a manual recovery) so they never
interleave; ``_state_lock`` is held for every multi-field update and for
status snapshots so readers never see a half-applied reset. The
``rollback_active`` flag itself is read without a lock by the request path.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from opentelemetry import trace

from search_api import telemetry
from search_api.alerting import AlertDispatcher
from search_api.config import ENGINE_RELATIONAL, ENGINE_SPHINX, RollbackThresholds
from search_api.failover.evaluator import rollback_reasons, should_rollback
from search_api.failover.probe import HealthProbe
from search_api.failover.window import MetricsWindow, ProbeResult, WindowSnapshot

logger = logging.getLogger("failover")

MANUAL_REASON = "manual_intervention"
RECENT_ERRORS_LIMIT = 10
RECENT_PROBES_REPORTED = 5


class ServingState(str, Enum):
    HEALTHY = "HEALTHY"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass
class HealthState:
    """Everything the controller knows about the search engine."""

    window: MetricsWindow
    rollback_active: bool = False
    rolled_back_at: Optional[datetime] = None
    rollback_reason: Optional[str] = None
    last_successful_probe_at: Optional[datetime] = None
    last_probe_at: Optional[datetime] = None
    # most recent first
    recent_errors: deque = field(default_factory=lambda: deque(maxlen=RECENT_ERRORS_LIMIT))


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


class FailoverController:
    """Decide which search backend is authoritative.

    Args:
        probe: ``HealthProbe`` used by both the probe loop and recovery.
        thresholds: Rollback limits; defaults to ``RollbackThresholds()``.
        alerts: Alert sink; defaults to ``AlertDispatcher()``.
        window_size: Capacity of the probe window.
        pinned_to_fallback: Static configuration pinning all search
            traffic to the relational engine. Only affects reporting; the
            router applies the pin itself.
    """

    def __init__(
        self,
        probe: HealthProbe,
        thresholds: RollbackThresholds | None = None,
        alerts: AlertDispatcher | None = None,
        window_size: int = 20,
        pinned_to_fallback: bool = False,
    ):
        self.probe = probe
        self.thresholds = thresholds or RollbackThresholds()
        self.alerts = alerts or AlertDispatcher()
        self.pinned_to_fallback = pinned_to_fallback
        self._state = HealthState(window=MetricsWindow(window_size))
        self._op_lock = threading.Lock()
        self._state_lock = threading.Lock()

    # ── readers ──────────────────────────────────────────────────

    def is_rolled_back(self) -> bool:
        return self._state.rollback_active

    @property
    def state(self) -> ServingState:
        return ServingState.ROLLED_BACK if self._state.rollback_active else ServingState.HEALTHY

    def seconds_since_last_probe(self) -> Optional[float]:
        last = self._state.last_probe_at
        if last is None:
            return None
        return (datetime.now(timezone.utc) - last).total_seconds()

    def get_health_status(self) -> dict:
        """Consistent snapshot of the failover state for status endpoints."""
        with self._state_lock:
            state = self._state
            snapshot = state.window.snapshot()
            rolled_back = state.rollback_active
            return {
                "rollback_active": rolled_back,
                "state": self.state.value,
                "search_engine": (
                    ENGINE_RELATIONAL if rolled_back or self.pinned_to_fallback else ENGINE_SPHINX
                ),
                "metrics": {
                    "error_rate": round(snapshot.error_rate, 4),
                    "avg_latency_ms": round(snapshot.avg_latency_successful, 2),
                    "consecutive_failures": snapshot.consecutive_failures,
                    "sample_count": snapshot.sample_count,
                    "last_successful_probe_at": _iso(state.last_successful_probe_at),
                    "last_probe_at": _iso(state.last_probe_at),
                    "rolled_back_at": _iso(state.rolled_back_at),
                    "rollback_reason": state.rollback_reason,
                },
                "thresholds": self.thresholds.as_dict(),
                "recent_errors": list(state.recent_errors),
                "recent_probes": [
                    r.as_dict() for r in state.window.recent(RECENT_PROBES_REPORTED)
                ],
            }

    # ── probe loop ───────────────────────────────────────────────

    def run_probe_cycle(self) -> ProbeResult:
        """Probe once, record the outcome and apply the rollback policy.

        Called by the scheduler off the request path. Never raises for a
        failing search engine.
        """
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span("search health probe cycle") as span:
            with self._op_lock:
                result = self.probe.probe()
                reason = None
                rolled_back_at = None
                with self._state_lock:
                    self._record(result)
                    snapshot = self._state.window.snapshot()
                    if should_rollback(snapshot, self.thresholds, self._state.rollback_active):
                        reason = ",".join(rollback_reasons(snapshot, self.thresholds))
                        rolled_back_at = self._mark_rolled_back(reason)

                self._update_probe_metrics(result, snapshot)
                span.set_attribute("probe.succeeded", result.succeeded)
                span.set_attribute("probe.latency_ms", result.latency_ms)

                if not result.succeeded:
                    logger.warning(
                        "Search engine health check failed: %s (latency=%.1fms, "
                        "consecutive_failures=%d)",
                        result.error,
                        result.latency_ms,
                        snapshot.consecutive_failures,
                    )

                if rolled_back_at is not None:
                    span.set_attribute("failover.rollback_reason", reason)
                    self._announce_rollback(reason, snapshot, "automatic", rolled_back_at)

        return result

    def _record(self, result: ProbeResult) -> None:
        state = self._state
        state.window.record(result)
        state.last_probe_at = result.timestamp
        if result.succeeded:
            state.last_successful_probe_at = result.timestamp
        else:
            state.recent_errors.appendleft({
                "timestamp": result.timestamp.isoformat(),
                "error": result.error or "Unknown error",
                "latency_ms": round(result.latency_ms, 2),
            })

    # ── transitions ──────────────────────────────────────────────

    def _mark_rolled_back(self, reason: str) -> Optional[datetime]:
        """Move to ROLLED_BACK; caller holds ``_state_lock``.

        Returns the rollback time, or None if a rollback was already active.
        """
        if self._state.rollback_active:
            return None
        now = datetime.now(timezone.utc)
        self._state.rollback_active = True
        self._state.rolled_back_at = now
        self._state.rollback_reason = reason
        return now

    def _announce_rollback(
        self, reason: str, snapshot: WindowSnapshot, trigger: str, rolled_back_at: datetime
    ) -> None:
        telemetry.ROLLBACK_ACTIVE.set(1)
        telemetry.ROLLBACKS_TOTAL.labels(trigger=trigger).inc()

        metrics = {
            "error_rate": round(snapshot.error_rate, 4),
            "avg_latency_ms": round(snapshot.avg_latency_successful, 2),
            "consecutive_failures": snapshot.consecutive_failures,
            "sample_count": snapshot.sample_count,
        }
        logger.error(
            "Search traffic rolled back to the relational engine (reason=%s, trigger=%s)",
            reason,
            trigger,
            extra={"rollback_reason": reason, "metrics": metrics},
        )
        title = (
            "Manual search engine rollback" if trigger == "manual"
            else "Search engine rollback executed"
        )
        self.alerts.send_critical_alert(title, {
            "reason": reason,
            "trigger": trigger,
            "metrics": metrics,
            "rolled_back_at": rolled_back_at.isoformat(),
        })

    def manual_rollback(self, reason: str = MANUAL_REASON) -> dict:
        """Force traffic onto the relational engine (e.g. planned maintenance)."""
        reason = reason or MANUAL_REASON
        logger.warning("Manual rollback initiated (reason=%s)", reason)
        with self._op_lock:
            with self._state_lock:
                snapshot = self._state.window.snapshot()
                rolled_back_at = self._mark_rolled_back(reason)
            if rolled_back_at is None:
                logger.info("Manual rollback requested while a rollback is already active")
            else:
                self._announce_rollback(reason, snapshot, "manual", rolled_back_at)
        return {"success": True, "reason": reason}

    def manual_recovery(self) -> dict:
        """Return to HEALTHY if a fresh probe of the search engine passes.

        On a failed probe nothing changes and the failure is reported to
        the caller. On success the rollback flag, probe window and error
        history are all cleared.
        """
        logger.info("Manual recovery from rollback initiated")
        with self._op_lock:
            result = self.probe.probe()
            if not result.succeeded:
                telemetry.RECOVERIES_TOTAL.labels(outcome="rejected").inc()
                logger.error("Search engine recovery failed: %s", result.error)
                return {
                    "success": False,
                    "error": f"Search engine not ready for recovery: {result.error}",
                }

            with self._state_lock:
                state = self._state
                state.rollback_active = False
                state.rolled_back_at = None
                state.rollback_reason = None
                state.window.clear()
                state.recent_errors.clear()
                state.last_successful_probe_at = result.timestamp
                state.last_probe_at = result.timestamp

            telemetry.ROLLBACK_ACTIVE.set(0)
            telemetry.PROBE_ERROR_RATE.set(0)
            telemetry.PROBE_CONSECUTIVE_FAILURES.set(0)
            telemetry.RECOVERIES_TOTAL.labels(outcome="completed").inc()
        logger.info("Search engine recovery completed successfully")
        return {"success": True, "message": "Recovery completed"}

    # ── metrics ──────────────────────────────────────────────────

    @staticmethod
    def _update_probe_metrics(result: ProbeResult, snapshot: WindowSnapshot) -> None:
        telemetry.PROBES_TOTAL.labels(outcome="success" if result.succeeded else "failure").inc()
        telemetry.PROBE_DURATION.observe(result.latency_ms / 1000)
        telemetry.PROBE_ERROR_RATE.set(snapshot.error_rate)
        telemetry.PROBE_CONSECUTIVE_FAILURES.set(snapshot.consecutive_failures)
