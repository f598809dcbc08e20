"""Tests for the search-api Prometheus metrics."""

import unittest

from search_api import telemetry
from search_api.config import RollbackThresholds
from search_api.failover.controller import FailoverController
from search_api.failover.window import ProbeResult


class _Probe:
    def __init__(self, results):
        self.results = list(results)

    def probe(self):
        return self.results.pop(0)


class _Alerts:
    def send_critical_alert(self, title, data):
        return data


class TestProbeMetrics(unittest.TestCase):
    """Probe cycles feed the probe counters, histogram and gauges."""

    def _controller(self, *results):
        return FailoverController(_Probe(results), RollbackThresholds(), _Alerts())

    def test_probe_outcomes_counted(self):
        success = telemetry.PROBES_TOTAL.labels(outcome="success")
        failure = telemetry.PROBES_TOTAL.labels(outcome="failure")
        s0, f0 = success._value.get(), failure._value.get()

        controller = self._controller(
            ProbeResult(latency_ms=5.0, succeeded=True),
            ProbeResult(latency_ms=5.0, succeeded=False, error="refused"),
        )
        controller.run_probe_cycle()
        controller.run_probe_cycle()

        self.assertEqual(success._value.get() - s0, 1)
        self.assertEqual(failure._value.get() - f0, 1)

    def test_probe_duration_observed_in_seconds(self):
        initial_sum = telemetry.PROBE_DURATION._sum.get()
        self._controller(ProbeResult(latency_ms=250.0, succeeded=True)).run_probe_cycle()
        self.assertAlmostEqual(telemetry.PROBE_DURATION._sum.get() - initial_sum, 0.25)

    def test_window_gauges_follow_snapshot(self):
        controller = self._controller(
            ProbeResult(latency_ms=5.0, succeeded=True),
            ProbeResult(latency_ms=5.0, succeeded=False, error="refused"),
        )
        controller.run_probe_cycle()
        controller.run_probe_cycle()
        self.assertEqual(telemetry.PROBE_ERROR_RATE._value.get(), 0.5)
        self.assertEqual(telemetry.PROBE_CONSECUTIVE_FAILURES._value.get(), 1)

    def test_recovery_outcomes_counted(self):
        rejected = telemetry.RECOVERIES_TOTAL.labels(outcome="rejected")
        completed = telemetry.RECOVERIES_TOTAL.labels(outcome="completed")
        r0, c0 = rejected._value.get(), completed._value.get()

        controller = self._controller(
            ProbeResult(latency_ms=5.0, succeeded=False, error="refused"),
            ProbeResult(latency_ms=5.0, succeeded=True),
        )
        controller.manual_rollback()
        controller.manual_recovery()
        controller.manual_recovery()

        self.assertEqual(rejected._value.get() - r0, 1)
        self.assertEqual(completed._value.get() - c0, 1)
        self.assertEqual(telemetry.ROLLBACK_ACTIVE._value.get(), 0)


class TestSearchMetrics(unittest.TestCase):
    def test_search_duration_labelled_by_engine(self):
        child = telemetry.SEARCH_DURATION.labels(engine="relational")
        initial = child._sum.get()
        child.observe(0.02)
        self.assertGreater(child._sum.get(), initial)

    def test_cache_lookup_counter(self):
        hits = telemetry.CACHE_LOOKUPS.labels(result="hit")
        before = hits._value.get()
        hits.inc()
        self.assertEqual(hits._value.get() - before, 1)


if __name__ == "__main__":
    unittest.main()
