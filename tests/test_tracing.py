"""Tests for OpenTelemetry spans around probes, alerts and backend dispatch."""

import unittest

from biblio_common.observability.testing import get_spans_by_name, setup_test_tracing
from search_api.alerting import AlertDispatcher
from search_api.config import RollbackThresholds
from search_api.failover.controller import FailoverController
from search_api.failover.window import ProbeResult
from search_api.search_router import SearchRouter


class _Probe:
    def __init__(self, succeeded):
        self.succeeded = succeeded

    def probe(self):
        return ProbeResult(
            latency_ms=7.0,
            succeeded=self.succeeded,
            error=None if self.succeeded else "Connection refused",
        )


class _Backend:
    name = "relational"

    def query(self, q, filters=None):
        return {"results": [], "total": 0, "query_time": 0}


class TestFailoverTracing(unittest.TestCase):
    def setUp(self):
        self.exporter = setup_test_tracing("search-api")

    def test_probe_cycle_span(self):
        controller = FailoverController(_Probe(True), RollbackThresholds(), AlertDispatcher())
        controller.run_probe_cycle()

        spans = get_spans_by_name(self.exporter, "search health probe cycle")
        self.assertEqual(len(spans), 1)
        self.assertTrue(spans[0].attributes["probe.succeeded"])
        self.assertEqual(spans[0].attributes["probe.latency_ms"], 7.0)

    def test_rollback_alert_span_is_child_of_probe_cycle(self):
        controller = FailoverController(_Probe(False), RollbackThresholds(), AlertDispatcher())
        controller.run_probe_cycle()

        cycle = get_spans_by_name(self.exporter, "search health probe cycle")[0]
        alert = get_spans_by_name(self.exporter, "dispatch failover alert")[0]
        self.assertEqual(alert.parent.span_id, cycle.context.span_id)
        self.assertEqual(alert.attributes["alert.severity"], "CRITICAL")
        self.assertEqual(cycle.attributes["failover.rollback_reason"], "high_error_rate_100.0%")

    def test_route_span(self):
        router = SearchRouter(_Backend(), _Backend(), lambda: True)
        router.route("deep learning")

        spans = get_spans_by_name(self.exporter, "route search")
        self.assertEqual(len(spans), 1)
        self.assertFalse(spans[0].attributes["search.primary_selected"])


class TestTracesEndpoint(unittest.TestCase):
    def test_appends_traces_path(self):
        from biblio_common.observability.tracing import _traces_endpoint

        self.assertEqual(_traces_endpoint("http://collector:4318/"), "http://collector:4318/v1/traces")

    def test_keeps_full_traces_url(self):
        from biblio_common.observability.tracing import _traces_endpoint

        url = "http://collector:4318/v1/traces"
        self.assertEqual(_traces_endpoint(url), url)


if __name__ == "__main__":
    unittest.main()
