"""Tests for the failover AlertDispatcher."""

import logging

from search_api import telemetry
from search_api.alerting import AlertDispatcher


class TestAlertDispatcher:
    def test_returns_alert_record(self):
        alert = AlertDispatcher().send_critical_alert(
            "Search engine rollback executed",
            {"reason": "consecutive_failures_5", "trigger": "automatic"},
        )
        assert alert["title"] == "Search engine rollback executed"
        assert alert["severity"] == "CRITICAL"
        assert alert["reason"] == "consecutive_failures_5"
        assert "timestamp" in alert

    def test_logs_critical_alert_record(self, caplog):
        with caplog.at_level(logging.CRITICAL, logger="alerting"):
            AlertDispatcher(service="search-api-test").send_critical_alert(
                "Manual search engine rollback", {"reason": "maintenance"}
            )

        records = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert len(records) == 1
        record = records[0]
        assert record.alert is True
        assert record.alert_title == "Manual search engine rollback"
        assert record.service == "search-api-test"
        assert record.alert_details["reason"] == "maintenance"
        assert "maintenance" in record.getMessage()

    def test_increments_alert_counter(self):
        counter = telemetry.FAILOVER_ALERTS_TOTAL.labels(severity="CRITICAL")
        before = counter._value.get()
        AlertDispatcher().send_critical_alert("t", {"reason": "r"})
        assert counter._value.get() - before == 1
