"""
Alert sink for search-backend failover events.

``AlertDispatcher.send_critical_alert(title, data)``:
  1. Opens a span so the alert shows up in the probe cycle's trace.
  2. Logs at CRITICAL with ``alert=True``; the ``WebhookAlertHandler``
     attached by ``setup_logging`` forwards such records when
     ``ALERT_WEBHOOK_URL`` is set.
  3. Increments the Prometheus alert counter.

There is no cooldown here: the controller only emits a rollback alert on
an actual state transition, at most once per rollback episode.
"""

import logging
from datetime import datetime, timezone

from opentelemetry import trace

from search_api.config import SERVICE_NAME

logger = logging.getLogger("alerting")

class AlertDispatcher:
    """Emit structured alerts as log records.

    Args:
        service: Service name stamped on every alert record.
    """

    def __init__(self, service: str = SERVICE_NAME):
        self.service = service

    def send_critical_alert(self, title: str, data: dict) -> dict:
        """Emit a CRITICAL alert and return the alert record that was sent."""
        alert_info = {
            "title": title,
            "severity": "CRITICAL",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data,
        }

        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span(
            "dispatch failover alert",
            attributes={
                "alert.title": title,
                "alert.severity": "CRITICAL",
                "alert.reason": str(data.get("reason", "")),
            },
        ):
            logger.critical(
                "CRITICAL ALERT: %s (reason=%s)",
                title,
                data.get("reason", "unspecified"),
                extra={
                    "alert": True,
                    "alert_title": title,
                    "alert_details": alert_info,
                    "service": self.service,
                },
            )

        self._update_alert_counter("CRITICAL")
        return alert_info

    def _update_alert_counter(self, severity: str) -> None:
        try:
            from search_api.telemetry import FAILOVER_ALERTS_TOTAL
            FAILOVER_ALERTS_TOTAL.labels(severity=severity).inc()
        except Exception as exc:
            logger.debug("Alert counter not updated: %s", exc)
