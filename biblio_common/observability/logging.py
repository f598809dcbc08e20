"""
Structured JSON logging with OpenTelemetry trace context injection.

``setup_logging()`` configures the root logger once with JSON output and
trace/span ids on every line. When ``ALERT_WEBHOOK_URL`` is set it also
attaches a ``WebhookAlertHandler`` that forwards alert records (level
CRITICAL and ``alert=True``) to an external notification endpoint.

Usage::

    from biblio_common.observability.logging import setup_logging, get_logger

    setup_logging()
    logger = get_logger("search-api")
    logger.critical(
        "Search engine rollback executed",
        extra={"alert": True, "alert_title": "...", "alert_details": {...}},
    )
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from urllib.request import Request, urlopen
from urllib.error import URLError

from opentelemetry.instrumentation.logging import LoggingInstrumentor
from pythonjsonlogger.json import JsonFormatter


_FORMAT_STRING = "%(timestamp)s %(level)s %(name)s %(message)s"
_setup_done = False


class JsonTraceFormatter(JsonFormatter):
    """JSON formatter that stamps timestamp, level, logger and message."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = record.created
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()


class WebhookAlertHandler(logging.Handler):
    """
    Logging handler that POSTs alert records to a webhook URL.

    A record is forwarded only when its level is ``CRITICAL`` and it
    carries ``alert=True`` in its extra data. Lower severities stay in the
    log stream. The POST runs on a daemon thread so a slow receiver never
    blocks the caller (the probe loop in particular).

    Args:
        webhook_url: The URL to POST alert payloads to.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(self, webhook_url: str, timeout: int = 5):
        super().__init__(level=logging.CRITICAL)
        self.webhook_url = webhook_url
        self.timeout = timeout

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno < logging.CRITICAL:
            return
        if not getattr(record, "alert", False):
            return

        try:
            payload = self._build_payload(record)
            thread = threading.Thread(
                target=self._send, args=(payload,), daemon=True
            )
            thread.start()
        except Exception:
            self.handleError(record)

    def _build_payload(self, record: logging.LogRecord) -> dict:
        return {
            "severity": record.levelname,
            "title": getattr(record, "alert_title", record.getMessage()),
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
            "service": getattr(record, "service", "unknown"),
            "alert_details": getattr(record, "alert_details", {}),
            "trace_id": getattr(record, "otelTraceID", ""),
            "span_id": getattr(record, "otelSpanID", ""),
        }

    def _send(self, payload: dict) -> None:
        try:
            data = json.dumps(payload, default=str).encode("utf-8")
            req = Request(
                self.webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urlopen(req, timeout=self.timeout)
        except URLError as exc:
            # debug only: a warning here would re-enter the root handlers
            logging.getLogger("webhook").debug("Webhook POST failed: %s", exc)
        except Exception as exc:
            logging.getLogger("webhook").debug("Webhook error: %s", exc)


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure the root logger with JSON output and trace context.

    Subsequent calls are no-ops.

    Args:
        level: The root log level (default ``logging.INFO``).
    """
    global _setup_done
    if _setup_done:
        return
    _setup_done = True

    LoggingInstrumentor().instrument(set_logging_format=False)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonTraceFormatter(_FORMAT_STRING))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    webhook_url = os.environ.get("ALERT_WEBHOOK_URL")
    if webhook_url:
        root.addHandler(WebhookAlertHandler(webhook_url))
        logging.getLogger("observability").info(
            "WebhookAlertHandler attached (url=%s)", webhook_url
        )


def get_logger(name: str) -> logging.Logger:
    """Return a named logger."""
    return logging.getLogger(name)
