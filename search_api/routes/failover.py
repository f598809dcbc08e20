"""
Failover routes: search engine health state and operator controls.

  GET  /search/health           controller status snapshot
  POST /search/health/rollback  force traffic onto the relational engine
  POST /search/health/recover   return to the search engine after a passing probe
  GET  /search/alerts           current system alerts derived from health
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from search_api.models.health import (
    FailoverStatusResponse,
    RecoveryResponse,
    RollbackRequest,
    RollbackResponse,
    SystemAlert,
    SystemAlertsResponse,
)
from search_api.routes.health import monitor_is_stale

router = APIRouter(prefix="/search", tags=["Failover"])


@router.get("/health", response_model=FailoverStatusResponse)
def search_health(request: Request):
    return request.app.state.controller.get_health_status()


@router.post("/health/rollback", response_model=RollbackResponse)
def rollback(request: Request, body: RollbackRequest | None = None):
    reason = body.reason if body else None
    return request.app.state.controller.manual_rollback(reason)


@router.post(
    "/health/recover",
    response_model=RecoveryResponse,
    responses={409: {"model": RecoveryResponse}},
)
def recover(request: Request):
    result = request.app.state.controller.manual_recovery()
    if not result["success"]:
        return JSONResponse(status_code=409, content=result)
    return result


def build_system_alerts(status: dict, stale: bool) -> list[SystemAlert]:
    """Translate a controller status snapshot into operator-facing alerts."""
    alerts = []
    metrics = status["metrics"]
    thresholds = status["thresholds"]

    if metrics["error_rate"] > thresholds["max_error_rate"]:
        alerts.append(SystemAlert(
            type="error",
            severity="high",
            message=f"High error rate: {metrics['error_rate'] * 100:.1f}%",
            threshold=f"{thresholds['max_error_rate'] * 100:.1f}%",
            current_value=f"{metrics['error_rate'] * 100:.1f}%",
        ))

    if metrics["avg_latency_ms"] > thresholds["max_avg_latency_ms"]:
        alerts.append(SystemAlert(
            type="performance",
            severity="medium",
            message=f"Slow average response time: {metrics['avg_latency_ms']:.0f}ms",
            threshold=f"{thresholds['max_avg_latency_ms']:.0f}ms",
            current_value=f"{metrics['avg_latency_ms']:.0f}ms",
        ))

    if stale:
        alerts.append(SystemAlert(
            type="monitor",
            severity="high",
            message="Search health monitor has not completed a probe recently",
            threshold="2 probe intervals",
            current_value=metrics["last_probe_at"] or "never",
        ))

    if status["rollback_active"]:
        alerts.append(SystemAlert(
            type="system",
            severity="high",
            message="Search engine rollback is active - using relational fallback",
            threshold="No rollback",
            current_value="Rollback active",
        ))

    return alerts


@router.get("/alerts", response_model=SystemAlertsResponse)
def system_alerts(request: Request):
    controller = request.app.state.controller
    alerts = build_system_alerts(controller.get_health_status(), monitor_is_stale(controller))
    return SystemAlertsResponse(
        alerts=alerts,
        alert_count=len(alerts),
        last_check=datetime.now(timezone.utc),
    )
