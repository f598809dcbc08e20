from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response

from biblio_common.observability import metrics_response
from search_api.config import PROBE_INTERVAL_SECONDS
from search_api.database import check_connection, get_total_works
from search_api.models.health import HealthResponse, LivenessResponse, ReadinessResponse

router = APIRouter(tags=["Health"])


def monitor_is_stale(controller) -> bool:
    """True when the probe loop has not completed a cycle in two intervals."""
    elapsed = controller.seconds_since_last_probe()
    return elapsed is not None and elapsed > 2 * PROBE_INTERVAL_SECONDS


@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    controller = request.app.state.controller
    db_ok = check_connection()
    total = get_total_works() if db_ok else 0
    status = controller.get_health_status()
    stale = monitor_is_stale(controller)

    if not db_ok:
        overall = "unhealthy"
    elif status["rollback_active"] or stale:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        db_connected=db_ok,
        total_works=total,
        search_engine=status["search_engine"],
        rollback_active=status["rollback_active"],
        monitor_stale=stale,
        seconds_since_last_probe=controller.seconds_since_last_probe(),
    )


@router.get("/health/live", response_model=LivenessResponse)
def live():
    return LivenessResponse(alive=True, timestamp=datetime.now(timezone.utc))


@router.get("/health/ready", response_model=ReadinessResponse)
def ready(response: Response):
    ok = check_connection()
    if not ok:
        response.status_code = 503
    return ReadinessResponse(ready=ok)


@router.get("/metrics")
def metrics():
    body, content_type = metrics_response()
    return Response(content=body, media_type=content_type)
