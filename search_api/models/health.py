"""Pydantic models for service health and search failover endpoints."""

from datetime import datetime
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, degraded, or unhealthy")
    db_connected: bool
    total_works: int
    search_engine: str = Field(description="Engine currently serving searches")
    rollback_active: bool
    monitor_stale: bool = Field(
        description="True when no probe has completed within two probe intervals"
    )
    seconds_since_last_probe: float | None = None


class LivenessResponse(BaseModel):
    alive: bool
    timestamp: datetime


class ReadinessResponse(BaseModel):
    ready: bool


# ── Failover ─────────────────────────────────────────────────────


class FailoverMetrics(BaseModel):
    """Sliding-window aggregates and transition timestamps."""

    error_rate: float
    avg_latency_ms: float
    consecutive_failures: int
    sample_count: int
    last_successful_probe_at: str | None = None
    last_probe_at: str | None = None
    rolled_back_at: str | None = None
    rollback_reason: str | None = None


class FailoverStatusResponse(BaseModel):
    rollback_active: bool
    state: str = Field(description="HEALTHY or ROLLED_BACK")
    search_engine: str
    metrics: FailoverMetrics
    thresholds: dict[str, float | int]
    recent_errors: list[dict]
    recent_probes: list[dict]


class RollbackRequest(BaseModel):
    reason: str | None = Field(
        default=None,
        max_length=200,
        description="Operator-supplied reason; defaults to 'manual_intervention'",
    )


class RollbackResponse(BaseModel):
    success: bool
    reason: str


class RecoveryResponse(BaseModel):
    success: bool
    message: str | None = None
    error: str | None = None


class SystemAlert(BaseModel):
    type: str
    severity: str = Field(description="high, medium, or low")
    message: str
    threshold: str
    current_value: str


class SystemAlertsResponse(BaseModel):
    alerts: list[SystemAlert]
    alert_count: int
    last_check: datetime
