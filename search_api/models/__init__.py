from .health import (
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
    FailoverMetrics,
    FailoverStatusResponse,
    RollbackRequest,
    RollbackResponse,
    RecoveryResponse,
    SystemAlert,
    SystemAlertsResponse,
)
from .search import SearchData, Pagination, SearchMeta, SearchResponse, WorkResult

__all__ = [
    "HealthResponse",
    "LivenessResponse",
    "ReadinessResponse",
    "FailoverMetrics",
    "FailoverStatusResponse",
    "RollbackRequest",
    "RollbackResponse",
    "RecoveryResponse",
    "SystemAlert",
    "SystemAlertsResponse",
    "SearchData",
    "Pagination",
    "SearchMeta",
    "SearchResponse",
    "WorkResult",
]
