from .health import router as health_router
from .search import router as search_router
from .failover import router as failover_router

__all__ = ["health_router", "search_router", "failover_router"]
