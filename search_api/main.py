import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from biblio_common.observability import init_observability, get_logger, shutdown_tracing

from search_api.alerting import AlertDispatcher
from search_api.cache import SearchCache
from search_api.config import (
    ENGINE_RELATIONAL,
    PROBE_TIMEOUT_SECONDS,
    PROBE_WINDOW_SIZE,
    SEARCH_ENGINE,
    SERVICE_NAME,
    SERVICE_VERSION,
    RollbackThresholds,
)
from search_api.database import init_db, RelationalSearchClient
from search_api.failover import FailoverController, HealthProbe
from search_api.routes import health_router, search_router, failover_router
from search_api.scheduler import probe_loop, stop_probe_loop
from search_api.search_router import SearchRouter
from search_api.sphinx_client import SphinxSearchClient

# Bootstrap logging + tracing + service-info in one call
init_observability(SERVICE_NAME, SERVICE_VERSION)

logger = get_logger(SERVICE_NAME)

pinned = SEARCH_ENGINE == ENGINE_RELATIONAL

sphinx_client = SphinxSearchClient()
relational_client = RelationalSearchClient()

controller = FailoverController(
    probe=HealthProbe(sphinx_client, timeout=PROBE_TIMEOUT_SECONDS),
    thresholds=RollbackThresholds.from_env(),
    alerts=AlertDispatcher(SERVICE_NAME),
    window_size=PROBE_WINDOW_SIZE,
    pinned_to_fallback=pinned,
)

backend_router = SearchRouter(
    search_client=sphinx_client,
    relational_client=relational_client,
    is_rolled_back=controller.is_rolled_back,
    pinned_to_fallback=pinned,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database initialized")

    if pinned:
        logger.info("SEARCH_ENGINE=%s, all searches pinned to the relational engine", SEARCH_ENGINE)

    # Start background search-engine health monitor
    probe_task = asyncio.create_task(probe_loop(app.state.controller))
    logger.info("Search health monitor scheduled")

    yield

    await stop_probe_loop(probe_task)
    sphinx_client.close()

    # Flush remaining traces before shutdown
    shutdown_tracing()


app = FastAPI(
    title="Bibliographic Search Service",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.state.controller = controller
app.state.search_router = backend_router
app.state.cache = SearchCache.from_env()

app.include_router(health_router)
app.include_router(search_router)
app.include_router(failover_router)

# Initialize telemetry at module level (before requests start)
try:
    from search_api import telemetry
    telemetry.init(app)
except Exception as e:
    logger.warning(f"Telemetry init skipped: {e}")
