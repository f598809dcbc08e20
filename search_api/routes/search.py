"""
Works search endpoint.

  GET /search/works: full-text search, served by whichever engine the
                      router selects, with a Redis response cache in front.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from search_api.config import ENGINE_SPHINX
from search_api.errors import SearchUnavailableError
from search_api.models.search import Pagination, SearchData, SearchMeta, SearchResponse

logger = logging.getLogger("search")

router = APIRouter(prefix="/search", tags=["Search"])


@router.get("/works", response_model=SearchResponse)
def search_works(
    request: Request,
    q: str = Query(min_length=2, max_length=500, description="Search terms"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    year: int | None = Query(default=None, ge=1000, le=2100),
    work_type: str | None = Query(default=None, max_length=50),
    language: str | None = Query(default=None, max_length=20),
):
    """
    Search works by title, subtitle and abstract.

    Results come from the search engine while it is healthy and from the
    relational engine while a rollback is active. A single failed engine
    request is retried on the relational engine and flagged with
    ``meta.fallback_used``.
    """
    cache = request.app.state.cache
    router_ = request.app.state.search_router

    q = q.strip()
    if len(q) < 2:
        raise HTTPException(status_code=422, detail="Query must contain at least 2 non-space characters")

    filters = {"year": year, "work_type": work_type, "language": language}
    active_filters = {k: v for k, v in filters.items() if v is not None}
    params = {"q": q, "limit": limit, "offset": offset, **active_filters}

    cache_key = cache.generate_key("search", "works", params)
    cached = cache.get(cache_key)
    if cached is not None:
        cached["meta"]["cached"] = True
        return cached

    try:
        routed = router_.route(q, {**active_filters, "limit": limit, "offset": offset})
    except SearchUnavailableError as e:
        logger.error("Search request failed on every backend: %s", e)
        raise HTTPException(status_code=503, detail=str(e))

    payload = routed.payload
    response = SearchResponse(
        data=SearchData(
            results=payload["results"],
            total=payload["total"],
            query_time=payload.get("query_time", routed.query_time_ms),
        ),
        meta=SearchMeta(
            search_engine=routed.engine,
            fallback_used=routed.fallback_used,
            cached=False,
            query=q,
            filters=active_filters,
            pagination=Pagination(
                limit=limit,
                offset=offset,
                has_more=offset + len(payload["results"]) < payload["total"],
            ),
        ),
    )

    ttl_kind = "search" if routed.engine == ENGINE_SPHINX else "search_fallback"
    cache.set(cache_key, response.model_dump(), cache.ttl_for(ttl_kind))
    return response
