"""Pydantic models for the works search envelope."""

from pydantic import BaseModel, Field


class WorkResult(BaseModel):
    id: int
    title: str
    subtitle: str | None = None
    abstract: str | None = None
    author_string: str | None = None
    venue_name: str | None = None
    doi: str | None = None
    year: int | None = None
    work_type: str | None = None
    language: str | None = None
    peer_reviewed: bool = False
    relevance_score: float | None = None


class SearchData(BaseModel):
    results: list[WorkResult]
    total: int
    query_time: int = Field(description="Backend query time in milliseconds")


class Pagination(BaseModel):
    limit: int
    offset: int
    has_more: bool


class SearchMeta(BaseModel):
    search_engine: str = Field(description="Engine that served the request")
    fallback_used: bool = Field(
        description="True when the search engine failed and this request was "
        "served by the relational engine"
    )
    cached: bool
    query: str
    filters: dict
    pagination: Pagination


class SearchResponse(BaseModel):
    status: str = "success"
    data: SearchData
    meta: SearchMeta
