"""
Relational search backend: works catalogue in SQLite with an FTS5 index.

This is the fallback engine. It is slower and ranks less precisely than
the search engine but always returns correct results, so the failover
controller can route every search here when the engine is unhealthy.
"""

import os
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path

from opentelemetry import trace
from opentelemetry.trace import SpanKind

from search_api.config import DATABASE_PATH, ENGINE_RELATIONAL
from search_api.errors import BackendUnavailableError
from search_api.query_text import build_match_expression

DB_PATH = DATABASE_PATH
CONNECT_TIMEOUT_SECONDS = 5.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS works (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    subtitle TEXT,
    abstract TEXT,
    author_string TEXT,
    venue_name TEXT,
    doi TEXT,
    year INTEGER,
    work_type TEXT,
    language TEXT,
    peer_reviewed INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_works_year ON works(year);
CREATE INDEX IF NOT EXISTS idx_works_type ON works(work_type);

CREATE VIRTUAL TABLE IF NOT EXISTS works_fts USING fts5(
    title, subtitle, abstract,
    content='works', content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS works_ai AFTER INSERT ON works BEGIN
    INSERT INTO works_fts(rowid, title, subtitle, abstract)
    VALUES (new.id, new.title, new.subtitle, new.abstract);
END;

CREATE TRIGGER IF NOT EXISTS works_ad AFTER DELETE ON works BEGIN
    INSERT INTO works_fts(works_fts, rowid, title, subtitle, abstract)
    VALUES ('delete', old.id, old.title, old.subtitle, old.abstract);
END;
"""

WORK_COLUMNS = (
    "title", "subtitle", "abstract", "author_string", "venue_name",
    "doi", "year", "work_type", "language", "peer_reviewed",
)


def _get_db_path() -> Path:
    return DB_PATH


def init_db():
    db_path = _get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    should_reset = os.environ.get("DB_RESET_ON_START", "false").lower() == "true"

    with sqlite3.connect(str(db_path)) as conn:
        if should_reset:
            conn.executescript(
                "DROP TABLE IF EXISTS works_fts; DROP TABLE IF EXISTS works;"
            )
        conn.executescript(SCHEMA)


@contextmanager
def get_connection():
    conn = sqlite3.connect(str(_get_db_path()), timeout=CONNECT_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def insert_works(records: list[dict]) -> int:
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(
        "db insert_works",
        kind=SpanKind.INTERNAL,
        attributes={
            "db.system": "sqlite",
            "db.operation": "INSERT",
            "db.records_count": len(records),
        },
    ):
        rows = [
            {col: record.get(col) for col in WORK_COLUMNS}
            | {"peer_reviewed": int(bool(record.get("peer_reviewed")))}
            for record in records
        ]
        with get_connection() as conn:
            conn.executemany(
                f"INSERT INTO works ({', '.join(WORK_COLUMNS)}) "
                f"VALUES ({', '.join(':' + c for c in WORK_COLUMNS)})",
                rows,
            )
        return len(rows)


def _filter_clauses(filters: dict) -> tuple[list[str], dict]:
    clauses, params = [], {}
    if filters.get("year") is not None:
        clauses.append("w.year = :year")
        params["year"] = int(filters["year"])
    if filters.get("work_type"):
        clauses.append("w.work_type = :work_type")
        params["work_type"] = filters["work_type"]
    if filters.get("language") and filters["language"] != "unknown":
        clauses.append("w.language = :language")
        params["language"] = filters["language"]
    return clauses, params


def search_works(query: str, filters: dict | None = None) -> dict:
    """Full-text search over works, best match first.

    ``filters`` may hold ``year``, ``work_type``, ``language``, ``limit``
    (default 20) and ``offset`` (default 0).

    Returns:
        ``{"results": [...], "total": int, "query_time": int}`` with
        ``query_time`` in milliseconds.
    """
    filters = filters or {}
    limit = int(filters.get("limit", 20))
    offset = int(filters.get("offset", 0))
    start = time.perf_counter()

    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(
        "db query search_works",
        kind=SpanKind.INTERNAL,
        attributes={
            "db.system": "sqlite",
            "db.operation": "SELECT",
            "db.query.limit": limit,
            "db.query.offset": offset,
        },
    ) as span:
        match = build_match_expression(query)
        if not match:
            return {"results": [], "total": 0, "query_time": 0}

        clauses, params = _filter_clauses(filters)
        where = " AND ".join(["works_fts MATCH :match", *clauses])
        params.update(match=match, limit=limit, offset=offset)

        select_sql = f"""
        SELECT
            w.id, w.title, w.subtitle, w.abstract, w.author_string,
            w.venue_name, w.doi, w.year, w.work_type, w.language,
            w.peer_reviewed,
            -bm25(works_fts) AS relevance_score
        FROM works_fts
        JOIN works w ON w.id = works_fts.rowid
        WHERE {where}
        ORDER BY bm25(works_fts), COALESCE(w.year, 0) DESC
        LIMIT :limit OFFSET :offset
        """
        count_sql = f"""
        SELECT COUNT(*) AS total
        FROM works_fts
        JOIN works w ON w.id = works_fts.rowid
        WHERE {where}
        """
        with get_connection() as conn:
            rows = conn.execute(select_sql, params).fetchall()
            total = conn.execute(count_sql, params).fetchone()["total"]

        results = []
        for row in rows:
            item = dict(row)
            item["peer_reviewed"] = bool(item["peer_reviewed"])
            item["relevance_score"] = round(item["relevance_score"], 4)
            results.append(item)

        span.set_attribute("db.result_count", len(results))
        return {
            "results": results,
            "total": total,
            "query_time": int((time.perf_counter() - start) * 1000),
        }


def get_total_works() -> int:
    with get_connection() as conn:
        row = conn.execute("SELECT COUNT(*) AS cnt FROM works").fetchone()
    return row["cnt"]


def check_connection() -> bool:
    try:
        with get_connection() as conn:
            conn.execute("SELECT 1")
        return True
    except Exception:
        return False


class RelationalSearchClient:
    """Search-backend adapter over the SQLite works catalogue."""

    name = ENGINE_RELATIONAL

    def query(self, q: str, filters: dict | None = None) -> dict:
        try:
            return search_works(q, filters)
        except sqlite3.OperationalError as exc:
            raise BackendUnavailableError(self.name, str(exc)) from exc
