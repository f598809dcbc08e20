"""
Sphinx search engine client over SphinxQL (MySQL wire protocol).

Health checks run on their own connection and every worker thread gets a
private search connection, so a slow search never delays a status check
and concurrent searches never queue behind each other.

Connection-class failures (server down, connection dropped, timeouts) are
translated into ``BackendUnavailableError`` so the router can fall back
for the current request. Query errors propagate unchanged.
"""

import logging
import threading
import time

import mysql.connector
from mysql.connector import errors as mysql_errors
from opentelemetry import trace
from opentelemetry.trace import SpanKind

from search_api.config import (
    ENGINE_SPHINX,
    SPHINX_CONNECT_TIMEOUT,
    SPHINX_HOST,
    SPHINX_INDEX,
    SPHINX_PORT,
)
from search_api.errors import BackendUnavailableError
from search_api.query_text import build_match_expression

logger = logging.getLogger("sphinx")

TRANSIENT_ERRORS = (
    mysql_errors.InterfaceError,
    mysql_errors.OperationalError,
    ConnectionError,
    TimeoutError,
)

RESULT_FIELDS = (
    "id", "title", "subtitle", "abstract", "author_string", "venue_name",
    "doi", "year", "work_type", "language", "peer_reviewed",
)


class _LazyConnection:
    """A connection opened on first use and reopened after a transient failure."""

    def __init__(self, connect, label: str):
        self._connect = connect
        self.label = label
        self._conn = None
        self._lock = threading.Lock()

    def execute(self, sql: str, params: tuple = ()) -> list[dict]:
        with self._lock:
            try:
                if self._conn is None or not self._conn.is_connected():
                    self._conn = self._connect()
                    logger.info("Sphinx %s connection established", self.label)
                cursor = self._conn.cursor(dictionary=True)
                try:
                    cursor.execute(sql, params)
                    return cursor.fetchall()
                finally:
                    cursor.close()
            except TRANSIENT_ERRORS as exc:
                self._reset()
                raise BackendUnavailableError(ENGINE_SPHINX, str(exc)) from exc

    def _reset(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            try:
                conn.close()
            except Exception as exc:
                logger.debug("Ignoring error while closing Sphinx connection: %s", exc)

    def close(self) -> None:
        with self._lock:
            self._reset()


class SphinxSearchClient:
    """Thin SphinxQL client.

    Args:
        host: searchd host.
        port: SphinxQL listener port.
        index: Index queried by ``query``.
        connect_timeout: Seconds allowed for establishing a connection.
    """

    name = ENGINE_SPHINX

    def __init__(
        self,
        host: str = SPHINX_HOST,
        port: int = SPHINX_PORT,
        index: str = SPHINX_INDEX,
        connect_timeout: int = SPHINX_CONNECT_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.index = index
        self.connect_timeout = connect_timeout
        self._status_conn = _LazyConnection(self._connect, "status")
        self._local = threading.local()
        self._search_conns: list[_LazyConnection] = []
        self._conns_lock = threading.Lock()

    # ── connection ───────────────────────────────────────────────

    def _connect(self):
        return mysql.connector.connect(
            host=self.host,
            port=self.port,
            connection_timeout=self.connect_timeout,
            autocommit=True,
        )

    def _search_conn(self) -> _LazyConnection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = _LazyConnection(self._connect, "search")
            self._local.conn = conn
            with self._conns_lock:
                self._search_conns.append(conn)
        return conn

    def close(self) -> None:
        self._status_conn.close()
        with self._conns_lock:
            conns, self._search_conns = self._search_conns, []
        for conn in conns:
            conn.close()

    # ── operations ───────────────────────────────────────────────

    def status_probe(self) -> dict:
        """Run ``SHOW STATUS`` and summarise it.

        Returns:
            ``{"connected": True, "uptime": int, "queries": int,
            "avg_query_time": float}``.
        """
        rows = self._status_conn.execute("SHOW STATUS")
        status = {}
        for row in rows:
            key = row.get("Counter") or row.get("Variable_name")
            if key:
                status[key] = row.get("Value")
        return {
            "connected": True,
            "uptime": int(status.get("uptime") or 0),
            "queries": int(status.get("queries") or 0),
            "avg_query_time": float(status.get("avg_query_wall") or 0),
        }

    def query(self, q: str, filters: dict | None = None) -> dict:
        """Full-text search against ``self.index`` with attribute filters.

        Accepts the same ``filters`` keys as the relational backend and
        returns the same ``{"results", "total", "query_time"}`` shape. Every
        word of ``q`` is quoted, so punctuation never reaches the Sphinx
        query parser.
        """
        filters = filters or {}
        limit = int(filters.get("limit", 20))
        offset = int(filters.get("offset", 0))

        match = build_match_expression(q)
        if not match:
            return {"results": [], "total": 0, "query_time": 0}

        clauses, params = ["MATCH(%s)"], [match]
        if filters.get("year") is not None:
            clauses.append("year = %s")
            params.append(int(filters["year"]))
        if filters.get("work_type"):
            clauses.append("work_type = %s")
            params.append(filters["work_type"])
        if filters.get("language") and filters["language"] != "unknown":
            clauses.append("language = %s")
            params.append(filters["language"])

        sql = (
            f"SELECT *, WEIGHT() AS relevance_score FROM {self.index} "
            f"WHERE {' AND '.join(clauses)} "
            f"ORDER BY relevance_score DESC, year DESC "
            f"LIMIT %s, %s"
        )
        params.extend([offset, limit])

        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span(
            "sphinx query",
            kind=SpanKind.CLIENT,
            attributes={
                "db.system": "sphinx",
                "db.operation": "SELECT",
                "db.query.limit": limit,
                "db.query.offset": offset,
            },
        ) as span:
            start = time.perf_counter()
            conn = self._search_conn()
            rows = conn.execute(sql, tuple(params))
            meta = conn.execute("SHOW META")
            elapsed_ms = int((time.perf_counter() - start) * 1000)

            total = len(rows)
            for row in meta:
                if row.get("Variable_name") == "total_found":
                    total = int(row.get("Value") or total)

            results = []
            for row in rows:
                item = {name: row.get(name) for name in RESULT_FIELDS}
                item["peer_reviewed"] = bool(item["peer_reviewed"])
                item["relevance_score"] = row.get("relevance_score")
                results.append(item)

            span.set_attribute("db.result_count", len(results))
            return {"results": results, "total": total, "query_time": elapsed_ms}
