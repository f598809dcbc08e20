"""Tests for the SphinxQL client (mysql.connector is mocked)."""

import threading
from unittest.mock import MagicMock, patch

import pytest
from mysql.connector import errors as mysql_errors

from search_api.config import RollbackThresholds
from search_api.errors import BackendUnavailableError
from search_api.failover.probe import HealthProbe
from search_api.sphinx_client import SphinxSearchClient


def _connection(results_by_sql):
    """Mock connection whose cursor returns rows keyed by SQL prefix."""
    conn = MagicMock()
    conn.is_connected.return_value = True
    cursor = conn.cursor.return_value
    executed = []

    def execute(sql, params=()):
        executed.append((sql, params))
        for prefix, rows in results_by_sql.items():
            if sql.startswith(prefix):
                cursor.fetchall.return_value = rows
                return
        cursor.fetchall.return_value = []

    cursor.execute.side_effect = execute
    conn.executed = executed
    return conn


@pytest.fixture
def connect():
    with patch("search_api.sphinx_client.mysql.connector.connect") as mock_connect:
        yield mock_connect


class TestStatusProbe:
    def test_summarises_show_status(self, connect):
        connect.return_value = _connection({
            "SHOW STATUS": [
                {"Counter": "uptime", "Value": "3600"},
                {"Counter": "queries", "Value": "42"},
                {"Counter": "avg_query_wall", "Value": "0.004"},
            ]
        })
        status = SphinxSearchClient().status_probe()
        assert status == {
            "connected": True,
            "uptime": 3600,
            "queries": 42,
            "avg_query_time": 0.004,
        }

    def test_connection_refused_becomes_backend_unavailable(self, connect):
        connect.side_effect = mysql_errors.InterfaceError("Can't connect to MySQL server")
        with pytest.raises(BackendUnavailableError) as exc_info:
            SphinxSearchClient().status_probe()
        assert exc_info.value.backend == "sphinx"

    def test_connection_reopened_after_failure(self, connect):
        broken = _connection({})
        broken.cursor.return_value.execute.side_effect = mysql_errors.OperationalError("Lost connection")
        healthy = _connection({"SHOW STATUS": [{"Counter": "uptime", "Value": "1"}]})
        connect.side_effect = [broken, healthy]

        client = SphinxSearchClient()
        with pytest.raises(BackendUnavailableError):
            client.status_probe()
        assert client.status_probe()["uptime"] == 1
        broken.close.assert_called_once()


class TestQuery:
    ROW = {
        "id": 7, "title": "Deep learning", "subtitle": None, "abstract": "a",
        "author_string": "Silva, A.", "venue_name": None, "doi": None,
        "year": 2021, "work_type": "ARTICLE", "language": "en",
        "peer_reviewed": 1, "relevance_score": 1650,
    }

    def test_returns_results_and_total(self, connect):
        conn = _connection({
            "SELECT": [self.ROW],
            "SHOW META": [{"Variable_name": "total_found", "Value": "31"}],
        })
        connect.return_value = conn

        result = SphinxSearchClient(index="works").query("deep learning", {"limit": 1})

        assert result["total"] == 31
        assert result["results"][0]["title"] == "Deep learning"
        assert result["results"][0]["peer_reviewed"] is True
        assert result["results"][0]["relevance_score"] == 1650
        sql, params = conn.executed[0]
        assert "FROM works" in sql
        assert "MATCH(%s)" in sql
        assert params == ('"deep" "learning"', 0, 1)

    def test_filters_become_where_clauses(self, connect):
        conn = _connection({})
        connect.return_value = conn

        SphinxSearchClient().query(
            "graphs",
            {"year": 2020, "work_type": "ARTICLE", "language": "unknown", "limit": 5, "offset": 10},
        )

        sql, params = conn.executed[0]
        assert "year = %s" in sql
        assert "work_type = %s" in sql
        assert "language = %s" not in sql
        assert params == ('"graphs"', 2020, "ARTICLE", 10, 5)

    def test_query_syntax_is_neutralised(self, connect):
        conn = _connection({})
        connect.return_value = conn

        SphinxSearchClient().query('deep "learning @title -x | y/2 !z')

        sql, params = conn.executed[0]
        assert params[0] == '"deep" "learning" "title" "x" "y" "2" "z"'

    def test_query_without_words_skips_engine(self, connect):
        result = SphinxSearchClient().query(' "" -- ')
        assert result == {"results": [], "total": 0, "query_time": 0}
        connect.assert_not_called()

    def test_programming_error_propagates(self, connect):
        conn = _connection({})
        conn.cursor.return_value.execute.side_effect = mysql_errors.ProgrammingError("syntax error")
        connect.return_value = conn

        with pytest.raises(mysql_errors.ProgrammingError):
            SphinxSearchClient().query("deep")


def _slow_search_connection(entered: threading.Event, release: threading.Event, barrier=None):
    """Connection whose SELECT blocks until ``release`` is set."""
    conn = MagicMock()
    conn.is_connected.return_value = True
    cursor = conn.cursor.return_value

    def execute(sql, params=()):
        if sql.startswith("SELECT"):
            entered.set()
            if barrier is not None:
                barrier.wait(2)
            release.wait(5)
            cursor.fetchall.return_value = []
        elif sql.startswith("SHOW STATUS"):
            cursor.fetchall.return_value = [{"Counter": "uptime", "Value": "10"}]
        else:
            cursor.fetchall.return_value = []

    cursor.execute.side_effect = execute
    return conn


class TestConnectionIsolation:
    def test_slow_search_does_not_delay_health_check(self, connect):
        entered, release = threading.Event(), threading.Event()
        connect.side_effect = lambda **kwargs: _slow_search_connection(entered, release)
        client = SphinxSearchClient()

        search = threading.Thread(target=client.query, args=("deep learning",))
        search.start()
        try:
            assert entered.wait(2)
            result = HealthProbe(client, timeout=2).probe()
        finally:
            release.set()
            search.join(5)

        assert result.succeeded is True
        assert result.latency_ms < RollbackThresholds().max_avg_latency_ms

    def test_concurrent_searches_use_separate_connections(self, connect):
        entered, release = threading.Event(), threading.Event()
        barrier = threading.Barrier(2)
        connect.side_effect = lambda **kwargs: _slow_search_connection(entered, release, barrier)
        client = SphinxSearchClient()
        errors = []

        def search():
            try:
                client.query("deep learning")
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=search) for _ in range(2)]
        for t in threads:
            t.start()
        release.set()
        for t in threads:
            t.join(5)

        # both searches reached the barrier at once, so neither waited on the other
        assert errors == []
        assert connect.call_count == 2

    def test_close_closes_every_connection(self, connect):
        opened = []

        def open_connection(**kwargs):
            conn = _connection({})
            opened.append(conn)
            return conn

        connect.side_effect = open_connection
        client = SphinxSearchClient()
        client.status_probe()
        client.query("deep")

        client.close()

        assert len(opened) == 2
        for conn in opened:
            conn.close.assert_called_once()
