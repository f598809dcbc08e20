"""Tests for the SQLite FTS5 relational backend."""

import sqlite3

import pytest

import search_api.database as db_module
from search_api.database import (
    RelationalSearchClient,
    build_match_expression,
    check_connection,
    get_total_works,
    init_db,
    insert_works,
    search_works,
)
from search_api.errors import BackendUnavailableError

WORKS = [
    {
        "title": "Deep learning for citation analysis",
        "abstract": "Neural networks applied to bibliometrics.",
        "author_string": "Silva, A.",
        "year": 2021,
        "work_type": "ARTICLE",
        "language": "en",
        "peer_reviewed": True,
    },
    {
        "title": "Aprendizado profundo em bibliotecas",
        "subtitle": "deep learning na prática",
        "year": 2019,
        "work_type": "THESIS",
        "language": "pt",
    },
    {
        "title": "Graph databases",
        "abstract": "Storage engines for linked data.",
        "year": 2021,
        "work_type": "ARTICLE",
        "language": "en",
    },
]


@pytest.fixture(autouse=True)
def use_temp_db(tmp_path, monkeypatch):
    """Each test uses a fresh temporary SQLite database."""
    test_db = tmp_path / "works.db"
    monkeypatch.setattr(db_module, "DB_PATH", test_db)
    monkeypatch.setenv("DB_RESET_ON_START", "false")
    init_db()
    yield test_db


class TestBuildMatchExpression:
    def test_quotes_each_word(self):
        assert build_match_expression("deep learning") == '"deep" "learning"'

    def test_strips_fts_syntax(self):
        assert build_match_expression('title:deep -"learning" NEAR(') == '"title" "deep" "learning" "NEAR"'

    def test_no_words(self):
        assert build_match_expression("  -- ") == ""


class TestSearchWorks:
    def test_finds_matching_works(self):
        insert_works(WORKS)
        result = search_works("deep learning")
        titles = {r["title"] for r in result["results"]}
        assert titles == {
            "Deep learning for citation analysis",
            "Aprendizado profundo em bibliotecas",
        }
        assert result["total"] == 2
        assert isinstance(result["query_time"], int)

    def test_result_shape(self):
        insert_works(WORKS)
        item = search_works("citation")["results"][0]
        assert item["peer_reviewed"] is True
        assert item["author_string"] == "Silva, A."
        assert isinstance(item["relevance_score"], float)

    def test_year_filter(self):
        insert_works(WORKS)
        result = search_works("deep learning", {"year": 2019})
        assert [r["year"] for r in result["results"]] == [2019]

    def test_work_type_and_language_filters(self):
        insert_works(WORKS)
        result = search_works("deep", {"work_type": "ARTICLE", "language": "en"})
        assert result["total"] == 1
        assert result["results"][0]["language"] == "en"

    def test_unknown_language_is_ignored(self):
        insert_works(WORKS)
        assert search_works("deep", {"language": "unknown"})["total"] == 2

    def test_pagination_keeps_total(self):
        insert_works(WORKS)
        result = search_works("deep", {"limit": 1, "offset": 1})
        assert len(result["results"]) == 1
        assert result["total"] == 2

    def test_empty_query_returns_nothing(self):
        insert_works(WORKS)
        assert search_works("!!") == {"results": [], "total": 0, "query_time": 0}


class TestHelpers:
    def test_total_works(self):
        assert get_total_works() == 0
        insert_works(WORKS)
        assert get_total_works() == 3

    def test_check_connection(self):
        assert check_connection() is True

    def test_reset_on_start_drops_data(self, monkeypatch):
        insert_works(WORKS)
        monkeypatch.setenv("DB_RESET_ON_START", "true")
        init_db()
        assert get_total_works() == 0


class TestRelationalSearchClient:
    def test_query_delegates(self):
        insert_works(WORKS)
        client = RelationalSearchClient()
        assert client.name == "relational"
        assert client.query("graph")["total"] == 1

    def test_operational_error_becomes_backend_unavailable(self, monkeypatch):
        def locked(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(db_module, "search_works", locked)
        with pytest.raises(BackendUnavailableError) as exc_info:
            RelationalSearchClient().query("graph")
        assert exc_info.value.backend == "relational"
