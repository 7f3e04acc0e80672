"""Tests for the Supabase helpers in app.services.supabase."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from postgrest.exceptions import APIError

from app.config import ConfigurationError, Settings
from app.services.supabase import SupabaseError, create_db, execute, execute_all


def _run(coro):
    return asyncio.run(coro)


class _Failing:
    def __init__(self, exc):
        self.exc = exc

    async def execute(self):
        raise self.exc


# ---------------------------------------------------------------------------
# Client creation
# ---------------------------------------------------------------------------

class TestCreateDb:
    def test_uses_project_settings(self):
        settings = Settings(supabase_url="https://project.supabase.co", supabase_service_key="service-key")
        with patch("app.services.supabase.acreate_client", AsyncMock(return_value="db")) as create:
            assert _run(create_db(settings)) == "db"
        create.assert_awaited_once_with("https://project.supabase.co", "service-key")

    def test_missing_settings(self):
        with patch("app.services.supabase.acreate_client", AsyncMock()) as create:
            with pytest.raises(ConfigurationError):
                _run(create_db(Settings()))
        create.assert_not_called()


# ---------------------------------------------------------------------------
# Query execution
# ---------------------------------------------------------------------------

class TestExecute:
    def test_returns_rows(self, fake_db):
        db = fake_db(articles=[[{"slug": "hello"}]])
        assert _run(execute(db.table("articles").select("slug"))) == [{"slug": "hello"}]

    def test_empty_result(self, fake_db):
        assert _run(execute(fake_db().table("articles").select("slug"))) == []

    def test_api_error_becomes_supabase_error(self):
        error = APIError({"message": "JWT expired", "code": "PGRST301"})
        with pytest.raises(SupabaseError, match="PGRST301 error: JWT expired"):
            _run(execute(_Failing(error)))

    def test_transport_error_becomes_supabase_error(self):
        error = httpx.ConnectError("connection refused")
        with pytest.raises(SupabaseError, match="connection refused"):
            _run(execute(_Failing(error)))


class TestExecuteAll:
    def test_pages_until_short_page(self, fake_db):
        db = fake_db(articles=[[{"n": 0}, {"n": 1}], [{"n": 2}, {"n": 3}], [{"n": 4}]])
        rows = _run(execute_all(lambda: db.table("articles").select("n"), page_size=2))

        assert [r["n"] for r in rows] == [0, 1, 2, 3, 4]
        assert [q.args_of("range") for q in db.queries] == [[(0, 1)], [(2, 3)], [(4, 5)]]

    def test_exact_multiple_needs_one_empty_page(self, fake_db):
        db = fake_db(articles=[[{"n": 0}, {"n": 1}]])
        rows = _run(execute_all(lambda: db.table("articles").select("n"), page_size=2))
        assert len(rows) == 2
        assert len(db.queries) == 2
