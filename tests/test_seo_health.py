"""Tests for the SEO health checks in app.services.seo_health and POST /seo/scan."""

import asyncio
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.dependencies import get_db
from app.main import app
from app.models.content import Article
from app.services.fetcher import FetchedPage
from app.services.seo_health import (
    META_TITLE_MAX,
    MIN_CONTENT_CHARS,
    check_article,
    check_live_page,
    scan_seo_health,
)
from app.services.supabase import SupabaseError

_BASE = "https://www.example.com"
_SETTINGS = Settings(
    site_base_url=_BASE,
    supabase_url="https://db.example.com",
    supabase_service_key="key",
    admin_api_token="secret",
)
_NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
_URL = f"{_BASE}/article/healthy"
_BODY = "<p>" + "word " * 200 + "</p>"


def _healthy(**overrides) -> Article:
    values = dict(
        id="a1",
        slug="healthy",
        title="Healthy article",
        content=_BODY,
        canonical_url=_URL,
        meta_title="Healthy article",
        meta_description="A short description",
        seo_keywords=["health"],
        published_at=_NOW - timedelta(days=3),
    )
    values.update(overrides)
    return Article(**values)


def _types(issues):
    return [issue.issue_type for issue in issues]


# ---------------------------------------------------------------------------
# Article checks
# ---------------------------------------------------------------------------

class TestCheckArticle:
    def test_healthy_article_has_no_issues(self):
        report = check_article(_healthy(), _URL, _NOW)
        assert report.issues == []
        assert report.fixes == {}
        assert report.request_indexing is False

    def test_missing_metadata_is_fixed(self):
        article = _healthy(
            canonical_url=None,
            meta_title=None,
            meta_description=None,
            title="T" * 80,
            content="<h1>Intro</h1>  <p>" + "text " * 120 + "</p>",
        )
        report = check_article(article, _URL, _NOW)

        assert _types(report.issues) == [
            "missing_canonical",
            "missing_meta_title",
            "missing_meta_description",
        ]
        assert all(issue.auto_fixed for issue in report.issues)
        assert all(issue.severity == "critical" for issue in report.issues)
        assert report.fixes["canonical_url"] == _URL
        assert len(report.fixes["meta_title"]) == META_TITLE_MAX
        assert report.fixes["meta_title"].endswith("...")
        assert report.fixes["meta_description"].startswith("Intro text text")
        assert len(report.fixes["meta_description"]) == 160

    def test_generated_description_decodes_entities(self):
        article = _healthy(meta_description=None, content="<p>Tom &amp; Jerry&nbsp;return</p>" + _BODY)
        report = check_article(article, _URL, _NOW)
        assert report.fixes["meta_description"].startswith("Tom & Jerry return word")

    def test_canonical_mismatch_requests_indexing(self):
        report = check_article(_healthy(canonical_url=f"{_BASE}/article/old"), _URL, _NOW)
        assert _types(report.issues) == ["duplicate_canonical"]
        assert report.request_indexing is True

    def test_canonical_comparison_ignores_case_and_trailing_slash(self):
        report = check_article(_healthy(canonical_url=_URL.upper() + "/"), _URL, _NOW)
        assert report.issues == []

    def test_warnings_are_not_fixed(self):
        article = _healthy(meta_title="x" * 61, meta_description="y" * 161, seo_keywords=[])
        report = check_article(article, _URL, _NOW)
        assert _types(report.issues) == [
            "meta_title_too_long",
            "meta_description_too_long",
            "missing_seo_keywords",
        ]
        assert report.fixes == {}

    def test_short_content_counts_text_only(self):
        content = "<div>" + "a" * (MIN_CONTENT_CHARS - 1) + "</div>"
        report = check_article(_healthy(content=content), _URL, _NOW)
        [issue] = report.issues
        assert issue.issue_type == "short_content"
        assert issue.notes == f"Content is only {MIN_CONTENT_CHARS - 1} characters."

    def test_stale_and_fresh(self):
        stale = check_article(_healthy(published_at=_NOW - timedelta(days=30)), _URL, _NOW)
        assert _types(stale.issues) == ["stale_content"]
        assert stale.issues[0].severity == "info"

        fresh = check_article(_healthy(published_at=_NOW - timedelta(hours=5)), _URL, _NOW)
        assert fresh.issues == []
        assert fresh.request_indexing is True


# ---------------------------------------------------------------------------
# Live page checks
# ---------------------------------------------------------------------------

def _page(html, status=200, location=None):
    return FetchedPage(status, html, location)


class TestCheckLivePage:
    def test_redirect(self):
        issues = check_live_page(_URL, _page("", 301, f"{_BASE}/new"))
        assert _types(issues) == ["page_with_redirect"]
        assert f"{_BASE}/new" in issues[0].notes

    def test_soft_404(self):
        [issue] = check_live_page(_URL, _page("<html><body>Not here</body></html>"))
        assert issue.issue_type == "soft_404"
        assert issue.severity == "critical"

    def test_noindex_and_canonical_mismatch(self):
        html = (
            "<html><head>"
            '<meta name="robots" content="noindex, follow">'
            '<link rel="canonical" href="/article/other">'
            "</head><body>" + "x" * 600 + "</body></html>"
        )
        issues = check_live_page(_URL, _page(html), "a1")
        assert _types(issues) == ["not_indexed_intentionally", "page_canonical_mismatch"]
        assert f"{_BASE}/article/other" in issues[1].notes
        assert all(issue.article_id == "a1" for issue in issues)

    def test_og_url_alone_is_not_a_canonical_mismatch(self):
        html = (
            "<html><head>"
            '<meta property="og:url" content="https://cdn.example.net/share/healthy">'
            "</head><body>" + "x" * 600 + "</body></html>"
        )
        assert check_live_page(_URL, _page(html)) == []

    def test_error_status_is_ignored(self):
        assert check_live_page(_URL, _page("", 500)) == []


# ---------------------------------------------------------------------------
# Full scan
# ---------------------------------------------------------------------------

def _scan(articles, update=None):
    targets = {
        "clear_stale_seo_issues": AsyncMock(),
        "fetch_articles_for_seo": AsyncMock(return_value=articles),
        "update_article": update or AsyncMock(),
        "insert_seo_issue": AsyncMock(),
        "insert_autofix_verification": AsyncMock(),
        "submit_to_google_indexing": AsyncMock(return_value=True),
    }
    with ExitStack() as stack:
        for name, mock in targets.items():
            stack.enter_context(patch(f"app.services.seo_health.{name}", mock))
        summary = asyncio.run(
            scan_seo_health(object(), object(), _SETTINGS, fetch_pages=False, now=_NOW)
        )
    return summary, targets


class TestScan:
    def test_summary_and_records(self):
        broken = _healthy(id="a2", slug="broken", canonical_url=None, seo_keywords=None)
        summary, mocks = _scan([_healthy(), broken])

        assert summary == {
            "total_issues": 2,
            "critical": 1,
            "warnings": 1,
            "info": 0,
            "auto_fixed": 1,
        }
        mocks["update_article"].assert_awaited_once()
        assert mocks["update_article"].call_args.args[1:] == (
            "a2",
            {"canonical_url": f"{_BASE}/article/broken"},
        )
        rows = [c.args[1] for c in mocks["insert_seo_issue"].call_args_list]
        assert rows[0]["status"] == "resolved"
        assert rows[0]["resolution_status"] == "auto_fixed"
        assert rows[1]["status"] == "open"
        verification = mocks["insert_autofix_verification"].call_args.args[1]
        assert verification["fix_action"] == "Set canonical URL to current page URL"
        assert verification["internal_status"] == "pending"

    def test_failed_fix_leaves_issue_open(self):
        broken = _healthy(canonical_url=None)
        summary, mocks = _scan([broken], update=AsyncMock(side_effect=SupabaseError("denied")))

        assert summary["auto_fixed"] == 0
        row = mocks["insert_seo_issue"].call_args.args[1]
        assert row["status"] == "open"
        mocks["insert_autofix_verification"].assert_not_called()

    def test_fresh_article_is_submitted_for_indexing(self):
        summary, mocks = _scan([_healthy(published_at=_NOW - timedelta(hours=2))])
        assert summary["total_issues"] == 0
        assert mocks["submit_to_google_indexing"].call_args.args[2] == _URL


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

client = TestClient(app)


async def _fake_db():
    yield object()


@pytest.fixture
def overrides():
    app.state.limiter._storage.reset()
    app.dependency_overrides[get_settings] = lambda: _SETTINGS
    app.dependency_overrides[get_db] = _fake_db
    yield
    app.dependency_overrides.clear()


@pytest.mark.usefixtures("overrides")
class TestScanEndpoint:
    def test_scan(self):
        summary = {"total_issues": 4, "critical": 1, "warnings": 2, "info": 1, "auto_fixed": 1}
        with patch("app.routers.seo.scan_seo_health", AsyncMock(return_value=summary)) as scan:
            response = client.post(
                "/seo/scan", json={"fetch_pages": False}, headers={"Authorization": "Bearer secret"}
            )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "SEO scan complete. Found 4 issues."
        assert body["auto_fixed"] == 1
        assert scan.call_args.kwargs["fetch_pages"] is False

    def test_database_error(self):
        with patch("app.routers.seo.scan_seo_health", AsyncMock(side_effect=SupabaseError("x"))):
            response = client.post("/seo/scan", json={}, headers={"Authorization": "Bearer secret"})
        assert response.status_code == 502
