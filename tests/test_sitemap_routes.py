"""Tests for the public sitemap endpoints and POST /sitemaps/regenerate.

Sitemap generation and search-engine pings are replaced with mocks, and the
database dependency yields a placeholder, so no network access is needed.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.dependencies import get_db
from app.main import app
from app.services.content import SectionNotFoundError
from app.services.indexing import IndexingPlan
from app.services.supabase import SupabaseError

client = TestClient(app)

_SETTINGS = Settings(
    site_base_url="https://www.example.com",
    supabase_url="https://db.example.com",
    supabase_service_key="key",
    admin_api_token="secret",
)
_AUTH = {"Authorization": "Bearer secret"}

_URLSET = (
    "<?xml version='1.0' encoding='UTF-8'?>\n"
    '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
    "<url><loc>https://www.example.com/</loc></url>"
    "<url><loc>https://www.example.com/about</loc></url>"
    "</urlset>"
)


async def _fake_db():
    yield object()


@pytest.fixture(autouse=True)
def overrides():
    """Clear rate limits and swap in test settings and a placeholder database."""
    app.state.limiter._storage.reset()
    app.dependency_overrides[get_settings] = lambda: _SETTINGS
    app.dependency_overrides[get_db] = _fake_db
    yield
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# GET sitemaps
# ---------------------------------------------------------------------------

class TestServeSitemaps:
    @pytest.mark.parametrize(
        "path, kind",
        [
            ("/sitemap.xml", "main"),
            ("/sitemap-index.xml", "index"),
            ("/news-sitemap.xml", "news"),
            ("/web-stories-sitemap.xml", "webstories"),
            ("/sitemap-tools.xml", "tools"),
        ],
    )
    def test_xml_response_and_headers(self, path, kind):
        with patch(
            "app.routers.sitemaps.generate_sitemap", new=AsyncMock(return_value=_URLSET)
        ) as mock_gen:
            response = client.get(path)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/xml; charset=utf-8"
        assert response.headers["cache-control"] == (
            "public, max-age=3600, s-maxage=3600, stale-while-revalidate"
        )
        assert "<urlset" in response.text
        assert mock_gen.call_args.args[0] == kind

    def test_missing_section_returns_404(self):
        with patch(
            "app.routers.sitemaps.generate_sitemap",
            new=AsyncMock(side_effect=SectionNotFoundError("Section 'web3forindia' not found")),
        ):
            response = client.get("/web3-sitemap.xml")
        assert response.status_code == 404
        assert "web3forindia" in response.json()["detail"]

    def test_database_error_returns_502(self):
        with patch(
            "app.routers.sitemaps.generate_sitemap",
            new=AsyncMock(side_effect=SupabaseError("down")),
        ):
            response = client.get("/upsc-sitemap.xml")
        assert response.status_code == 502

    def test_public_routes_need_no_token(self):
        with patch("app.routers.sitemaps.generate_sitemap", new=AsyncMock(return_value=_URLSET)):
            assert client.get("/videos-sitemap.xml").status_code == 200


class TestStaticSitemaps:
    """Sitemaps built from constants are served even when Supabase is not configured."""

    @pytest.fixture(autouse=True)
    def no_database(self):
        app.dependency_overrides.pop(get_db)
        app.dependency_overrides[get_settings] = lambda: Settings(site_base_url="https://www.example.com")

    @pytest.mark.parametrize("path", ["/sitemap-tools.xml", "/sitemap-index.xml"])
    def test_served_without_database(self, path):
        response = client.get(path)
        assert response.status_code == 200
        assert "https://www.example.com/" in response.text

    def test_database_sitemaps_still_need_configuration(self):
        response = client.get("/sitemap.xml")
        assert response.status_code == 500
        assert response.json()["detail"] == "Server configuration error"


# ---------------------------------------------------------------------------
# POST /sitemaps/regenerate
# ---------------------------------------------------------------------------

class TestRegenerate:
    def test_requires_admin_token(self):
        response = client.post("/sitemaps/regenerate", json={})
        assert response.status_code == 401

    def test_wrong_token_rejected(self):
        response = client.post(
            "/sitemaps/regenerate", json={}, headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 401

    def test_non_ascii_token_rejected(self):
        response = client.post(
            "/sitemaps/regenerate",
            json={},
            headers={"Authorization": "Bearer caf\u00e9".encode("utf-8")},
        )
        assert response.status_code == 401

    def test_single_type_without_submission(self):
        with patch(
            "app.routers.sitemaps.generate_sitemap", new=AsyncMock(return_value=_URLSET)
        ), patch("app.routers.sitemaps.ping_all", new=AsyncMock()) as mock_ping:
            response = client.post(
                "/sitemaps/regenerate",
                json={"sitemap_type": "news", "submit_to_search_engines": False},
                headers=_AUTH,
            )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["sitemaps"] == {"news": {"status": "success", "url_count": 2, "error": None}}
        assert body["submitted"] == []
        mock_ping.assert_not_called()

    def test_all_types_report_failures_and_ping(self):
        async def fake_generate(kind, db, settings, now=None):
            if kind == "upsc":
                raise SectionNotFoundError("Section 'upscbriefs' not found")
            return _URLSET

        with patch("app.routers.sitemaps.generate_sitemap", new=fake_generate), patch(
            "app.routers.sitemaps.ping_all", new=AsyncMock(return_value={})
        ) as mock_ping:
            response = client.post("/sitemaps/regenerate", json={}, headers=_AUTH)

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["sitemaps"]["upsc"]["status"] == "error"
        assert body["sitemaps"]["main"]["url_count"] == 2
        assert body["submitted"][0] == "https://www.example.com/sitemap-index.xml"
        assert len(body["submitted"]) == 8
        mock_ping.assert_called_once()

    def test_article_indexing_scheduled(self):
        plan = IndexingPlan(
            urls=["https://www.example.com/article/a"],
            action_type="instant_indexing",
            service_name="google_indexing_api",
            sitemap="https://www.example.com/sitemap.xml",
            main_url="https://www.example.com/article/a",
            target_id="a1",
        )
        with patch(
            "app.routers.sitemaps.generate_sitemap", new=AsyncMock(return_value=_URLSET)
        ), patch("app.routers.sitemaps.ping_all", new=AsyncMock()), patch(
            "app.routers.sitemaps.plan_page_indexing", new=AsyncMock(return_value=plan)
        ), patch(
            "app.routers.sitemaps.run_page_indexing", new=AsyncMock()
        ) as mock_run:
            response = client.post(
                "/sitemaps/regenerate",
                json={"sitemap_type": "main", "article_id": "a1"},
                headers=_AUTH,
            )

        assert response.status_code == 200
        mock_run.assert_called_once_with(plan, _SETTINGS)


class TestHealthCheck:
    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert "message" in response.json()
