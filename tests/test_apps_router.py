"""Tests for the /api/apps endpoints.

The catalog dependency is overridden, either with a spec'd mock or with a
real CatalogService over an in-memory Notion stand-in, so no test touches
the network.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from appcatalog.config import Settings
from appcatalog.main import app
from appcatalog.models.app import ParsedAppContent
from appcatalog.models.blocks import ContentBlock
from appcatalog.routers.apps import DETAILS_CACHE_CONTROL
from appcatalog.services.catalog import CatalogService, get_catalog
from appcatalog.services.errors import NotionAPIError
from appcatalog.services.mapper import map_page_to_app_summary
from factories import FakeNotionClient, block, image, make_page, select_prop, text_prop

client = TestClient(app)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Clear the slowapi in-memory counter before every test."""
    app.state.limiter._storage.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def catalog():
    mock = MagicMock(spec=CatalogService)
    app.dependency_overrides[get_catalog] = lambda: mock
    return mock


def _app(slug="fittrack", page_id="p1", **props):
    return map_page_to_app_summary(make_page(page_id, slug.title(), Slug=text_prop(slug), **props))


class TestHealth:
    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200


class TestListApps:
    def test_returns_summaries(self, catalog):
        catalog.get_apps.return_value = [_app(Category=select_prop("Health"))]
        response = client.get("/api/apps")
        assert response.status_code == 200
        body = response.json()
        assert body[0]["slug"] == "fittrack"
        assert body[0]["category"] == "Health"
        assert body[0]["platform_emoji"] == "📱"

    def test_featured_filter(self, catalog):
        catalog.get_featured_apps.return_value = [_app("budgetly", "p2")]
        response = client.get("/api/apps", params={"featured": "true"})
        assert [a["slug"] for a in response.json()] == ["budgetly"]
        catalog.get_apps.assert_not_awaited()

    def test_categories_and_slugs(self, catalog):
        catalog.get_app_categories.return_value = ["All", "Health"]
        catalog.get_app_slugs.return_value = ["fittrack"]
        assert client.get("/api/apps/categories").json() == ["All", "Health"]
        assert client.get("/api/apps/slugs").json() == ["fittrack"]


class TestGetApp:
    def test_found(self, catalog):
        catalog.get_app_by_slug.return_value = _app()
        response = client.get("/api/apps/fittrack")
        assert response.status_code == 200
        assert response.json()["notion_page_id"] == "p1"
        catalog.get_app_by_slug.assert_awaited_once_with("fittrack")

    def test_missing_is_404(self, catalog):
        catalog.get_app_by_slug.return_value = None
        assert client.get("/api/apps/nope").status_code == 404


class TestDetails:
    def test_page_id_skips_slug_lookup(self, catalog):
        catalog.get_parsed_content.return_value = ParsedAppContent(
            page_blocks=[ContentBlock(type="paragraph", value="Hello")]
        )
        response = client.get("/api/apps/anything/details", params={"pageId": "p9"})
        assert response.status_code == 200
        assert response.json() == {"blocks": [{"type": "paragraph", "value": "Hello"}]}
        assert response.headers["Cache-Control"] == DETAILS_CACHE_CONTROL
        catalog.get_parsed_content.assert_awaited_once_with("p9")
        catalog.get_app_by_slug.assert_not_awaited()

    def test_resolves_page_from_slug(self, catalog):
        catalog.get_app_by_slug.return_value = _app(page_id="p1")
        catalog.get_parsed_content.return_value = ParsedAppContent()
        response = client.get("/api/apps/fittrack/details")
        assert response.json() == {"blocks": []}
        catalog.get_parsed_content.assert_awaited_once_with("p1")

    def test_unknown_app_is_empty_without_cache_header(self, catalog):
        catalog.get_app_by_slug.return_value = None
        response = client.get("/api/apps/nope/details")
        assert response.status_code == 200
        assert response.json() == {"blocks": []}
        assert "Cache-Control" not in response.headers

    def test_failure_is_empty(self, catalog):
        catalog.get_parsed_content.side_effect = NotionAPIError("down", status=503)
        response = client.get("/api/apps/x/details", params={"pageId": "p1"})
        assert response.status_code == 200
        assert response.json() == {"blocks": []}


class TestDetailsEndToEnd:
    def test_nested_blocks_serialize_without_empty_fields(self):
        notion = FakeNotionClient(
            children={
                "p1": [
                    block("heading_1", "Opportunities", id="h1", has_children=True),
                    image("https://img/shot.png"),
                    block("paragraph"),
                ],
                "h1": [block("bulleted_list_item", "Launch on Android", href="https://play.google.com/x")],
            },
        )
        service = CatalogService(notion, "db-1", Settings(notion_api_key="k", notion_apps_db_id="db-1"))
        app.dependency_overrides[get_catalog] = lambda: service

        response = client.get("/api/apps/fittrack/details", params={"pageId": "p1"})
        assert response.json() == {
            "blocks": [
                {
                    "type": "heading_1",
                    "value": "Opportunities",
                    "children": [
                        {
                            "type": "bulleted_list_item",
                            "value": "Launch on Android",
                            "links": ["https://play.google.com/x"],
                        }
                    ],
                },
                {"type": "image", "src": "https://img/shot.png"},
            ]
        }
