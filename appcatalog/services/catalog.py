"""Catalog operations on top of the Notion database, with layered caching.

Every public coroutine degrades instead of raising: an upstream failure
yields the last known value when there is one, and an empty result otherwise.
"""

import logging
import time
from functools import lru_cache
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from appcatalog.config import Settings, get_settings
from appcatalog.models.app import AppSummary, ParsedAppContent
from appcatalog.services.blocks import parse_page_blocks
from appcatalog.services.cache import GLOBAL_KEY, TTLCache
from appcatalog.services.errors import NotionConfigError
from appcatalog.services.extractor import extract_parsed_content
from appcatalog.services.mapper import get_app_slug, is_sold_page, map_page_to_app_summary
from appcatalog.services.notion import NotionClient, is_full_page, query_all_pages, with_retry

logger = logging.getLogger(__name__)

Page = Dict[str, Any]

FEATURED_FALLBACK_COUNT = 6
SLUG_QUERY_PAGE_SIZE = 5
ALL_CATEGORIES = "All"


class DatabaseConfig(NamedTuple):
    """What the catalog needs to know about the database schema."""

    filter_property_ids: List[str]
    slug_property_type: Optional[str] = None


EMPTY_DATABASE_CONFIG = DatabaseConfig(filter_property_ids=[])


def _slug_filter(slug: str, property_type: Optional[str]) -> Optional[Dict[str, Any]]:
    if property_type in ("title", "rich_text"):
        return {"property": "Slug", property_type: {"equals": slug}}
    return None


class CatalogService:
    def __init__(
        self,
        client: Optional[NotionClient],
        database_id: Optional[str],
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = settings or Settings()
        self._client = client
        self._database_id = database_id
        self._attempts = settings.notion_max_attempts
        self._concurrency = settings.block_traversal_concurrency
        self._missing_app_ttl = settings.missing_app_ttl

        self._database_config: TTLCache[DatabaseConfig] = TTLCache(
            "database config", settings.database_config_ttl, clock
        )
        self._pages: TTLCache[List[Page]] = TTLCache("pages", settings.pages_ttl, clock)
        self._summaries: TTLCache[List[AppSummary]] = TTLCache("summaries", settings.summaries_ttl, clock)
        self._parsed_content: TTLCache[ParsedAppContent] = TTLCache(
            "parsed content", settings.parsed_content_ttl, clock
        )
        self._app_detail: TTLCache[Optional[AppSummary]] = TTLCache(
            "app detail", settings.summaries_ttl, clock
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogService":
        client = None
        if settings.notion_configured:
            client = NotionClient(
                settings.notion_api_key,
                base_url=settings.notion_api_base_url,
                notion_version=settings.notion_version,
                timeout=settings.notion_timeout,
            )
        else:
            logger.warning("Missing NOTION_API_KEY or NOTION_APPS_DB_ID; the catalog will be empty")
        return cls(client, settings.notion_apps_db_id, settings)

    @property
    def configured(self) -> bool:
        return self._client is not None and bool(self._database_id)

    def _require_client(self) -> NotionClient:
        if self._client is None:
            raise NotionConfigError()
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Database schema
    # ------------------------------------------------------------------

    async def get_database_config(self) -> DatabaseConfig:
        entry = self._database_config.fresh()
        if entry is not None:
            return entry.value
        if not self.configured:
            return EMPTY_DATABASE_CONFIG
        return await self._database_config.coalesce(GLOBAL_KEY, self._load_database_config)

    async def _load_database_config(self) -> DatabaseConfig:
        try:
            database = await with_retry(
                self._require_client().retrieve_database, self._database_id, attempts=self._attempts
            )
        except Exception:
            logger.exception("Failed to read Notion database schema")
            return EMPTY_DATABASE_CONFIG

        properties = database.get("properties") or {}
        config = DatabaseConfig(
            filter_property_ids=[p["id"] for p in properties.values() if p and p.get("id")],
            slug_property_type=(properties.get("Slug") or {}).get("type"),
        )
        self._database_config.set(GLOBAL_KEY, config)
        return config

    # ------------------------------------------------------------------
    # Rows and summaries
    # ------------------------------------------------------------------

    async def get_pages(self) -> List[Page]:
        """Every full page of the apps database."""
        entry = self._pages.fresh()
        if entry is not None:
            return entry.value
        if not self.configured:
            logger.warning("Notion is not configured; returning an empty apps list")
            return []
        return await self._pages.coalesce(GLOBAL_KEY, self._load_pages)

    async def _load_pages(self) -> List[Page]:
        config = await self.get_database_config()
        try:
            pages = await query_all_pages(
                self._require_client(),
                self._database_id,
                filter_properties=config.filter_property_ids,
                attempts=self._attempts,
            )
        except Exception:
            logger.exception("Failed to fetch apps from Notion")
            stale = self._pages.stale()
            return stale.value if stale is not None and stale.value else []

        logger.info("Fetched %d app pages from Notion", len(pages))
        self._pages.set(GLOBAL_KEY, pages)
        return pages

    async def get_apps(self) -> List[AppSummary]:
        entry = self._summaries.fresh()
        if entry is not None:
            return entry.value
        return await self._summaries.coalesce(GLOBAL_KEY, self._load_apps)

    async def _load_apps(self) -> List[AppSummary]:
        pages = await self.get_pages()
        apps = [app for app in map(map_page_to_app_summary, pages) if app is not None]
        # Pages are only cached on a successful fetch; fallbacks stay uncached
        if self._pages.fresh() is not None:
            self._summaries.set(GLOBAL_KEY, apps)
        return apps

    async def get_app_slugs(self) -> List[str]:
        return [app.slug for app in await self.get_apps()]

    async def get_featured_apps(self) -> List[AppSummary]:
        """Featured apps, or the first few apps when none is flagged."""
        apps = await self.get_apps()
        featured = [app for app in apps if app.featured]
        return featured or apps[:FEATURED_FALLBACK_COUNT]

    async def get_app_categories(self) -> List[str]:
        categories: List[str] = []
        for app in await self.get_apps():
            if app.category and app.category not in categories:
                categories.append(app.category)
        return [ALL_CATEGORIES] + categories

    # ------------------------------------------------------------------
    # Single app
    # ------------------------------------------------------------------

    async def find_page_by_slug(self, slug: str) -> Optional[Page]:
        """Look *slug* up with a filtered query, falling back to a full scan."""
        if self.configured:
            config = await self.get_database_config()
            slug_filter = _slug_filter(slug, config.slug_property_type)
            if slug_filter is not None:
                try:
                    response = await with_retry(
                        self._require_client().query_database,
                        self._database_id,
                        page_size=SLUG_QUERY_PAGE_SIZE,
                        filter_properties=config.filter_property_ids or None,
                        filter=slug_filter,
                        attempts=self._attempts,
                    )
                except Exception as exc:
                    logger.warning("Slug query for %r failed, scanning all pages: %r", slug, exc)
                else:
                    match = next((r for r in response.get("results", []) if is_full_page(r)), None)
                    if match is not None and not is_sold_page(match):
                        return match

        pages = await self.get_pages()
        return next(
            (page for page in pages if not is_sold_page(page) and get_app_slug(page) == slug),
            None,
        )

    async def get_app_by_slug(self, slug: str) -> Optional[AppSummary]:
        entry = self._app_detail.fresh(slug)
        if entry is not None:
            return entry.value

        summaries = self._summaries.fresh()
        if summaries is not None:
            app = next((a for a in summaries.value if a.slug == slug), None)
            if app is not None:
                self._app_detail.set(slug, app)
                return app

        page = await self.find_page_by_slug(slug)
        app = map_page_to_app_summary(page) if page is not None else None
        if app is None:
            logger.info("No app found for slug %r", slug)
            self._app_detail.set(slug, None, ttl=self._missing_app_ttl)
            return None

        self._app_detail.set(slug, app)
        return app

    # ------------------------------------------------------------------
    # Page body
    # ------------------------------------------------------------------

    async def get_parsed_content(self, page_id: str) -> ParsedAppContent:
        """Fields derived from the body of *page_id*.

        An expired entry is returned as-is while a single background task
        refreshes it.
        """
        entry = self._parsed_content.fresh(page_id)
        if entry is not None:
            return entry.value

        stale = self._parsed_content.stale(page_id)
        in_flight = self._parsed_content.in_flight(page_id)
        if in_flight is not None:
            if stale is not None:
                return stale.value
            return await self._parsed_content.coalesce(page_id, lambda: self._load_parsed_content(page_id))

        if self._client is None:
            return ParsedAppContent()

        if stale is not None:
            logger.debug("Serving stale parsed content for %s while refreshing", page_id)
            self._parsed_content.start(
                page_id, lambda: self._refresh_parsed_content(page_id, stale.value)
            )
            return stale.value

        return await self._parsed_content.coalesce(page_id, lambda: self._load_parsed_content(page_id))

    async def _parse_and_cache(self, page_id: str) -> ParsedAppContent:
        page = await parse_page_blocks(self._require_client(), page_id, self._concurrency)
        content = extract_parsed_content(page)
        self._parsed_content.set(page_id, content)
        return content

    async def _load_parsed_content(self, page_id: str) -> ParsedAppContent:
        try:
            return await self._parse_and_cache(page_id)
        except Exception:
            logger.exception("Failed to parse Notion blocks for app page %s", page_id)
            return ParsedAppContent()

    async def _refresh_parsed_content(
        self, page_id: str, stale: ParsedAppContent
    ) -> ParsedAppContent:
        try:
            return await self._parse_and_cache(page_id)
        except Exception:
            logger.exception("Background refresh of page %s failed, keeping stale content", page_id)
            return stale


@lru_cache
def get_catalog() -> CatalogService:
    """Process-scoped catalog service built from the current settings."""
    return CatalogService.from_settings(get_settings())
