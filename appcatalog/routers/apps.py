import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from appcatalog.models.app import AppSummary
from appcatalog.models.response import DetailsResponse
from appcatalog.services.catalog import CatalogService, get_catalog

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/api/apps", tags=["apps"])

DETAILS_CACHE_CONTROL = "public, max-age=300, stale-while-revalidate=86400"


@router.get("", response_model=List[AppSummary], summary="List catalog apps")
@limiter.limit("60/minute")
async def list_apps(
    request: Request,
    featured: bool = False,
    catalog: CatalogService = Depends(get_catalog),
) -> List[AppSummary]:
    """Return every app that is not sold.

    With ``featured=true`` only the featured apps are returned, or the first
    few apps when none is flagged.
    """
    if featured:
        return await catalog.get_featured_apps()
    return await catalog.get_apps()


@router.get("/categories", response_model=List[str], summary="List app categories")
@limiter.limit("60/minute")
async def list_categories(
    request: Request, catalog: CatalogService = Depends(get_catalog)
) -> List[str]:
    return await catalog.get_app_categories()


@router.get("/slugs", response_model=List[str], summary="List app slugs")
@limiter.limit("60/minute")
async def list_slugs(request: Request, catalog: CatalogService = Depends(get_catalog)) -> List[str]:
    return await catalog.get_app_slugs()


@router.get("/{slug}", response_model=AppSummary, summary="Get one app by slug")
@limiter.limit("60/minute")
async def get_app(
    request: Request, slug: str, catalog: CatalogService = Depends(get_catalog)
) -> AppSummary:
    app = await catalog.get_app_by_slug(slug)
    if app is None:
        raise HTTPException(status_code=404, detail=f"No app found for slug '{slug}'.")
    return app


@router.get(
    "/{slug}/details",
    response_model=DetailsResponse,
    response_model_exclude_none=True,
    summary="Get the normalized page body of an app",
)
@limiter.limit("30/minute")
async def get_app_details(
    request: Request,
    response: Response,
    slug: str,
    page_id: Optional[str] = Query(default=None, alias="pageId"),
    catalog: CatalogService = Depends(get_catalog),
) -> DetailsResponse:
    """Return the content blocks of an app page.

    ``pageId`` skips the slug lookup. Failures and unknown apps yield an
    empty block list rather than an error.
    """
    logger.info("Details request received", extra={"slug": slug, "page_id": page_id})
    try:
        if not page_id:
            app = await catalog.get_app_by_slug(slug)
            page_id = app.notion_page_id if app is not None else None
        if not page_id:
            return DetailsResponse(blocks=[])

        content = await catalog.get_parsed_content(page_id)
    except Exception:
        logger.exception("Failed to load details for %s", slug)
        return DetailsResponse(blocks=[])

    response.headers["Cache-Control"] = DETAILS_CACHE_CONTROL
    return DetailsResponse(blocks=content.page_blocks or [])
