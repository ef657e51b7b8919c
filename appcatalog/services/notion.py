"""Notion REST API access: thin async client, pagination and retry/backoff."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from appcatalog.services.errors import NotionAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 5
PAGE_SIZE = 100


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Return the Retry-After header as seconds, or None when absent/invalid."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


class NotionClient:
    """Minimal async client for the three Notion endpoints the catalog needs."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": notion_version,
            },
            timeout=timeout,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            raise NotionAPIError(f"Notion request failed: {exc}", code="request_error") from exc

        if resp.is_error:
            code = ""
            message = resp.text
            try:
                body = resp.json()
                code = str(body.get("code", ""))
                message = str(body.get("message", message))
            except ValueError:
                pass
            raise NotionAPIError(
                message or f"HTTP {resp.status_code}",
                status=resp.status_code,
                code=code,
                retry_after=_parse_retry_after(resp.headers.get("retry-after")),
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise NotionAPIError(
                f"Notion returned a non-JSON body: {exc}",
                status=resp.status_code,
                code="invalid_json",
            ) from exc

    async def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"databases/{database_id}")

    async def query_database(
        self,
        database_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = PAGE_SIZE,
        filter_properties: Optional[List[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            body["start_cursor"] = start_cursor
        if filter:
            body["filter"] = filter
        # Property projection is a repeated query parameter, not a body field
        params = {"filter_properties": filter_properties} if filter_properties else None
        return await self._request("POST", f"databases/{database_id}/query", params=params, json=body)

    async def list_block_children(
        self,
        block_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = PAGE_SIZE,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            params["start_cursor"] = start_cursor
        return await self._request("GET", f"blocks/{block_id}/children", params=params)

    async def aclose(self) -> None:
        await self._client.aclose()


def retry_delay(error: Exception, attempt: int) -> float:
    """Return the number of seconds to wait before retry number *attempt* + 1.

    Priority chain:
    1. an explicit Retry-After signal from the server;
    2. rate limiting: linear 1s steps;
    3. server unavailable (500/502/503): 300ms doubling each attempt;
    4. anything else: gentle linear 250ms steps.
    """
    retry_after = getattr(error, "retry_after", None)
    if retry_after:
        return float(retry_after)

    if isinstance(error, NotionAPIError):
        if error.is_rate_limited:
            return 1.0 * (attempt + 1)
        if error.is_unavailable:
            return 0.3 * 2 ** attempt

    return 0.25 * (attempt + 1)


class _NotionRetryWait(wait_base):
    """Tenacity wait strategy that applies :func:`retry_delay` to the last failure."""

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        return retry_delay(error, retry_state.attempt_number - 1)


def _is_transient_notion_error(exc: BaseException) -> bool:
    return isinstance(exc, NotionAPIError) and exc.is_transient


async def with_retry(
    call: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = MAX_ATTEMPTS,
    **kwargs: Any,
) -> T:
    """Await ``call(*args, **kwargs)``, retrying transient Notion failures.

    Permanent errors (bad request, auth, not found) are raised at once; the
    last error is re-raised once *attempts* calls have failed.
    """

    def log_retry(retry_state: RetryCallState) -> None:
        logger.info(
            "Notion call failed (%r), retrying in %.2fs (attempt %d/%d)",
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
            retry_state.attempt_number,
            attempts,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=_NotionRetryWait(),
        retry=retry_if_exception(_is_transient_notion_error),
        before_sleep=log_retry,
        sleep=asyncio.sleep,
        reraise=True,
    )
    return await retrying(call, *args, **kwargs)


async def list_all_block_children(
    client: NotionClient,
    block_id: str,
    attempts: int = MAX_ATTEMPTS,
) -> List[Dict[str, Any]]:
    """Return every direct child of *block_id* in document order.

    Follows ``next_cursor`` until the API reports ``has_more: false``; each
    page request is retried on its own so a late failure does not refetch
    earlier pages.
    """
    blocks: List[Dict[str, Any]] = []
    cursor: Optional[str] = None

    while True:
        response = await with_retry(
            client.list_block_children, block_id, start_cursor=cursor, attempts=attempts
        )
        blocks.extend(response.get("results", []))
        cursor = response.get("next_cursor") if response.get("has_more") else None
        if not cursor:
            break

    return blocks


def is_full_page(result: Dict[str, Any]) -> bool:
    """Partial page objects (no properties) are returned for pages without access."""
    return result.get("object") == "page" and "properties" in result


async def query_all_pages(
    client: NotionClient,
    database_id: str,
    filter_properties: Optional[List[str]] = None,
    attempts: int = MAX_ATTEMPTS,
) -> List[Dict[str, Any]]:
    """Return every full page of *database_id*, following query cursors."""
    pages: List[Dict[str, Any]] = []
    cursor: Optional[str] = None

    while True:
        response = await with_retry(
            client.query_database,
            database_id,
            start_cursor=cursor,
            filter_properties=filter_properties or None,
            attempts=attempts,
        )
        pages.extend(r for r in response.get("results", []) if is_full_page(r))
        cursor = response.get("next_cursor") if response.get("has_more") else None
        if not cursor:
            break

    return pages
