"""Exceptions raised while talking to the Notion API."""

from typing import Optional

# Error classes that select the backoff curve
_RATE_LIMIT_STATUSES = {429}
_UNAVAILABLE_STATUSES = {500, 502, 503}
_RATE_LIMIT_CODES = {"rate_limited"}
_UNAVAILABLE_CODES = {"service_unavailable"}
# Retrying these cannot succeed: bad request, auth, missing object
_PERMANENT_STATUSES = {400, 401, 403, 404}


class CatalogError(Exception):
    """Base exception for the app catalog service."""


class NotionConfigError(CatalogError):
    """Raised when the Notion credentials or database id are missing."""

    def __init__(self, message: str = "NOTION_API_KEY or NOTION_APPS_DB_ID is not set"):
        super().__init__(message)


class NotionAPIError(CatalogError):
    """Raised for a failed Notion API call.

    ``status`` is ``None`` for transport-level failures such as timeouts or
    refused connections; those carry ``code="request_error"``.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: str = "",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.status = status
        self.code = code
        self.retry_after = retry_after

    @property
    def is_rate_limited(self) -> bool:
        return self.status in _RATE_LIMIT_STATUSES or self.code in _RATE_LIMIT_CODES

    @property
    def is_unavailable(self) -> bool:
        return self.status in _UNAVAILABLE_STATUSES or self.code in _UNAVAILABLE_CODES

    @property
    def is_transient(self) -> bool:
        return self.status not in _PERMANENT_STATUSES

    def __repr__(self) -> str:
        return f"NotionAPIError(status={self.status!r}, code={self.code!r}, message={str(self)!r})"
