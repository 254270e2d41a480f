"""Exceptions raised by the catalog client."""

from datetime import datetime, timezone


class CatalogError(Exception):
    """Base exception for catalog errors."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        endpoint: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.endpoint = endpoint
        self.status_code = status_code
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)


class CatalogFetchError(CatalogError):
    """Raised when a request fails for good (retries exhausted or non-retryable status)."""


class RateLimitError(CatalogError):
    """Raised when BGG answers 429 Too Many Requests."""


class RequestQueuedError(CatalogError):
    """Raised when BGG answers 202 Accepted and the result is not ready yet."""


class ServerError(CatalogError):
    """Raised on 5xx and 408 responses, which may succeed on a later attempt."""


class CatalogParseError(CatalogError):
    """Raised when a response document or item cannot be parsed."""
