"""
Base catalog client with retry logic and error handling.

Owns the HTTP client lifecycle and the exponential backoff used for
every outbound request, so concrete clients only deal with endpoints
and document parsing.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol

import httpx
from tenacity import (
    RetryCallState,
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from meepleboard.catalog.contracts import CatalogEntry, GameSuggestion
from meepleboard.catalog.errors import (
    CatalogFetchError,
    RateLimitError,
    RequestQueuedError,
    ServerError,
)
from meepleboard.config import RetryConfig, get_settings
from meepleboard.logger import get_logger

SleepFunc = Callable[[float], Awaitable[Any]]

RETRYABLE_ERRORS = (RateLimitError, RequestQueuedError, ServerError, httpx.TransportError)


class CatalogSource(Protocol):
    """Best-effort catalog lookups consumed by the game services."""

    async def search_by_name(self, name: str) -> CatalogEntry | None: ...

    async def search_many(self, name: str) -> list[CatalogEntry]: ...

    async def fetch_by_id(self, external_id: int) -> CatalogEntry | None: ...

    async def fetch_hot_list(self) -> list[CatalogEntry]: ...

    async def fetch_many_by_ids(self, external_ids: Iterable[int]) -> list[CatalogEntry]: ...

    async def search_suggestions(
        self,
        query: str,
        offset: int = 0,
        limit: int = 10,
    ) -> list[GameSuggestion]: ...


class BaseCatalogClient(ABC):
    """
    Abstract base class for external catalog clients.

    Provides common functionality including:
    - HTTP client management (injected or owned)
    - Retry logic with exponential backoff on 429/202, 5xx and transport errors
    - Structured logging

    Subclasses must implement:
    - source_name: Identifier for the catalog
    """

    def __init__(
        self,
        *,
        retry_config: RetryConfig | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            retry_config: Custom retry configuration (uses settings if None)
            timeout: HTTP request timeout in seconds
            http_client: Externally managed HTTP client; not closed by us
            sleep: Coroutine used for every wait (backoff and pacing)
        """
        settings = get_settings()
        self._retry_config = retry_config or settings.retry
        self._timeout = timeout or settings.bgg.timeout_seconds
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._logger = get_logger(
            self.__class__.__name__,
            component="catalog_client",
            source=self.source_name,
        )
        self._client = http_client
        self._owns_client = http_client is None

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return identifier for this catalog."""
        ...

    def _default_headers(self) -> dict[str, str]:
        return {"Accept": "application/xml"}

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or (self._owns_client and self._client.is_closed):
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers=self._default_headers(),
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BaseCatalogClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _create_retry_decorator(self) -> Any:
        """Create retry decorator with current configuration."""
        return retry(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self._retry_config.max_attempts),
            wait=wait_exponential(
                multiplier=self._retry_config.base_delay_seconds,
                max=self._retry_config.max_delay_seconds,
                exp_base=self._retry_config.exponential_base,
            ),
            sleep=self._sleep,
            before_sleep=self._log_retry_attempt,
            reraise=False,
        )

    def _log_retry_attempt(self, retry_state: RetryCallState) -> None:
        """Log retry attempts for observability."""
        self._logger.warning(
            "Retrying request",
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    async def _make_request(self, url: str, **kwargs: Any) -> str:
        """
        GET a URL with retry logic and return the response body.

        Args:
            url: Request URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            str: Response text of the first successful attempt

        Raises:
            CatalogFetchError: If retries are exhausted or the status is not retryable
        """
        retry_decorator = self._create_retry_decorator()

        @retry_decorator
        async def _request() -> str:
            self._logger.debug("Making request", url=url)

            response = await self.client.get(url, **kwargs)

            if response.status_code == 429:
                raise RateLimitError(
                    "Rate limit exceeded",
                    source=self.source_name,
                    endpoint=url,
                    status_code=429,
                )

            # Queued results share the 429 schedule (x2 from 2 s, 30 s cap)
            if response.status_code == 202:
                raise RequestQueuedError(
                    "Request accepted but not ready",
                    source=self.source_name,
                    endpoint=url,
                    status_code=202,
                )

            if response.status_code >= 500 or response.status_code == 408:
                raise ServerError(
                    f"Server error: {response.status_code}",
                    source=self.source_name,
                    endpoint=url,
                    status_code=response.status_code,
                )

            if response.status_code >= 400:
                raise CatalogFetchError(
                    f"API error: {response.status_code}",
                    source=self.source_name,
                    endpoint=url,
                    status_code=response.status_code,
                )

            return response.text

        try:
            return await _request()  # type: ignore[no-any-return]
        except RetryError as e:
            last_error = e.last_attempt.exception()
            self._logger.error(
                "Request failed after retries",
                url=url,
                attempts=self._retry_config.max_attempts,
                error=str(last_error),
            )
            raise CatalogFetchError(
                f"Request failed after {self._retry_config.max_attempts} attempts",
                source=self.source_name,
                endpoint=url,
                status_code=getattr(last_error, "status_code", None),
                original_error=last_error if isinstance(last_error, Exception) else None,
            ) from e
