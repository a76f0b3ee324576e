"""
Category Fetch Adapter

Reads one pre-aggregated JSON payload per (category, year) from the civil
registry application's read endpoints. One AsyncClient is shared by all
fetches of an export.
"""

from typing import Any, Dict, Optional

import httpx

from civreg_reports.core.config import settings
from civreg_reports.core.errors import ReportFetchError
from civreg_reports.core.logging import setup_logger
from civreg_reports.core.resilience import classify_error, retry_with_backoff
from civreg_reports.reporting.categories import UPSTREAM_PATHS

logger = setup_logger(settings.LOG_LEVEL)


class HttpCategoryFetcher:
    """
    Async fetcher for registry category payloads.

    Usage:
        async with HttpCategoryFetcher() as fetcher:
            payload = await fetcher.fetch("statistics", 2024)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_initial_delay: Optional[float] = None
    ):
        self.base_url = (base_url or settings.REGISTRY_API_BASE_URL).rstrip("/")
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.retry_initial_delay = (
            settings.RETRY_INITIAL_DELAY if retry_initial_delay is None else retry_initial_delay
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds or settings.request_timeout_seconds,
        )

    async def __aenter__(self) -> "HttpCategoryFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def url_for(self, source: str) -> str:
        if source not in UPSTREAM_PATHS:
            raise ValueError(f"No registry endpoint for '{source}'")
        return f"{self.base_url}{UPSTREAM_PATHS[source]}"

    async def fetch(self, source: str, year: int) -> Dict[str, Any]:
        """
        Fetch one payload.

        Args:
            source: Category slug or "residence"
            year: Report year

        Returns:
            Decoded JSON object

        Raises:
            ReportFetchError: transport failure after retries, non-2xx
                status or a body that is not a JSON object
        """
        url = self.url_for(source)

        @retry_with_backoff(
            max_retries=self.max_retries,
            initial_delay=self.retry_initial_delay
        )
        async def _get() -> httpx.Response:
            return await self._client.get(url, params={"year": year})

        try:
            response = await _get()
        except httpx.TransportError as e:
            logger.error(
                f"fetch_failed=true source={source} year={year} "
                f"error_class={classify_error(e)} error={type(e).__name__}"
            )
            raise ReportFetchError(source, year, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.error(
                f"fetch_failed=true source={source} year={year} status={response.status_code}"
            )
            raise ReportFetchError(
                source, year, response.reason_phrase or "unexpected response",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ReportFetchError(source, year, "response body is not valid JSON") from e
        if not isinstance(data, dict):
            raise ReportFetchError(source, year, f"expected a JSON object, got {type(data).__name__}")

        logger.debug(f"fetch_success=true source={source} year={year}")
        return data
