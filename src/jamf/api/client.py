#!/usr/bin/env python3
"""Generic HTTP Client for the Jamf Pro API.

This module provides a reusable HTTP client that handles the common concerns
of Jamf Pro API communication:

    - OAuth2 authentication via TokenManager
    - Automatic token refresh on 401 responses
    - Rate limit handling on 429 responses
    - Page-number pagination (``page``/``page-size``/``sort``)
    - Connection pooling via shared aiohttp session
    - Circuit breaker for resilience against server outages
    - Typed exceptions, including ConflictError for 409 (stale versionLock)

Design Philosophy:
    This client knows HOW to talk to Jamf Pro, but not WHAT to fetch.
    Knowledge of prestages, scopes and device enrollments belongs in the
    adapters that compose this client.

Usage:
    async with JamfClient(token_manager) as client:
        data = await client.get("/v2/computer-prestages/scope")
        await client.put("/v2/computer-prestages/1/scope", json_body={...})

        async for page in client.paginate("/v2/computer-prestages"):
            for item in page:
                process(item)
"""
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import aiohttp

from .auth import TokenManager
from .exceptions import (
    APIError,
    ConfigurationError,
    ConflictError,
    ConnectionError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    ValidationError,
)
from .resilience import CircuitBreaker

logger = logging.getLogger(__name__)

API_PATH = "/api"

# ============================================
# Configuration
# ============================================

@dataclass
class PaginationConfig:
    """Configuration for paginated API requests.

    Attributes:
        page_size: Number of items per request
        delay_between_pages: Seconds to wait between requests
        max_pages: Safety limit to prevent infinite loops (None = no limit)
        sort: Optional Jamf sort expression, e.g. "displayName:asc"
    """
    page_size: int = 100
    delay_between_pages: float = 0.0
    max_pages: Optional[int] = None
    sort: Optional[str] = None


PRESTAGES_PAGINATION = PaginationConfig(
    page_size=100,
    sort="id:asc",
)

ENROLLMENT_DEVICES_PAGINATION = PaginationConfig(
    page_size=2000,
    delay_between_pages=0.25,
)


# ============================================
# The Client
# ============================================

class JamfClient:
    """Async HTTP client for the Jamf Pro API.

    Use as an async context manager so the session is closed:

        async with JamfClient(token_manager) as client:
            data = await client.get("/v1/device-enrollments")

    Attributes:
        token_manager: TokenManager instance for OAuth2 authentication
        base_url: API root, e.g. "https://example.jamfcloud.com/api"
    """

    def __init__(
        self,
        token_manager: TokenManager,
        base_url: Optional[str] = None,
        enable_circuit_breaker: bool = True,
        circuit_failure_threshold: int = 5,
        circuit_timeout: float = 60.0,
        request_timeout: float = 60.0,
    ):
        """Initialize the JamfClient.

        Args:
            token_manager: TokenManager instance for authentication
            base_url: Jamf Pro server URL. If not provided, reads JAMF_URL.
                The "/api" suffix is appended when missing.
            enable_circuit_breaker: Enable circuit breaker for resilience
            circuit_failure_threshold: Failures before circuit opens
            circuit_timeout: Seconds before circuit attempts to close
            request_timeout: Total timeout per request in seconds

        Raises:
            ConfigurationError: If neither base_url nor JAMF_URL is set.
        """
        self.token_manager = token_manager
        base_url = (base_url or os.getenv("JAMF_URL", "")).rstrip("/")

        if not base_url:
            raise ConfigurationError(
                "Jamf Pro URL is required. Provide base_url parameter or set JAMF_URL environment variable.",
                missing_keys=["JAMF_URL"],
            )

        if not base_url.endswith(API_PATH):
            base_url = f"{base_url}{API_PATH}"
        self.base_url = base_url
        self.request_timeout = request_timeout

        self._session: Optional[aiohttp.ClientSession] = None

        self._circuit_breaker: Optional[CircuitBreaker] = None
        if enable_circuit_breaker:
            self._circuit_breaker = CircuitBreaker(
                failure_threshold=circuit_failure_threshold,
                timeout=circuit_timeout,
                name="jamf_api",
            )

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self) -> "JamfClient":
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(
                limit=10,
                limit_per_host=10,
            ),
            timeout=aiohttp.ClientTimeout(
                total=self.request_timeout,
                connect=10,
            ),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # Low-Level Request Methods
    # ----------------------------------------

    async def _get_auth_headers(self) -> dict[str, str]:
        token = await self.token_manager.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a single HTTP request (no retry logic).

        Args:
            method: HTTP method (GET or PUT)
            endpoint: API path below the base URL (e.g. "/v2/computer-prestages")
            params: Query parameters
            json_body: JSON request body

        Returns:
            Parsed JSON response (empty dict for bodiless responses)

        Raises:
            APIError: If response status is not 2xx
            RuntimeError: If called outside of async context manager
            ConnectionError: If connection to server fails
            TimeoutError: If request times out
        """
        if not self._session:
            raise RuntimeError(
                "JamfClient must be used as async context manager: "
                "async with JamfClient(...) as client:"
            )

        url = f"{self.base_url}{endpoint}"

        try:
            headers = await self._get_auth_headers()

            async with self._session.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                json=json_body,
            ) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise self._create_api_error(
                        status=response.status,
                        method=method,
                        endpoint=endpoint,
                        response_body=error_text,
                        retry_after=response.headers.get("Retry-After"),
                    )

                if response.status == 204:
                    return {}
                return await response.json()

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.base_url}",
                host=self.base_url,
                cause=e,
            )

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Request to {endpoint} timed out",
                timeout_seconds=self.request_timeout,
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Network error during {method} {endpoint}: {e}",
                cause=e,
            )

    def _create_api_error(
        self,
        status: int,
        method: str,
        endpoint: str,
        response_body: str,
        retry_after: Optional[str] = None,
    ) -> APIError:
        """Create appropriate APIError subclass based on status code."""
        if status == 401:
            return TokenExpiredError(
                "Access token expired or invalid",
                details={"endpoint": endpoint},
            )

        if status == 404:
            return NotFoundError(
                resource_type="Resource",
                resource_id=endpoint,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        if status == 409:
            return ConflictError(
                f"Version conflict for {method} {endpoint}",
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        if status == 429:
            wait = int(retry_after) if retry_after and retry_after.isdigit() else 60
            return RateLimitError(
                f"Rate limit exceeded for {endpoint}",
                retry_after=wait,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        if status in (400, 422):
            return ValidationError(
                f"Validation failed for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        if status >= 500:
            return ServerError(
                f"Server error ({status}) for {method} {endpoint}",
                status_code=status,
                endpoint=endpoint,
                method=method,
                response_body=response_body,
            )

        return APIError(
            f"{method} {endpoint} failed",
            status_code=status,
            endpoint=endpoint,
            method=method,
            response_body=response_body,
        )

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        max_retries: int = 3,
        retry_transient: bool = True,
    ) -> dict[str, Any]:
        """Make an HTTP request with automatic retry and circuit breaker.

        - 401: invalidate token, refresh, retry
        - 429: wait for Retry-After, retry
        - 5xx and network errors: exponential backoff retry, only when
          ``retry_transient`` is set (the server may have applied the request)
        - 400/404/409: raise immediately

        Raises:
            CircuitOpenError: If circuit breaker is open
            APIError: If request fails after all retries
            NetworkError: If network error persists after retries
        """
        if self._circuit_breaker:
            await self._circuit_breaker.acquire()

        last_error: Optional[Exception] = None
        backoff_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                result = await self._request(method, endpoint, params, json_body)

                if self._circuit_breaker:
                    await self._circuit_breaker.record_success()

                return result

            except TokenExpiredError as e:
                last_error = e
                logger.warning(f"Token expired, refreshing (attempt {attempt})")
                self.token_manager.invalidate()
                continue

            except RateLimitError as e:
                last_error = e
                if attempt < max_retries:
                    logger.warning(
                        f"Rate limited, waiting {e.retry_after}s (attempt {attempt}/{max_retries})"
                    )
                    await asyncio.sleep(e.retry_after)
                    continue
                raise

            except (NotFoundError, ValidationError, ConflictError):
                raise

            except (ServerError, NetworkError) as e:
                last_error = e
                if retry_transient and attempt < max_retries:
                    logger.warning(
                        f"{e.__class__.__name__}: {e}. Retrying in {backoff_delay}s "
                        f"(attempt {attempt}/{max_retries})"
                    )
                    await asyncio.sleep(backoff_delay)
                    backoff_delay = min(backoff_delay * 2, 60.0)
                    continue

                if self._circuit_breaker:
                    await self._circuit_breaker.record_failure(e)
                raise

            except APIError as e:
                if e.recoverable and attempt < max_retries:
                    last_error = e
                    logger.warning(
                        f"API error (recoverable): {e}. Retrying in {backoff_delay}s"
                    )
                    await asyncio.sleep(backoff_delay)
                    backoff_delay = min(backoff_delay * 2, 60.0)
                    continue
                raise

        if last_error:
            raise last_error

        raise APIError(
            "Request failed after all retries",
            status_code=0,
            endpoint=endpoint,
            method=method,
        )

    @property
    def circuit_status(self) -> Optional[dict[str, Any]]:
        """Circuit breaker status for monitoring."""
        if self._circuit_breaker:
            return self._circuit_breaker.get_status()
        return None

    # ----------------------------------------
    # High-Level Request Methods
    # ----------------------------------------

    async def get(
        self,
        endpoint: str,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a GET request and return the parsed JSON body."""
        return await self._request_with_retry("GET", endpoint, params=params)

    async def put(
        self,
        endpoint: str,
        json_body: dict,
        params: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make a PUT request.

        Jamf Pro PUTs replace the whole record and are versionLock-checked
        by the server; a stale lock raises ConflictError. A 5xx or network
        error is raised without a retry, since a resent PUT would carry a
        versionLock the first attempt may already have consumed.
        """
        return await self._request_with_retry(
            "PUT", endpoint, params=params, json_body=json_body, retry_transient=False
        )

    # ----------------------------------------
    # Pagination Methods
    # ----------------------------------------

    async def paginate(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        params: Optional[dict] = None,
    ) -> AsyncIterator[list[dict]]:
        """Iterate through a paginated Jamf Pro list endpoint.

        Jamf list endpoints take ``page`` (0-based), ``page-size`` and
        ``sort`` and answer ``{"totalCount": n, "results": [...]}``.

        Yields:
            List of items from each page
        """
        config = config or PaginationConfig()
        params = dict(params or {})
        if config.sort:
            params.setdefault("sort", config.sort)

        page = 0
        total = None
        fetched_count = 0

        while True:
            params["page"] = page
            params["page-size"] = config.page_size

            data = await self.get(endpoint, params=params)
            items = data.get("results", [])

            if total is None:
                total = data.get("totalCount", len(items))
                logger.debug(f"Paginating {endpoint}: {total:,} total items")

            if items:
                yield items

            page += 1
            fetched_count += len(items)

            if fetched_count >= total or len(items) < config.page_size:
                break
            if config.max_pages and page >= config.max_pages:
                logger.info(f"Reached max_pages limit ({config.max_pages})")
                break

            if config.delay_between_pages > 0:
                await asyncio.sleep(config.delay_between_pages)

        logger.debug(f"Pagination complete: {fetched_count:,} items in {page} pages")

    async def fetch_all(
        self,
        endpoint: str,
        config: Optional[PaginationConfig] = None,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """Fetch all items from a paginated endpoint into one list."""
        all_items = []
        async for page in self.paginate(endpoint, config, params):
            all_items.extend(page)
        return all_items
