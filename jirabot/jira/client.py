"""Jira API client service with retry and backoff."""
import asyncio
import logging
import time
from typing import Any, Optional

import aiohttp

from jirabot.config.settings import Settings
from jirabot.jira.types import JiraIssue

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class JiraAPIError(Exception):
    """Exception for Jira API errors."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_body: Optional[dict[str, Any]] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Jira API error {status_code}: {message}")


# =============================================================================
# Jira Service
# =============================================================================


class JiraService:
    """Read-only client for the Jira REST API.

    - Retry with exponential backoff on 5xx, rate limits and timeouts
    - 4xx (including 404 for unknown keys) fails immediately
    - Optional TLS verification and context path from settings
    """

    def __init__(self, settings: Settings):
        """Initialize JiraService.

        Args:
            settings: Application settings containing Jira configuration.
        """
        self.settings = settings
        self.base_url = settings.jira_base_url
        self.api_root = f"/rest/api/{settings.jira_api_version}"
        self.auth = (
            aiohttp.BasicAuth(settings.jira_user, settings.jira_api_token)
            if settings.jira_user
            else None
        )
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.jira_timeout)
            connector = aiohttp.TCPConnector(ssl=self.settings.jira_strict_ssl)
            self._session = aiohttp.ClientSession(
                auth=self.auth,
                timeout=timeout,
                connector=connector,
                headers={"Accept": "application/json"},
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Make HTTP request with retry and exponential backoff.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint relative to the REST root (e.g., /issue/PROJ-1)
            params: Query parameters

        Returns:
            Response JSON as dict

        Raises:
            JiraAPIError: On 4xx client errors (no retry)
            JiraAPIError: On 5xx server errors after all retries exhausted
        """
        url = f"{self.base_url}{self.api_root}{endpoint}"
        session = await self._get_session()

        last_error: Optional[Exception] = None
        max_retries = self.settings.jira_max_retries

        for attempt in range(max_retries + 1):
            start_time = time.monotonic()
            try:
                logger.debug(
                    "Jira API request",
                    extra={"method": method, "url": url, "attempt": attempt + 1},
                )

                async with session.request(method, url, params=params) as response:
                    duration_ms = (time.monotonic() - start_time) * 1000
                    # content_length can be None with chunked encoding
                    try:
                        response_body = await response.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        response_body = {}
                    if not isinstance(response_body, dict):
                        response_body = {}

                    logger.info(
                        "Jira API response",
                        extra={
                            "method": method,
                            "url": url,
                            "status": response.status,
                            "duration_ms": round(duration_ms, 2),
                        },
                    )

                    if 200 <= response.status < 300:
                        return response_body

                    # 429: Rate limited - retry, honouring Retry-After
                    if response.status == 429:
                        last_error = JiraAPIError(
                            status_code=response.status,
                            message="Rate limited",
                            response_body=response_body,
                        )
                        if attempt < max_retries:
                            retry_after = response.headers.get("Retry-After")
                            backoff = int(retry_after) if retry_after and retry_after.isdigit() else 2**attempt * 5
                            logger.warning(
                                f"Jira API rate limited, retrying in {backoff}s",
                                extra={"attempt": attempt + 1, "backoff_seconds": backoff},
                            )
                            await asyncio.sleep(backoff)
                            continue
                        raise last_error

                    # 4xx: Client error - don't retry
                    if 400 <= response.status < 500:
                        error_msg = response_body.get("errorMessages") or [response.reason]
                        raise JiraAPIError(
                            status_code=response.status,
                            message=str(error_msg),
                            response_body=response_body,
                        )

                    # 5xx: Server error - retry with backoff
                    last_error = JiraAPIError(
                        status_code=response.status,
                        message=response.reason or "Server error",
                        response_body=response_body,
                    )
                    if attempt < max_retries:
                        backoff = 2**attempt
                        logger.warning(
                            f"Jira API {response.status} error, retrying in {backoff}s",
                            extra={"status": response.status, "attempt": attempt + 1},
                        )
                        await asyncio.sleep(backoff)
                        continue
                    raise last_error

            except asyncio.TimeoutError:
                duration_ms = (time.monotonic() - start_time) * 1000
                last_error = asyncio.TimeoutError(f"Request timed out after {duration_ms:.0f}ms")
                logger.warning(
                    "Jira API timeout",
                    extra={"method": method, "url": url, "attempt": attempt + 1},
                )
                if attempt < max_retries:
                    await asyncio.sleep(2**attempt)
                    continue

            except aiohttp.ClientError as e:
                last_error = e
                logger.warning(
                    f"Jira API connection error: {e}",
                    extra={"method": method, "url": url, "attempt": attempt + 1},
                )
                if attempt < max_retries:
                    await asyncio.sleep(2**attempt)
                    continue

        # All retries exhausted
        raise JiraAPIError(
            status_code=0,
            message=f"Request failed after {max_retries + 1} attempts: {last_error}",
        )

    async def find_issue(self, key: str) -> JiraIssue:
        """Get a single Jira issue by key.

        Args:
            key: Issue key (e.g., PROJ-123).

        Returns:
            JiraIssue with all fields.

        Raises:
            JiraAPIError: On API errors (including 404 if not found).
        """
        logger.info("Getting Jira issue", extra={"key": key})

        response = await self._request("GET", f"/issue/{key}")
        fields = response.get("fields")
        if not isinstance(fields, dict):
            raise JiraAPIError(
                status_code=0,
                message=f"Malformed issue response for {key}",
                response_body=response,
            )
        return JiraIssue(key=response.get("key", key), fields=fields)
