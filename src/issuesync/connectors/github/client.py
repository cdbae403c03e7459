"""GitHub REST API client.

Provides async httpx-based client for GitHub REST API v3 with token auth.
Implements Link header pagination, primary rate-limit pacing and
exponential backoff on transient failures.

Reference: https://docs.github.com/en/rest/issues/issues#list-repository-issues
Pagination: https://docs.github.com/en/rest/using-the-rest-api/using-pagination-in-the-rest-api
"""

import asyncio
import logging
import random
import re
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from issuesync.errors import RemoteTimeout, SourceUnavailable

logger = logging.getLogger("issuesync.github.client")

__all__ = ["GitHubClient", "GitHubClientError", "RateLimitExceeded"]


class GitHubClientError(SourceUnavailable):
    """Raised when a GitHub API request fails.

    Wraps httpx errors and HTTP errors; the tracker counts as unavailable.
    """

    pass


class RateLimitExceeded(GitHubClientError):
    """Raised when the GitHub rate limit is exhausted after retries."""

    def __init__(self, reset_at: datetime, message: str = "Rate limit exceeded"):
        self.reset_at = reset_at
        super().__init__(f"{message}. Resets at {reset_at.isoformat()}")


class GitHubClient:
    """GitHub REST API client using httpx with Bearer token auth.

    Uses a long-lived httpx.AsyncClient with connection pooling. Requests
    are paced from X-RateLimit-Remaining / X-RateLimit-Reset so a large
    de-paginated listing does not burn the whole hourly quota.

    Example:
        >>> async with GitHubClient("ghp_token") as client:
        ...     issues = await client.list_issues("owner", "repo")
    """

    BASE_URL = "https://api.github.com"
    API_VERSION = "2022-11-28"

    PRIMARY_LIMIT = 5000  # requests/hour for a PAT
    SAFETY_MARGIN = 0.20  # back off below 20% of the quota
    MIN_REQUEST_DELAY_MS = 100

    CONNECT_TIMEOUT = 5.0  # seconds
    DEFAULT_TIMEOUT = 30.0  # seconds

    MAX_RETRIES = 3
    BASE_BACKOFF = 2  # seconds, exponential: min(MAX_BACKOFF, 2^attempt)
    MAX_BACKOFF = 60  # seconds

    DEFAULT_PER_PAGE = 100
    MAX_PAGES = 500

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        min_delay_ms: int = MIN_REQUEST_DELAY_MS,
    ) -> None:
        """Initialize GitHub client with token authentication.

        Args:
            token: GitHub token
            base_url: API base URL (default: https://api.github.com)
            timeout: Per-request timeout in seconds
            min_delay_ms: Minimum delay between requests in milliseconds
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._min_delay_s = min_delay_ms / 1000.0

        self._rate_limit_remaining: int | None = None
        self._rate_limit_reset: float | None = None
        self._last_request_time: float = 0.0

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": self.API_VERSION,
                "User-Agent": "issue-notion-sync/1.0",
            },
            timeout=httpx.Timeout(timeout, connect=min(self.CONNECT_TIMEOUT, timeout)),
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    async def test_connection(self) -> dict[str, Any]:
        """Validate the token.

        Returns:
            dict with keys: success (bool), user (str) or error (str)
        """
        try:
            response = await self._raw_request("GET", "/user")
        except (GitHubClientError, RemoteTimeout) as e:
            return {"success": False, "error": str(e)}
        return {
            "success": True,
            "user": response.json().get("login", "unknown"),
            "rate_limit_remaining": self._rate_limit_remaining,
        }

    async def list_issues(
        self, owner: str, repo: str, state: str = "all"
    ) -> list[dict[str, Any]]:
        """List every issue of a repository, pull requests included.

        Args:
            owner: Repository owner
            repo: Repository name
            state: open, closed or all

        Returns:
            Raw issue dicts from the GitHub API, across all pages
        """
        return await self._paginate(
            f"/repos/{owner}/{repo}/issues",
            params={"state": state},
        )

    # --- Rate limiting ---

    async def _enforce_rate_limit(self) -> None:
        """Pace requests: minimum delay, and wait for reset when the quota is low."""
        now = time.monotonic()

        effective_margin = int(self.PRIMARY_LIMIT * self.SAFETY_MARGIN)
        if (
            self._rate_limit_remaining is not None
            and self._rate_limit_remaining < int(effective_margin * 0.1)
            and self._rate_limit_reset
        ):
            wait_time = max(0.0, self._rate_limit_reset - time.time())
            if wait_time > 0:
                logger.warning(
                    "Primary rate limit low (%d remaining). Waiting %.1fs for reset",
                    self._rate_limit_remaining,
                    min(wait_time, self.MAX_BACKOFF),
                )
                await asyncio.sleep(min(wait_time, self.MAX_BACKOFF))

        elapsed = now - self._last_request_time
        if elapsed < self._min_delay_s:
            await asyncio.sleep(self._min_delay_s - elapsed)

    def _update_rate_limits(self, response: httpx.Response) -> None:
        """Track X-RateLimit-Remaining / X-RateLimit-Reset."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                self._rate_limit_remaining = int(remaining)
            except ValueError:
                logger.warning("Non-numeric X-RateLimit-Remaining header: %r", remaining)

        reset = response.headers.get("X-RateLimit-Reset")
        if reset is not None:
            try:
                self._rate_limit_reset = float(reset)
            except ValueError:
                logger.warning("Non-numeric X-RateLimit-Reset header: %r", reset)

    # --- Core HTTP ---

    async def _raw_request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request with pacing, retries and error mapping.

        Retries 5xx, 429, rate-limited 403 and timeouts with backoff.

        Returns:
            httpx.Response with a 2xx status

        Raises:
            GitHubClientError: On non-retryable errors (auth, not found, validation)
            RateLimitExceeded: When the rate limit is still exhausted after retries
            RemoteTimeout: When every attempt timed out
        """
        for attempt in range(self.MAX_RETRIES + 1):
            await self._enforce_rate_limit()

            try:
                self._last_request_time = time.monotonic()
                response = await self._client.request(method, path, params=params)
            except httpx.TimeoutException as e:
                if attempt < self.MAX_RETRIES:
                    backoff = min(self.MAX_BACKOFF, self.BASE_BACKOFF ** (attempt + 1))
                    logger.warning(
                        "Request timeout. Retrying in %.1fs (attempt %d/%d)",
                        backoff,
                        attempt + 1,
                        self.MAX_RETRIES,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise RemoteTimeout(
                    f"GitHub request timed out after {self.MAX_RETRIES} retries: {e}"
                ) from e
            except httpx.HTTPError as e:
                raise GitHubClientError(f"HTTP error: {e}") from e

            self._update_rate_limits(response)

            if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
                reset = float(response.headers.get("X-RateLimit-Reset", "0"))
                if attempt < self.MAX_RETRIES:
                    wait = max(1.0, reset - time.time())
                    logger.warning(
                        "Rate limit hit. Waiting %.0fs (attempt %d/%d)",
                        min(wait, self.MAX_BACKOFF),
                        attempt + 1,
                        self.MAX_RETRIES,
                    )
                    await asyncio.sleep(min(wait, self.MAX_BACKOFF))
                    continue
                raise RateLimitExceeded(datetime.fromtimestamp(reset, tz=timezone.utc))

            if response.status_code == 429:
                retry_after = int(response.headers.get("Retry-After", "60"))
                if attempt < self.MAX_RETRIES:
                    logger.warning(
                        "Secondary rate limit. Retry-After: %ds (attempt %d/%d)",
                        retry_after,
                        attempt + 1,
                        self.MAX_RETRIES,
                    )
                    await asyncio.sleep(min(retry_after, self.MAX_BACKOFF))
                    continue
                raise RateLimitExceeded(
                    datetime.fromtimestamp(time.time() + retry_after, tz=timezone.utc),
                    "Secondary rate limit exceeded",
                )

            if response.status_code >= 500:
                if attempt < self.MAX_RETRIES:
                    backoff = min(
                        self.MAX_BACKOFF, self.BASE_BACKOFF ** (attempt + 1)
                    ) + random.uniform(0, 1)
                    logger.warning(
                        "Server error %d. Retrying in %.1fs (attempt %d/%d)",
                        response.status_code,
                        backoff,
                        attempt + 1,
                        self.MAX_RETRIES,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise GitHubClientError(
                    f"GitHub API server error {response.status_code} after "
                    f"{self.MAX_RETRIES} retries"
                )

            if response.status_code >= 400:
                try:
                    error_body = response.json() if response.content else {}
                except (ValueError, UnicodeDecodeError):
                    error_body = {}
                message = (
                    error_body.get("message", response.text)
                    if isinstance(error_body, dict)
                    else response.text
                )
                raise GitHubClientError(
                    f"GitHub API error {response.status_code}: {message}"
                )

            return response

        raise GitHubClientError("Request failed after all retries")

    async def _paginate(
        self,
        path: str,
        params: dict[str, str] | None = None,
        max_pages: int = MAX_PAGES,
    ) -> list[dict[str, Any]]:
        """Fetch all pages of a list endpoint by following Link headers.

        Args:
            path: API path
            params: Query parameters (per_page added automatically)
            max_pages: Safety limit on pages fetched

        Returns:
            Concatenated items across all pages

        Raises:
            GitHubClientError: If a page fails, or pagination exceeds max_pages
        """
        all_items: list[dict[str, Any]] = []
        current_params: dict[str, str] | None = dict(params or {})
        current_params["per_page"] = str(self.DEFAULT_PER_PAGE)
        current_path = path

        for page in range(max_pages):
            response = await self._raw_request("GET", current_path, params=current_params)
            data = response.json()
            if isinstance(data, list):
                all_items.extend(data)
            elif isinstance(data, dict) and "items" in data:
                all_items.extend(data["items"])

            next_url = self._parse_next_link(response.headers.get("Link", ""))
            if not next_url:
                return all_items

            # The next URL is absolute and already carries the query string
            current_path = next_url[len(self.base_url):]
            current_params = None

            logger.debug("Paginating %s: page %d, %d items so far", path, page + 1, len(all_items))

        raise GitHubClientError(f"Pagination of {path} exceeded {max_pages} pages")

    def _parse_next_link(self, link_header: str) -> str | None:
        """Extract the rel="next" URL from a Link header.

        Format: <https://api.github.com/...?page=2>; rel="next", <...>; rel="last"

        URLs outside base_url are rejected.
        """
        if not link_header:
            return None

        for part in link_header.split(","):
            match = re.match(r'\s*<([^>]+)>;\s*rel="next"', part.strip())
            if match:
                url = match.group(1)
                if not url.startswith(self.base_url + "/"):
                    logger.warning(
                        "Rejecting Link header URL not matching base_url: %.100s", url
                    )
                    return None
                return url
        return None
