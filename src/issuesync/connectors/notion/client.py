"""Notion REST API client.

Provides async httpx-based client for the Notion API with Bearer auth.
Implements cursor pagination (start_cursor / next_cursor) for database
queries and block listings, and bounded retry with backoff on 429 and 5xx.

Reference: https://developers.notion.com/reference/intro
Rate limits: https://developers.notion.com/reference/request-limits
"""

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from issuesync.connectors.notion.schema import (
    RICH_TEXT_BLOCK_TYPES,
    block_from_api,
    paragraph_block,
    record_from_page,
    rich_text,
)
from issuesync.errors import (
    CreateFailed,
    FetchFailed,
    RemoteTimeout,
    SourceUnavailable,
    UpdateFailed,
)
from issuesync.models import Block, RecordPage

logger = logging.getLogger("issuesync.notion.client")

__all__ = ["NotionAPIError", "NotionClient"]


class NotionAPIError(Exception):
    """Raised for a non-2xx Notion response.

    Callers wrap it into the taxonomy error of their operation
    (CreateFailed, UpdateFailed, FetchFailed, SourceUnavailable).
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        retry_after: float | None = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.retry_after = retry_after
        super().__init__(f"Notion API error {status_code} ({code}): {message}")

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class NotionClient:
    """Notion REST API client using httpx with Bearer auth.

    Uses a long-lived httpx.AsyncClient with connection pooling.

    Attributes:
        database_id: Target database id
        base_url: Notion API base URL
        max_retries: Retries for 429/5xx responses

    Example:
        >>> async with NotionClient("secret_xxx", "db-id") as notion:
        ...     page = await notion.query_database()
        ...     print(len(page.records), page.next_cursor)
    """

    BASE_URL = "https://api.notion.com/v1"
    NOTION_VERSION = "2022-06-28"

    CONNECT_TIMEOUT = 5.0  # seconds
    DEFAULT_TIMEOUT = 30.0  # seconds

    # Backoff between retries: exponential 1s..30s plus jitter, or Retry-After
    BACKOFF_MIN = 1
    BACKOFF_MAX = 30
    JITTER = 0.5

    QUERY_PAGE_SIZE = 100
    MAX_BLOCK_PAGES = 50

    def __init__(
        self,
        token: str,
        database_id: str,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 3,
    ) -> None:
        """Initialize Notion client.

        Args:
            token: Notion integration token
            database_id: Target database id
            base_url: Notion API base URL (default: https://api.notion.com/v1)
            timeout: Per-request timeout in seconds
            max_retries: Retries for rate-limited or server-error responses
        """
        self.database_id = database_id
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.max_retries = max_retries

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Notion-Version": self.NOTION_VERSION,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout, connect=min(self.CONNECT_TIMEOUT, timeout)),
        )

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    async def test_connection(self) -> dict[str, Any]:
        """Check the token can read the target database.

        Returns:
            dict with keys: success (bool), title (str) or error (str)
        """
        try:
            data = await self._request("GET", f"/databases/{self.database_id}")
        except (NotionAPIError, SourceUnavailable, RemoteTimeout) as e:
            return {"success": False, "error": str(e)}
        title = "".join(t.get("plain_text", "") for t in data.get("title") or [])
        return {"success": True, "title": title}

    # --- Destination store contract ---

    async def query_database(self, cursor: str | None = None) -> RecordPage:
        """Fetch one page of database records.

        Args:
            cursor: next_cursor of the previous page, None for the first

        Returns:
            RecordPage with (record_id, issue_url) projections and next cursor

        Raises:
            SourceUnavailable: If the query is rejected or the store unreachable
            RemoteTimeout: If the request timed out
        """
        body: dict[str, Any] = {"page_size": self.QUERY_PAGE_SIZE}
        if cursor:
            body["start_cursor"] = cursor
        try:
            data = await self._request(
                "POST", f"/databases/{self.database_id}/query", json=body
            )
        except NotionAPIError as e:
            raise SourceUnavailable(f"Database query failed: {e}") from e

        records = [record_from_page(page) for page in data.get("results", [])]
        next_cursor = data.get("next_cursor") if data.get("has_more", True) else None
        return RecordPage(records=records, next_cursor=next_cursor)

    async def create_page(
        self,
        properties: dict[str, Any],
        children: list[dict[str, Any]] | None = None,
    ) -> str:
        """Create a database page.

        Returns:
            Id of the new page

        Raises:
            CreateFailed: If Notion rejects the page
            RemoteTimeout: If the request timed out
        """
        body: dict[str, Any] = {
            "parent": {"database_id": self.database_id},
            "properties": properties,
        }
        if children:
            body["children"] = children
        try:
            data = await self._request("POST", "/pages", json=body)
        except (NotionAPIError, SourceUnavailable) as e:
            raise CreateFailed(str(e)) from e
        return data["id"]

    async def update_page_properties(
        self, page_id: str, properties: dict[str, Any]
    ) -> None:
        """Update the properties of an existing page.

        Raises:
            UpdateFailed: If Notion rejects the update
            RemoteTimeout: If the request timed out
        """
        try:
            await self._request(
                "PATCH", f"/pages/{page_id}", json={"properties": properties}
            )
        except (NotionAPIError, SourceUnavailable) as e:
            raise UpdateFailed(str(e)) from e

    async def list_block_children(
        self, block_id: str, page_size: int = 100
    ) -> list[Block]:
        """List the child blocks of a page or block, in display order.

        Follows next_cursor up to MAX_BLOCK_PAGES pages.

        Args:
            block_id: Page id or block id
            page_size: Blocks per request (1-100)

        Raises:
            FetchFailed: If listing fails
            RemoteTimeout: If a request timed out
        """
        blocks: list[Block] = []
        params: dict[str, Any] = {"page_size": page_size}

        for _ in range(self.MAX_BLOCK_PAGES):
            try:
                data = await self._request(
                    "GET", f"/blocks/{block_id}/children", params=params
                )
            except (NotionAPIError, SourceUnavailable) as e:
                raise FetchFailed(str(e)) from e

            blocks.extend(block_from_api(b) for b in data.get("results", []))
            next_cursor = data.get("next_cursor")
            if not data.get("has_more") or not next_cursor:
                break
            params = {"page_size": page_size, "start_cursor": next_cursor}

        return blocks

    async def update_block_text(
        self, block_id: str, block_type: str, text: str | None
    ) -> None:
        """Overwrite the rich text of a text-bearing block.

        Raises:
            UpdateFailed: If the block type holds no rich text, or Notion
                rejects the update
            RemoteTimeout: If the request timed out
        """
        if block_type not in RICH_TEXT_BLOCK_TYPES:
            raise UpdateFailed(f"Block type '{block_type}' cannot hold text")
        try:
            await self._request(
                "PATCH",
                f"/blocks/{block_id}",
                json={block_type: {"rich_text": rich_text(text)}},
            )
        except (NotionAPIError, SourceUnavailable) as e:
            raise UpdateFailed(str(e)) from e

    async def append_paragraph(self, page_id: str, text: str | None) -> None:
        """Append a paragraph block to the end of a page.

        Raises:
            UpdateFailed: If Notion rejects the append
            RemoteTimeout: If the request timed out
        """
        try:
            await self._request(
                "PATCH",
                f"/blocks/{page_id}/children",
                json={"children": [paragraph_block(text)]},
            )
        except (NotionAPIError, SourceUnavailable) as e:
            raise UpdateFailed(str(e)) from e

    # --- Core HTTP ---

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        """Seconds to wait before the next attempt.

        A Retry-After header on a 429 wins over exponential backoff.
        """
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after is not None:
            return min(retry_after, self.BACKOFF_MAX)
        backoff = wait_exponential(
            multiplier=1, min=self.BACKOFF_MIN, max=self.BACKOFF_MAX
        ) + wait_random(0, self.JITTER)
        return backoff(retry_state)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        """Log a retry before tenacity sleeps."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "notion_request_retry",
            extra={
                "attempt": retry_state.attempt_number,
                "max_retries": self.max_retries,
                "error": str(exc),
            },
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request, retrying 429/5xx responses with backoff.

        Returns:
            Parsed JSON response

        Raises:
            NotionAPIError: Non-2xx response (after retries for 429/5xx)
            RemoteTimeout: Request exceeded its timeout
            SourceUnavailable: Transport-level failure (DNS, connection reset)
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._retry_wait,
            retry=retry_if_exception(
                lambda e: isinstance(e, NotionAPIError) and e.retryable
            ),
            before_sleep=self._log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                try:
                    response = await self._client.request(
                        method, path, params=params, json=json
                    )
                except httpx.TimeoutException as e:
                    logger.error(
                        "notion_request_timeout",
                        extra={"method": method, "path": path, "error": str(e)},
                    )
                    raise RemoteTimeout(f"{method} {path} timed out: {e}") from e
                except httpx.HTTPError as e:
                    logger.error(
                        "notion_request_error",
                        extra={"method": method, "path": path, "error": str(e)},
                    )
                    raise SourceUnavailable(f"{method} {path} failed: {e}") from e

                if response.status_code >= 400:
                    raise self._api_error(response)
                return response.json()

        # Unreachable: AsyncRetrying either returns or reraises
        raise SourceUnavailable(f"{method} {path} failed after retries")

    @staticmethod
    def _api_error(response: httpx.Response) -> NotionAPIError:
        """Build a NotionAPIError from an error response body."""
        try:
            body = response.json() if response.content else {}
        except (ValueError, UnicodeDecodeError):
            body = {}
        if not isinstance(body, dict):
            body = {}
        retry_after = None
        if response.status_code == 429:
            try:
                retry_after = float(response.headers.get("Retry-After", ""))
            except ValueError:
                retry_after = None
        return NotionAPIError(
            response.status_code,
            body.get("code", "unknown"),
            body.get("message", response.text),
            retry_after=retry_after,
        )
