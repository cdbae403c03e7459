"""Unit tests for GitHub API client.

Tests GitHubClient with:
- Authentication headers
- Link header pagination (and its page bound)
- Rate limiting (primary pacing, 403 / 429 handling)
- Error handling (retries, backoff, non-retryable errors, timeouts)
"""

import time
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from issuesync.connectors.github.client import (
    GitHubClient,
    GitHubClientError,
    RateLimitExceeded,
)
from issuesync.errors import RemoteTimeout, SourceUnavailable

SLEEP = "issuesync.connectors.github.client.asyncio.sleep"


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def github_client():
    """Create GitHubClient instance for testing with zero delays."""
    return GitHubClient(token="ghp_test_token_123", min_delay_ms=0)


def _mock_response(
    status_code: int = 200,
    json_data: dict | list | None = None,
    headers: dict | None = None,
    content: bytes = b"{}",
) -> Mock:
    """Create a mock httpx.Response with given attributes."""
    resp = Mock(spec=httpx.Response)
    resp.status_code = status_code
    resp.json.return_value = json_data if json_data is not None else {}
    resp.content = content
    resp.text = content.decode() if content else ""
    _headers = {
        "X-RateLimit-Remaining": "4999",
        "X-RateLimit-Reset": str(int(time.time()) + 3600),
    }
    if headers:
        _headers.update(headers)
    resp.headers = _headers
    return resp


# =============================================================================
# Connection Tests
# =============================================================================


class TestConnection:
    """Test connection and authentication."""

    @pytest.mark.asyncio
    async def test_connection_success(self, github_client):
        mock_resp = _mock_response(json_data={"login": "testuser"})

        with patch.object(
            github_client._client, "request", new=AsyncMock(return_value=mock_resp)
        ):
            result = await github_client.test_connection()

        assert result["success"] is True
        assert result["user"] == "testuser"
        assert result["rate_limit_remaining"] == 4999

    @pytest.mark.asyncio
    async def test_connection_invalid_token(self, github_client):
        mock_resp = _mock_response(
            status_code=401,
            json_data={"message": "Bad credentials"},
            content=b'{"message": "Bad credentials"}',
        )

        with patch.object(
            github_client._client, "request", new=AsyncMock(return_value=mock_resp)
        ):
            result = await github_client.test_connection()

        assert result["success"] is False
        assert "Bad credentials" in result["error"]

    def test_headers(self, github_client):
        headers = github_client._client.headers
        assert headers["Authorization"] == "Bearer ghp_test_token_123"
        assert headers["Accept"] == "application/vnd.github+json"
        assert headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert "issue-notion-sync" in headers["User-Agent"]


class TestClientConfiguration:
    def test_base_url_default(self, github_client):
        assert github_client.base_url == "https://api.github.com"

    def test_base_url_custom(self):
        client = GitHubClient(token="token", base_url="https://github.example.com/api/v3/")
        assert client.base_url == "https://github.example.com/api/v3"

    def test_timeout_configuration(self):
        client = GitHubClient(token="token", timeout=12.0)
        timeout = client._client.timeout
        assert timeout.connect == 5.0
        assert timeout.read == 12.0


class TestContextManager:
    @pytest.mark.asyncio
    async def test_close_called_on_exit(self):
        client = GitHubClient(token="token")
        with patch.object(client, "close", new=AsyncMock()) as mock_close:
            async with client:
                pass
        mock_close.assert_called_once()

    @pytest.mark.asyncio
    async def test_manual_close(self, github_client):
        with patch.object(github_client._client, "aclose", new=AsyncMock()) as mock_aclose:
            await github_client.close()
        mock_aclose.assert_called_once()


# =============================================================================
# Pagination Tests
# =============================================================================


class TestParseLinkHeader:
    def test_parse_next_link_present(self, github_client):
        header = (
            '<https://api.github.com/repos/o/r/issues?page=2>; rel="next", '
            '<https://api.github.com/repos/o/r/issues?page=5>; rel="last"'
        )
        assert (
            github_client._parse_next_link(header)
            == "https://api.github.com/repos/o/r/issues?page=2"
        )

    def test_parse_next_link_absent(self, github_client):
        header = '<https://api.github.com/repos/o/r/issues?page=5>; rel="last"'
        assert github_client._parse_next_link(header) is None

    def test_parse_next_link_empty(self, github_client):
        assert github_client._parse_next_link("") is None

    def test_foreign_url_rejected(self, github_client):
        header = '<https://evil.example.com/repos/o/r/issues?page=2>; rel="next"'
        assert github_client._parse_next_link(header) is None


class TestPagination:
    @pytest.mark.asyncio
    async def test_list_issues_follows_link_headers(self, github_client):
        page1 = _mock_response(
            json_data=[{"number": 1}, {"number": 2}],
            headers={
                "Link": '<https://api.github.com/repos/octo/api/issues?state=all&per_page=100&page=2>; rel="next"'
            },
        )
        page2 = _mock_response(json_data=[{"number": 3}])

        with patch.object(
            github_client._client,
            "request",
            new=AsyncMock(side_effect=[page1, page2]),
        ) as mock_request:
            result = await github_client.list_issues("octo", "api")

        assert [i["number"] for i in result] == [1, 2, 3]
        first, second = mock_request.call_args_list
        assert first.args == ("GET", "/repos/octo/api/issues")
        assert first.kwargs["params"] == {"state": "all", "per_page": "100"}
        assert second.args == ("GET", "/repos/octo/api/issues?state=all&per_page=100&page=2")
        assert second.kwargs["params"] is None

    @pytest.mark.asyncio
    async def test_paginate_max_pages_raises(self, github_client):
        """A listing that never ends fails instead of returning a partial list."""
        resp = _mock_response(
            json_data=[{"number": 1}],
            headers={"Link": '<https://api.github.com/repos/o/r/issues?page=2>; rel="next"'},
        )

        with patch.object(
            github_client._client, "request", new=AsyncMock(return_value=resp)
        ) as mock_request:
            with pytest.raises(GitHubClientError, match="exceeded 3 pages"):
                await github_client._paginate("/repos/o/r/issues", max_pages=3)

        assert mock_request.call_count == 3


# =============================================================================
# Rate Limiting Tests
# =============================================================================


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_rate_limit_tracking(self, github_client):
        resp = _mock_response(
            json_data={"login": "test"},
            headers={"X-RateLimit-Remaining": "4500"},
        )

        with patch.object(github_client._client, "request", new=AsyncMock(return_value=resp)):
            await github_client._raw_request("GET", "/user")

        assert github_client._rate_limit_remaining == 4500

    @pytest.mark.asyncio
    async def test_rate_limit_backoff_on_403(self, github_client):
        """403 with remaining=0 triggers wait-and-retry."""
        resp_403 = _mock_response(
            status_code=403,
            headers={
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(time.time()) + 5),
            },
        )
        resp_ok = _mock_response(json_data={"login": "test"})

        with (
            patch.object(
                github_client._client,
                "request",
                new=AsyncMock(side_effect=[resp_403, resp_ok]),
            ),
            patch(SLEEP, new=AsyncMock()),
        ):
            response = await github_client._raw_request("GET", "/user")

        assert response.json() == {"login": "test"}

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, github_client):
        resp_403 = _mock_response(
            status_code=403,
            headers={
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(time.time()) + 5),
            },
        )

        with (
            patch.object(github_client._client, "request", new=AsyncMock(return_value=resp_403)),
            patch(SLEEP, new=AsyncMock()),
        ):
            with pytest.raises(RateLimitExceeded) as exc_info:
                await github_client._raw_request("GET", "/user")

        assert isinstance(exc_info.value, SourceUnavailable)

    @pytest.mark.asyncio
    async def test_secondary_rate_limit_429(self, github_client):
        resp_429 = _mock_response(status_code=429, headers={"Retry-After": "5"})
        resp_ok = _mock_response(json_data={"login": "test"})

        with (
            patch.object(
                github_client._client,
                "request",
                new=AsyncMock(side_effect=[resp_429, resp_ok]),
            ),
            patch(SLEEP, new=AsyncMock()) as mock_sleep,
        ):
            await github_client._raw_request("GET", "/user")

        assert any(c.args[0] == 5 for c in mock_sleep.call_args_list)

    @pytest.mark.asyncio
    async def test_low_quota_waits_for_reset(self, github_client):
        github_client._rate_limit_remaining = 10
        github_client._rate_limit_reset = time.time() + 30

        with patch(SLEEP, new=AsyncMock()) as mock_sleep:
            await github_client._enforce_rate_limit()

        mock_sleep.assert_awaited()
        assert mock_sleep.call_args_list[0].args[0] <= GitHubClient.MAX_BACKOFF


# =============================================================================
# Error Handling Tests
# =============================================================================


class TestErrorHandling:
    @pytest.mark.asyncio
    async def test_server_error_retried(self, github_client):
        resp_500 = _mock_response(status_code=502)
        resp_ok = _mock_response(json_data=[])

        with (
            patch.object(
                github_client._client,
                "request",
                new=AsyncMock(side_effect=[resp_500, resp_ok]),
            ) as mock_request,
            patch(SLEEP, new=AsyncMock()),
        ):
            await github_client._raw_request("GET", "/repos/o/r/issues")

        assert mock_request.call_count == 2

    @pytest.mark.asyncio
    async def test_server_error_exhausted(self, github_client):
        resp_500 = _mock_response(status_code=500)

        with (
            patch.object(github_client._client, "request", new=AsyncMock(return_value=resp_500)) as mock_request,
            patch(SLEEP, new=AsyncMock()),
        ):
            with pytest.raises(GitHubClientError, match="server error 500"):
                await github_client._raw_request("GET", "/repos/o/r/issues")

        assert mock_request.call_count == GitHubClient.MAX_RETRIES + 1

    @pytest.mark.asyncio
    async def test_not_found_not_retried(self, github_client):
        resp_404 = _mock_response(
            status_code=404,
            json_data={"message": "Not Found"},
            content=b'{"message": "Not Found"}',
        )

        with patch.object(
            github_client._client, "request", new=AsyncMock(return_value=resp_404)
        ) as mock_request:
            with pytest.raises(GitHubClientError, match="404: Not Found"):
                await github_client.list_issues("octo", "missing")

        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_maps_to_remote_timeout(self, github_client):
        with (
            patch.object(
                github_client._client,
                "request",
                new=AsyncMock(side_effect=httpx.ReadTimeout("read timed out")),
            ) as mock_request,
            patch(SLEEP, new=AsyncMock()),
        ):
            with pytest.raises(RemoteTimeout):
                await github_client._raw_request("GET", "/repos/o/r/issues")

        assert mock_request.call_count == GitHubClient.MAX_RETRIES + 1

    @pytest.mark.asyncio
    async def test_transport_error(self, github_client):
        with patch.object(
            github_client._client,
            "request",
            new=AsyncMock(side_effect=httpx.ConnectError("connection refused")),
        ):
            with pytest.raises(GitHubClientError, match="HTTP error"):
                await github_client._raw_request("GET", "/user")
