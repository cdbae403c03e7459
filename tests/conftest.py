"""Shared pytest fixtures for issue-notion-sync tests.

Fixture organization:
    - Isolation fixtures (autouse): config singleton and logging handlers
    - Sample data fixtures: Issue factory, ready-to-sync SyncConfig
    - Mock fixtures: in-memory Notion store and GitHub client
"""

import logging
import sys
from pathlib import Path

import pytest

from issuesync.config import SyncConfig, reset_config
from issuesync.models import Issue, IssueState

# Add tests directory to sys.path so tests can import the mocks package
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from mocks.github_mock import MockGitHubClient  # noqa: E402
from mocks.notion_mock import MockNotionStore  # noqa: E402

SYNC_ENV_VARS = (
    "GITHUB_KEY",
    "GITHUB_REPO_OWNER",
    "GITHUB_REPO_NAME",
    "GITHUB_API_URL",
    "NOTION_KEY",
    "NOTION_DATABASE_ID",
    "NOTION_API_URL",
    "OPERATION_BATCH_SIZE",
    "BLOCK_PAGE_SIZE",
    "REQUEST_TIMEOUT",
    "NOTION_MAX_RETRIES",
    "INCLUDE_PULL_REQUESTS",
    "SYNC_INTERVAL",
    "SYNC_ON_START",
    "METRICS_PUSH_ENABLED",
    "PUSHGATEWAY_URL",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove sync variables from the environment and reset the config singleton."""
    for name in SYNC_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test to allow caplog to work.

    configure_logging() runs at package import and disables propagation on
    the issuesync logger, which hides records from caplog.
    """
    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith("issuesync"):
            child_logger = logging.getLogger(name)
            child_logger.handlers.clear()
            child_logger.propagate = True

    logging.getLogger("issuesync").setLevel(logging.DEBUG)

    yield

    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith("issuesync"):
            child_logger = logging.getLogger(name)
            child_logger.handlers.clear()
            child_logger.propagate = True


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def make_issue():
    """Factory for Issue values keyed by repository and number."""

    def _make(
        number: int,
        repo: str = "api",
        body: str | None = "Issue body",
        state: IssueState = IssueState.OPEN,
        pull_request: bool = False,
        **kwargs,
    ) -> Issue:
        kind = "pull" if pull_request else "issues"
        return Issue(
            number=number,
            title=kwargs.pop("title", f"Issue {number}"),
            state=state,
            comment_count=kwargs.pop("comment_count", 0),
            url=f"https://github.com/octo/{repo}/{kind}/{number}",
            body=body,
            repository=repo,
            pull_request=(
                f"https://api.github.com/repos/octo/{repo}/pulls/{number}"
                if pull_request
                else None
            ),
            **kwargs,
        )

    return _make


@pytest.fixture
def sync_config():
    """SyncConfig with every required value set, isolated from .env."""
    return SyncConfig(
        _env_file=None,
        github_key="ghp_test_token",
        github_repo_owner="octo",
        github_repo_name="api,web",
        notion_key="secret_test_token",
        notion_database_id="db-123",
        operation_batch_size=10,
    )


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def notion_store():
    """Empty in-memory Notion store."""
    return MockNotionStore()


@pytest.fixture
def github_mock():
    """GitHub client serving no issues until populated."""
    return MockGitHubClient()
