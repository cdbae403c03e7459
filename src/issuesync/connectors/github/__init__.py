"""GitHub connector: de-paginated issue listing for the sync engine."""

from .client import GitHubClient, GitHubClientError, RateLimitExceeded
from .issues import GitHubIssueSource, issue_from_api

__all__ = [
    "GitHubClient",
    "GitHubClientError",
    "GitHubIssueSource",
    "RateLimitExceeded",
    "issue_from_api",
]
