"""Issue source adapter: GitHub issues normalized into Issue values.

The repository an issue reports is taken from its own repository_url, not
from the name that was requested. A renamed or transferred repository
redirects, and the issue then carries its current repository name.
"""

import logging
from typing import Any

from issuesync.models import Issue, IssueState

from .client import GitHubClient

logger = logging.getLogger("issuesync.github.issues")

__all__ = ["GitHubIssueSource", "issue_from_api"]


def _repository_from_url(repository_url: str) -> str:
    """Last path segment of .../repos/{owner}/{repo}."""
    return repository_url.rstrip("/").rsplit("/", 1)[-1]


def issue_from_api(raw: dict[str, Any]) -> Issue:
    """Normalize a raw GitHub issue dict.

    Args:
        raw: Issue object from GET /repos/{owner}/{repo}/issues

    Returns:
        Issue; pull_request holds the PR API URL for pull requests
    """
    labels = [label["name"] for label in raw.get("labels") or [] if label.get("name")]
    milestone = raw.get("milestone") or {}
    pull_request = raw.get("pull_request") or {}

    return Issue(
        number=raw["number"],
        title=raw.get("title") or "",
        state=IssueState(raw.get("state", "open")),
        comment_count=raw.get("comments", 0),
        url=raw["html_url"],
        body=raw.get("body"),
        repository=_repository_from_url(raw.get("repository_url", "")),
        status=", ".join(labels) if labels else None,
        milestone=milestone.get("title"),
        pull_request=pull_request.get("url") if pull_request else None,
    )


class GitHubIssueSource:
    """Fetch the full, de-paginated issue list of one repository.

    Attributes:
        client: GitHubClient used for requests
        owner: Owner of every repository fetched through this source
    """

    def __init__(self, client: GitHubClient, owner: str) -> None:
        self.client = client
        self.owner = owner

    async def fetch_issues(self, repository_name: str) -> list[Issue]:
        """Fetch every issue (open and closed, PRs included) of a repository.

        Args:
            repository_name: Requested repository, under self.owner

        Returns:
            Issues in API order

        Raises:
            SourceUnavailable: If GitHub cannot be listed
            RemoteTimeout: If a page request timed out
        """
        raw_issues = await self.client.list_issues(self.owner, repository_name, state="all")
        issues = [issue_from_api(raw) for raw in raw_issues]
        logger.info(
            "github_issues_fetched",
            extra={
                "repository": f"{self.owner}/{repository_name}",
                "issues": len(issues),
                "pull_requests": sum(1 for i in issues if i.is_pull_request),
            },
        )
        return issues
