"""Data models shared by the planner, executor and connectors.

Issue values are recomputed on every run. Destination records are created
once and updated in place; only their id and issue URL matter to the engine.
"""

from dataclasses import dataclass, field
from enum import Enum

__all__ = [
    "Block",
    "DestinationRecord",
    "Issue",
    "IssueState",
    "ItemFailure",
    "PlannedUpdate",
    "RecordPage",
]


class IssueState(str, Enum):
    """GitHub issue state.

    Uses (str, Enum) so values serialize directly into Notion select names.
    """

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class Issue:
    """A GitHub issue (or pull request) normalized for sync.

    Attributes:
        number: Issue number within its repository
        title: Issue title
        state: open or closed
        comment_count: Number of comments on the issue
        url: html_url of the issue, the natural key across runs
        body: Markdown body, None when the issue has no description
        repository: Repository name reported by the issue itself
        status: Comma-joined label names, None without labels
        milestone: Milestone title, None without milestone
        pull_request: Pull request API URL when the entry is a PR, else None
    """

    number: int
    title: str
    state: IssueState
    comment_count: int
    url: str
    body: str | None = None
    repository: str = ""
    status: str | None = None
    milestone: str | None = None
    pull_request: str | None = None

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None


@dataclass(frozen=True)
class PlannedUpdate:
    """An issue that already has a destination record."""

    issue: Issue
    record_id: str


@dataclass(frozen=True)
class DestinationRecord:
    """Minimal projection of a Notion page: its id and the issue URL it holds."""

    record_id: str
    issue_url: str | None


@dataclass
class RecordPage:
    """One page of a destination-store scan."""

    records: list[DestinationRecord] = field(default_factory=list)
    next_cursor: str | None = None


@dataclass(frozen=True)
class Block:
    """A child block of a Notion page.

    Attributes:
        block_id: Notion block id
        type: Notion block type (paragraph, heading_1, image, ...)
        text: Plain text of the block's rich text ("" when it holds none)
    """

    block_id: str
    type: str = "paragraph"
    text: str = ""


@dataclass(frozen=True)
class ItemFailure:
    """A single failed operation, with enough context for manual remediation."""

    issue_url: str
    operation: str
    error: str

    def __str__(self) -> str:
        return f"{self.operation} {self.issue_url}: {self.error}"
