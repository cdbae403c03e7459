"""Notion connector: database scan, page writes and block edits."""

from .client import NotionAPIError, NotionClient
from .schema import body_blocks_from_issue, properties_from_issue

__all__ = [
    "NotionAPIError",
    "NotionClient",
    "body_blocks_from_issue",
    "properties_from_issue",
]
