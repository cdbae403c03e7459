"""Notion database schema for synced issues.

The property names below are the contract with the target database: it must
have these columns with these types.

    Name                title
    Issue Number        number
    State               select
    Number of Comments  number
    Issue URL           url      (natural key)
    Repository          select

Body text lives in the page content, not in a property.
"""

from typing import Any

from issuesync.models import Block, DestinationRecord, Issue

__all__ = [
    "PROP_COMMENTS",
    "PROP_ISSUE_NUMBER",
    "PROP_ISSUE_URL",
    "PROP_NAME",
    "PROP_REPOSITORY",
    "PROP_STATE",
    "RICH_TEXT_BLOCK_TYPES",
    "block_from_api",
    "body_blocks_from_issue",
    "paragraph_block",
    "properties_from_issue",
    "record_from_page",
    "rich_text",
]

PROP_NAME = "Name"
PROP_ISSUE_NUMBER = "Issue Number"
PROP_STATE = "State"
PROP_COMMENTS = "Number of Comments"
PROP_ISSUE_URL = "Issue URL"
PROP_REPOSITORY = "Repository"

# Notion limits: 2000 characters per text object, 100 objects per rich_text array
MAX_TEXT_LENGTH = 2000
MAX_RICH_TEXT_ITEMS = 100

# Block types whose payload is {"rich_text": [...]} and can be overwritten with text
RICH_TEXT_BLOCK_TYPES = frozenset(
    {
        "paragraph",
        "heading_1",
        "heading_2",
        "heading_3",
        "bulleted_list_item",
        "numbered_list_item",
        "quote",
        "callout",
        "toggle",
        "to_do",
        "code",
    }
)


def rich_text(content: str | None) -> list[dict[str, Any]]:
    """Split text into Notion rich text objects.

    None becomes an empty array. Text longer than 2000 characters is split
    across several objects; anything past 100 objects is dropped.
    """
    if not content:
        return []
    segments = [
        content[i : i + MAX_TEXT_LENGTH]
        for i in range(0, len(content), MAX_TEXT_LENGTH)
    ][:MAX_RICH_TEXT_ITEMS]
    return [
        {"type": "text", "text": {"content": segment, "link": None}}
        for segment in segments
    ]


def properties_from_issue(issue: Issue) -> dict[str, Any]:
    """Map an issue onto the database properties.

    Used for both create and update; the body is never part of it.
    """
    return {
        PROP_NAME: {
            "title": [
                {"type": "text", "text": {"content": issue.title[:MAX_TEXT_LENGTH]}}
            ],
        },
        PROP_ISSUE_NUMBER: {"number": issue.number},
        PROP_STATE: {"select": {"name": issue.state.value}},
        PROP_COMMENTS: {"number": issue.comment_count},
        PROP_ISSUE_URL: {"url": issue.url},
        PROP_REPOSITORY: {"select": {"name": issue.repository}},
    }


def paragraph_block(text: str | None) -> dict[str, Any]:
    """A paragraph block holding text."""
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": rich_text(text)},
    }


def body_blocks_from_issue(issue: Issue) -> list[dict[str, Any]]:
    """Initial page content for a new record: one paragraph with the body."""
    return [paragraph_block(issue.body)]


def record_from_page(page: dict[str, Any]) -> DestinationRecord:
    """Project a Notion page object onto (record_id, issue_url)."""
    prop = (page.get("properties") or {}).get(PROP_ISSUE_URL) or {}
    return DestinationRecord(record_id=page["id"], issue_url=prop.get("url"))


def block_from_api(block: dict[str, Any]) -> Block:
    """Convert a Notion block object into a Block with its plain text."""
    block_type = block.get("type", "")
    payload = block.get(block_type) or {}
    text = "".join(
        part.get("plain_text") or (part.get("text") or {}).get("content", "")
        for part in payload.get("rich_text") or []
    )
    return Block(block_id=block["id"], type=block_type, text=text)
