"""Body sync pass.

Runs after the property updates of a repository. For every existing record
it lists the page's blocks, picks the last one and overwrites its text with
the issue body. Records are handled one at a time; a failure on one record
is recorded and the pass moves on.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from .errors import SyncError
from .models import Block, ItemFailure, PlannedUpdate

logger = logging.getLogger("issuesync.body_sync")

__all__ = ["BodySyncPass", "BodySyncReport", "select_target_block"]

OP_LIST_BLOCKS = "list_blocks"
OP_UPDATE_BLOCK = "update_block"
OP_APPEND_BLOCK = "append_block"


def select_target_block(blocks: Sequence[Block]) -> Block | None:
    """Pick the block that receives the body: the last one listed.

    Returns:
        Last block of the ordered listing, None for an empty listing
    """
    if not blocks:
        return None
    return blocks[-1]


@dataclass
class BodySyncReport:
    """Outcome of sync_bodies().

    Attributes:
        updated: Blocks whose text was overwritten
        unchanged: Blocks that already held the body
        appended: Pages without blocks that got a new paragraph
        failures: One ItemFailure per record that could not be synced
    """

    updated: int = 0
    unchanged: int = 0
    appended: int = 0
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def succeeded(self) -> int:
        return self.updated + self.unchanged + self.appended


class BodySyncPass:
    """Overwrite the body block of existing records.

    Attributes:
        store: Destination store (NotionClient or compatible)
        block_page_size: Page size used when listing blocks
    """

    def __init__(self, store, block_page_size: int = 100) -> None:
        self.store = store
        self.block_page_size = block_page_size

    async def sync_bodies(self, to_update: Sequence[PlannedUpdate]) -> BodySyncReport:
        """Sync the body of every record, sequentially.

        Args:
            to_update: Update set from the planner

        Returns:
            BodySyncReport; never raises for a single record's failure
        """
        report = BodySyncReport()

        for planned in to_update:
            failure = await self._sync_one(planned, report)
            if failure is not None:
                report.failures.append(failure)

        logger.info(
            "body_sync_completed",
            extra={
                "records": len(to_update),
                "updated": report.updated,
                "unchanged": report.unchanged,
                "appended": report.appended,
                "failed": report.failed,
            },
        )
        return report

    async def _sync_one(
        self, planned: PlannedUpdate, report: BodySyncReport
    ) -> ItemFailure | None:
        issue = planned.issue
        body = issue.body or ""

        try:
            blocks = await self.store.list_block_children(
                planned.record_id, page_size=self.block_page_size
            )
        except Exception as e:
            return self._failure(planned, OP_LIST_BLOCKS, e)

        target = select_target_block(blocks)

        if target is None:
            try:
                await self.store.append_paragraph(planned.record_id, body)
            except Exception as e:
                return self._failure(planned, OP_APPEND_BLOCK, e)
            report.appended += 1
            return None

        if target.text == body:
            report.unchanged += 1
            return None

        try:
            await self.store.update_block_text(target.block_id, target.type, body)
        except Exception as e:
            return self._failure(planned, OP_UPDATE_BLOCK, e)

        report.updated += 1
        logger.debug(
            "body_block_updated",
            extra={"issue_url": issue.url, "block_id": target.block_id},
        )
        return None

    def _failure(
        self, planned: PlannedUpdate, operation: str, error: Exception
    ) -> ItemFailure:
        """Record one record's failure and log it; the pass goes on."""
        failure = ItemFailure(
            planned.issue.url, operation, str(error) or type(error).__name__
        )
        log = logger.warning if isinstance(error, SyncError) else logger.error
        log(
            "body_sync_failed",
            extra={
                "issue_url": failure.issue_url,
                "record_id": planned.record_id,
                "operation": failure.operation,
                "error": failure.error,
                "error_type": type(error).__name__,
            },
        )
        return failure
