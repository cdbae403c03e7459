"""Batch write executor.

Creates and updates Notion pages in fixed-size batches: every write of a
batch is issued concurrently, and the next batch starts only once the whole
batch has settled. Bounded concurrency keeps the destination's rate limit in
reach; strict batch sequencing keeps runs reproducible.

Failure policy: concurrent batch of N, best-effort. A failed write is
recorded as an ItemFailure and does not cancel the rest of its batch or the
batches after it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .config import DEFAULT_BATCH_SIZE
from .connectors.notion.schema import body_blocks_from_issue, properties_from_issue
from .errors import SyncError
from .models import Issue, ItemFailure, PlannedUpdate

logger = logging.getLogger("issuesync.batching")

__all__ = ["BatchReport", "BatchWriteExecutor", "chunked"]

T = TypeVar("T")

OP_CREATE = "create"
OP_UPDATE = "update"


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most size items, in order.

    Raises:
        ValueError: If size < 1
    """
    if size < 1:
        raise ValueError(f"Batch size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


@dataclass
class BatchReport:
    """Outcome of create_all() or update_all().

    Attributes:
        operation: "create" or "update"
        succeeded: Number of writes that succeeded
        failures: One ItemFailure per failed write
        batch_sizes: Size of each batch, in the order issued
        created_ids: Issue URL -> new record id (creates only)
    """

    operation: str
    succeeded: int = 0
    failures: list[ItemFailure] = field(default_factory=list)
    batch_sizes: list[int] = field(default_factory=list)
    created_ids: dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def attempted(self) -> int:
        return sum(self.batch_sizes)


class BatchWriteExecutor:
    """Apply create and update sets to the destination store in batches.

    Attributes:
        store: Destination store (NotionClient or compatible)
        batch_size: Writes issued concurrently per batch
    """

    def __init__(self, store, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError(f"Batch size must be >= 1, got {batch_size}")
        self.store = store
        self.batch_size = batch_size

    async def create_all(self, to_create: Sequence[Issue]) -> BatchReport:
        """Create one page per issue, properties plus initial body.

        The identity map is not updated; the next session's scan sees the
        new pages.
        """
        report = BatchReport(operation=OP_CREATE)

        async def create(issue: Issue) -> str:
            return await self.store.create_page(
                properties_from_issue(issue),
                body_blocks_from_issue(issue),
            )

        def on_success(issue: Issue, record_id: Any) -> None:
            report.created_ids[issue.url] = record_id

        await self._run(
            to_create,
            create,
            key=lambda issue: issue.url,
            report=report,
            on_success=on_success,
        )
        return report

    async def update_all(self, to_update: Sequence[PlannedUpdate]) -> BatchReport:
        """Update the structured properties of existing pages.

        Only title, number, state, comment count, url and repository are
        written; the page body is left to the body sync pass.
        """
        report = BatchReport(operation=OP_UPDATE)

        async def update(planned: PlannedUpdate) -> None:
            await self.store.update_page_properties(
                planned.record_id, properties_from_issue(planned.issue)
            )

        await self._run(
            to_update,
            update,
            key=lambda planned: planned.issue.url,
            report=report,
        )
        return report

    async def _run(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[Any]],
        key: Callable[[T], str],
        report: BatchReport,
        on_success: Callable[[T, Any], None] | None = None,
    ) -> None:
        """Issue batches in sequence, each batch's writes concurrently."""
        total_batches = -(-len(items) // self.batch_size)

        for index, batch in enumerate(chunked(items, self.batch_size), start=1):
            report.batch_sizes.append(len(batch))
            outcomes = await asyncio.gather(
                *(operation(item) for item in batch),
                return_exceptions=True,
            )

            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        # CancelledError / KeyboardInterrupt are not per-item failures
                        raise outcome
                    failure = ItemFailure(
                        issue_url=key(item),
                        operation=report.operation,
                        error=str(outcome) or type(outcome).__name__,
                    )
                    report.failures.append(failure)
                    log = logger.warning if isinstance(outcome, SyncError) else logger.error
                    log(
                        "batch_item_failed",
                        extra={
                            "issue_url": failure.issue_url,
                            "operation": failure.operation,
                            "error": failure.error,
                            "error_type": type(outcome).__name__,
                        },
                    )
                else:
                    report.succeeded += 1
                    if on_success is not None:
                        on_success(item, outcome)

            logger.info(
                "batch_completed",
                extra={
                    "operation": report.operation,
                    "batch": index,
                    "batches": total_batches,
                    "batch_size": len(batch),
                },
            )
