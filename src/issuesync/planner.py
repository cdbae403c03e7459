"""Reconciliation planner.

Splits a freshly fetched issue list into the issues that need a new Notion
page and the issues whose page already exists. Pure function: no I/O and no
hidden state, so planning the same input twice yields the same plan.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .models import Issue, PlannedUpdate

__all__ = ["SyncPlan", "plan"]


@dataclass
class SyncPlan:
    """Output of plan().

    Attributes:
        to_create: Issues without a record, in input order
        to_update: Issues with a record, annotated with its id, in input order
        skipped: Issues left out (excluded pull requests, repeated URLs)
    """

    to_create: list[Issue] = field(default_factory=list)
    to_update: list[PlannedUpdate] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.to_create) + len(self.to_update)


def plan(
    issues: Sequence[Issue],
    identity_map: Mapping[str, str],
    include_pull_requests: bool = True,
) -> SyncPlan:
    """Partition issues into create and update sets.

    Stable partition: each output list keeps the relative input order. An
    issue URL is planned at most once; later repeats of the same URL are
    counted as skipped.

    Args:
        issues: Issues fetched for one repository
        identity_map: Issue URL -> record id, built at session start
        include_pull_requests: When False, pull requests are skipped

    Returns:
        SyncPlan with to_create, to_update and skipped count
    """
    result = SyncPlan()
    seen: set[str] = set()

    for issue in issues:
        if issue.url in seen or (issue.is_pull_request and not include_pull_requests):
            result.skipped += 1
            continue
        seen.add(issue.url)

        record_id = identity_map.get(issue.url)
        if record_id:
            result.to_update.append(PlannedUpdate(issue=issue, record_id=record_id))
        else:
            result.to_create.append(issue)

    return result
