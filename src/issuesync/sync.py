"""Session driver: one reconciliation of GitHub repositories into Notion.

A session opens both clients, scans the Notion database once into an
identity map, then walks the configured repositories one after another:

    fetch -> plan -> create_all -> update_all -> sync_bodies

Every repository is planned against the same identity map snapshot. Pages
created for one repository are not visible to the next repository of the
same session; the next session's scan picks them up.

Failure handling:
- Identity map failure: fatal, raised to the caller.
- Issue fetch or parse failure: the repository is recorded as failed,
  the session moves on to the next repository.
- Per-item write or body failure: recorded in the result, never raised.
"""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .batching import BatchWriteExecutor
from .body_sync import BodySyncPass
from .config import SyncConfig, get_config
from .connectors.github import GitHubClient, GitHubIssueSource
from .connectors.notion import NotionClient
from .identity_map import IdentityMap, build_identity_map
from .models import ItemFailure
from .planner import plan

logger = logging.getLogger("issuesync.sync")

__all__ = ["IssueSyncEngine", "RepositoryResult", "SyncResult"]


@dataclass
class RepositoryResult:
    """Outcome of one repository within a session.

    Attributes:
        repository: Requested repository name
        fetched: Issues returned by GitHub
        planned_create: Size of the create set
        planned_update: Size of the update set
        skipped: Issues left out by the planner
        created: Pages created
        updated: Pages whose properties were updated
        bodies_updated: Body blocks overwritten
        bodies_unchanged: Body blocks that already matched
        bodies_appended: Body paragraphs appended to empty pages
        failures: Per-item failures (create, update, body)
        fetch_error: Error message when the issue list could not be fetched
    """

    repository: str
    fetched: int = 0
    planned_create: int = 0
    planned_update: int = 0
    skipped: int = 0
    created: int = 0
    updated: int = 0
    bodies_updated: int = 0
    bodies_unchanged: int = 0
    bodies_appended: int = 0
    failures: list[ItemFailure] = field(default_factory=list)
    fetch_error: str | None = None

    @property
    def fetch_failed(self) -> bool:
        return self.fetch_error is not None

    @property
    def errors(self) -> int:
        return len(self.failures) + (1 if self.fetch_failed else 0)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging and CLI output."""
        return {
            "repository": self.repository,
            "fetched": self.fetched,
            "planned_create": self.planned_create,
            "planned_update": self.planned_update,
            "skipped": self.skipped,
            "created": self.created,
            "updated": self.updated,
            "bodies_updated": self.bodies_updated,
            "bodies_unchanged": self.bodies_unchanged,
            "bodies_appended": self.bodies_appended,
            "errors": self.errors,
            "fetch_error": self.fetch_error,
        }


@dataclass
class SyncResult:
    """Result of a whole session, across repositories."""

    repositories: list[RepositoryResult] = field(default_factory=list)
    identity_map_size: int = 0
    identity_map_duplicates: int = 0
    dry_run: bool = False
    duration_seconds: float = 0.0

    @property
    def created(self) -> int:
        return sum(r.created for r in self.repositories)

    @property
    def updated(self) -> int:
        return sum(r.updated for r in self.repositories)

    @property
    def bodies_updated(self) -> int:
        return sum(r.bodies_updated + r.bodies_appended for r in self.repositories)

    @property
    def skipped(self) -> int:
        return sum(r.skipped for r in self.repositories)

    @property
    def errors(self) -> int:
        return sum(r.errors for r in self.repositories)

    @property
    def failures(self) -> list[ItemFailure]:
        return [f for r in self.repositories for f in r.failures]

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for metrics and logging."""
        return {
            "repositories": len(self.repositories),
            "identity_map_size": self.identity_map_size,
            "identity_map_duplicates": self.identity_map_duplicates,
            "created": self.created,
            "updated": self.updated,
            "bodies_updated": self.bodies_updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "dry_run": self.dry_run,
            "duration_seconds": round(self.duration_seconds, 2),
        }


class IssueSyncEngine:
    """Runs sync sessions of GitHub issues into a Notion database.

    Attributes:
        config: Sync configuration
        github: GitHubClient used to list issues
        notion: NotionClient (destination store)
        source: Issue source adapter over github
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        github: GitHubClient | None = None,
        notion: NotionClient | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Sync configuration. Uses get_config() if None.
            github: GitHub client. Built from config if None.
            notion: Destination store. Built from config if None.
        """
        self.config = config or get_config()

        self.github = github or GitHubClient(
            token=self.config.github_key.get_secret_value(),
            base_url=self.config.github_api_url,
            timeout=self.config.request_timeout,
        )
        self.notion = notion or NotionClient(
            token=self.config.notion_key.get_secret_value(),
            database_id=self.config.notion_database_id,
            base_url=self.config.notion_api_url,
            timeout=self.config.request_timeout,
            max_retries=self.config.notion_max_retries,
        )
        self.source = GitHubIssueSource(self.github, self.config.github_repo_owner)
        self.executor = BatchWriteExecutor(
            self.notion, batch_size=self.config.operation_batch_size
        )
        self.body_sync = BodySyncPass(
            self.notion, block_page_size=self.config.block_page_size
        )

    async def sync(
        self,
        repositories: Sequence[str] | None = None,
        dry_run: bool = False,
    ) -> SyncResult:
        """Run one session across repositories.

        Args:
            repositories: Repository names under the configured owner.
                Defaults to GITHUB_REPO_NAME.
            dry_run: Fetch and plan only, write nothing

        Returns:
            SyncResult with per-repository outcomes

        Raises:
            ValueError: If required configuration is missing
            SourceUnavailable: If the identity map could not be built
            RemoteTimeout: If the identity map scan timed out
        """
        self.config.validate_required(require_repositories=repositories is None)
        names = list(repositories) if repositories is not None else self.config.get_repositories()

        start = time.monotonic()
        result = SyncResult(dry_run=dry_run)

        logger.info(
            "sync_started",
            extra={
                "owner": self.config.github_repo_owner,
                "repositories": names,
                "dry_run": dry_run,
            },
        )

        async with self.github, self.notion:
            identity_map = await build_identity_map(self.notion)
            result.identity_map_size = len(identity_map)
            result.identity_map_duplicates = len(identity_map.duplicates)

            for name in names:
                result.repositories.append(
                    await self._sync_repository(name, identity_map, dry_run)
                )

        result.duration_seconds = time.monotonic() - start
        if not dry_run:
            self._push_metrics(result)

        logger.info("sync_completed", extra=result.to_dict())
        return result

    async def _sync_repository(
        self, name: str, identity_map: IdentityMap, dry_run: bool
    ) -> RepositoryResult:
        """Fetch, plan and apply one repository."""
        repo_result = RepositoryResult(repository=name)

        try:
            issues = await self.source.fetch_issues(name)
        except Exception as e:
            # Unparseable payloads end this repository only
            repo_result.fetch_error = str(e) or type(e).__name__
            logger.error(
                "repository_fetch_failed",
                extra={"repository": name, "error": str(e), "error_type": type(e).__name__},
            )
            return repo_result

        repo_result.fetched = len(issues)
        sync_plan = plan(
            issues,
            identity_map,
            include_pull_requests=self.config.include_pull_requests,
        )
        repo_result.planned_create = len(sync_plan.to_create)
        repo_result.planned_update = len(sync_plan.to_update)
        repo_result.skipped = sync_plan.skipped

        if dry_run:
            logger.info("repository_planned", extra=repo_result.to_dict())
            return repo_result

        create_report = await self.executor.create_all(sync_plan.to_create)
        repo_result.created = create_report.succeeded
        repo_result.failures.extend(create_report.failures)

        update_report = await self.executor.update_all(sync_plan.to_update)
        repo_result.updated = update_report.succeeded
        repo_result.failures.extend(update_report.failures)

        body_report = await self.body_sync.sync_bodies(sync_plan.to_update)
        repo_result.bodies_updated = body_report.updated
        repo_result.bodies_unchanged = body_report.unchanged
        repo_result.bodies_appended = body_report.appended
        repo_result.failures.extend(body_report.failures)

        logger.info("repository_synced", extra=repo_result.to_dict())
        return repo_result

    # -- Metrics -------------------------------------------------------

    def _push_metrics(self, result: SyncResult) -> None:
        """Push session metrics to the pushgateway, when enabled.

        Push failures are logged and ignored.
        """
        if not self.config.metrics_push_enabled:
            return

        try:
            from prometheus_client import CollectorRegistry, Counter, Gauge
            from prometheus_client.exposition import pushadd_to_gateway

            registry = CollectorRegistry()

            operations = Counter(
                "issue_sync_operations_total",
                "Issue sync write operations",
                ["operation", "status"],
                registry=registry,
            )
            duration = Gauge(
                "issue_sync_duration_seconds",
                "Issue sync session duration",
                registry=registry,
            )

            failed_by_operation: dict[str, int] = {}
            for failure in result.failures:
                failed_by_operation[failure.operation] = (
                    failed_by_operation.get(failure.operation, 0) + 1
                )

            operations.labels(operation="create", status="success").inc(result.created)
            operations.labels(operation="update", status="success").inc(result.updated)
            operations.labels(operation="body", status="success").inc(
                result.bodies_updated
            )
            operations.labels(operation="all", status="skipped").inc(result.skipped)
            for operation, count in failed_by_operation.items():
                operations.labels(operation=operation, status="failed").inc(count)
            operations.labels(operation="fetch", status="failed").inc(
                sum(1 for r in result.repositories if r.fetch_failed)
            )
            duration.set(result.duration_seconds)

            pushadd_to_gateway(
                self.config.pushgateway_url,
                job="issue_sync",
                registry=registry,
                grouping_key={"instance": self.config.github_repo_owner or "default"},
            )
        except Exception as e:
            logger.warning("Failed to push metrics: %s", e)
