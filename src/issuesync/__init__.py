"""issue-notion-sync - keep a Notion database in step with GitHub issues.

Provides:
- Identity map between GitHub issue URLs and Notion page ids
- Reconciliation planner (create set / update set)
- Batched, best-effort write executor and body sync pass
- Session driver running one reconciliation across several repositories

Python Version: 3.10+ required
"""

# Logging is configured before the rest of the package is imported
from .logging_config import StructuredFormatter, configure_logging

configure_logging()

from .__version__ import __version__
from .batching import BatchReport, BatchWriteExecutor, chunked
from .body_sync import BodySyncPass, BodySyncReport, select_target_block
from .config import SyncConfig, get_config, reset_config
from .errors import (
    CreateFailed,
    FetchFailed,
    RemoteTimeout,
    SourceUnavailable,
    SyncError,
    UpdateFailed,
    WriteFailed,
)
from .identity_map import IdentityMap, build_identity_map
from .models import (
    Block,
    DestinationRecord,
    Issue,
    IssueState,
    ItemFailure,
    PlannedUpdate,
    RecordPage,
)
from .planner import SyncPlan, plan
from .sync import IssueSyncEngine, RepositoryResult, SyncResult

__all__ = [
    "BatchReport",
    "BatchWriteExecutor",
    "Block",
    "BodySyncPass",
    "BodySyncReport",
    "CreateFailed",
    "DestinationRecord",
    "FetchFailed",
    "IdentityMap",
    "Issue",
    "IssueState",
    "IssueSyncEngine",
    "ItemFailure",
    "PlannedUpdate",
    "RecordPage",
    "RemoteTimeout",
    "RepositoryResult",
    "SourceUnavailable",
    "StructuredFormatter",
    "SyncConfig",
    "SyncError",
    "SyncPlan",
    "SyncResult",
    "UpdateFailed",
    "WriteFailed",
    "__version__",
    "build_identity_map",
    "chunked",
    "configure_logging",
    "get_config",
    "plan",
    "reset_config",
    "select_target_block",
]
