"""Error taxonomy for the synchronization engine.

Identity-map failures are session-fatal. Write failures (create, update,
body) are isolated per issue and collected into the run result.
"""

__all__ = [
    "CreateFailed",
    "FetchFailed",
    "RemoteTimeout",
    "SourceUnavailable",
    "SyncError",
    "UpdateFailed",
    "WriteFailed",
]


class SyncError(Exception):
    """Base class for all synchronization errors."""

    pass


class SourceUnavailable(SyncError):
    """Tracker or destination store unreachable, or a paginated scan broke."""

    pass


class RemoteTimeout(SyncError):
    """A remote call exceeded its configured timeout."""

    pass


class FetchFailed(SyncError):
    """Listing the content blocks of a destination record failed."""

    pass


class WriteFailed(SyncError):
    """A single write was rejected by the destination store."""

    pass


class CreateFailed(WriteFailed):
    """Creating a destination record failed."""

    pass


class UpdateFailed(WriteFailed):
    """Updating record properties or block text failed."""

    pass
