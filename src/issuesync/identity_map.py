"""Identity map: GitHub issue URL -> Notion page id.

Built once per session by scanning the whole Notion database, then shared
read-only by every repository processed in that session. Creates issued
during the session are not written back; the next session's scan picks
them up.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping

from .errors import SourceUnavailable
from .models import DestinationRecord

logger = logging.getLogger("issuesync.identity_map")

__all__ = ["IdentityMap", "build_identity_map"]

# Safety bound on the database scan (100 records per page)
MAX_SCAN_PAGES = 1000


class IdentityMap(Mapping[str, str]):
    """Immutable mapping from issue URL to destination record id.

    Attributes:
        duplicates: Issue URLs that appeared on more than one record during
            the scan. The last record seen wins.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self.duplicates: tuple[str, ...] = ()

    @classmethod
    def from_records(cls, records: Iterable[DestinationRecord]) -> "IdentityMap":
        """Build a map from scanned records, last write wins.

        Records without an issue URL are skipped.
        """
        entries: dict[str, str] = {}
        duplicates: list[str] = []
        for record in records:
            if not record.issue_url:
                logger.debug(
                    "identity_map_record_without_url",
                    extra={"record_id": record.record_id},
                )
                continue
            previous = entries.get(record.issue_url)
            if previous is not None and previous != record.record_id:
                logger.warning(
                    "identity_map_duplicate_url",
                    extra={
                        "issue_url": record.issue_url,
                        "kept_record_id": record.record_id,
                        "dropped_record_id": previous,
                    },
                )
                duplicates.append(record.issue_url)
            entries[record.issue_url] = record.record_id

        identity_map = cls(entries)
        identity_map.duplicates = tuple(duplicates)
        return identity_map

    def __getitem__(self, issue_url: str) -> str:
        return self._entries[issue_url]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<IdentityMap(entries={len(self._entries)}, duplicates={len(self.duplicates)})>"


async def build_identity_map(store, max_pages: int = MAX_SCAN_PAGES) -> IdentityMap:
    """Scan every record of the destination store into an IdentityMap.

    Follows the cursor returned by each page until the store stops
    returning one.

    Args:
        store: Destination store exposing ``query_database(cursor)`` that
            returns a RecordPage (NotionClient)
        max_pages: Upper bound on pages fetched

    Returns:
        IdentityMap of every record carrying an issue URL

    Raises:
        SourceUnavailable: If the store cannot be paged, or the scan did not
            finish within max_pages (a partial map would cause duplicates)
        RemoteTimeout: If a page request timed out
    """
    records: list[DestinationRecord] = []
    cursor: str | None = None

    for page_number in range(max_pages):
        page = await store.query_database(cursor)
        records.extend(page.records)
        logger.debug(
            "identity_map_page",
            extra={"page": page_number + 1, "records_so_far": len(records)},
        )
        if not page.next_cursor:
            break
        cursor = page.next_cursor
    else:
        raise SourceUnavailable(
            f"Destination scan did not finish within {max_pages} pages"
        )

    identity_map = IdentityMap.from_records(records)
    logger.info(
        "identity_map_built",
        extra={
            "records_scanned": len(records),
            "entries": len(identity_map),
            "duplicates": len(identity_map.duplicates),
        },
    )
    return identity_map
