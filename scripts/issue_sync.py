#!/usr/bin/env python3
"""GitHub issues -> Notion synchronization CLI.

Runs one sync session: every configured repository is reconciled into the
Notion database (one page per issue URL).

Usage:
    issue_sync.py                           # Sync GITHUB_REPO_NAME repositories
    issue_sync.py --repo api --repo web     # Sync the given repositories
    issue_sync.py --dry-run                 # Fetch and plan, write nothing
    issue_sync.py --check                   # Test GitHub and Notion credentials

Exit status is 1 on configuration errors, when the Notion database could not
be scanned, or when any issue failed to sync.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pydantic import ValidationError

from issuesync.config import get_config
from issuesync.connectors.github import GitHubClient
from issuesync.connectors.notion import NotionClient
from issuesync.errors import SyncError
from issuesync.logging_config import configure_logging
from issuesync.sync import IssueSyncEngine, SyncResult


def print_result(result: SyncResult) -> None:
    """Print a per-repository summary."""
    label = " (dry run)" if result.dry_run else ""
    print(f"Identity map: {result.identity_map_size} pages{label}")
    for repo in result.repositories:
        print(f"\n{repo.repository}:")
        if repo.fetch_failed:
            print(f"  FETCH FAILED: {repo.fetch_error}")
            continue
        print(f"  Fetched: {repo.fetched}, Skipped: {repo.skipped}")
        print(f"  Planned: {repo.planned_create} create, {repo.planned_update} update")
        if result.dry_run:
            continue
        print(f"  Created: {repo.created}, Updated: {repo.updated}")
        print(
            f"  Bodies: {repo.bodies_updated} updated, {repo.bodies_unchanged} unchanged, "
            f"{repo.bodies_appended} appended"
        )
        print(f"  Errors: {repo.errors}")
        for failure in repo.failures:
            print(f"    - {failure}")
    print(f"\nDuration: {result.duration_seconds:.1f}s")


async def check_connections(config) -> bool:
    """Test both credentials. Returns True when both work."""
    github = GitHubClient(
        token=config.github_key.get_secret_value(),
        base_url=config.github_api_url,
        timeout=config.request_timeout,
    )
    notion = NotionClient(
        token=config.notion_key.get_secret_value(),
        database_id=config.notion_database_id,
        base_url=config.notion_api_url,
        timeout=config.request_timeout,
    )
    async with github, notion:
        github_status = await github.test_connection()
        notion_status = await notion.test_connection()

    if github_status["success"]:
        print(f"GitHub: OK (user={github_status['user']})")
    else:
        print(f"GitHub: FAILED ({github_status['error']})")
    if notion_status["success"]:
        print(f"Notion: OK (database={notion_status['title'] or config.notion_database_id})")
    else:
        print(f"Notion: FAILED ({notion_status['error']})")

    return github_status["success"] and notion_status["success"]


async def run_sync(config, repositories=None, dry_run: bool = False) -> SyncResult:
    """Run one sync session."""
    engine = IssueSyncEngine(config)
    return await engine.sync(repositories=repositories, dry_run=dry_run)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sync GitHub issues into a Notion database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                             # Sync repositories from GITHUB_REPO_NAME
  %(prog)s --repo api --repo web       # Sync only api and web
  %(prog)s --dry-run                   # Show what would be created/updated
  %(prog)s --check                     # Test credentials

Configuration (.env or environment):
    GITHUB_KEY=ghp_your_token_here
    GITHUB_REPO_OWNER=octo-org
    GITHUB_REPO_NAME=api,web
    NOTION_KEY=secret_your_integration_token
    NOTION_DATABASE_ID=your_database_id
        """,
    )

    parser.add_argument(
        "--repo",
        action="append",
        dest="repos",
        metavar="NAME",
        help="Repository to sync (repeatable, overrides GITHUB_REPO_NAME)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Fetch and plan only")
    parser.add_argument(
        "--exclude-pull-requests",
        action="store_true",
        help="Do not sync pull requests",
    )
    parser.add_argument("--check", action="store_true", help="Test connections and exit")

    args = parser.parse_args()

    try:
        config = get_config()
    except ValidationError as e:
        print(f"ERROR: Invalid configuration: {e}")
        sys.exit(1)

    configure_logging(config.log_level, config.log_format)

    if args.exclude_pull_requests:
        config = config.model_copy(update={"include_pull_requests": False})

    if args.check:
        sys.exit(0 if asyncio.run(check_connections(config)) else 1)

    try:
        result = asyncio.run(run_sync(config, repositories=args.repos, dry_run=args.dry_run))
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except SyncError as e:
        print(f"ERROR: Sync aborted: {e}")
        sys.exit(1)

    print_result(result)

    if not result.ok:
        sys.exit(1)
    print("\nDone.")


if __name__ == "__main__":
    main()
