"""Tests for the issue sync CLI script."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

# Add scripts directory to path for importing the CLI module
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "scripts"))

import issue_sync
from issue_sync import main

from issuesync.config import SyncConfig
from issuesync.errors import SourceUnavailable
from issuesync.models import ItemFailure
from issuesync.sync import RepositoryResult, SyncResult


def _result(**repo_kwargs) -> SyncResult:
    return SyncResult(
        repositories=[RepositoryResult(repository="api", fetched=3, **repo_kwargs)],
        identity_map_size=2,
        duration_seconds=0.5,
    )


def _run(argv, config, engine):
    with (
        patch.object(issue_sync, "get_config", return_value=config),
        patch.object(issue_sync, "IssueSyncEngine", return_value=engine) as engine_cls,
        patch("sys.argv", ["issue_sync.py", *argv]),
    ):
        main()
    return engine_cls


# -- Sync Tests -----------------------------------------------------------


def test_sync_prints_summary(capsys, sync_config):
    engine = AsyncMock()
    engine.sync.return_value = _result(planned_create=1, planned_update=2, created=1, updated=2)

    engine_cls = _run([], sync_config, engine)

    engine_cls.assert_called_once_with(sync_config)
    engine.sync.assert_awaited_once_with(repositories=None, dry_run=False)
    output = capsys.readouterr().out
    assert "api:" in output
    assert "Created: 1, Updated: 2" in output
    assert "Done." in output


def test_repo_and_dry_run_flags(capsys, sync_config):
    engine = AsyncMock()
    result = _result(planned_create=3)
    result.dry_run = True
    engine.sync.return_value = result

    _run(["--repo", "api", "--repo", "web", "--dry-run"], sync_config, engine)

    engine.sync.assert_awaited_once_with(repositories=["api", "web"], dry_run=True)
    output = capsys.readouterr().out
    assert "(dry run)" in output
    assert "Created:" not in output


def test_exclude_pull_requests_overrides_config(sync_config):
    engine = AsyncMock()
    engine.sync.return_value = _result()

    engine_cls = _run(["--exclude-pull-requests"], sync_config, engine)

    passed_config = engine_cls.call_args.args[0]
    assert passed_config.include_pull_requests is False
    assert sync_config.include_pull_requests is True


# -- Exit Codes -----------------------------------------------------------


def test_item_failures_exit_1(capsys, sync_config):
    engine = AsyncMock()
    engine.sync.return_value = _result(
        failures=[ItemFailure("https://github.com/octo/api/issues/2", "create", "validation_error")]
    )

    with pytest.raises(SystemExit) as exc_info:
        _run([], sync_config, engine)

    assert exc_info.value.code == 1
    assert "create https://github.com/octo/api/issues/2" in capsys.readouterr().out


def test_identity_map_failure_exit_1(capsys, sync_config):
    engine = AsyncMock()
    engine.sync.side_effect = SourceUnavailable("Database query failed")

    with pytest.raises(SystemExit) as exc_info:
        _run([], sync_config, engine)

    assert exc_info.value.code == 1
    assert "Sync aborted" in capsys.readouterr().out


def test_missing_configuration_exit_1(capsys):
    engine = AsyncMock()
    engine.sync.side_effect = ValueError("Missing required configuration: NOTION_KEY")

    with pytest.raises(SystemExit) as exc_info:
        _run([], SyncConfig(_env_file=None), engine)

    assert exc_info.value.code == 1
    assert "NOTION_KEY" in capsys.readouterr().out


def test_invalid_configuration_exit_1(capsys):
    with pytest.raises(ValidationError) as validation:
        SyncConfig(_env_file=None, operation_batch_size=0)
    error = validation.value

    with (
        patch.object(issue_sync, "get_config", side_effect=error),
        patch("sys.argv", ["issue_sync.py"]),
    ):
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 1
    assert "Invalid configuration" in capsys.readouterr().out


# -- Connection Check -----------------------------------------------------


def test_check_connections(capsys, sync_config):
    with (
        patch.object(issue_sync, "get_config", return_value=sync_config),
        patch.object(
            issue_sync.GitHubClient,
            "test_connection",
            new=AsyncMock(return_value={"success": True, "user": "octocat"}),
        ),
        patch.object(
            issue_sync.NotionClient,
            "test_connection",
            new=AsyncMock(return_value={"success": False, "error": "unauthorized"}),
        ),
        patch("sys.argv", ["issue_sync.py", "--check"]),
    ):
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 1
    output = capsys.readouterr().out
    assert "GitHub: OK (user=octocat)" in output
    assert "Notion: FAILED (unauthorized)" in output
