#!/usr/bin/env python3
"""Issue sync service: container entrypoint.

Runs one GitHub -> Notion sync session every SYNC_INTERVAL seconds.
Designed for a container with a health file for liveness checks.

Usage (Docker):
    CMD ["python3", "scripts/issue_sync_service.py"]

Usage (manual):
    python3 scripts/issue_sync_service.py

Environment:
    SYNC_ON_START=true   Run a session immediately on start (default: true)
    SYNC_INTERVAL=1800   Seconds between sessions (default: 30 min)
    See config.py for all other variables.
"""

import asyncio
import logging
import signal
import sys
import time
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from issuesync.config import get_config
from issuesync.logging_config import configure_logging
from issuesync.sync import IssueSyncEngine

logger = logging.getLogger("issuesync.service")

HEALTH_FILE = Path("/tmp/issue_sync.health")
SHUTDOWN_REQUESTED = False


def handle_signal(signum, frame):
    """Handle SIGTERM/SIGINT for graceful shutdown."""
    global SHUTDOWN_REQUESTED
    logger.info("Shutdown signal received (signal=%d), finishing current cycle...", signum)
    SHUTDOWN_REQUESTED = True


async def run_sync_cycle(config) -> bool:
    """Run a single sync session.

    Returns:
        True if the session ran (item failures included), False if it aborted.
    """
    try:
        engine = IssueSyncEngine(config)
        result = await engine.sync()
    except Exception as e:
        logger.error("Sync session failed: %s", e)
        return False

    logger.info(
        "Sync cycle complete: repositories=%d, created=%d, updated=%d, bodies=%d, errors=%d",
        len(result.repositories),
        result.created,
        result.updated,
        result.bodies_updated,
        result.errors,
    )
    return True


def write_health_file():
    """Write health file for container healthcheck."""
    try:
        HEALTH_FILE.write_text(str(int(time.time())))
    except OSError as e:
        logger.warning("Failed to write health file: %s", e)


def main():
    """Main service loop."""
    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        config = get_config()
        config.validate_required()
    except Exception as e:
        configure_logging()
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    configure_logging(config.log_level, config.log_format)

    interval = config.sync_interval

    logger.info(
        "Issue sync service starting (interval=%ds, sync_on_start=%s, owner=%s, repos=%s)",
        interval,
        config.sync_on_start,
        config.github_repo_owner,
        ",".join(config.get_repositories()),
    )

    first_run = True
    while not SHUTDOWN_REQUESTED:
        if first_run and not config.sync_on_start:
            logger.info("Skipping initial sync (SYNC_ON_START=false)")
        else:
            logger.info("Starting sync cycle...")
            if asyncio.run(run_sync_cycle(config)):
                write_health_file()
        first_run = False

        # Sleep in small increments to allow graceful shutdown
        for _ in range(interval):
            if SHUTDOWN_REQUESTED:
                break
            time.sleep(1)

    logger.info("Issue sync service shutting down gracefully")


if __name__ == "__main__":
    main()
