"""
Run one library sync pass from the command line.

Meant for an external scheduler (cron, systemd timer). The minimum refresh interval
still applies unless --force is given.

Usage:
  cd apps/api
  .venv/bin/python sync_cli.py [--force] [--verbose]

Exit code is 0 when the pass succeeded or was skipped as up to date, 1 when the
coordinator could not run it.
"""

import argparse
import asyncio
import json
import logging
import sys

from core.config import get_settings
from db.session import create_db_and_tables
from services.sync_coordinator import SyncOutcome, run_sync

logger = logging.getLogger("sync_cli")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Sync every registered audiobook source into the library")
    p.add_argument("--force", action="store_true", help="ignore the minimum refresh interval")
    p.add_argument("--verbose", action="store_true", help="log at DEBUG level")
    p.add_argument("--json", action="store_true", help="print the pass summary as JSON")
    return p.parse_args(argv)


async def _run(force: bool) -> SyncOutcome:
    get_settings().ensure_directories()
    await create_db_and_tables()
    return await run_sync(force)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    outcome = asyncio.run(_run(args.force))

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    elif not outcome.ran and outcome.success:
        logger.info("Library is up to date, nothing to do")
    else:
        for result in outcome.results:
            logger.info(
                "%s: %s (%d books, %d tracks)%s",
                result.source_name,
                result.status.value,
                result.books,
                result.tracks,
                f" - {result.error}" if result.error else "",
            )

    if not outcome.success:
        logger.error("Sync failed: %s", outcome.error)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
