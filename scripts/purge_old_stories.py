#!/usr/bin/env python3
"""
Purge Old Stories - Athemaria maintenance job

Permanently deletes stories that were soft-deleted more than the retention
period ago (30 days by default). Meant to run from a scheduler (cron, Azure
WebJob, Cloud Scheduler).

Usage:
    python scripts/purge_old_stories.py              # Purge with the configured retention
    python scripts/purge_old_stories.py --days 7     # Purge stories deleted over 7 days ago
    python scripts/purge_old_stories.py --dry-run    # List what would be purged

Exit codes:
    0  job finished
    1  job failed (stories purged before the failure stay purged)
"""

import sys
from pathlib import Path
import argparse
import asyncio
import logging
import time

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

load_dotenv(project_root / ".env")

from athemaria.config import get_settings
from athemaria.services import FirestoreService, init_logger

logger = logging.getLogger("purge_old_stories")


async def run(store: FirestoreService, retention_days: int, dry_run: bool = False) -> int:
    """
    Run the purge job.

    Returns:
        Number of stories purged (or that would be purged with dry_run)
    """
    if dry_run:
        candidates = await store.get_purge_candidates(retention_days)
        for story in candidates:
            print(f"   Would purge: {story.id} \"{story.title}\" (deletedAt {story.deleted_at})")
        return len(candidates)

    return await store.purge_old_stories(retention_days)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Permanently delete stories soft-deleted long ago")
    parser.add_argument("--days", type=int, default=None,
                        help="Retention period in days (default: PURGE_RETENTION_DAYS or 30)")
    parser.add_argument("--dry-run", action="store_true",
                        help="List the stories that would be purged without deleting them")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s')

    settings = get_settings()
    retention_days = args.days if args.days is not None else settings.purge_retention_days
    if retention_days < 0:
        parser.error("--days must not be negative")

    app_logger = init_logger(debug_mode=settings.debug, settings=settings)
    store = FirestoreService(
        project_id=settings.firebase_project_id,
        credentials_dict=settings.get_firebase_credentials_dict(),
        credentials_path=settings.google_application_credentials,
        logger=app_logger
    )

    print("=" * 60)
    print("Athemaria - Purge Old Stories")
    print("=" * 60)
    print(f"   Retention: {retention_days} days{' (dry run)' if args.dry_run else ''}")

    started = time.time()
    try:
        store.initialize()
        purged = asyncio.run(run(store, retention_days, args.dry_run))
    except Exception as e:
        logger.error(f"Error in purge job: {e}", exc_info=True)
        app_logger.job_failed("purge_old_stories", str(e))
        return 1
    finally:
        store.shutdown()

    if args.dry_run:
        print(f"   {purged} stories would be purged")
    else:
        app_logger.job_completed("purge_old_stories", f"{purged} stories purged", time.time() - started)
        print(f"   Purged {purged} stories")
    return 0


if __name__ == "__main__":
    sys.exit(main())
