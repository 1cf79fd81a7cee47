"""
Worker: Clean Up Idle Conversation Sessions
Deletes `users` session documents with no interaction for SESSION_MAX_IDLE_HOURS.

Usage:
    python3 -m roho.workers.cleanup_sessions [--dry-run] [--hours N]
"""
import argparse
import logging
import os
import sys
from datetime import timedelta
from typing import Dict

from google.cloud.firestore_v1 import FieldFilter

from roho.core.config import settings
from roho.core.firebase import Collections, get_db, utcnow
from roho.core.monitoring import (
    JobAlreadyRunning,
    acquire_lock,
    log_job_skipped,
    track_job,
    validate_environment,
)

logger = logging.getLogger(__name__)

JOB_NAME = "cleanup_sessions"
BATCH_SIZE = 500  # Firestore batch write limit


def cleanup_idle_sessions(db, max_idle_hours: int = 24, dry_run: bool = False) -> Dict:
    """
    Delete sessions idle longer than `max_idle_hours`

    Args:
        db: Firestore client
        max_idle_hours: Idle threshold
        dry_run: If True, only count documents without deleting

    Returns:
        Dictionary with cleanup statistics
    """
    cutoff = utcnow() - timedelta(hours=max_idle_hours)
    logger.info(f"{'[DRY RUN] ' if dry_run else ''}Cleaning sessions idle since {cutoff.isoformat()}")

    with track_job(db, JOB_NAME, counts={'found': 0, 'deleted': 0}) as counts:
        query = (
            db.collection(Collections.USERS)
            .where(filter=FieldFilter("last_interaction", "<", cutoff))
        )
        old_docs = list(query.stream())
        counts['found'] = len(old_docs)

        if not old_docs:
            logger.info("  No idle sessions to delete")
        elif dry_run:
            logger.info(f"  [DRY RUN] Would delete {len(old_docs)} sessions")
        else:
            batch = db.batch()
            pending = 0
            for doc in old_docs:
                batch.delete(doc.reference)
                pending += 1
                if pending == BATCH_SIZE:
                    batch.commit()
                    counts['deleted'] += pending
                    logger.info(f"  Deleted {counts['deleted']}/{len(old_docs)} sessions...")
                    batch = db.batch()
                    pending = 0
            if pending:
                batch.commit()
                counts['deleted'] += pending

            logger.info(f"  ✅ Deleted {counts['deleted']} idle sessions")

    return {
        'status': 'success',
        'dry_run': dry_run,
        'cutoff': cutoff.isoformat(),
        'sessions_found': counts['found'],
        'sessions_deleted': counts['deleted'],
    }


def main():
    """
    Run the session cleanup worker

    Examples:
        python3 -m roho.workers.cleanup_sessions --dry-run
        python3 -m roho.workers.cleanup_sessions --hours 48

    Environment Variables:
        GOOGLE_APPLICATION_CREDENTIALS (or another Firebase credential source)
        DRY_RUN=true - Enable dry run mode
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    validate_environment()

    parser = argparse.ArgumentParser(description='Idle session cleanup worker')
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Report what would be deleted without deleting'
    )
    parser.add_argument(
        '--hours',
        type=int,
        default=settings.SESSION_MAX_IDLE_HOURS,
        help=f'Idle threshold in hours (default: {settings.SESSION_MAX_IDLE_HOURS})'
    )
    args = parser.parse_args()

    dry_run = args.dry_run or os.environ.get('DRY_RUN', '').lower() == 'true'
    db = get_db()

    try:
        with acquire_lock(JOB_NAME):
            result = cleanup_idle_sessions(db, max_idle_hours=args.hours, dry_run=dry_run)
        logger.info(f"✅ Cleanup complete: {result['sessions_deleted']} deleted of {result['sessions_found']} found")
        exit_code = 0
    except JobAlreadyRunning as e:
        logger.info(f"Skipping run: {e}")
        log_job_skipped(db, JOB_NAME, reason=str(e))
        exit_code = 0
    except KeyboardInterrupt:
        logger.info("Job interrupted by user")
        exit_code = 130
    except Exception as e:
        logger.error(f"Job failed with error: {str(e)}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
