"""
Background Scheduler for Roho
Hourly idle-session cleanup and a sweep of abandoned booking locks
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from roho.core.config import settings
from roho.core.firebase import get_db
from roho.services.delivery.locks import OrderLockTable
from roho.workers.cleanup_sessions import cleanup_idle_sessions

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

SCHEDULER_TIMEZONE = pytz.timezone(settings.SCHEDULER_TIMEZONE)

SESSION_CLEANUP_INTERVAL_HOURS = 1
LOCK_SWEEP_INTERVAL_MINUTES = 5


async def cleanup_sessions_job() -> Dict[str, Any]:
    """Scheduled wrapper; the Firestore work runs off the event loop"""
    try:
        return await asyncio.to_thread(
            cleanup_idle_sessions,
            get_db(),
            settings.SESSION_MAX_IDLE_HOURS,
        )
    except Exception as e:
        logger.error(f"❌ Session cleanup failed: {e}")
        return {'status': 'fail', 'error': str(e)}


def sweep_booking_locks(locks: OrderLockTable) -> int:
    return locks.sweep_stale()


def init_scheduler(locks: OrderLockTable) -> AsyncIOScheduler:
    """
    Initialize and configure the background scheduler.

    Args:
        locks: The process-wide booking lock table to sweep
    """
    global scheduler

    if scheduler is not None:
        logger.info("Scheduler already initialized")
        return scheduler

    scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)

    scheduler.add_job(
        cleanup_sessions_job,
        IntervalTrigger(hours=SESSION_CLEANUP_INTERVAL_HOURS),
        id='cleanup_sessions',
        name=f'Idle Session Cleanup (every {SESSION_CLEANUP_INTERVAL_HOURS}h)',
        replace_existing=True
    )
    logger.info(f"📅 Scheduled session cleanup every {SESSION_CLEANUP_INTERVAL_HOURS}h ({SCHEDULER_TIMEZONE})")

    scheduler.add_job(
        sweep_booking_locks,
        IntervalTrigger(minutes=LOCK_SWEEP_INTERVAL_MINUTES),
        args=[locks],
        id='sweep_booking_locks',
        name=f'Booking Lock Sweep (every {LOCK_SWEEP_INTERVAL_MINUTES}m)',
        replace_existing=True
    )

    return scheduler


def start_scheduler(locks: OrderLockTable):
    """Start the scheduler if not already running."""
    global scheduler

    if scheduler is None:
        scheduler = init_scheduler(locks)

    if not scheduler.running:
        scheduler.start()
        logger.info("🚀 Background scheduler started")
        for job in scheduler.get_jobs():
            if job.next_run_time:
                logger.info(f"   Next '{job.name}': {job.next_run_time.isoformat()}")
    else:
        logger.info("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("🛑 Background scheduler stopped")
    scheduler = None

