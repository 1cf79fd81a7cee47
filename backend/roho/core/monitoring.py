"""
Guard rails and run records for the maintenance workers
"""
import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from google.cloud import firestore as fs

from roho.core.firebase import Collections, utcnow
from roho.schemas.jobs import JobRun

logger = logging.getLogger(__name__)


class JobAlreadyRunning(RuntimeError):
    """Another process holds the job lock"""


CREDENTIAL_ENV_VARS = (
    "GOOGLE_APPLICATION_CREDENTIALS",
    "FIREBASE_CREDENTIALS_JSON",
    "FIREBASE_SERVICE_ACC_BASE64",
)


def validate_environment():
    """
    Validate Firebase credentials before a worker touches Firestore

    Raises:
        SystemExit: If no credential source is configured, or the key file is missing
    """
    configured = [name for name in CREDENTIAL_ENV_VARS if os.environ.get(name)]
    if not configured:
        logger.error("No Firebase credentials configured. Set one of:")
        for name in CREDENTIAL_ENV_VARS:
            logger.error(f"  {name}")
        sys.exit(1)

    creds_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if creds_path and not os.path.exists(creds_path):
        logger.error(f"Firebase credentials file not found: {creds_path}")
        sys.exit(1)

    logger.info(f"Firebase credentials source: {configured[0]}")


@contextmanager
def acquire_lock(job_name: str, lock_dir: str = "/tmp"):
    """
    File lock so two copies of a CLI worker never run at once

    Raises:
        JobAlreadyRunning: If another live process holds the lock
    """
    lock_file = Path(lock_dir) / f"roho_{job_name}.lock"

    if lock_file.exists():
        try:
            pid = int(lock_file.read_text().strip())
        except ValueError:
            logger.warning(f"Unreadable lock file {lock_file}, removing it")
            lock_file.unlink()
        else:
            try:
                os.kill(pid, 0)
            except OSError:
                logger.warning(f"PID {pid} in {lock_file} is gone, taking the lock over")
                lock_file.unlink()
            else:
                raise JobAlreadyRunning(f"Job {job_name} is already running (PID: {pid}). Lock file: {lock_file}")

    try:
        lock_file.write_text(str(os.getpid()))
        logger.info(f"🔒 {job_name} lock held by PID {os.getpid()}")
        yield
    finally:
        if lock_file.exists():
            lock_file.unlink()
            logger.info(f"🔓 {job_name} lock released")


def log_job_run(db, run: JobRun) -> str:
    """
    Write a job run to `job_runs`

    Returns:
        Document ID of the stored run
    """
    doc = run.to_document()
    doc['created_at'] = fs.SERVER_TIMESTAMP

    ref = db.collection(Collections.JOB_RUNS).document()
    ref.set(doc)

    summary = f"📝 {run.job_name} [{run.status}] in {run.duration_ms}ms"
    if run.counts:
        summary += f" {run.counts}"
    if run.error:
        summary += f" error={run.error}"
    logger.info(summary)

    return ref.id


def log_job_skipped(db, job_name: str, reason: str) -> str:
    now = utcnow()
    return log_job_run(db, JobRun(
        job_name=job_name,
        status='skipped',
        started_at=now,
        finished_at=now,
        metadata={'skip_reason': reason},
    ))


@contextmanager
def track_job(db, job_name: str, counts: Optional[Dict[str, int]] = None) -> Iterator[Dict[str, int]]:
    """
    Yield a counts dict for the job body and store a JobRun when it exits.
    A failing body is recorded as 'fail' and the exception is re-raised.

    Usage:
        with track_job(db, 'cleanup_sessions', counts={'deleted': 0}) as counts:
            counts['deleted'] += 10
    """
    if counts is None:
        counts = {}
    started_at = utcnow()
    failure: Optional[BaseException] = None

    try:
        yield counts
    except Exception as e:
        failure = e
        logger.error(f"❌ Job {job_name} failed: {e}")
        raise
    finally:
        log_job_run(db, JobRun(
            job_name=job_name,
            status='fail' if failure else 'success',
            started_at=started_at,
            finished_at=utcnow(),
            counts=counts,
            error=str(failure) if failure else None,
        ))
