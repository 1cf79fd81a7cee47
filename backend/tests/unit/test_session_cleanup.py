"""Idle session cleanup worker and job run tracking"""
from datetime import timedelta

import pytest

from fakes import FakeFirestore
from roho.core.firebase import Collections, utcnow
from roho.core.monitoring import JobAlreadyRunning, acquire_lock, log_job_skipped, track_job
from roho.workers.cleanup_sessions import BATCH_SIZE, JOB_NAME, cleanup_idle_sessions


def seed_sessions(db, count, idle_hours, prefix):
    last_interaction = utcnow() - timedelta(hours=idle_hours)
    for i in range(count):
        user_id = f"whatsapp:+2547{prefix}{i:05d}"
        db.collection(Collections.USERS).document(user_id).set({
            "user_id": user_id,
            "step": "WELCOME",
            "last_interaction": last_interaction,
        })


def job_runs(db):
    return list(db.data.get(Collections.JOB_RUNS, {}).values())


class TestCleanupIdleSessions:

    def test_deletes_only_idle_sessions(self):
        db = FakeFirestore()
        seed_sessions(db, 3, idle_hours=30, prefix="1")
        seed_sessions(db, 2, idle_hours=1, prefix="2")

        result = cleanup_idle_sessions(db, max_idle_hours=24)

        assert result["status"] == "success"
        assert result["sessions_found"] == 3
        assert result["sessions_deleted"] == 3
        assert len(db.data[Collections.USERS]) == 2

    def test_deletes_in_batches(self):
        db = FakeFirestore()
        seed_sessions(db, BATCH_SIZE + 20, idle_hours=48, prefix="1")

        result = cleanup_idle_sessions(db, max_idle_hours=24)

        assert db.batch_sizes == [BATCH_SIZE, 20]
        assert result["sessions_deleted"] == BATCH_SIZE + 20
        assert db.data[Collections.USERS] == {}

    def test_dry_run_deletes_nothing(self):
        db = FakeFirestore()
        seed_sessions(db, 4, idle_hours=30, prefix="1")

        result = cleanup_idle_sessions(db, max_idle_hours=24, dry_run=True)

        assert result["dry_run"] is True
        assert result["sessions_found"] == 4
        assert result["sessions_deleted"] == 0
        assert len(db.data[Collections.USERS]) == 4
        assert db.batch_sizes == []

    def test_records_job_run(self):
        db = FakeFirestore()
        seed_sessions(db, 2, idle_hours=30, prefix="1")

        cleanup_idle_sessions(db, max_idle_hours=24)

        (run,) = job_runs(db)
        assert run["job_name"] == JOB_NAME
        assert run["status"] == "success"
        assert run["counts"] == {"found": 2, "deleted": 2}
        assert run["error"] is None


class TestJobTracking:

    def test_failure_is_recorded_and_reraised(self):
        db = FakeFirestore()

        with pytest.raises(RuntimeError):
            with track_job(db, "demo", counts={"processed": 0}) as counts:
                counts["processed"] += 1
                raise RuntimeError("boom")

        (run,) = job_runs(db)
        assert run["status"] == "fail"
        assert run["error"] == "boom"
        assert run["counts"] == {"processed": 1}

    def test_empty_counts_are_shared_with_the_block(self):
        db = FakeFirestore()

        with track_job(db, "demo", counts={}) as counts:
            counts["seen"] = 5

        (run,) = job_runs(db)
        assert run["counts"] == {"seen": 5}

    def test_skipped_run(self):
        db = FakeFirestore()

        log_job_skipped(db, "demo", reason="already running")

        (run,) = job_runs(db)
        assert run["status"] == "skipped"
        assert run["metadata"] == {"skip_reason": "already running"}
        assert run["duration_ms"] == 0


class TestAcquireLock:

    def test_second_holder_is_refused(self, tmp_path):
        with acquire_lock("demo", lock_dir=str(tmp_path)):
            assert (tmp_path / "roho_demo.lock").exists()
            with pytest.raises(JobAlreadyRunning):
                with acquire_lock("demo", lock_dir=str(tmp_path)):
                    pass
        assert not (tmp_path / "roho_demo.lock").exists()

    def test_stale_lock_file_is_replaced(self, tmp_path):
        lock_file = tmp_path / "roho_demo.lock"
        lock_file.write_text("not-a-pid")

        with acquire_lock("demo", lock_dir=str(tmp_path)):
            assert lock_file.read_text().isdigit()
