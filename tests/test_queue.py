"""
Tests for the processing queue: locking, bounded retries, stale recovery.
"""

import threading
from datetime import timedelta

import pytest
from sqlalchemy import update

from mathgrade.core.exceptions import JobNotFoundError, QueueExhausted, QueueRaceLoss
from mathgrade.core.models import EnqueueRequest, QueueStatus
from mathgrade.db.database import create_session_factory, init_db, utcnow
from mathgrade.db.models import ProcessingQueueRecord
from mathgrade.processing.queue import ProcessingQueue


def _set(session_factory, job_id, **values):
    with session_factory() as session:
        session.execute(
            update(ProcessingQueueRecord).where(ProcessingQueueRecord.id == job_id).values(**values)
        )
        session.commit()


def test_enqueue_creates_pending_job(queue):
    job_id = queue.enqueue("sub-1", "proj-1", priority=2)
    item = queue.get(job_id)

    assert item.status == QueueStatus.PENDING
    assert item.attempts == 0
    assert item.priority == 2
    assert item.locked_by is None


def test_enqueue_rejects_blank_ids(queue):
    with pytest.raises(ValueError):
        queue.enqueue("  ", "proj-1")


def test_enqueue_many(queue):
    count = queue.enqueue_many([
        EnqueueRequest(submission_id=f"sub-{i}", project_id="proj-1") for i in range(4)
    ])
    assert count == 4
    assert queue.enqueue_many([]) == 0
    assert queue.stats().pending == 4


def test_lock_next_orders_by_priority_then_age(queue, session_factory):
    old_low = queue.enqueue("old-low", "p", priority=0)
    new_high = queue.enqueue("new-high", "p", priority=5)
    older_low = queue.enqueue("older-low", "p", priority=0)
    _set(session_factory, old_low, created_at=utcnow() - timedelta(minutes=1))
    _set(session_factory, older_low, created_at=utcnow() - timedelta(minutes=2))

    order = [queue.lock_next("w1").id for _ in range(3)]

    assert order == [new_high, older_low, old_low]
    assert queue.lock_next("w1") is None


def test_lock_next_claims_the_job(queue):
    job_id = queue.enqueue("sub-1", "proj-1")
    item = queue.lock_next("worker-a")

    assert item.id == job_id
    assert item.status == QueueStatus.PROCESSING
    assert item.locked_by == "worker-a"
    assert item.locked_at is not None
    assert item.attempts == 1


def test_no_double_lock(queue):
    for i in range(5):
        queue.enqueue(f"sub-{i}", "proj-1")

    locked = [queue.lock_next(f"worker-{i}") for i in range(5)]

    assert all(item is not None for item in locked)
    assert len({item.id for item in locked}) == 5
    assert queue.lock_next("worker-late") is None
    assert queue.stats().processing == 5


def test_concurrent_workers_never_share_a_job(tmp_path):
    engine, factory = create_session_factory(f"sqlite:///{tmp_path / 'queue.db'}")
    init_db(engine)
    file_queue = ProcessingQueue(factory)
    for i in range(16):
        file_queue.enqueue(f"sub-{i}", "proj-1")

    workers = 8
    barrier = threading.Barrier(workers)
    guard = threading.Lock()
    locked, errors = [], []

    def work(worker_id):
        try:
            barrier.wait()
            for _ in range(2):
                item = file_queue.lock_next(worker_id)
                with guard:
                    locked.append(item)
        except Exception as e:
            with guard:
                errors.append(e)

    threads = [threading.Thread(target=work, args=(f"worker-{i}",)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    try:
        assert errors == []
        assert len(locked) == 16
        assert all(item is not None for item in locked)
        assert len({item.id for item in locked}) == 16
        assert file_queue.stats().processing == 16
        assert file_queue.lock_next("worker-late") is None
    finally:
        engine.dispose()


def test_lost_race_retries_selection(queue, monkeypatch):
    first = queue.enqueue("sub-1", "proj-1", priority=1)
    second = queue.enqueue("sub-2", "proj-1")

    # Another worker grabs the first job between selection and update
    original = queue._select_candidate
    raced = []

    def select_then_race(session):
        job_id = original(session)
        if job_id == first and not raced:
            raced.append(job_id)
            queue._claim(session, job_id, "other-worker")
        return job_id

    monkeypatch.setattr(queue, "_select_candidate", select_then_race)

    item = queue.lock_next("me")

    assert raced == [first]
    assert item.id == second
    assert queue.get(first).locked_by == "other-worker"


def test_claim_raises_on_race_loss(queue, session_factory):
    job_id = queue.enqueue("sub-1", "proj-1")
    queue.lock_next("w1")

    with session_factory() as session:
        with pytest.raises(QueueRaceLoss):
            queue._claim(session, job_id, "w2")


def test_claim_refuses_job_without_attempts_left(queue, session_factory):
    job_id = queue.enqueue("sub-1", "proj-1")
    _set(session_factory, job_id, attempts=3)

    with session_factory() as session:
        with pytest.raises(QueueExhausted):
            queue._claim(session, job_id, "w1")

    assert queue.lock_next("w1") is None
    assert queue.get(job_id).status == QueueStatus.PENDING


def test_mark_completed(queue):
    job_id = queue.enqueue("sub-1", "proj-1")
    queue.lock_next("w1")

    item = queue.mark_completed(job_id, "result-9")

    assert item.status == QueueStatus.COMPLETED
    assert item.result_id == "result-9"
    assert item.completed_at is not None
    assert item.locked_by is None
    assert item.locked_at is None


def test_bounded_retries(queue):
    job_id = queue.enqueue("sub-1", "proj-1")

    for attempt in range(1, 4):
        item = queue.lock_next("w1")
        assert item.id == job_id
        assert item.attempts == attempt
        failed = queue.mark_failed(job_id, f"boom {attempt}")
        expected = QueueStatus.FAILED if attempt == 3 else QueueStatus.PENDING
        assert failed.status == expected
        assert failed.error_message == f"boom {attempt}"
        assert failed.locked_by is None

    assert queue.lock_next("w1") is None
    assert queue.stats().failed == 1


def test_error_message_is_truncated(queue):
    job_id = queue.enqueue("sub-1", "proj-1")
    queue.lock_next("w1")
    item = queue.mark_failed(job_id, "x" * 5000)
    assert len(item.error_message) == 1000


def test_stale_recovery(queue, session_factory):
    job_id = queue.enqueue("sub-1", "proj-1")
    queue.lock_next("crashed-worker")
    _set(session_factory, job_id, locked_at=utcnow() - timedelta(minutes=6))

    fresh_id = queue.enqueue("sub-2", "proj-1")
    queue.lock_next("live-worker")

    released = queue.release_stale()

    assert released == 1
    stale = queue.get(job_id)
    assert stale.status == QueueStatus.PENDING
    assert stale.locked_at is None
    assert stale.locked_by is None
    assert stale.attempts == 1
    assert queue.get(fresh_id).status == QueueStatus.PROCESSING


def test_cleanup_removes_old_completed_jobs(queue, session_factory):
    old = queue.enqueue("old", "proj-1")
    recent = queue.enqueue("recent", "proj-1")
    pending = queue.enqueue("pending", "proj-1")
    for job_id in (old, recent):
        queue.mark_completed(job_id, f"r-{job_id}")
    _set(session_factory, old, completed_at=utcnow() - timedelta(days=31))

    deleted = queue.cleanup(days_old=30)

    assert deleted == 1
    with pytest.raises(JobNotFoundError):
        queue.get(old)
    assert queue.get(recent).status == QueueStatus.COMPLETED
    assert queue.get(pending).status == QueueStatus.PENDING


def test_stats_and_project_items(queue):
    a = queue.enqueue("a", "proj-1")
    queue.enqueue("b", "proj-1")
    queue.enqueue("c", "proj-2")
    queue.mark_completed(a)

    stats = queue.stats()
    assert (stats.pending, stats.processing, stats.completed, stats.failed) == (2, 0, 1, 0)
    assert stats.total == 3
    assert sorted(i.submission_id for i in queue.project_items("proj-1")) == ["a", "b"]
    assert queue.project_items("missing") == []


def test_unknown_job(queue):
    with pytest.raises(JobNotFoundError):
        queue.mark_completed("nope", "r")
    with pytest.raises(JobNotFoundError):
        queue.mark_failed("nope", "err")
