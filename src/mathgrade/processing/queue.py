"""
Processing queue backed by the processing_queue table.

Job lifecycle: pending -> processing -> completed, or back to pending on a
failure while attempts remain, or failed once they are used up.

The only coordination between workers is the conditional UPDATE in
_claim(): a row moves to processing only if it is still pending, so two
workers can never hold the same job.
"""

from datetime import timedelta
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from mathgrade.config.constants import (
    CLEANUP_DAYS_DEFAULT,
    LOCK_TIMEOUT_MINUTES,
    MAX_ATTEMPTS,
    MAX_ERROR_MESSAGE_LENGTH,
)
from mathgrade.core.exceptions import JobNotFoundError, QueueExhausted, QueueRaceLoss
from mathgrade.core.models import EnqueueRequest, QueueItem, QueueStats, QueueStatus
from mathgrade.db.database import utcnow
from mathgrade.db.models import ProcessingQueueRecord

Record = ProcessingQueueRecord


class ProcessingQueue:
    """
    Durable job queue.

    Args:
        session_factory: SQLAlchemy sessionmaker bound to the job store
        max_attempts: Attempts before a job is parked as failed
        lock_timeout_minutes: Age after which a processing lock is stale
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        max_attempts: int = MAX_ATTEMPTS,
        lock_timeout_minutes: int = LOCK_TIMEOUT_MINUTES,
    ):
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.lock_timeout = timedelta(minutes=lock_timeout_minutes)

    # ==================== Enqueue ====================

    def enqueue(self, submission_id: str, project_id: str, priority: int = 0) -> str:
        """Add a submission as a pending job. Returns the job id."""
        request = EnqueueRequest(submission_id=submission_id, project_id=project_id, priority=priority)
        with self._session_factory() as session:
            record = Record(
                submission_id=request.submission_id,
                project_id=request.project_id,
                priority=request.priority,
                status=QueueStatus.PENDING.value,
                attempts=0,
            )
            session.add(record)
            session.commit()
            job_id = record.id

        logger.info(f"Enqueued submission {submission_id} as job {job_id} (priority {priority})")
        return job_id

    def enqueue_many(self, requests: Iterable[EnqueueRequest]) -> int:
        """Insert several jobs in one transaction. Returns how many were added."""
        records = [
            Record(
                submission_id=r.submission_id,
                project_id=r.project_id,
                priority=r.priority,
                status=QueueStatus.PENDING.value,
                attempts=0,
            )
            for r in requests
        ]
        if not records:
            return 0

        with self._session_factory() as session:
            session.add_all(records)
            session.commit()

        logger.info(f"Enqueued {len(records)} submissions")
        return len(records)

    # ==================== Locking ====================

    def _select_candidate(self, session: Session) -> Optional[str]:
        """Id of the next pending job, highest priority then oldest first."""
        stmt = (
            select(Record.id)
            .where(Record.status == QueueStatus.PENDING.value)
            .where(Record.attempts < self.max_attempts)
            .order_by(Record.priority.desc(), Record.created_at.asc())
            .limit(1)
        )
        return session.execute(stmt).scalar_one_or_none()

    def _claim(self, session: Session, job_id: str, worker_id: str) -> None:
        """
        Compare-and-swap a pending job to processing.

        Raises:
            QueueRaceLoss: The job was no longer pending
            QueueExhausted: The job used up its attempts meanwhile
        """
        stmt = (
            update(Record)
            .where(Record.id == job_id)
            .where(Record.status == QueueStatus.PENDING.value)
            .where(Record.attempts < self.max_attempts)
            .values(
                status=QueueStatus.PROCESSING.value,
                locked_at=utcnow(),
                locked_by=worker_id,
                attempts=Record.attempts + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        if result.rowcount == 0:
            session.rollback()
            attempts = session.execute(select(Record.attempts).where(Record.id == job_id)).scalar_one_or_none()
            if attempts is not None and attempts >= self.max_attempts:
                raise QueueExhausted(
                    f"Job {job_id} has no attempts left", {"job_id": job_id, "attempts": attempts}
                )
            raise QueueRaceLoss(f"Job {job_id} was claimed by another worker", {"job_id": job_id})
        session.commit()

    def lock_next(self, worker_id: str) -> Optional[QueueItem]:
        """
        Claim the next pending job for a worker.

        Returns:
            The locked job, or None when nothing is pending
        """
        with self._session_factory() as session:
            while True:
                job_id = self._select_candidate(session)
                if job_id is None:
                    return None
                try:
                    self._claim(session, job_id, worker_id)
                except (QueueRaceLoss, QueueExhausted) as e:
                    logger.debug(f"Worker {worker_id} skipped job {job_id}: {e.message}")
                    continue

                record = session.get(Record, job_id, populate_existing=True)
                logger.info(f"Worker {worker_id} locked job {job_id} (attempt {record.attempts})")
                return QueueItem.model_validate(record)

    # ==================== Completion ====================

    def _get_record(self, session: Session, job_id: str) -> Record:
        record = session.get(Record, job_id)
        if record is None:
            raise JobNotFoundError(f"Queue item not found: {job_id}", {"job_id": job_id})
        return record

    def mark_completed(self, job_id: str, result_id: Optional[str] = None) -> QueueItem:
        """Mark a job done and release its lock."""
        with self._session_factory() as session:
            record = self._get_record(session, job_id)
            record.status = QueueStatus.COMPLETED.value
            record.result_id = result_id
            record.completed_at = utcnow()
            record.locked_at = None
            record.locked_by = None
            record.error_message = None
            session.commit()
            item = QueueItem.model_validate(record)

        logger.info(f"Job {job_id} completed (result {result_id})")
        return item

    def mark_failed(self, job_id: str, error_message: str) -> QueueItem:
        """
        Record a failed attempt.

        The job goes back to pending while attempts remain, otherwise it is
        parked as failed. The error message is kept either way.
        """
        with self._session_factory() as session:
            record = self._get_record(session, job_id)
            record.error_message = (error_message or "Unknown error")[:MAX_ERROR_MESSAGE_LENGTH]
            record.locked_at = None
            record.locked_by = None

            if record.attempts < self.max_attempts:
                record.status = QueueStatus.PENDING.value
                logger.warning(
                    f"Job {job_id} failed (attempt {record.attempts}/{self.max_attempts}), "
                    f"will retry: {error_message}"
                )
            else:
                record.status = QueueStatus.FAILED.value
                record.completed_at = utcnow()
                logger.error(f"Job {job_id} failed permanently after {record.attempts} attempts: {error_message}")

            session.commit()
            return QueueItem.model_validate(record)

    def release_stale(self, now=None) -> int:
        """
        Return jobs whose lock is older than the lock timeout to pending.

        Returns:
            Number of jobs released
        """
        cutoff = (now or utcnow()) - self.lock_timeout
        stmt = (
            update(Record)
            .where(Record.status == QueueStatus.PROCESSING.value)
            .where(Record.locked_at < cutoff)
            .values(status=QueueStatus.PENDING.value, locked_at=None, locked_by=None)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session:
            released = session.execute(stmt).rowcount
            session.commit()

        if released:
            logger.warning(f"Released {released} stale job lock(s)")
        return released

    # ==================== Observability ====================

    def get(self, job_id: str) -> QueueItem:
        with self._session_factory() as session:
            return QueueItem.model_validate(self._get_record(session, job_id))

    def stats(self) -> QueueStats:
        """Count jobs per status."""
        stmt = select(Record.status, func.count(Record.id)).group_by(Record.status)
        with self._session_factory() as session:
            counts = {status: count for status, count in session.execute(stmt)}

        return QueueStats(
            pending=counts.get(QueueStatus.PENDING.value, 0),
            processing=counts.get(QueueStatus.PROCESSING.value, 0),
            completed=counts.get(QueueStatus.COMPLETED.value, 0),
            failed=counts.get(QueueStatus.FAILED.value, 0),
        )

    def project_items(self, project_id: str) -> List[QueueItem]:
        """All jobs of a project, oldest first."""
        stmt = (
            select(Record)
            .where(Record.project_id == project_id)
            .order_by(Record.created_at.asc())
        )
        with self._session_factory() as session:
            return [QueueItem.model_validate(r) for r in session.execute(stmt).scalars()]

    def cleanup(self, days_old: int = CLEANUP_DAYS_DEFAULT, now=None) -> int:
        """
        Delete completed jobs finished more than days_old days ago.

        Returns:
            Number of jobs deleted
        """
        cutoff = (now or utcnow()) - timedelta(days=days_old)
        with self._session_factory() as session:
            records = session.execute(
                select(Record)
                .where(Record.status == QueueStatus.COMPLETED.value)
                .where(Record.completed_at < cutoff)
            ).scalars().all()
            for record in records:
                session.delete(record)
            session.commit()

        if records:
            logger.info(f"Cleaned up {len(records)} completed job(s) older than {days_old} days")
        return len(records)
