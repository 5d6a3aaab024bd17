"""Background worker that drains the processing queue."""

import asyncio
import socket
import uuid
from typing import Optional

from loguru import logger

from mathgrade.config.constants import WORKER_BATCH_SIZE, WORKER_POLL_INTERVAL
from mathgrade.core.models import BatchReport, GradingOptions, GradingRequest, ImageInput, QueueItem
from mathgrade.grading.orchestrator import GradingOrchestrator
from mathgrade.processing.interfaces import BlobFetcher, ResultSink, SubmissionSource
from mathgrade.processing.queue import ProcessingQueue
from mathgrade.utils.metrics import MetricsCollector


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"


class _GradingFailed(Exception):
    """The orchestrator returned success=False."""


class QueueWorker:
    """
    Locks jobs, grades them and records the outcome.

    Args:
        queue: Processing queue
        orchestrator: Grading pipeline
        source: Submission lookup
        fetcher: Image fetcher
        sink: Result storage
        worker_id: Lock owner name; generated if omitted
        batch_size: Jobs locked per batch
        poll_interval: Seconds to sleep when the queue is empty
        options: Grading options applied to every job
        metrics: Optional metrics collector, logged after each batch
    """

    def __init__(
        self,
        queue: ProcessingQueue,
        orchestrator: GradingOrchestrator,
        source: SubmissionSource,
        fetcher: BlobFetcher,
        sink: ResultSink,
        worker_id: Optional[str] = None,
        batch_size: int = WORKER_BATCH_SIZE,
        poll_interval: float = WORKER_POLL_INTERVAL,
        options: Optional[GradingOptions] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.queue = queue
        self.orchestrator = orchestrator
        self.source = source
        self.fetcher = fetcher
        self.sink = sink
        self.worker_id = worker_id or default_worker_id()
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.options = options or GradingOptions()
        self.metrics = metrics
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def _grade(self, item: QueueItem) -> str:
        """Grade one job and store the result. Returns the result id."""
        payload = await asyncio.to_thread(self.source.load, item.submission_id, item.project_id)
        raw, content_type = await self.fetcher.fetch(payload.image_ref)

        request = GradingRequest(
            submission_id=item.submission_id,
            image=ImageInput.from_bytes(raw, content_type),
            answer_key=payload.answer_key,
            options=self.options,
        )
        result = await self.orchestrator.grade(request)
        if not result.success:
            raise _GradingFailed(result.error or "Grading failed")

        return await asyncio.to_thread(self.sink.save, result, item.project_id)

    async def process(self, item: QueueItem) -> bool:
        """
        Run one locked job to completion or failure.

        Returns:
            True if the job completed
        """
        with logger.contextualize(worker_id=self.worker_id, job_id=item.id):
            logger.info(f"Processing submission {item.submission_id} (attempt {item.attempts})")
            try:
                result_id = await self._grade(item)
            except _GradingFailed as e:
                logger.error(f"Grading failed for {item.submission_id}: {e}")
                await asyncio.to_thread(self.queue.mark_failed, item.id, str(e))
                return False
            except Exception as e:
                logger.exception(f"Job {item.id} raised: {e}")
                if self.metrics:
                    self.metrics.record_failure()
                await asyncio.to_thread(self.queue.mark_failed, item.id, f"{type(e).__name__}: {e}")
                return False

            await asyncio.to_thread(self.queue.mark_completed, item.id, result_id)
            return True

    async def run_once(self, max_jobs: Optional[int] = None) -> BatchReport:
        """
        Process one batch: release stale locks, then lock and run jobs
        until the batch is full or the queue is empty.
        """
        limit = max_jobs if max_jobs is not None else self.batch_size
        report = BatchReport(worker_id=self.worker_id)

        with logger.contextualize(worker_id=self.worker_id):
            report.released_stale = await asyncio.to_thread(self.queue.release_stale)

            for _ in range(limit):
                item = await asyncio.to_thread(self.queue.lock_next, self.worker_id)
                if item is None:
                    break

                report.processed += 1
                report.job_ids.append(item.id)
                if await self.process(item):
                    report.succeeded += 1
                else:
                    report.failed += 1
                    failed = await asyncio.to_thread(self.queue.get, item.id)
                    report.errors.append(failed.error_message or "")

            if report.processed:
                logger.info(
                    f"Batch done: {report.succeeded} succeeded, {report.failed} failed, "
                    f"{report.released_stale} stale released"
                )
                if self.metrics:
                    self.metrics.log_metrics()
        return report

    async def run_forever(self, max_batches: Optional[int] = None) -> None:
        """Poll until stop() is called or max_batches batches have run."""
        self._running = True
        batches = 0
        logger.info(f"Queue worker {self.worker_id} started")

        try:
            while self._running:
                report = await self.run_once()
                batches += 1
                if max_batches is not None and batches >= max_batches:
                    break
                if report.processed == 0:
                    await asyncio.sleep(self.poll_interval)
        finally:
            self._running = False
            logger.info(f"Queue worker {self.worker_id} stopped")

    def stop(self) -> None:
        self._running = False
