"""
FastAPI application for mathgrade.

Exposes queue health and statistics, and lets an external scheduler
trigger a worker batch (e.g. a cron job hitting POST /queue/process).
Routes that only touch the job store are plain functions, so FastAPI
runs them in its threadpool.
"""

import asyncio
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.security import APIKeyHeader
from loguru import logger

from mathgrade import __version__
from mathgrade.config.settings import Settings, get_settings
from mathgrade.core.exceptions import MathGradeError
from mathgrade.core.models import BatchReport, EnqueueRequest, QueueItem, QueueStats
from mathgrade.processing.queue import ProcessingQueue
from mathgrade.processing.worker import QueueWorker

API_KEY_NAME = "X-API-Key"
MAX_JOBS_PER_REQUEST = 50

api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


def get_api_key(request: Request, api_key: str = Security(api_key_header)) -> str:
    """Verify API key from header."""
    expected_key = request.app.state.settings.api_key

    # If no API key is configured, allow all requests (development mode)
    if not expected_key:
        return "dev_mode"

    if not api_key or api_key != expected_key:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key"
        )
    return api_key


def get_queue(request: Request) -> ProcessingQueue:
    return request.app.state.queue


def create_app(
    queue: Optional[ProcessingQueue] = None,
    worker_factory: Optional[Callable[[], QueueWorker]] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        queue: Processing queue; built from settings if omitted
        worker_factory: Returns the worker used by POST /queue/process;
            built from settings on first use if omitted
        settings: Application settings
    """
    settings = settings or get_settings()

    if queue is None:
        from mathgrade.db.database import create_session_factory, init_db

        engine, session_factory = create_session_factory(settings.database_url)
        init_db(engine)
        queue = ProcessingQueue(
            session_factory,
            max_attempts=settings.max_attempts,
            lock_timeout_minutes=settings.lock_timeout_minutes,
        )

    if worker_factory is None:
        from mathgrade.main import build_worker

        def worker_factory() -> QueueWorker:
            return build_worker(settings, queue)

    app = FastAPI(
        title="mathgrade",
        description="Math homework grading pipeline",
        version=__version__,
    )
    app.state.settings = settings
    app.state.queue = queue
    app.state.worker_factory = worker_factory
    app.state.worker = None

    @app.get("/health", tags=["health"])
    def health_check(queue: ProcessingQueue = Depends(get_queue)):
        """
        Health check with database status.

        Returns:
            HTTP 200 if healthy, 503 if the job store is unreachable.
        """
        health_status = {"status": "healthy", "version": __version__, "database": "unknown"}
        try:
            queue.stats()
            health_status["database"] = "connected"
        except Exception as e:
            health_status["status"] = "unhealthy"
            health_status["database"] = f"disconnected: {e}"
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=503, detail=health_status)
        return health_status

    @app.get("/queue/stats", response_model=QueueStats, dependencies=[Depends(get_api_key)])
    def queue_stats(queue: ProcessingQueue = Depends(get_queue)):
        return queue.stats()

    @app.post("/queue", response_model=QueueItem, status_code=201, dependencies=[Depends(get_api_key)])
    def enqueue(body: EnqueueRequest, queue: ProcessingQueue = Depends(get_queue)):
        job_id = queue.enqueue(body.submission_id, body.project_id, body.priority)
        return queue.get(job_id)

    @app.get(
        "/queue/projects/{project_id}",
        response_model=List[QueueItem],
        dependencies=[Depends(get_api_key)],
    )
    def project_items(project_id: str, queue: ProcessingQueue = Depends(get_queue)):
        return queue.project_items(project_id)

    @app.post("/queue/process", response_model=BatchReport, dependencies=[Depends(get_api_key)])
    async def process_queue(
        request: Request,
        max: int = Query(default=settings.worker_batch_size, ge=1, le=MAX_JOBS_PER_REQUEST),
    ):
        """Run one worker batch of at most `max` jobs."""
        state = request.app.state
        if state.worker is None:
            try:
                state.worker = await asyncio.to_thread(state.worker_factory)
            except MathGradeError as e:
                logger.error(f"Cannot start worker: {e}")
                raise HTTPException(status_code=503, detail=e.message)

        return await state.worker.run_once(max_jobs=max)

    return app
