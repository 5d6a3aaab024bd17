"""
Centralized logging configuration for the grading pipeline.

Provides structured JSON logging with Loguru. Workers bind worker_id and
job_id via logger.contextualize() so every line of a job can be traced.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_structured_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    serialize: bool = True,
) -> None:
    """
    Configure structured JSON logging with Loguru.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file (for local development)
        serialize: Emit JSON lines on stdout (False for human-readable CLI output)
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout if serialize else sys.stderr,
        serialize=serialize,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name} | {message}",
        level=level.upper(),
        enqueue=True,    # Non-blocking, safe across worker threads
        backtrace=True,
        diagnose=False,  # Do not dump local variables (they may hold API keys)
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            serialize=True,
            level="DEBUG",    # Always debug to file
            rotation="10 MB",
            retention="30 days",
            compression="zip",
        )

    # Suppress noisy third-party loggers
    logger.disable("httpx")
    logger.disable("httpcore")
