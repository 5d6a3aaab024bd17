"""
Metrics collection for the grading pipeline.

Tracks business metrics (graded submissions, failures, verification
conflicts, provider usage) via structured logging.
"""

import threading
from collections import defaultdict
from typing import Dict, List

from loguru import logger


class MetricsCollector:
    """
    Collect and aggregate metrics for observability.

    Thread-safe in-memory metrics storage. Metrics are logged
    as snapshots and reset on restart.
    """

    def __init__(self):
        # Grading metrics
        self.graded: int = 0
        self.failed: int = 0
        self.needs_review: int = 0
        self.verification_conflicts: int = 0
        self.reading_conflicts: int = 0
        self.grading_latencies: List[float] = []

        # Provider metrics
        self.provider_usage: Dict[str, int] = defaultdict(int)  # provider -> calls
        self.provider_tokens: Dict[str, int] = defaultdict(int)  # provider -> tokens
        self.estimated_cost: float = 0.0

        # Thread lock for thread safety
        self._lock = threading.Lock()

    def record_grading(self, result) -> None:
        """Record a finished GradingResult."""
        with self._lock:
            if result.success:
                self.graded += 1
            else:
                self.failed += 1
            if result.needs_review:
                self.needs_review += 1
            for q in result.questions:
                if q.verification_conflict:
                    self.verification_conflicts += 1
                if q.has_reading_conflict:
                    self.reading_conflicts += 1
            self.grading_latencies.append(result.processing_time_ms)
            if result.provider:
                self.provider_usage[result.provider] += 1
                self.provider_tokens[result.provider] += result.tokens_used or 0

    def record_failure(self) -> None:
        """Record a job that failed before producing a result."""
        with self._lock:
            self.failed += 1

    def record_cost(self, amount: float) -> None:
        with self._lock:
            self.estimated_cost += amount

    def get_percentiles(self) -> Dict[str, float]:
        """Calculate grading latency percentiles (p50, p95, p99)."""
        with self._lock:
            if not self.grading_latencies:
                return {"p50": 0, "p95": 0, "p99": 0}

            sorted_latencies = sorted(self.grading_latencies)
            count = len(sorted_latencies)

            return {
                "p50": sorted_latencies[int(count * 0.5)],
                "p95": sorted_latencies[min(int(count * 0.95), count - 1)],
                "p99": sorted_latencies[min(int(count * 0.99), count - 1)],
            }

    def snapshot(self) -> Dict:
        """Current counters as a plain dict."""
        with self._lock:
            return {
                "graded": self.graded,
                "failed": self.failed,
                "needs_review": self.needs_review,
                "verification_conflicts": self.verification_conflicts,
                "reading_conflicts": self.reading_conflicts,
                "provider_usage": dict(self.provider_usage),
                "provider_tokens": dict(self.provider_tokens),
                "estimated_cost_usd": round(self.estimated_cost, 4),
            }

    def log_metrics(self) -> Dict:
        """Log all metrics as structured JSON."""
        metrics = self.snapshot()
        metrics["latency_percentiles"] = self.get_percentiles()

        logger.bind(metrics=metrics).info("Metrics snapshot")

        return metrics
