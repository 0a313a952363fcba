"""
Fetch metrics collection.
Tracks attempts, retries, outcomes and attempt latency for one client.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class FetchMetricsSnapshot:
    """Point-in-time copy of the collected metrics."""
    # Logical fetches
    total_fetches: int = 0
    successful_fetches: int = 0
    failed_fetches: int = 0

    # Individual attempts (initial + retries)
    total_attempts: int = 0
    retry_attempts: int = 0
    failed_attempts: int = 0

    # Latency metrics (in milliseconds)
    avg_latency_ms: float = 0
    min_latency_ms: float = 0
    max_latency_ms: float = 0

    errors_by_category: Dict[str, int] = field(default_factory=dict)


class FetchMetrics:
    """
    Collects fetch statistics.

    Recording is advisory: nothing here influences a fetch's outcome.

    Example:
        ```python
        metrics = FetchMetrics()
        metrics.record_attempt(latency_ms=42.0, success=True)
        metrics.record_fetch(success=True)

        snap = metrics.snapshot()
        print(f"Attempts: {snap.total_attempts}")
        ```
    """

    def __init__(self):
        self._max_latency_history = 1000
        self.reset()

    def record_attempt(
        self,
        latency_ms: float,
        success: bool,
        error_category: Optional[str] = None,
        retry: bool = False,
    ) -> None:
        """
        Record one completed attempt.

        Args:
            latency_ms: Time spent on the attempt
            success: Whether the attempt produced variants
            error_category: Category of the failure, if any
            retry: Whether the attempt was a retry
        """
        self._total_attempts += 1
        if retry:
            self._retry_attempts += 1
        if not success:
            self._failed_attempts += 1
            if error_category:
                self._errors_by_category[error_category] += 1

        self._latencies.append(latency_ms)
        if len(self._latencies) > self._max_latency_history:
            self._latencies.pop(0)

    def record_fetch(self, success: bool) -> None:
        """Record the terminal outcome of one logical fetch."""
        self._total_fetches += 1
        if success:
            self._successful_fetches += 1
        else:
            self._failed_fetches += 1

    def snapshot(self) -> FetchMetricsSnapshot:
        latencies = self._latencies
        return FetchMetricsSnapshot(
            total_fetches=self._total_fetches,
            successful_fetches=self._successful_fetches,
            failed_fetches=self._failed_fetches,
            total_attempts=self._total_attempts,
            retry_attempts=self._retry_attempts,
            failed_attempts=self._failed_attempts,
            avg_latency_ms=sum(latencies) / len(latencies) if latencies else 0,
            min_latency_ms=min(latencies) if latencies else 0,
            max_latency_ms=max(latencies) if latencies else 0,
            errors_by_category=dict(self._errors_by_category),
        )

    def reset(self) -> None:
        """Reset all counters."""
        self._total_fetches = 0
        self._successful_fetches = 0
        self._failed_fetches = 0
        self._total_attempts = 0
        self._retry_attempts = 0
        self._failed_attempts = 0
        self._latencies: List[float] = []
        self._errors_by_category: Dict[str, int] = defaultdict(int)
