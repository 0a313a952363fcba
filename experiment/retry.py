"""
Retry policy with capped exponential backoff.

There is no jitter: the delay before the first retry is
``fetch_retry_backoff_min_millis`` and every failed retry multiplies it by
``fetch_retry_backoff_scalar``, capped at ``fetch_retry_backoff_max_millis``.
"""

from dataclasses import dataclass
from typing import Generic, Iterator, Optional, TypeVar

from experiment.config import ExperimentConfig
from experiment.errors import FetchError

T = TypeVar("T")


@dataclass
class FetchResult(Generic[T]):
    """Result of a fetch attempt or of a whole retry sequence."""

    success: bool
    data: Optional[T] = None
    error: Optional[FetchError] = None
    attempts: int = 1

    @classmethod
    def ok(cls, data: T, attempts: int = 1) -> "FetchResult[T]":
        return cls(success=True, data=data, attempts=attempts)

    @classmethod
    def failed(cls, error: FetchError, attempts: int = 1) -> "FetchResult[T]":
        return cls(success=False, error=error, attempts=attempts)


@dataclass
class RetryState:
    """Mutable state of one retry loop."""

    attempt: int
    """Index of the next retry attempt (0-indexed)."""

    delay_millis: float
    """Delay to sleep before the next retry attempt."""

    last_error: Optional[FetchError] = None


def should_retry(attempt: int, config: ExperimentConfig) -> bool:
    """
    Check whether retry number ``attempt`` (0-indexed) may run.

    Args:
        attempt: Index of the retry about to happen
        config: Client configuration

    Returns:
        True while fewer than ``fetch_retries`` retries have run
    """
    return attempt < config.fetch_retries


def next_backoff(delay_millis: float, config: ExperimentConfig) -> float:
    """Delay after one more failed retry."""
    return min(
        delay_millis * config.fetch_retry_backoff_scalar,
        config.fetch_retry_backoff_max_millis,
    )


def calculate_backoff(attempt: int, config: ExperimentConfig) -> float:
    """
    Calculate the delay to sleep before a retry attempt.

    Args:
        attempt: Retry attempt number (0-indexed)
        config: Client configuration

    Returns:
        Delay in milliseconds
    """
    delay = float(config.fetch_retry_backoff_min_millis)
    for _ in range(attempt):
        delay = next_backoff(delay, config)
    return delay


def backoff_delays(config: ExperimentConfig) -> Iterator[float]:
    """Yield the delay before each of the configured retries, in milliseconds."""
    delay = float(config.fetch_retry_backoff_min_millis)
    for _ in range(config.fetch_retries):
        yield delay
        delay = next_backoff(delay, config)


def initial_retry_state(config: ExperimentConfig, error: Optional[FetchError] = None) -> RetryState:
    return RetryState(
        attempt=0,
        delay_millis=float(config.fetch_retry_backoff_min_millis),
        last_error=error,
    )
