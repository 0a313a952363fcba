"""
Fetch orchestration: one initial attempt, then the retry loop.

Attempt failures travel as `FetchResult` values. Nothing in this module
raises to its caller once a fetch has started.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

from experiment.config import ExperimentConfig
from experiment.decoder import decode_variants
from experiment.errors import DecodeError, FetchError, HttpStatusError, classify_error
from experiment.metrics import FetchMetrics
from experiment.retry import (
    FetchResult,
    initial_retry_state,
    next_backoff,
    should_retry,
)
from experiment.transport import Transport, TransportResponse
from experiment.user import ExperimentUser
from experiment.variant import VariantMap
from experiment.version import LIBRARY

# Request bodies above this size cannot be cached by the CDN.
MAX_CACHEABLE_PAYLOAD_BYTES = 8000

VARDATA_PATH = "/sdk/vardata"


class VariantFetcher:
    """
    Drives one logical fetch against the evaluation service.

    The initial attempt uses ``fetch_timeout_millis``. When it fails and
    retries are enabled, up to ``fetch_retries`` more attempts run, each
    after a backoff sleep and each bounded by ``fetch_retry_timeout_millis``.
    """

    def __init__(
        self,
        api_key: str,
        config: ExperimentConfig,
        transport: Transport,
        logger: logging.Logger,
        metrics: Optional[FetchMetrics] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the fetcher.

        Args:
            api_key: Deployment API key
            config: Client configuration
            transport: Transport used for every attempt
            logger: Logger owned by the client
            metrics: Optional metrics collector
            sleep: Coroutine used for backoff sleeps, takes seconds
        """
        self._config = config
        self._transport = transport
        self._logger = logger
        self._metrics = metrics
        self._sleep = sleep
        self._endpoint = f"{config.server_url}{VARDATA_PATH}"
        self._headers: Dict[str, str] = {
            "Authorization": f"Api-Key {api_key}",
            "Content-Type": "application/json;charset=utf-8",
        }

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def add_context(self, user: Optional[ExperimentUser]) -> ExperimentUser:
        """
        Return the user to send, with the library identifier filled in.

        The given instance is never modified; an explicit library value is
        kept as is.
        """
        if user is None:
            user = ExperimentUser()
        if user.library is None:
            return dataclasses.replace(user, library=LIBRARY)
        return user

    async def fetch(self, user: Optional[ExperimentUser]) -> FetchResult[VariantMap]:
        """
        Run the initial attempt and, on failure, the retry loop.

        Args:
            user: User to fetch variants for

        Returns:
            Successful result with the decoded variants, or a failed result
            carrying the last error
        """
        self._logger.debug(f"[Experiment] Fetching variants for user: {user}")
        result = await self.attempt(user, self._config.fetch_timeout_millis)

        if not result.success:
            self._logger.error(f"[Experiment] Fetch failed: {result.error}")
            result = await self.retry(user, result.error)
            if not result.success:
                self._logger.error(
                    f"[Experiment] Giving up after {result.attempts} attempt(s): {result.error}"
                )

        if self._metrics is not None:
            self._metrics.record_fetch(result.success)
        return result

    async def retry(
        self,
        user: Optional[ExperimentUser],
        error: Optional[FetchError],
    ) -> FetchResult[VariantMap]:
        """
        Retry a failed fetch with capped exponential backoff.

        Args:
            user: User to fetch variants for
            error: Error of the failed initial attempt

        Returns:
            Result of the first successful retry, or a failed result with
            the last observed error once retries are exhausted
        """
        config = self._config
        state = initial_retry_state(config, error)
        if config.fetch_retries == 0:
            return FetchResult.failed(state.last_error, attempts=1)

        self._logger.debug("[Experiment] Retrying fetch")
        while should_retry(state.attempt, config):
            await self._sleep(state.delay_millis / 1000)
            result = await self.attempt(user, config.fetch_retry_timeout_millis, retry=True)
            state.attempt += 1

            if result.success:
                return FetchResult.ok(result.data, attempts=state.attempt + 1)

            self._logger.error(f"[Experiment] Retry failed: {result.error}")
            state.last_error = result.error
            state.delay_millis = next_backoff(state.delay_millis, config)

        return FetchResult.failed(state.last_error, attempts=state.attempt + 1)

    async def attempt(
        self,
        user: Optional[ExperimentUser],
        timeout_millis: float,
        retry: bool = False,
    ) -> FetchResult[VariantMap]:
        """
        Single fetch attempt.

        Args:
            user: User to fetch variants for
            timeout_millis: Deadline for this attempt
            retry: Whether this attempt is a retry (for metrics)

        Returns:
            FetchResult with the decoded variants or the attempt's error
        """
        start = time.perf_counter()
        try:
            body = self.add_context(user).to_json().encode("utf-8")
            if len(body) > MAX_CACHEABLE_PAYLOAD_BYTES:
                self._logger.warning(
                    f"[Experiment] encoded user object length {len(body)} cannot be "
                    f"cached by CDN; must be < 8KB"
                )
            self._logger.debug(f"[Experiment] Fetch variants for user: {body.decode('utf-8')}")

            response = await self._transport.send(
                self._endpoint, body, self._headers, timeout_millis
            )
            variants = self._decode(response)
        except Exception as e:
            error = classify_error(e)
            self._record_attempt(start, error, retry)
            return FetchResult.failed(error)

        elapsed_ms = self._record_attempt(start, None, retry)
        self._logger.debug(f"[Experiment] Fetch complete in {elapsed_ms:.3f} ms")
        self._logger.debug(f"[Experiment] Fetched variants: {variants}")
        return FetchResult.ok(variants)

    def _decode(self, response: TransportResponse) -> VariantMap:
        """
        Decode a response body regardless of its status.

        A non-2xx response whose body decodes still yields variants; one
        whose body does not decode fails with HttpStatusError.
        """
        is_success = 200 <= response.status_code < 300
        try:
            variants = decode_variants(response.body)
        except DecodeError:
            if not is_success:
                raise HttpStatusError(response.status_code) from None
            raise

        if not is_success:
            self._logger.debug(
                f"[Experiment] Decoded variants from status {response.status_code} response"
            )
        return variants

    def _record_attempt(self, start: float, error: Optional[FetchError], retry: bool) -> float:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if self._metrics is not None:
            self._metrics.record_attempt(
                elapsed_ms,
                success=error is None,
                error_category=error.category.value if error else None,
                retry=retry,
            )
        return elapsed_ms
