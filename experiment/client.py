"""
Experiment client for fetching variant assignments.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

from experiment.config import DEFAULT_CONFIG, ExperimentConfig
from experiment.errors import ConfigError
from experiment.fetcher import VariantFetcher
from experiment.metrics import FetchMetrics, FetchMetricsSnapshot
from experiment.transport import HttpxTransport, Transport
from experiment.user import ExperimentUser
from experiment.variant import VariantMap

FetchCallback = Callable[[Optional[ExperimentUser], VariantMap], Any]


class ExperimentClient:
    """
    Experiment variant client.

    Every fetch runs as its own task on the running event loop and always
    resolves to a variant mapping, empty when the fetch failed.

    Example:
        ```python
        async with ExperimentClient("your-api-key") as client:
            variants = await client.fetch(ExperimentUser(user_id="user-123"))

            client.fetch(user, callback=lambda user, variants: print(variants))
        ```
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[ExperimentConfig] = None,
        transport: Optional[Transport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the Experiment client.

        Args:
            api_key: Deployment API key, must not be empty
            config: Client configuration, defaults to DEFAULT_CONFIG
            transport: Transport for requests, defaults to an HttpxTransport
            logger: Logger to write to, used as is. When omitted the client
                creates its own child of the ``experiment`` logger and sets it to
                DEBUG or INFO depending on config.debug. No handler is added:
                configure logging (e.g. ``logging.basicConfig(level=logging.DEBUG)``)
                to see debug output.

        Raises:
            ConfigError: If the API key is empty
        """
        if not api_key:
            raise ConfigError("Experiment API key is empty")

        self._config = config or DEFAULT_CONFIG
        if logger is None:
            logger = logging.getLogger(f"experiment.client.{id(self)}")
            logger.setLevel(logging.DEBUG if self._config.debug else logging.INFO)
        self._logger = logger
        self._transport: Transport = transport or HttpxTransport()
        self._metrics = FetchMetrics()
        self._fetcher = VariantFetcher(
            api_key,
            self._config,
            self._transport,
            self._logger,
            metrics=self._metrics,
        )
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def config(self) -> ExperimentConfig:
        return self._config

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def fetch(
        self,
        user: Optional[ExperimentUser] = None,
        callback: Optional[FetchCallback] = None,
    ) -> "asyncio.Task[VariantMap]":
        """
        Fetch all variants for a user without waiting for the result.

        Retries automatically when configured (the default). Must be called
        from a running event loop.

        Args:
            user: User to fetch variants for
            callback: Called once with ``(user, variants)`` when the fetch
                finishes. May be a coroutine function.

        Returns:
            Task resolving to the variants, ``{}`` on failure
        """
        task = asyncio.get_running_loop().create_task(
            self._run(user, callback, closed=self._closed)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def fetch_variants(self, user: Optional[ExperimentUser] = None) -> VariantMap:
        """Fetch all variants for a user and wait for them."""
        return await self.fetch(user)

    async def _run(
        self,
        user: Optional[ExperimentUser],
        callback: Optional[FetchCallback],
        closed: bool = False,
    ) -> VariantMap:
        variants: VariantMap = {}
        if closed:
            self._logger.warning("[Experiment] Client is closed, returning no variants")
        else:
            try:
                result = await self._fetcher.fetch(user)
                if result.success and result.data is not None:
                    variants = result.data
            except Exception as e:
                self._logger.error(f"[Experiment] Failed to fetch variants: {e}")

        if callback is not None:
            try:
                outcome = callback(user, variants)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self._logger.warning(f"[Experiment] Error in fetch callback: {e}")

        return variants

    def get_metrics(self) -> FetchMetricsSnapshot:
        """Get fetch statistics."""
        return self._metrics.snapshot()

    @property
    def pending_fetches(self) -> int:
        """Number of fetches that have not finished yet."""
        return len(self._tasks)

    async def close(self) -> None:
        """Wait for in-flight fetches, then release the transport."""
        if self._closed:
            return
        self._closed = True

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        await self._transport.aclose()

    async def __aenter__(self) -> "ExperimentClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
