"""Configuration for the Experiment client."""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping

from experiment.errors import ConfigError

# camelCase spellings accepted by ExperimentConfig.from_dict
_CAMEL_CASE_KEYS = {
    "serverUrl": "server_url",
    "fetchTimeoutMillis": "fetch_timeout_millis",
    "fetchRetries": "fetch_retries",
    "fetchRetryBackoffMinMillis": "fetch_retry_backoff_min_millis",
    "fetchRetryBackoffMaxMillis": "fetch_retry_backoff_max_millis",
    "fetchRetryBackoffScalar": "fetch_retry_backoff_scalar",
    "fetchRetryTimeoutMillis": "fetch_retry_timeout_millis",
}


@dataclass(frozen=True)
class ExperimentConfig:
    """Configuration for the Experiment client. Shared read-only by all fetches."""

    server_url: str = "https://api.lab.amplitude.com"
    """Base URL of the evaluation service."""

    debug: bool = False
    """Log at DEBUG instead of INFO."""

    fetch_timeout_millis: int = 10000
    """Deadline of the initial fetch attempt in milliseconds."""

    fetch_retries: int = 8
    """Retry attempts after a failed initial fetch. 0 disables retries."""

    fetch_retry_backoff_min_millis: int = 500
    """Delay before the first retry in milliseconds."""

    fetch_retry_backoff_max_millis: int = 10000
    """Upper bound of the delay between retries in milliseconds."""

    fetch_retry_backoff_scalar: float = 1.5
    """Multiplier applied to the delay after each failed retry."""

    fetch_retry_timeout_millis: int = 10000
    """Deadline of each retry attempt in milliseconds."""

    def __post_init__(self) -> None:
        if not self.server_url:
            raise ConfigError("server_url must not be empty")
        if self.server_url.endswith("/"):
            object.__setattr__(self, "server_url", self.server_url.rstrip("/"))

        if self.fetch_timeout_millis <= 0:
            raise ConfigError("fetch_timeout_millis must be > 0")
        if self.fetch_retry_timeout_millis <= 0:
            raise ConfigError("fetch_retry_timeout_millis must be > 0")
        if self.fetch_retries < 0:
            raise ConfigError("fetch_retries must be >= 0")
        if self.fetch_retry_backoff_min_millis < 0:
            raise ConfigError("fetch_retry_backoff_min_millis must be >= 0")
        if self.fetch_retry_backoff_min_millis > self.fetch_retry_backoff_max_millis:
            raise ConfigError(
                "fetch_retry_backoff_min_millis must not exceed fetch_retry_backoff_max_millis"
            )
        if self.fetch_retry_backoff_scalar <= 0:
            raise ConfigError("fetch_retry_backoff_scalar must be > 0")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExperimentConfig":
        """
        Build a config from a mapping of snake_case or camelCase options.

        Unknown keys are ignored.

        Args:
            data: Option mapping, e.g. parsed from a JSON command

        Returns:
            A validated ExperimentConfig
        """
        known = {f.name for f in fields(cls)}
        options: Dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name in known:
                options[name] = value
        return cls(**options)


DEFAULT_CONFIG = ExperimentConfig()
