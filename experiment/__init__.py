"""
Experiment Python SDK - fetch variant assignments for a user.

Usage:
    from experiment import ExperimentClient, ExperimentUser

    async with ExperimentClient("your-api-key") as client:
        variants = await client.fetch(ExperimentUser(user_id="user-123"))

        variant = variants.get("my-flag")
        if variant and variant.value == "on":
            # Treatment
            pass
"""

from experiment.client import ExperimentClient
from experiment.config import DEFAULT_CONFIG, ExperimentConfig
from experiment.decoder import decode_variants, parse_json_variants
from experiment.errors import (
    ConfigError,
    DecodeError,
    ErrorCategory,
    ExperimentError,
    FetchError,
    FetchTimeoutError,
    HttpStatusError,
    NetworkError,
    TransportError,
)
from experiment.metrics import FetchMetrics, FetchMetricsSnapshot
from experiment.retry import FetchResult, backoff_delays, calculate_backoff
from experiment.transport import HttpxTransport, Transport, TransportResponse
from experiment.user import ExperimentUser
from experiment.variant import Variant, VariantMap
from experiment.version import __version__

__all__ = [
    # Client
    "ExperimentClient",
    "ExperimentConfig",
    "DEFAULT_CONFIG",
    "ExperimentUser",
    "Variant",
    "VariantMap",
    # Decoding
    "decode_variants",
    "parse_json_variants",
    # Retry
    "FetchResult",
    "backoff_delays",
    "calculate_backoff",
    # Transport
    "Transport",
    "TransportResponse",
    "HttpxTransport",
    # Errors
    "ExperimentError",
    "ConfigError",
    "FetchError",
    "TransportError",
    "FetchTimeoutError",
    "NetworkError",
    "HttpStatusError",
    "DecodeError",
    "ErrorCategory",
    # Metrics
    "FetchMetrics",
    "FetchMetricsSnapshot",
    "__version__",
]
