"""
Error types for the Experiment SDK.

Failures of a single fetch attempt are `FetchError`s. They are carried
through the retry loop as values and never cross the public fetch boundary;
only `ConfigError` is raised to callers.
"""

import asyncio
from enum import Enum
from typing import Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for classification."""

    CONFIG = "config"
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP = "http"
    DECODE = "decode"
    UNKNOWN = "unknown"


class ExperimentError(Exception):
    """Base exception for all Experiment SDK errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, category={self.category})"


class ConfigError(ExperimentError):
    """Raised when the client is constructed with invalid arguments."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message, category=ErrorCategory.CONFIG)


class FetchError(ExperimentError):
    """A single fetch attempt failed."""

    def __init__(
        self,
        message: str = "Fetch failed",
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, category=category, status_code=status_code)


class TransportError(FetchError):
    """The request did not produce a usable HTTP response."""


class FetchTimeoutError(TransportError):
    """No response arrived before the deadline."""

    def __init__(self, message: str = "Request timed out"):
        super().__init__(message, category=ErrorCategory.TIMEOUT)


class NetworkError(TransportError):
    """Connection-level failure (DNS, refused, reset, TLS)."""

    def __init__(self, message: str = "Network error"):
        super().__init__(message, category=ErrorCategory.NETWORK)


class HttpStatusError(TransportError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(
            message or f"Request failed: {status_code}",
            category=ErrorCategory.HTTP,
            status_code=status_code,
        )


class DecodeError(FetchError):
    """The response body is malformed or misses a required field."""

    def __init__(self, message: str = "Malformed response body"):
        super().__init__(message, category=ErrorCategory.DECODE)


def classify_error(error: BaseException) -> FetchError:
    """
    Classify an exception into a FetchError.

    Args:
        error: The original exception

    Returns:
        A classified FetchError
    """
    if isinstance(error, FetchError):
        return error

    message = str(error) or error.__class__.__name__

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return FetchTimeoutError(message)
    if isinstance(error, httpx.HTTPStatusError):
        return HttpStatusError(error.response.status_code, message)
    if isinstance(error, (httpx.TransportError, OSError)):
        return NetworkError(message)
    if isinstance(error, ValueError):
        return DecodeError(message)

    return FetchError(message)
