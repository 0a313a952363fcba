"""Shared fixtures for Experiment SDK tests."""

import json
import logging

import pytest

from experiment.transport import TransportResponse


class ScriptedTransport:
    """
    Transport returning queued outcomes in order.

    An outcome is an exception to raise, a TransportResponse, raw bytes, or
    a JSON-serializable body. The last outcome repeats once the queue is down to one.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    async def send(self, url, payload, headers, timeout_millis):
        self.calls.append(
            {
                "url": url,
                "payload": payload,
                "headers": dict(headers),
                "timeout_millis": timeout_millis,
            }
        )
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, TransportResponse):
            return outcome
        body = outcome if isinstance(outcome, bytes) else json.dumps(outcome).encode("utf-8")
        return TransportResponse(status_code=200, body=body)

    async def aclose(self):
        self.closed = True


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def scripted_transport():
    """Factory for ScriptedTransport instances."""
    return ScriptedTransport


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def test_logger():
    logger = logging.getLogger("experiment.tests")
    logger.setLevel(logging.DEBUG)
    return logger
