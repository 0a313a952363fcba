"""Tests for Experiment client."""

import asyncio
import json
import logging

import httpx
import pytest
import respx

from experiment import ExperimentClient, ExperimentConfig, ExperimentUser, Variant
from experiment.errors import ConfigError, NetworkError
from experiment.transport import TransportResponse
from experiment.version import LIBRARY


@pytest.fixture
def mock_api():
    """Mock API responses."""
    with respx.mock:
        yield respx


@pytest.fixture
def config():
    """Create test configuration."""
    return ExperimentConfig(
        server_url="https://x",
        fetch_timeout_millis=1000,
        fetch_retries=2,
        fetch_retry_backoff_min_millis=1,
        fetch_retry_backoff_max_millis=10,
        fetch_retry_backoff_scalar=2,
    )


@pytest.fixture
def no_retry_config():
    return ExperimentConfig(server_url="https://x", fetch_retries=0)


class GatedTransport:
    """Transport that holds every request until released."""

    def __init__(self, body):
        self.body = body
        self.release = asyncio.Event()
        self.calls = 0

    async def send(self, url, payload, headers, timeout_millis):
        self.calls += 1
        await self.release.wait()
        return TransportResponse(200, json.dumps(self.body).encode("utf-8"))

    async def aclose(self):
        pass


class TestClientConstruction:
    """Tests for client construction."""

    @pytest.mark.parametrize("api_key", ["", None])
    def test_empty_api_key_fails_immediately(self, api_key):
        with pytest.raises(ConfigError, match="API key is empty"):
            ExperimentClient(api_key)

    def test_default_config(self, scripted_transport):
        client = ExperimentClient("key", transport=scripted_transport({}))

        assert client.config.fetch_retries == 8

    def test_debug_sets_default_logger_level(self, scripted_transport):
        client = ExperimentClient(
            "key", ExperimentConfig(debug=True), transport=scripted_transport({})
        )

        assert client.logger.name.startswith("experiment.")
        assert client.logger.level == logging.DEBUG

    def test_clients_own_their_loggers(self, scripted_transport):
        """A second client's debug setting must not change the first's."""
        debug_client = ExperimentClient(
            "key", ExperimentConfig(debug=True), transport=scripted_transport({})
        )
        quiet_client = ExperimentClient(
            "key", ExperimentConfig(debug=False), transport=scripted_transport({})
        )

        assert debug_client.logger is not quiet_client.logger
        assert debug_client.logger.isEnabledFor(logging.DEBUG)
        assert not quiet_client.logger.isEnabledFor(logging.DEBUG)
        assert quiet_client.logger.isEnabledFor(logging.INFO)

    def test_default_logger_has_no_handler(self, scripted_transport):
        """Output is left to the application's logging configuration."""
        client = ExperimentClient(
            "key", ExperimentConfig(debug=True), transport=scripted_transport({})
        )

        assert client.logger.handlers == []
        assert client.logger.propagate

    def test_injected_logger_level_untouched(self, scripted_transport):
        logger = logging.getLogger("experiment.injected")
        logger.setLevel(logging.ERROR)

        ExperimentClient(
            "key", ExperimentConfig(debug=True), transport=scripted_transport({}), logger=logger
        )

        assert logger.level == logging.ERROR


class TestClientFetch:
    """Tests for ExperimentClient.fetch."""

    async def test_fetch_does_not_block(self):
        """fetch() should return a pending task before the response arrives."""
        transport = GatedTransport({"flag": {"value": "on", "payload": None}})
        client = ExperimentClient("key", transport=transport)

        task = client.fetch(ExperimentUser(user_id="u"))

        assert isinstance(task, asyncio.Task)
        assert not task.done()
        assert client.pending_fetches == 1

        transport.release.set()
        variants = await task

        assert variants == {"flag": Variant("on")}
        assert client.pending_fetches == 0
        await client.close()

    async def test_callback_invoked_once(self, config, scripted_transport):
        body = {"flag": {"value": "on", "payload": {"a": 1}}}
        client = ExperimentClient("key", config, transport=scripted_transport(body))
        user = ExperimentUser(user_id="u")
        calls = []

        variants = await client.fetch(user, callback=lambda u, v: calls.append((u, v)))

        assert calls == [(user, {"flag": Variant("on", {"a": 1})})]
        assert variants == calls[0][1]
        await client.close()

    async def test_failure_yields_empty_map(self, config, scripted_transport):
        """Exhausted retries resolve to {} instead of raising."""
        transport = scripted_transport(NetworkError("Connection refused"))
        client = ExperimentClient("key", config, transport=transport)
        calls = []

        variants = await client.fetch(ExperimentUser(), callback=lambda u, v: calls.append(v))

        assert variants == {}
        assert calls == [{}]
        assert len(transport.calls) == 3
        await client.close()

    async def test_no_retries_failure_yields_empty_map(self, no_retry_config, scripted_transport):
        transport = scripted_transport({"flag": {"value": "on"}})
        client = ExperimentClient("key", no_retry_config, transport=transport)

        assert await client.fetch(ExperimentUser()) == {}
        assert len(transport.calls) == 1
        await client.close()

    async def test_orchestration_exception_yields_empty_map(
        self, config, scripted_transport, monkeypatch, caplog
    ):
        client = ExperimentClient("key", config, transport=scripted_transport({}))

        async def boom(user):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(client._fetcher, "fetch", boom)
        calls = []

        with caplog.at_level(logging.ERROR, logger="experiment"):
            variants = await client.fetch(ExperimentUser(), callback=lambda u, v: calls.append(v))

        assert variants == {}
        assert calls == [{}]
        assert any("Failed to fetch variants: unexpected" in r.message for r in caplog.records)
        await client.close()

    async def test_callback_error_does_not_change_result(self, config, scripted_transport):
        body = {"flag": {"value": "on", "payload": None}}
        client = ExperimentClient("key", config, transport=scripted_transport(body))

        def bad_callback(user, variants):
            raise ValueError("callback failed")

        variants = await client.fetch(ExperimentUser(), callback=bad_callback)

        assert variants == {"flag": Variant("on")}
        await client.close()

    async def test_async_callback_is_awaited(self, config, scripted_transport):
        client = ExperimentClient("key", config, transport=scripted_transport({}))
        calls = []

        async def callback(user, variants):
            await asyncio.sleep(0)
            calls.append(variants)

        await client.fetch(ExperimentUser(), callback=callback)

        assert calls == [{}]
        await client.close()

    async def test_fetch_variants(self, config, scripted_transport):
        body = {"flag": {"key": "legacy", "payload": None}}
        client = ExperimentClient("key", config, transport=scripted_transport(body))

        assert await client.fetch_variants() == {"flag": Variant("legacy")}
        await client.close()

    async def test_concurrent_fetches_are_independent(self, config):
        """Concurrent fetches each get their own result."""

        class EchoTransport:
            async def send(self, url, payload, headers, timeout_millis):
                user_id = json.loads(payload)["user_id"]
                await asyncio.sleep(0.01)
                body = {"flag": {"value": user_id, "payload": None}}
                return TransportResponse(200, json.dumps(body).encode("utf-8"))

            async def aclose(self):
                pass

        client = ExperimentClient("key", config, transport=EchoTransport())

        results = await asyncio.gather(
            client.fetch(ExperimentUser(user_id="a")),
            client.fetch(ExperimentUser(user_id="b")),
        )

        assert results[0]["flag"].value == "a"
        assert results[1]["flag"].value == "b"
        await client.close()

    async def test_metrics(self, config, scripted_transport):
        transport = scripted_transport(NetworkError(), {"flag": {"value": "on", "payload": None}})
        client = ExperimentClient("key", config, transport=transport)

        await client.fetch(ExperimentUser())

        snap = client.get_metrics()
        assert snap.total_fetches == 1
        assert snap.successful_fetches == 1
        assert snap.total_attempts == 2
        assert snap.retry_attempts == 1
        await client.close()


class TestClientLifecycle:
    """Tests for close() and the context manager."""

    async def test_close_right_after_fetch_still_delivers(self, config, scripted_transport):
        """A fetch issued before close() runs even if it has not started yet."""
        transport = scripted_transport({"flag": {"value": "on", "payload": None}})
        client = ExperimentClient("key", config, transport=transport)
        calls = []

        task = client.fetch(ExperimentUser(), callback=lambda u, v: calls.append(v))
        await client.close()

        assert task.result() == {"flag": Variant("on")}
        assert calls == [{"flag": Variant("on")}]
        assert len(transport.calls) == 1
        assert transport.closed

    async def test_close_waits_for_inflight_fetches(self):
        transport = GatedTransport({"flag": {"value": "on", "payload": None}})
        client = ExperimentClient("key", transport=transport)
        calls = []

        task = client.fetch(ExperimentUser(), callback=lambda u, v: calls.append(v))
        await asyncio.sleep(0)
        asyncio.get_running_loop().call_later(0.01, transport.release.set)

        await client.close()

        assert task.done()
        assert calls == [{"flag": Variant("on")}]

    async def test_fetch_after_close_yields_empty_map(self, config, scripted_transport):
        transport = scripted_transport({"flag": {"value": "on", "payload": None}})
        client = ExperimentClient("key", config, transport=transport)
        await client.close()
        calls = []

        variants = await client.fetch(ExperimentUser(), callback=lambda u, v: calls.append(v))

        assert variants == {}
        assert calls == [{}]
        assert transport.calls == []

    async def test_close_closes_transport(self, config, scripted_transport):
        transport = scripted_transport({})

        async with ExperimentClient("key", config, transport=transport):
            pass

        assert transport.closed


class TestClientHttp:
    """End-to-end tests against a mocked evaluation service."""

    async def test_fetch_over_http(self, mock_api, config):
        route = mock_api.post("https://x/sdk/vardata").mock(
            return_value=httpx.Response(
                200,
                json={
                    "flag-a": {"value": "on", "payload": {"color": "blue"}},
                    "flag-b": {"key": "control", "payload": None},
                },
            )
        )

        async with ExperimentClient("test-api-key", config) as client:
            variants = await client.fetch(ExperimentUser(user_id="user-123"))

        assert variants == {
            "flag-a": Variant("on", {"color": "blue"}),
            "flag-b": Variant("control"),
        }
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Api-Key test-api-key"
        assert request.headers["Content-Type"] == "application/json;charset=utf-8"
        assert json.loads(request.content) == {"user_id": "user-123", "library": LIBRARY}

    async def test_retries_after_server_error(self, mock_api, config):
        route = mock_api.post("https://x/sdk/vardata").mock(
            side_effect=[
                httpx.Response(500),
                httpx.Response(200, json={"flag": {"value": "on", "payload": None}}),
            ]
        )

        async with ExperimentClient("test-api-key", config) as client:
            variants = await client.fetch(ExperimentUser(user_id="u"))

        assert variants == {"flag": Variant("on")}
        assert route.call_count == 2

    async def test_network_error_yields_empty_map(self, mock_api, config):
        route = mock_api.post("https://x/sdk/vardata").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )

        async with ExperimentClient("test-api-key", config) as client:
            variants = await client.fetch(ExperimentUser(user_id="u"))

        assert variants == {}
        assert route.call_count == 3

    async def test_non_2xx_with_variant_body(self, mock_api, no_retry_config):
        """A 404 carrying valid variant JSON is decoded, not treated as a failure."""
        route = mock_api.post("https://x/sdk/vardata").mock(
            return_value=httpx.Response(404, json={"flag": {"value": "on", "payload": None}})
        )

        async with ExperimentClient("test-api-key", no_retry_config) as client:
            variants = await client.fetch(ExperimentUser(user_id="u"))

        assert variants == {"flag": Variant("on")}
        assert route.call_count == 1
