"""Tests for RunPodClient.

HTTP is served by httpx.MockTransport; no network access.
"""

import json
import logging
from collections.abc import Callable

import httpx
import pytest

from podhub.app.config import RetryConfig, RunPodConfig
from podhub.app.logging import component_for
from podhub.core.domain import PodStatus
from podhub.core.logging_schema import Component, LogEvent
from podhub.provider import RunPodClient

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """MockTransport handler that records requests and replays a script."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(result, Exception):
            raise result
        return result


def _client(
    handler: Handler, *, api_key: str = "test-key", max_retries: int = 0
) -> RunPodClient:
    return RunPodClient(
        RunPodConfig(api_key=api_key, base_url="https://rest.runpod.io/v1"),
        RetryConfig(max_retries=max_retries, base_delay=0.0, max_delay=0.0),
        transport=httpx.MockTransport(handler),
    )


POD_JSON = {
    "id": "abc123",
    "desiredStatus": "RUNNING",
    "name": "podhub on-demand pod",
    "gpu": {"displayName": "RTX 4090"},
    "containerDiskInGb": 20,
    "volumeInGb": 20,
    "ports": ["8000/http", "22/tcp"],
    "templateId": "ogn0w7m9jb",
    "image": "runpod/worker:latest",
}


class TestAuthorization:
    async def test_bearer_token_sent(self) -> None:
        recorder = Recorder(httpx.Response(200, json=[]))
        client = _client(recorder)

        await client.list()

        assert recorder.requests[0].headers["Authorization"] == "Bearer test-key"
        await client.close()

    async def test_missing_key_aborts_without_request(self) -> None:
        """No credential: every operation fails soft and nothing is sent."""
        recorder = Recorder(httpx.Response(200, json=[]))
        client = _client(recorder, api_key="")

        assert await client.list() is None
        assert await client.create({"name": "x"}) is None
        assert await client.start("p") is False
        assert await client.stop("p") is False
        assert await client.terminate("p") is None
        described = await client.describe("p")
        assert described is not None and described.status == PodStatus.UNKNOWN
        assert recorder.requests == []


class TestList:
    async def test_parses_pods(self) -> None:
        recorder = Recorder(
            httpx.Response(200, json=[POD_JSON, {"id": "def", "desiredStatus": "EXITED"}])
        )
        client = _client(recorder)

        pods = await client.list()

        assert pods is not None
        assert [p.id for p in pods] == ["abc123", "def"]
        assert pods[0].status == PodStatus.RUNNING
        assert pods[0].gpu_type == "RTX 4090"
        assert pods[1].status == PodStatus.STOPPED
        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.path == "/v1/pods"

    async def test_empty_list_is_valid(self) -> None:
        client = _client(Recorder(httpx.Response(200, json=[])))

        assert await client.list() == []

    async def test_accepts_wrapped_list(self) -> None:
        client = _client(Recorder(httpx.Response(200, json={"pods": [POD_JSON]})))

        pods = await client.list()

        assert pods is not None and pods[0].id == "abc123"

    async def test_failure_returns_none(self) -> None:
        """Failure is distinguishable from an empty account."""
        client = _client(Recorder(httpx.Response(500, text="oops")))

        assert await client.list() is None

    async def test_transport_error_returns_none(self) -> None:
        client = _client(Recorder(httpx.ConnectError("refused")))

        assert await client.list() is None

    async def test_malformed_body_returns_none(self) -> None:
        client = _client(Recorder(httpx.Response(200, json=[{"name": "no id"}])))

        assert await client.list() is None


class TestCreate:
    async def test_posts_template(self) -> None:
        recorder = Recorder(httpx.Response(201, json=POD_JSON))
        client = _client(recorder)
        template = {"name": "podhub on-demand pod", "gpuCount": 1}

        pod = await client.create(template)

        assert pod is not None
        assert pod.id == "abc123"
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/pods"
        assert json.loads(request.content) == template

    async def test_failure_returns_none(self) -> None:
        client = _client(Recorder(httpx.Response(400, json={"error": "bad gpu"})))

        assert await client.create({}) is None

    async def test_never_retried(self) -> None:
        """A failed create may still have provisioned, so it is not repeated."""
        recorder = Recorder(httpx.Response(503))
        client = _client(recorder, max_retries=3)

        assert await client.create({}) is None
        assert len(recorder.requests) == 1


class TestStartStop:
    async def test_start_success(self) -> None:
        recorder = Recorder(httpx.Response(200, json={}))
        client = _client(recorder)

        assert await client.start("abc123") is True
        assert recorder.requests[0].url.path == "/v1/pods/abc123/start"
        assert recorder.requests[0].method == "POST"

    async def test_start_failure_returns_false(self) -> None:
        client = _client(Recorder(httpx.Response(500)))

        assert await client.start("abc123") is False

    async def test_stop_success(self) -> None:
        recorder = Recorder(httpx.Response(200, json={}))
        client = _client(recorder)

        assert await client.stop("abc123") is True
        assert recorder.requests[0].url.path == "/v1/pods/abc123/stop"

    async def test_stop_conflict_is_success(self) -> None:
        """409: already stopped."""
        client = _client(Recorder(httpx.Response(409)))

        assert await client.stop("abc123") is True

    async def test_stop_conflict_logged_as_stopped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = _client(Recorder(httpx.Response(409)))

        with caplog.at_level(logging.INFO, logger="podhub.provider"):
            await client.stop("abc123")

        [record] = [r for r in caplog.records if "already stopped" in r.getMessage()]
        assert record.event == LogEvent.POD_STOPPED
        assert record.pod_id == "abc123"
        assert component_for(record.name) == Component.PROVIDER

    async def test_stop_failure_returns_false(self) -> None:
        client = _client(Recorder(httpx.Response(502)))

        assert await client.stop("abc123") is False

    async def test_retries_transient_when_enabled(self) -> None:
        recorder = Recorder(httpx.Response(503), httpx.Response(200, json={}))
        client = _client(recorder, max_retries=2)

        assert await client.start("abc123") is True
        assert len(recorder.requests) == 2

    async def test_single_attempt_by_default(self) -> None:
        recorder = Recorder(httpx.Response(503), httpx.Response(200, json={}))
        client = _client(recorder)

        assert await client.start("abc123") is False
        assert len(recorder.requests) == 1


class TestTerminate:
    async def test_terminate(self) -> None:
        recorder = Recorder(httpx.Response(200, json={}))
        client = _client(recorder)

        await client.terminate("abc123")

        assert recorder.requests[0].url.path == "/v1/pods/abc123/terminate"
        assert recorder.requests[0].method == "POST"

    @pytest.mark.parametrize("status", [404, 500])
    async def test_terminate_never_raises(self, status: int) -> None:
        client = _client(Recorder(httpx.Response(status)))

        assert await client.terminate("abc123") is None

    async def test_terminate_not_found_logged_as_gone(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = _client(Recorder(httpx.Response(404)))

        with caplog.at_level(logging.INFO, logger="podhub.provider"):
            await client.terminate("abc123")

        [record] = [r for r in caplog.records if "already gone" in r.getMessage()]
        assert record.event == LogEvent.POD_NOT_FOUND
        assert record.pod_id == "abc123"
        assert component_for(record.name) == Component.PROVIDER


class TestDescribe:
    async def test_returns_pod(self) -> None:
        recorder = Recorder(httpx.Response(200, json={**POD_JSON, "desiredStatus": "EXITED"}))
        client = _client(recorder)

        pod = await client.describe("abc123")

        assert pod is not None
        assert pod.status == PodStatus.STOPPED
        assert recorder.requests[0].url.path == "/v1/pods/abc123"

    async def test_not_found_returns_none(self) -> None:
        client = _client(Recorder(httpx.Response(404)))

        assert await client.describe("abc123") is None

    @pytest.mark.parametrize(
        "outcome",
        [httpx.ReadTimeout("slow"), httpx.Response(503), httpx.Response(200, json={"name": "no id"})],
    )
    async def test_unavailable_is_not_gone(
        self, outcome: httpx.Response | Exception
    ) -> None:
        """Provider trouble reports UNKNOWN status, distinct from a 404."""
        client = _client(Recorder(outcome))

        pod = await client.describe("abc123")

        assert pod is not None
        assert pod.id == "abc123"
        assert pod.status == PodStatus.UNKNOWN


async def test_close_is_idempotent() -> None:
    client = _client(Recorder(httpx.Response(200, json=[])))
    await client.list()

    await client.close()
    await client.close()
