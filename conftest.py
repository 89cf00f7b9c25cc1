"""Global test configuration and shared fixtures."""

from __future__ import annotations

import dataclasses as dc
import typing as t

import httpx
import pytest

from sail_harness.record import RemoteRecorder

pytest_plugins = ("pytester",)


@dc.dataclass(slots=True)
class FakeServer:
    """Address of an application server that is never actually started."""

    host: str = "127.0.0.1"
    port: int = 3000


class RecorderEndpoint:
    """In-memory stand-in for the recording sidecar."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.start_status = 200
        self.start_error: Exception | None = None
        self.stop_status = 200
        self.stop_body = b'{"events":[]}'
        self.stop_error: Exception | None = None

    @property
    def methods(self) -> list[str]:
        """Return the HTTP methods received so far, in order."""
        return [request.method for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            if self.start_error is not None:
                raise self.start_error
            return httpx.Response(self.start_status)
        if self.stop_error is not None:
            raise self.stop_error
        return httpx.Response(self.stop_status, content=self.stop_body)

    def client(self) -> httpx.Client:
        """Return a client routed to :meth:`handler`."""
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_server() -> FakeServer:
    """Return a fixed server address."""
    return FakeServer()


@pytest.fixture
def recorder_endpoint() -> RecorderEndpoint:
    """Return a fresh recorder stand-in."""
    return RecorderEndpoint()


@pytest.fixture
def recorder(
    recorder_endpoint: RecorderEndpoint, fake_server: FakeServer
) -> t.Generator[RemoteRecorder, None, None]:
    """Provide a recorder talking to :class:`RecorderEndpoint`."""
    with recorder_endpoint.client() as client:
        yield RemoteRecorder(client, fake_server)
