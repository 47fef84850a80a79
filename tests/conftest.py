"""Shared fixtures: fake collaborators and an in-process broker."""

import httpx
import pytest
from fastapi.testclient import TestClient

import ui.log_utils
from app import create_app
from core.config import BrokerSettings, Config

BROKER_URL = "http://broker.example.com"
BROKER_HOST = "broker.example.com"


class FakeTokenSource:
    """Token source that counts calls and can be switched to fail."""

    def __init__(self, token: str = "my-gcp-token") -> None:
        self.token = token
        self.error: Exception | None = None
        self.calls = 0

    async def get_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token


class RecordingLogger:
    """RequestLogger that keeps everything in memory."""

    def __init__(self) -> None:
        self.forwards: list[tuple[str, str, int]] = []
        self.errors: list[tuple[str, int, str]] = []

    def log_forward(self, method: str, path: str, status: int, time_to_headers_ms: float) -> None:
        self.forwards.append((method, path, status))

    def log_error(self, route: str, status: int, message: str) -> None:
        self.errors.append((route, status, message))


class ChunkStream(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


class FakeBroker:
    """In-process broker behind httpx.MockTransport.

    Records every request and answers the catalog with 200. Other paths get
    ``status_code``/``body``; with ``chunks`` set the body is an unread stream,
    as a real network transport returns it.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body = b"{}"
        self.headers: list[tuple[str, str]] = [("content-type", "application/json")]
        self.error: Exception | None = None
        self.chunks: list[bytes] | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.url.path == "/v2/catalog":
            return httpx.Response(200, json={"services": []})
        if self.chunks is not None:
            return httpx.Response(self.status_code, headers=self.headers, stream=ChunkStream(self.chunks))
        return httpx.Response(self.status_code, content=self.body, headers=self.headers)

    @property
    def forwarded(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != "/v2/catalog"]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    """Keep request and CLI logs out of the working directory."""
    monkeypatch.setattr(ui.log_utils, "LOG_ROOT", tmp_path / "logs")
    monkeypatch.setattr(ui.log_utils, "CLI_LOG_FILE", tmp_path / "logs" / "proxy.log")
    return tmp_path / "logs"


@pytest.fixture
def config():
    return Config(broker=BrokerSettings(url=BROKER_URL))


@pytest.fixture
def token_source():
    return FakeTokenSource()


@pytest.fixture
def request_logger():
    return RecordingLogger()


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def client(config, request_logger, token_source, broker):
    app = create_app(config, request_logger, token_source, transport=broker.transport())
    with TestClient(app) as test_client:
        yield test_client
