import asyncio
import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from asset_proxy.core.config import Settings
from asset_proxy.main import create_app

ASSETS_HOST = "http://assets.local"
RESIZER_HOST = "http://resizer.local"


class TrackingStream(httpx.AsyncByteStream):
    """Upstream body that remembers whether it was read to the end and closed."""

    def __init__(self, chunks: list[bytes]):
        self._chunks = list(chunks)
        self.consumed = False
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        self.consumed = True

    async def aclose(self) -> None:
        self.closed = True


class FakeUpstream:
    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, headers={"Content-Length": "7"}, stream=TrackingStream([b"IMG", b"DATA"])
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def last(self) -> httpx.Request:
        assert self.requests, "upstream was not called"
        return self.requests[-1]


@pytest.fixture()
def settings():
    return Settings(_env_file=None, assets_api_host=ASSETS_HOST, resizer_api_host=RESIZER_HOST)


@pytest.fixture()
def upstream():
    return FakeUpstream()


@pytest.fixture()
def app(settings, upstream):
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(upstream.handler),
        follow_redirects=True,
        headers={"Accept-Encoding": "identity"},
    )
    return create_app(settings, http_client=http_client)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def tracking_stream():
    return TrackingStream


async def _asgi_get(app, raw_path: bytes):
    """Send a GET with an exact request target, bypassing client-side URL escaping."""
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": raw_path.decode("latin-1"),
        "raw_path": raw_path,
        "root_path": "",
        "query_string": b"",
        "headers": [(b"host", b"testserver")],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    messages = []
    requested = False
    done = asyncio.Event()

    async def receive():
        nonlocal requested
        if not requested:
            requested = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await done.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        messages.append(message)
        if message["type"] == "http.response.body" and not message.get("more_body", False):
            done.set()

    await app(scope, receive, send)
    status = next(m["status"] for m in messages if m["type"] == "http.response.start")
    body = b"".join(m.get("body", b"") for m in messages if m["type"] == "http.response.body")
    return status, body


@pytest.fixture()
def raw_get(app):
    return lambda raw_path: asyncio.run(_asgi_get(app, raw_path))
