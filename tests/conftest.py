import sys
from pathlib import Path
from typing import Callable, Iterator, List

import httpx
import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from klive.gateway import GatewaySettings, create_app  # noqa: E402

BACKEND_URL = "http://backend.test:3310"
API_KEY = "s3cret-token"


class FakeBackend:
    """Records outbound requests and answers them with ``responder``."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={}
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def respond_with(self, response: httpx.Response) -> None:
        self.responder = lambda request: response

    def fail_with(self, exc_type: type[httpx.TransportError], message: str) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc_type(message, request=request)

        self.responder = _raise

    @property
    def last(self) -> httpx.Request:
        assert self.requests, "backend was never called"
        return self.requests[-1]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_settings(**overrides) -> GatewaySettings:
    values = {
        "backend_url": BACKEND_URL,
        "api_key": API_KEY,
        "public_prefix": "/api",
        "proxy_backend_url": None,
        "proxy_backend_prefix": "/api",
        "backend_timeout": 5.0,
        "max_upload_bytes": 1024 * 1024,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return GatewaySettings(**values)


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def settings() -> GatewaySettings:
    return make_settings()


@pytest.fixture()
def gateway(backend: FakeBackend, settings: GatewaySettings) -> Iterator[TestClient]:
    app = create_app(settings, transport=backend.transport())
    with TestClient(app) as client:
        yield client
