"""
Pytest configuration for rise_app. Environment is set before the package is imported;
Rise.ai itself is replaced by an httpx.MockTransport.
"""
import asyncio
import json
import os
import time

import httpx
import jwt
import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key

PLATFORM_URL = "https://rise.test"
TOKEN_URL = f"{PLATFORM_URL}/oauth2/token"

SIGNING_KEY = generate_private_key(65537, 2048, default_backend())
PUBLIC_PEM = SIGNING_KEY.public_key().public_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PublicFormat.SubjectPublicKeyInfo,
).decode("ascii")

os.environ["RISE_PLATFORM_URL"] = PLATFORM_URL
os.environ["SERVER_BASE_URL"] = "https://app.test"
os.environ["CLIENT_ID"] = "test-app"
os.environ["CLIENT_SECRET"] = "test-secret"
os.environ["CLIENT_PUBLIC_KEY"] = PUBLIC_PEM
os.environ["RISE_TOKEN_REFRESH_MARGIN"] = "0"
for name in ("RISE_DATABASE_URL", "RISE_ADMIN_TOKEN", "CLIENT_PUBLIC_KEY_PATH"):
    os.environ.pop(name, None)


class FakeRise:
    """Records requests and answers like the Rise.ai token endpoint and REST API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.token_status = 200
        self.expires_in = 3600
        self.api_responses: dict[tuple[str, str], httpx.Response] = {}
        self.delay = 0.0
        self.raise_timeout = False

    def token_requests(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if str(r.url) == TOKEN_URL]

    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) != TOKEN_URL]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raise_timeout:
            raise httpx.ReadTimeout("timed out", request=request)
        if str(request.url) == TOKEN_URL:
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(
                200,
                json={"access_token": f"T{self.token_calls}", "expires_in": self.expires_in},
            )
        key = (request.method, request.url.path)
        if key in self.api_responses:
            return self.api_responses[key]
        return httpx.Response(200, json={"path": request.url.path})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def rise():
    return FakeRise()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    from rise_app.installation_store import MemoryInstallationStore

    return MemoryInstallationStore()


@pytest.fixture
def manager(store, rise, clock):
    from rise_app.token_manager import TokenManager

    return TokenManager(
        store,
        token_url=TOKEN_URL,
        client_id="test-app",
        client_secret="test-secret",
        http_client=rise.client(),
        clock=clock,
    )


@pytest.fixture
def api(manager, rise):
    from rise_app.rise_api import RiseApiClient

    return RiseApiClient(PLATFORM_URL, manager, http_client=rise.client())


@pytest.fixture
def client(store, manager, api):
    """TestClient with the store, token manager and API client swapped for test doubles."""
    from fastapi.testclient import TestClient

    from rise_app.dependencies import get_installation_store, get_rise_api, get_token_manager
    from rise_app.main import app

    app.dependency_overrides[get_installation_store] = lambda: store
    app.dependency_overrides[get_token_manager] = lambda: manager
    app.dependency_overrides[get_rise_api] = lambda: api
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def public_pem():
    return PUBLIC_PEM


@pytest.fixture
def sign():
    """Sign claims with the key whose public half is CLIENT_PUBLIC_KEY."""

    def _sign(claims: dict, key=SIGNING_KEY, algorithm="RS256") -> str:
        claims = {"iat": int(time.time()), **claims}
        return jwt.encode(claims, key, algorithm=algorithm)

    return _sign


@pytest.fixture
def make_webhook(sign):
    """Build a webhook body the way Rise.ai does: event envelope and its data both JSON-encoded."""

    def _make(event_type: str, instance_id: str, data: dict | None = None, key=SIGNING_KEY) -> str:
        envelope = {
            "eventType": event_type,
            "instanceId": instance_id,
            "data": json.dumps(data or {}),
        }
        return sign({"data": json.dumps(envelope)}, key=key)

    return _make
