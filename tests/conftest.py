import json
from urllib.parse import urlencode

import httpx
import pytest
from fastapi.testclient import TestClient

from config import Config
from github_client import GitHubClient
from main import create_app
from oauth.stores import create_memory_stores

ALLOWED_EMAIL = "owner@example.com"
JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"
BASE_URL = "https://mcp.example.com"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIdentityProvider:
    """Stands in for Google: every code resolves to self.email."""

    def __init__(self, email: str = ALLOWED_EMAIL):
        self.email = email
        self.error = None
        self.codes = []

    def authorization_url(self, state: str) -> str:
        return "https://accounts.example.test/auth?" + urlencode({"state": state, "access_type": "offline"})

    async def verified_email(self, code: str):
        self.codes.append(code)
        if self.error:
            raise self.error
        return self.email


class FakeGitHub:
    """Records GitHub API requests and answers from a route table."""

    def __init__(self):
        self.requests = []
        self.routes = {}

    def route(self, method: str, path: str, body=None, status_code: int = 200):
        self.routes[(method, path)] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, body = self.routes.get(
            (request.method, request.url.path), (404, {"message": "Not Found"})
        )
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def config():
    return Config({
        "BASE_URL": BASE_URL,
        "GOOGLE_CLIENT_ID": "google-client-id",
        "GOOGLE_CLIENT_SECRET": "google-client-secret",
        "ALLOWED_EMAIL": ALLOWED_EMAIL,
        "JWT_SECRET": JWT_SECRET,
        "GITHUB_PAT": "ghp_test",
        "GITHUB_OWNER": "octo",
    })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stores(clock):
    return create_memory_stores(clock=clock)


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def app(config, stores, identity_provider, fake_github):
    github = GitHubClient("ghp_test", "octo", transport=httpx.MockTransport(fake_github.handler))
    return create_app(config, stores=stores, identity_provider=identity_provider, github=github)


@pytest.fixture
def client(app):
    return TestClient(app)
