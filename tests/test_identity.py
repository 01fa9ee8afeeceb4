import asyncio
import threading
import time
from types import SimpleNamespace
from urllib.parse import parse_qs, urlsplit

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from oauth.identity import GOOGLE_TOKEN_URL, GoogleIdentityProvider, IdentityProviderError

CLIENT_ID = "google-client-id"


@pytest.fixture(scope="module")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


class FakeJWKSClient:
    def __init__(self, public_key):
        self.public_key = public_key

    def get_signing_key_from_jwt(self, token):
        return SimpleNamespace(key=self.public_key)


def _id_token(signing_key, **overrides):
    now = int(time.time())
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "1234",
        "email": "owner@example.com",
        "email_verified": True,
        "iat": now,
        "exp": now + 600,
        **overrides,
    }
    return jwt.encode(claims, signing_key, algorithm="RS256")


def _provider(signing_key, token_handler):
    return GoogleIdentityProvider(
        CLIENT_ID,
        "google-client-secret",
        "https://mcp.example.com/oauth/callback",
        transport=httpx.MockTransport(token_handler),
        jwks_client=FakeJWKSClient(signing_key.public_key()),
    )


def _token_endpoint(id_token, status_code=200):
    seen = []

    def handler(request):
        seen.append(request)
        assert str(request.url) == GOOGLE_TOKEN_URL
        return httpx.Response(status_code, json={"access_token": "ya29", "id_token": id_token})

    handler.seen = seen
    return handler


def test_authorization_url_forwards_state_and_requests_offline_access(signing_key):
    provider = _provider(signing_key, _token_endpoint(None))
    query = parse_qs(urlsplit(provider.authorization_url("s1")).query)

    assert query["state"] == ["s1"]
    assert query["access_type"] == ["offline"]
    assert query["client_id"] == [CLIENT_ID]
    assert query["redirect_uri"] == ["https://mcp.example.com/oauth/callback"]
    assert "email" in query["scope"][0]


def test_verified_email_from_valid_id_token(signing_key):
    handler = _token_endpoint(_id_token(signing_key))
    provider = _provider(signing_key, handler)

    assert asyncio.run(provider.verified_email("google-code")) == "owner@example.com"
    form = parse_qs(handler.seen[0].content.decode())
    assert form["code"] == ["google-code"]
    assert form["grant_type"] == ["authorization_code"]


def test_unverified_email_is_not_returned(signing_key):
    provider = _provider(signing_key, _token_endpoint(_id_token(signing_key, email_verified=False)))
    assert asyncio.run(provider.verified_email("c")) is None


def test_wrong_audience_is_rejected(signing_key):
    provider = _provider(signing_key, _token_endpoint(_id_token(signing_key, aud="someone-else")))
    with pytest.raises(jwt.InvalidAudienceError):
        asyncio.run(provider.verified_email("c"))


def test_wrong_issuer_is_rejected(signing_key):
    provider = _provider(signing_key, _token_endpoint(_id_token(signing_key, iss="https://evil.example")))
    with pytest.raises(IdentityProviderError):
        asyncio.run(provider.verified_email("c"))


def test_token_exchange_failure(signing_key):
    provider = _provider(signing_key, _token_endpoint(None, status_code=400))
    with pytest.raises(IdentityProviderError):
        asyncio.run(provider.verified_email("c"))


def test_missing_id_token(signing_key):
    provider = _provider(signing_key, _token_endpoint(None))
    with pytest.raises(IdentityProviderError):
        asyncio.run(provider.verified_email("c"))


def test_non_json_token_response(signing_key):
    provider = _provider(signing_key, lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(IdentityProviderError):
        asyncio.run(provider.verified_email("c"))


def test_signing_key_lookup_runs_off_the_event_loop_thread(signing_key):
    lookups = []

    class RecordingJWKSClient(FakeJWKSClient):
        def get_signing_key_from_jwt(self, token):
            lookups.append(threading.get_ident())
            return super().get_signing_key_from_jwt(token)

    provider = GoogleIdentityProvider(
        CLIENT_ID,
        "google-client-secret",
        "https://mcp.example.com/oauth/callback",
        transport=httpx.MockTransport(_token_endpoint(_id_token(signing_key))),
        jwks_client=RecordingJWKSClient(signing_key.public_key()),
    )

    async def run():
        return threading.get_ident(), await provider.verified_email("c")

    loop_thread, email = asyncio.run(run())

    assert email == "owner@example.com"
    assert lookups and lookups[0] != loop_thread
