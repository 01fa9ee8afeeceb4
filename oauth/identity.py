"""Google as the upstream identity provider.

The bridge never keeps Google's tokens. It only needs Google to tell it,
with a verified ID token, which email address just signed in.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
import jwt
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")


class IdentityProviderError(Exception):
    """The identity provider rejected a request or returned something unusable."""


class GoogleIdentityProvider:
    """Authorization-code login against Google, reduced to a verified email."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        transport: httpx.AsyncBaseTransport = None,
        jwks_client: jwt.PyJWKClient = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._transport = transport
        self._jwks_client = jwks_client or jwt.PyJWKClient(GOOGLE_JWKS_URL)

    def authorization_url(self, state: str) -> str:
        """Consent screen URL, forwarding the caller's state unchanged."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "access_type": "offline",
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict:
        """Exchange a Google authorization code for Google's tokens."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
        if response.status_code != 200:
            raise IdentityProviderError(f"Token exchange failed: {response.text}")
        try:
            tokens = response.json()
        except ValueError:
            raise IdentityProviderError("Token exchange returned a non-JSON body")
        if not isinstance(tokens, dict):
            raise IdentityProviderError("Token exchange returned an unexpected body")
        return tokens

    def verify_id_token(self, id_token: str) -> dict:
        """Check the ID token's signature, audience and issuer; return its claims."""
        signing_key = self._jwks_client.get_signing_key_from_jwt(id_token)
        claims = jwt.decode(
            id_token,
            signing_key.key,
            algorithms=["RS256"],
            audience=self.client_id,
        )
        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise IdentityProviderError(f"Unexpected ID token issuer: {claims.get('iss')}")
        return claims

    async def verified_email(self, code: str) -> Optional[str]:
        """Run the code exchange and return the verified email, if any.

        Returns None when Google did not mark the address as verified.
        """
        tokens = await self.exchange_code(code)
        id_token = tokens.get("id_token")
        if not id_token:
            raise IdentityProviderError("Token response did not include an id_token")

        # PyJWKClient fetches Google's keys with blocking urllib
        claims = await run_in_threadpool(self.verify_id_token, id_token)
        if not claims.get("email_verified"):
            logger.info(f"[OAUTH] Google reported unverified email: {claims.get('email')}")
            return None
        return claims.get("email")
