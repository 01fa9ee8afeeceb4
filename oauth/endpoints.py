"""OAuth 2.1 endpoints for the MCP bridge.

This module contains all OAuth-related endpoints:
- Discovery metadata (/.well-known/*)
- Client registration (/oauth/register)
- Authorization flow (/oauth/authorize -> Google -> /oauth/callback)
- Token endpoint (/oauth/token)

Per-attempt lifecycle: /oauth/authorize stores a pending authorization
under the caller's state; /oauth/callback consumes it and issues a one-time
code; /oauth/token consumes the code and issues JWTs.

Stores, config and the identity provider are read from app.state, set up
by main.create_app(). Store methods are blocking (the Supabase client is
synchronous), so handlers call them through run_in_threadpool.
"""

import base64
import hashlib
import logging
import time
import uuid
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
import jwt
from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from oauth.identity import IdentityProviderError
from oauth.jwt_utils import (
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])


def _error(error: str, description: str = None, status_code: int = 400) -> JSONResponse:
    body = {"error": error}
    if description:
        body["error_description"] = description
    return JSONResponse(body, status_code=status_code)


def _with_query(url: str, params: dict) -> str:
    """Append params to url, keeping any query it already has."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True) + list(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


def s256_challenge(code_verifier: str) -> str:
    """PKCE S256 transform of a code verifier."""
    digest = hashlib.sha256(code_verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


# ============== OAuth 2.1 Discovery Endpoints ==============

@router.get("/.well-known/oauth-protected-resource")
async def oauth_protected_resource(request: Request):
    """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
    server_url = request.app.state.config.base_url
    return {
        "resource": server_url,
        "authorization_servers": [server_url],
        "bearer_methods_supported": ["header"],
    }


@router.get("/.well-known/oauth-authorization-server")
async def oauth_authorization_server(request: Request):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    server_url = request.app.state.config.base_url
    return {
        "issuer": server_url,
        "authorization_endpoint": f"{server_url}/oauth/authorize",
        "token_endpoint": f"{server_url}/oauth/token",
        "registration_endpoint": f"{server_url}/oauth/register",
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code", "refresh_token"],
        "code_challenge_methods_supported": ["S256"],
        "token_endpoint_auth_methods_supported": ["client_secret_post"],
    }


# ============== Client Registration ==============

@router.post("/oauth/register")
async def register_client(request: Request):
    """OAuth 2.0 Dynamic Client Registration (RFC 7591)."""
    try:
        data = await request.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    client_id = str(uuid.uuid4())
    client_secret = str(uuid.uuid4())
    client_name = data.get("client_name") or "Claude"
    redirect_uris = data.get("redirect_uris") or []

    await run_in_threadpool(request.app.state.stores.registered_clients.put, client_id, {
        "client_secret": client_secret,
        "client_name": client_name,
        "redirect_uris": redirect_uris,
        "created_at": int(time.time()),
    })
    logger.info(f"[OAUTH] Registered client {client_id} ({client_name})")

    return JSONResponse({
        "client_id": client_id,
        "client_secret": client_secret,
        "client_name": client_name,
        "redirect_uris": redirect_uris,
    }, status_code=201)


# ============== Authorization Flow ==============

@router.get("/oauth/authorize")
async def authorize(
    request: Request,
    response_type: str = "",
    client_id: str = "",
    redirect_uri: str = "",
    state: str = "",
    code_challenge: str = "",
    code_challenge_method: str = "",
):
    """OAuth 2.1 Authorization Endpoint - redirects to Google."""
    if response_type != "code":
        return _error("unsupported_response_type")
    if code_challenge_method != "S256":
        return _error("invalid_request", "S256 required")
    if not state or not code_challenge or not redirect_uri:
        return _error("invalid_request")

    await run_in_threadpool(request.app.state.stores.pending_authorizations.put, state, {
        "code_challenge": code_challenge,
        "redirect_uri": redirect_uri,
    })
    logger.info(f"[OAUTH] Authorization started for client {client_id or 'unknown'}")

    consent_url = request.app.state.identity_provider.authorization_url(state)
    return RedirectResponse(url=consent_url, status_code=302)


@router.get("/oauth/callback")
async def oauth_callback(request: Request, code: str = "", state: str = "", error: str = ""):
    """Google redirects here after the user picks an account."""
    if error:
        return PlainTextResponse(f"OAuth error: {error}", status_code=400)
    if not state or not code:
        return PlainTextResponse("Missing state or code", status_code=400)

    stores = request.app.state.stores
    config = request.app.state.config

    pending = await run_in_threadpool(stores.pending_authorizations.get, state)
    if not pending:
        return PlainTextResponse("Invalid or expired state", status_code=400)

    try:
        email = await request.app.state.identity_provider.verified_email(code)
    except (IdentityProviderError, httpx.HTTPError, jwt.PyJWTError):
        logger.exception("[OAUTH] Callback failed talking to Google")
        return PlainTextResponse("Authentication failed", status_code=500)

    # The pending entry is left to expire on its own here
    if email != config.allowed_email:
        logger.warning(f"[OAUTH] Rejected login attempt from: {email}")
        return PlainTextResponse(
            f"Access denied. Only {config.allowed_email} can use this server.",
            status_code=403,
        )

    logger.info(f"[OAUTH] Successful login: {email}")

    auth_code = str(uuid.uuid4())
    await run_in_threadpool(stores.authorization_codes.put, auth_code, {
        "code_challenge": pending.get("code_challenge"),
    })
    await run_in_threadpool(stores.pending_authorizations.delete, state)

    redirect_url = _with_query(pending["redirect_uri"], {"code": auth_code, "state": state})
    return RedirectResponse(url=redirect_url, status_code=302)


# ============== Token Endpoint ==============

def _token_response(access_token: str, expires_in: int, refresh_token: str = None) -> JSONResponse:
    body = {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": expires_in,
    }
    if refresh_token:
        body["refresh_token"] = refresh_token
    return JSONResponse(body, headers={"Cache-Control": "no-store"})


@router.post("/oauth/token")
async def token(
    request: Request,
    grant_type: str = Form(None),
    code: str = Form(None),
    code_verifier: str = Form(None),
    refresh_token: str = Form(None),
):
    """OAuth 2.0 Token Endpoint."""
    # Handle form data or JSON
    if grant_type is None:
        try:
            data = await request.json()
        except ValueError:
            return _error("invalid_request")
        if not isinstance(data, dict):
            return _error("invalid_request")
        grant_type = data.get("grant_type")
        code = data.get("code")
        code_verifier = data.get("code_verifier")
        refresh_token = data.get("refresh_token")

    config = request.app.state.config
    logger.debug(f"[TOKEN] grant_type: {grant_type}")

    if grant_type == "authorization_code":
        # Removing the code and reading it is one step, so a code redeems once
        codes = request.app.state.stores.authorization_codes
        auth_data = await run_in_threadpool(codes.pop, code) if code else None
        if not auth_data:
            logger.info("[TOKEN] Invalid or expired authorization code")
            return _error("invalid_grant")

        challenge = auth_data.get("code_challenge")
        if code_verifier:
            if not challenge or s256_challenge(code_verifier) != challenge:
                logger.info("[TOKEN] PKCE verification failed")
                return _error("invalid_grant", "PKCE verification failed")
        elif config.require_pkce:
            return _error("invalid_grant", "code_verifier required")

        expires_in = config.access_token_expire_seconds
        access_token = create_access_token(
            config.allowed_email, config.jwt_secret,
            issuer=config.base_url, expires_in=expires_in,
        )
        new_refresh_token = create_refresh_token(
            config.allowed_email, config.jwt_secret, issuer=config.base_url,
        )
        logger.info(f"[TOKEN] Tokens issued for {config.allowed_email}")
        return _token_response(access_token, expires_in, new_refresh_token)

    elif grant_type == "refresh_token":
        payload = verify_refresh_token(refresh_token or "", config.jwt_secret, issuer=config.base_url)
        if not payload:
            logger.info("[TOKEN] Refresh token rejected")
            return _error("invalid_grant")

        expires_in = config.access_token_expire_seconds
        access_token = create_access_token(
            config.allowed_email, config.jwt_secret,
            issuer=config.base_url, expires_in=expires_in,
        )
        logger.info(f"[TOKEN] Access token refreshed for {config.allowed_email}")
        return _token_response(access_token, expires_in)

    return _error("unsupported_grant_type")
