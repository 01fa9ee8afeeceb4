"""OAuth middleware for MCP endpoints.

Validates Bearer tokens on the JSON-RPC endpoints. Uses JWT for stateless
token validation - no store lookup, tokens survive server restarts.
Everything else (OAuth endpoints, landing page, health) passes through.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from oauth.jwt_utils import verify_access_token

logger = logging.getLogger(__name__)

PROTECTED_PATHS = ("/", "/mcp")


class MCPOAuthMiddleware(BaseHTTPMiddleware):
    """Middleware to validate OAuth Bearer access tokens for the MCP endpoints."""

    def __init__(self, app, jwt_secret: str, server_url: str, protected_paths=PROTECTED_PATHS):
        super().__init__(app)
        self.jwt_secret = jwt_secret
        self.server_url = server_url
        self.protected_paths = set(protected_paths)

    def _unauthorized(self, error: str, description: str) -> JSONResponse:
        return JSONResponse(
            {"error": error, "error_description": description},
            status_code=401,
            headers={"WWW-Authenticate": f'Bearer resource_metadata="{self.server_url}/.well-known/oauth-protected-resource"'}
        )

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in self.protected_paths:
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            logger.info("[AUTH] Request rejected: no Bearer token")
            return self._unauthorized("unauthorized", "Missing or invalid Authorization header")

        token = auth_header[7:]

        token_data = verify_access_token(token, self.jwt_secret, issuer=self.server_url)
        if not token_data:
            logger.info("[AUTH] Request rejected: invalid or expired token")
            return self._unauthorized("invalid_token", "Invalid or expired token")

        logger.debug(f"[AUTH] Request authorized: {token_data.get('email')}")
        return await call_next(request)
