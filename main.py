"""GitHub MCP bridge.

This server:
- Exposes GitHub tools (repos, issues, PRs, workflow runs) via tools.py
- Serves MCP JSON-RPC on POST / and POST /mcp (bearer token required)
- Runs its own OAuth 2.1 authorization server, with Google as the
  identity provider and a single allowed email address
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from config import Config, load_config
from github_client import GitHubClient
from landing import render_landing_page
from logging_config import setup_logging
from mcp_handler import SERVER_VERSION, router as mcp_router
from oauth.endpoints import router as oauth_router
from oauth.identity import GoogleIdentityProvider
from oauth.middleware import MCPOAuthMiddleware
from oauth.stores import OAuthStores, create_stores

logger = logging.getLogger(__name__)


def create_app(
    config: Config,
    stores: OAuthStores = None,
    identity_provider=None,
    github: GitHubClient = None,
) -> FastAPI:
    """Build the FastAPI app.

    Collaborators default to the real ones built from config; tests pass
    their own stores, identity provider or GitHub client.
    """
    stores = stores or create_stores(config)
    identity_provider = identity_provider or GoogleIdentityProvider(
        config.google_client_id,
        config.google_client_secret,
        f"{config.base_url}/oauth/callback",
    )
    github = github or GitHubClient(config.github_pat, config.github_owner)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stores.start()
        logger.info(f"[STARTUP] Base URL: {config.base_url}")
        logger.info(f"[STARTUP] Allowed user: {config.allowed_email}")
        try:
            yield
        finally:
            stores.stop()

    app = FastAPI(
        title="GitHub MCP Server",
        description="GitHub tools over MCP with OAuth 2.1",
        version=SERVER_VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.stores = stores
    app.state.identity_provider = identity_provider
    app.state.github = github

    app.add_middleware(
        MCPOAuthMiddleware,
        jwt_secret=config.jwt_secret,
        server_url=config.base_url,
    )
    # Added last so it wraps the auth middleware and 401s still carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["WWW-Authenticate"],
    )

    app.include_router(oauth_router)
    app.include_router(mcp_router)

    @app.get("/health")
    async def health_check():
        """Liveness check, no auth."""
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    async def landing(request: Request):
        return render_landing_page(request.app.state.config.base_url)

    return app


def run():
    """Console entry point: validate config, then serve with uvicorn."""
    import uvicorn

    config = load_config()
    setup_logging(config.log_level, json_logs=config.log_format == "json")

    missing = config.missing()
    if missing:
        for key in missing:
            logger.error(f"[STARTUP] Missing required environment variable: {key}")
        sys.exit(1)

    logger.info(f"[STARTUP] State backend: {config.state_backend}")
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    run()
