"""Config management for github-mcp-bridge.

Settings come from the process environment, optionally seeded from a
local .env file.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


REQUIRED_KEYS = (
    "BASE_URL",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "ALLOWED_EMAIL",
    "JWT_SECRET",
    "GITHUB_PAT",
    "GITHUB_OWNER",
)

OPTIONAL_KEYS = (
    "HOST",
    "PORT",
    "ACCESS_TOKEN_EXPIRE_SECONDS",
    "REQUIRE_PKCE",
    "STATE_BACKEND",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "LOG_LEVEL",
    "LOG_FORMAT",
)

DEFAULT_ACCESS_TOKEN_EXPIRE_SECONDS = 7 * 24 * 60 * 60  # 7 days


class Config:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    @property
    def base_url(self) -> str:
        return (self.data.get("BASE_URL") or "").rstrip("/")

    @property
    def host(self) -> str:
        return self.data.get("HOST") or "0.0.0.0"

    @property
    def port(self) -> int:
        return int(self.data.get("PORT") or 8080)

    @property
    def google_client_id(self) -> Optional[str]:
        return self.data.get("GOOGLE_CLIENT_ID")

    @property
    def google_client_secret(self) -> Optional[str]:
        return self.data.get("GOOGLE_CLIENT_SECRET")

    @property
    def allowed_email(self) -> Optional[str]:
        return self.data.get("ALLOWED_EMAIL")

    @property
    def jwt_secret(self) -> Optional[str]:
        return self.data.get("JWT_SECRET")

    @property
    def github_pat(self) -> Optional[str]:
        return self.data.get("GITHUB_PAT")

    @property
    def github_owner(self) -> Optional[str]:
        return self.data.get("GITHUB_OWNER")

    @property
    def access_token_expire_seconds(self) -> int:
        value = self.data.get("ACCESS_TOKEN_EXPIRE_SECONDS")
        return int(value) if value else DEFAULT_ACCESS_TOKEN_EXPIRE_SECONDS

    @property
    def require_pkce(self) -> bool:
        return str(self.data.get("REQUIRE_PKCE", "false")).lower() == "true"

    @property
    def state_backend(self) -> str:
        return (self.data.get("STATE_BACKEND") or "memory").lower()

    @property
    def supabase_url(self) -> Optional[str]:
        return self.data.get("SUPABASE_URL")

    @property
    def supabase_key(self) -> Optional[str]:
        return self.data.get("SUPABASE_KEY")

    @property
    def log_level(self) -> str:
        return (self.data.get("LOG_LEVEL") or "INFO").upper()

    @property
    def log_format(self) -> str:
        return (self.data.get("LOG_FORMAT") or "plain").lower()

    def missing(self) -> list[str]:
        """Return the required keys that are not set."""
        missing = [key for key in REQUIRED_KEYS if not self.data.get(key)]
        if self.state_backend == "supabase":
            missing += [
                key for key in ("SUPABASE_URL", "SUPABASE_KEY")
                if not self.data.get(key)
            ]
        return missing

    def is_valid(self) -> bool:
        """Check if config has required fields."""
        return not self.missing()


def load_config(env_file: Optional[Path] = None) -> Config:
    """Load config from the environment.

    A .env file (the given one, or ./.env) is loaded first without
    overriding variables that are already set.
    """
    env_file = env_file or Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    data = {}
    for key in REQUIRED_KEYS + OPTIONAL_KEYS:
        value = os.getenv(key)
        if value:
            data[key] = value
    return Config(data)
