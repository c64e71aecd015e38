"""
core/config.py -- Auth service settings, read once from the environment.

Every tunable of the service lives on Settings: the signing key and session
lifetime, which backend each store uses, Redis and database URLs, retention
windows, the size of the password hashing pool, and the HTTP shell's CORS and
Host allow-lists. Nothing else reads os.environ; the process builds one
Settings through get_settings() and hands it to whatever needs it.

Env var names are the upper-cased field names (token_expire_seconds ->
TOKEN_EXPIRE_SECONDS). A .env file in the working directory is honoured.

Startup refuses to proceed when:
  - SECRET_KEY is unset outside DEBUG mode, or shorter than 32 characters
  - BANNED_TOKEN_TTL_SECONDS < TOKEN_EXPIRE_SECONDS, since a revoked token
    would then fall off a TTL-based ban list while its signature and expiry
    still validate
  - a lifetime or the hashing pool size is not positive

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or cache/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authservice.config")


class Settings(BaseSettings):
    """Service configuration. Every field has a default except the signing key,
    which DEBUG mode generates on the fly."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Signing key
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key replaces it or refuses to start.
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    token_expire_seconds: int = 600
    auth_cookie_name: str = "jwt"
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Storage backends (selected once at startup)
    # ------------------------------------------------------------------

    user_store_backend: Literal["memory", "sql"] = "sql"
    database_url: str = "sqlite+aiosqlite:///./auth_service.db"

    token_store_backend: Literal["memory", "redis"] = "memory"
    two_fa_store_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://127.0.0.1:6379/0"

    # Remote ban list retention. Must cover the full token lifetime.
    banned_token_ttl_seconds: int = 600
    two_fa_code_ttl_seconds: int = 600

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    password_hash_workers: int = 4

    # ------------------------------------------------------------------
    # HTTP shell
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:8000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """DEBUG without a key gets a random one; anything else needs a real key.

        A generated key changes on every restart, which logs every session out.
        """
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is required unless DEBUG=true. "
                    "Set it in the environment or in .env; it signs every session token."
                )
            self.secret_key = secrets.token_hex(32)
            logger.warning("SECRET_KEY not set; generated a throwaway key. Sessions end at restart.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_lifetimes(self) -> "Settings":
        """Reject non-positive lifetimes and a ban TTL shorter than a token's life."""
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        if self.two_fa_code_ttl_seconds <= 0:
            raise ValueError("TWO_FA_CODE_TTL_SECONDS must be positive.")
        if self.banned_token_ttl_seconds < self.token_expire_seconds:
            raise ValueError(
                "BANNED_TOKEN_TTL_SECONDS must be at least TOKEN_EXPIRE_SECONDS, "
                "otherwise revoked tokens expire from the ban list while still valid."
            )
        if self.password_hash_workers < 1:
            raise ValueError("PASSWORD_HASH_WORKERS must be at least 1.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings from the environment on first call and cache it.

    api/main.py is the only caller; everything downstream is handed the
    object. Tests that change env vars must call get_settings.cache_clear().
    """
    return Settings()
