"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Gatehouse happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Dev mode generates missing token secrets with a warning;
      production mode refuses to start without them.

Flow code never imports this module. api/main.py reads Settings once in the
lifespan and hands immutable values (TokenSettings, bcrypt rounds, provider
credentials) to each flow's constructor.

Security notes:
  [S1] Token secrets shorter than 32 chars are rejected. HS256 signing strength
       depends on key entropy.

  [S2] The access and refresh secrets must differ. With a shared secret a
       refresh token would verify as an access token and the two trust
       domains would collapse into one.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatehouse.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'gatehouse_auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings(debug=True) can be instantiated in
    test environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the "not configured" sentinel; the validator below
    # either generates a dev secret or raises.
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 3600

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # GitHub OAuth (empty string means federated login is disabled)
    # ------------------------------------------------------------------

    github_client_id: str = ""
    github_client_secret: str = ""
    # Applied to every outbound provider call. requests has no default timeout.
    provider_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Boundary policy
    # ------------------------------------------------------------------

    # When true, POST /auth/login answers an unknown email with the same 401
    # as a wrong password.
    conceal_account_existence: bool = False

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the token secret policy [S1] [S2].

        Dev mode (DEBUG=true): missing secrets are generated with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if either secret is missing.
        """
        for field_name in ("access_token_secret", "refresh_token_secret"):
            if not getattr(self, field_name):
                if not self.debug:
                    raise ValueError(
                        f"{field_name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, field_name, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", field_name.upper())
            if len(getattr(self, field_name)) < 32:
                raise ValueError(f"{field_name.upper()} must be at least 32 characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        if self.bcrypt_rounds < 4 or self.bcrypt_rounds > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self

    @property
    def github_enabled(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
