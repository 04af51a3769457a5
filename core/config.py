"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AccountHub happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. database_url -> DATABASE_URL, port -> PORT).

  @model_validator(mode="after"): cross-field validation after all fields are
      resolved. Used to reject scrypt parameters the KDF would refuse at the
      first login rather than at startup.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
live/, or store/.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("accounthub.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field has a default so Settings() can be instantiated in tests
    without a real .env file.
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
    log_level: str = "INFO"
    database_url: str = "sqlite:///accounthub.db"

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: list[str] = ["*"]
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    reset_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    # Defaults match the parameters the legacy Node server used, so existing
    # account files verify without a forced reset.
    scrypt_n: int = 16384
    scrypt_r: int = 8
    scrypt_p: int = 1
    scrypt_key_length: int = 64
    reset_token_ttl_seconds: int = 3600

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    sse_queue_size: int = 100
    sse_ping_seconds: float = 15.0

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_scrypt_params(self) -> "Settings":
        """Reject scrypt parameters hashlib.scrypt would refuse.

        N must be a power of two greater than 1. Failing here keeps a bad
        SCRYPT_N from turning every signup into a 500 later.
        """
        n = self.scrypt_n
        if n <= 1 or n & (n - 1):
            raise ValueError("SCRYPT_N must be a power of two greater than 1.")
        if self.scrypt_r < 1 or self.scrypt_p < 1:
            raise ValueError("SCRYPT_R and SCRYPT_P must be positive.")
        if self.debug:
            logger.warning("DEBUG mode enabled -- do not run this configuration in production.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms() -> int:
    """Current UTC time as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)
