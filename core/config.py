"""
core/config.py -- LoanDesk settings (pydantic-settings).

All environment variable reads for LoanDesk happen here. No module should
read os.environ itself; everything goes through get_settings().

Design patterns used:
  lru_cache singleton: the first get_settings() call builds Settings and
      every later call returns that same instance.

  Passed by reference: the lifespan in api/main.py reads the Settings once and
      hands the signing key and token lifetime to TokenCodec. Nothing in auth/
      or loans/ reads configuration on its own.

  @model_validator(mode="after"): cross-field validation after all fields
      are resolved from environment. Dev mode generates a signing key with a
      warning, production mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 bytes (UTF-8 encoded) is rejected outright.
  HS256 needs a key of at least 256 bits.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or loans/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("loandesk.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent.parent / 'loandesk.db'}"

# Minimum HS256 key length in bytes.
MIN_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Process configuration, read from the environment and an optional .env.

    Every field has a default, so tests can build Settings(...) with keyword
    arguments and no .env file.

    Each field maps to the upper-cased environment variable of the same name:
    `secret_key` reads SECRET_KEY, `token_expire_ms` reads TOKEN_EXPIRE_MS.
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
    # "" means unset. validate_secret_key() replaces it with a generated key
    # or raises, so no caller ever sees an empty key.
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # 24 hours.
    token_expire_ms: int = 86_400_000

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    seed_demo_users: bool = False

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the signing key policy and fail fast on a bad lifetime.

        DEBUG=true without a key: generate a random one and warn.
            Tokens do not survive a restart.

        DEBUG unset or false: refuse to start when
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 bytes.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"SECRET_KEY must be at least {MIN_SECRET_BYTES} bytes.")
        if self.token_expire_ms <= 0:
            raise ValueError("TOKEN_EXPIRE_MS must be a positive number of milliseconds.")
        return self


@lru_cache
def get_settings() -> Settings:
    """The cached Settings for this process.

    Tests that change the environment must call get_settings.cache_clear()
    for the new values to be read.
    """
    return Settings()
