"""
core/config.py -- TokenGate configuration, loaded once via pydantic-settings.

Environment variables (and an optional .env file) are read here and nowhere
else. Field names map one-to-one onto variable names: secret_key is read
from SECRET_KEY, bcrypt_rounds from BCRYPT_ROUNDS, and so on.

Components never call get_settings() themselves. api/main.py builds one
Settings object at startup and hands it to each from_settings() constructor
(TokenCodec, CredentialHasher, Database, AuthService); tests build Settings
directly with the values they need.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected. Every issued token is
       only as strong as the signing key.

  [M7] Without DEBUG=true a missing SECRET_KEY stops startup. A random
       per-process key would void every outstanding token on restart.

  JWT_ALGORITHM is restricted to HS256/HS384/HS512. Asymmetric names and
  "none" are refused at load time, before any token is issued.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tokengate.config")

# HMAC algorithms only: the signing key is a single shared secret.
SUPPORTED_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (with DEBUG=true). The
    model_validator enforces production-safety rules at startup.
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=15, gt=0)
    refresh_token_expire_days: int = Field(default=7, gt=0)
    # When true, authenticate() also consults the revocation ledger for
    # access tokens. Off by default: access tokens stay valid until expiry.
    revoke_access_tokens: bool = False

    # ------------------------------------------------------------------
    # Credential hashing
    # ------------------------------------------------------------------

    # bcrypt cost factor. 12 is ~250ms per verification on commodity hardware.
    # Raising it later is safe: each digest embeds its own cost.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./tokengate.db"
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    # Interval between background purges of expired revocation records.
    revocation_purge_interval_seconds: int = Field(default=6 * 60 * 60, gt=0)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_algorithm(cls, value: str) -> str:
        """Pin the signing algorithm to the HMAC family; reject 'none' and asymmetric names."""
        normalized = value.upper()
        if normalized not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"JWT_ALGORITHM must be one of {sorted(SUPPORTED_ALGORITHMS)}, got {value!r}.")
        return normalized

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_expire_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.refresh_token_expire_days)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Only the application entry point (api/main.py) should call this. Every
    other component receives the Settings instance through its constructor.

    In tests: build Settings(...) directly, or call get_settings.cache_clear()
    between test cases if you need to inject different environment variables.
    """
    return Settings()
