"""Unit tests for core/config.py -- Settings validation.

Covers:
- production mode refuses to start without SECRET_KEY
- dev mode generates a key
- short keys are rejected in both modes
- JWT_ALGORITHM is pinned to the HMAC family and normalised
- bcrypt cost bounds
- TTL properties
- values are read from environment variables
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

KEY = "k" * 64


class TestSecretKey:
    def test_required_in_production(self, monkeypatch):
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(_env_file=None, debug=False)

    def test_generated_in_debug(self, monkeypatch):
        monkeypatch.delenv("SECRET_KEY", raising=False)
        settings = Settings(_env_file=None, debug=True)
        assert len(settings.secret_key) >= 32

    @pytest.mark.parametrize("debug", [True, False])
    def test_short_key_rejected(self, debug: bool):
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(_env_file=None, debug=debug, secret_key="short")


class TestAlgorithm:
    def test_default(self):
        assert Settings(_env_file=None, secret_key=KEY).jwt_algorithm == "HS256"

    def test_normalised(self):
        assert Settings(_env_file=None, secret_key=KEY, jwt_algorithm="hs512").jwt_algorithm == "HS512"

    @pytest.mark.parametrize("algorithm", ["none", "RS256", "ES256", ""])
    def test_rejected(self, algorithm: str):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, secret_key=KEY, jwt_algorithm=algorithm)


class TestBounds:
    @pytest.mark.parametrize("rounds", [3, 32])
    def test_bcrypt_rounds(self, rounds: int):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, secret_key=KEY, bcrypt_rounds=rounds)

    def test_ttl_properties(self):
        settings = Settings(
            _env_file=None,
            secret_key=KEY,
            access_token_expire_minutes=5,
            refresh_token_expire_days=2,
        )
        assert settings.access_token_ttl == timedelta(minutes=5)
        assert settings.refresh_token_ttl == timedelta(days=2)

    def test_zero_ttl_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, secret_key=KEY, access_token_expire_minutes=0)


class TestEnvironment:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SECRET_KEY", KEY)
        monkeypatch.setenv("BCRYPT_ROUNDS", "6")
        monkeypatch.setenv("REVOKE_ACCESS_TOKENS", "true")
        settings = Settings(_env_file=None)
        assert settings.secret_key == KEY
        assert settings.bcrypt_rounds == 6
        assert settings.revoke_access_tokens is True

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
