"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from vidtube.config import DEV_ACCESS_SECRET, Settings


def test_development_accepts_default_secrets():
    settings = Settings(environment="development")
    assert settings.access_token_secret == DEV_ACCESS_SECRET
    assert settings.access_token_expire_minutes == 60
    assert settings.refresh_token_expire_days == 10


def test_production_rejects_default_secrets():
    with pytest.raises(ValidationError):
        Settings(environment="production")


def test_production_rejects_shared_secret():
    shared = "one-secret-used-twice-0123456789abcdef"
    with pytest.raises(ValidationError):
        Settings(
            environment="production",
            access_token_secret=shared,
            refresh_token_secret=shared,
        )


def test_production_accepts_distinct_secrets():
    settings = Settings(
        environment="production",
        access_token_secret="prod-access-0123456789abcdef0123456789",
        refresh_token_secret="prod-refresh-0123456789abcdef0123456789",
    )
    assert settings.environment == "production"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("VIDTUBE_ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    assert Settings().access_token_expire_minutes == 15
