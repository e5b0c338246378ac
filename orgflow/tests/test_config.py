"""
Tests for configuration validation
"""
import pytest
from orgflow.core.config import Settings


def test_prod_settings_rejects_wildcard_origins():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="a" * 32,
        APP_ENV="prod",
        ALLOWED_ORIGINS="*"
    )

    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_rejects_short_jwt_secret():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="short",
        APP_ENV="prod",
        ALLOWED_ORIGINS="https://example.com"
    )

    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_local_settings_allows_wildcard_origins():
    """Test that local settings allow wildcard origins"""
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="test-key",
        APP_ENV="local",
        ALLOWED_ORIGINS="*"
    )

    settings.validate_production()
    assert settings.get_allowed_origins_list() == ["*"]


def test_get_allowed_origins_list_splits_and_strips():
    settings = Settings(
        DATABASE_URL="postgresql://test",
        JWT_SECRET_KEY="test-key",
        ALLOWED_ORIGINS="https://a.example.com, https://b.example.com ,"
    )

    assert settings.get_allowed_origins_list() == [
        "https://a.example.com",
        "https://b.example.com",
    ]


def test_invalid_app_env_rejected():
    with pytest.raises(ValueError):
        Settings(DATABASE_URL="postgresql://test", JWT_SECRET_KEY="k", APP_ENV="production")


def test_ledger_defaults():
    settings = Settings(DATABASE_URL="postgresql://test", JWT_SECRET_KEY="k")
    assert settings.DEFAULT_LEAVE_BALANCE == 20
    assert settings.DEFAULT_CONDUCT_SCORE == 100.0
