from __future__ import annotations

import pytest

from lms.core.config import load_settings


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("APP_ENV", "LOG_LEVEL", "LOG_JSON", "PORT", "DATABASE_URL",
                 "REDIS_URL", "ADMIN_EMAIL", "ADMIN_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.port == 8000
    assert settings.database_url is None
    assert settings.redis_url is None
    assert not settings.bootstrap_admin


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", " PROD ")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.is_prod
    assert settings.log_level == "debug"


def test_load_settings_rejects_invalid_app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be"):
        load_settings()


def test_load_settings_rejects_bad_port(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ValueError, match="PORT must be an integer"):
        load_settings()


def test_load_settings_rejects_bad_bool(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_JSON", "maybe")
    with pytest.raises(ValueError, match="LOG_JSON must be a boolean"):
        load_settings()


def test_admin_credentials_must_come_together(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ADMIN_EMAIL", "admin@example.com")
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    with pytest.raises(ValueError, match="must be set together"):
        load_settings()

    monkeypatch.setenv("ADMIN_PASSWORD", "s3cret")
    settings = load_settings()
    assert settings.bootstrap_admin
    assert settings.admin_email == "admin@example.com"
