from __future__ import annotations

import pytest

from core import settings as settings_module

_STORAGE_VARS = ("B2_KEY_ID", "B2_ACCOUNT_ID", "B2_APPLICATION_KEY", "B2_BUCKET_NAME")
_TUNING_VARS = (
    "PORT",
    "MAX_UPLOAD_BYTES",
    "B2_REQUEST_TIMEOUT_SECONDS",
    "B2_TRANSFER_TIMEOUT_SECONDS",
    "B2_AUTH_COOLDOWN_SECONDS",
    "B2_RETRY_ON_EXPIRED",
    "B2_API_URL",
    "LOG_LEVEL",
    "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in _STORAGE_VARS + _TUNING_VARS:
        monkeypatch.delenv(name, raising=False)
    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


def test_collect_missing_storage_credentials_lists_every_unset_variable():
    assert settings_module.collect_missing_storage_credentials() == [
        "B2_KEY_ID",
        "B2_APPLICATION_KEY",
        "B2_BUCKET_NAME",
    ]


def test_account_id_is_accepted_in_place_of_key_id(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("B2_ACCOUNT_ID", "legacy-account")
    monkeypatch.setenv("B2_APPLICATION_KEY", "app-key")
    monkeypatch.setenv("B2_BUCKET_NAME", "media")

    assert settings_module.collect_missing_storage_credentials() == []
    assert settings_module.get_settings().b2_key_id == "legacy-account"


def test_blank_values_count_as_missing(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("B2_KEY_ID", "key")
    monkeypatch.setenv("B2_APPLICATION_KEY", "   ")
    monkeypatch.setenv("B2_BUCKET_NAME", "media")

    assert settings_module.collect_missing_storage_credentials() == ["B2_APPLICATION_KEY"]


def test_defaults_without_environment():
    settings = settings_module.get_settings()

    assert settings.port == 3001
    assert settings.cors_origins == ("*",)
    assert settings.b2_api_url == settings_module.DEFAULT_B2_API_URL
    assert settings.b2_auth_cooldown_seconds == 30
    assert settings.b2_retry_on_expired is True
    assert settings.max_upload_bytes == settings_module.DEFAULT_MAX_UPLOAD_BYTES
    assert settings.b2_key_id is None


def test_retry_flag_can_be_disabled(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("B2_RETRY_ON_EXPIRED", "false")

    assert settings_module.get_settings().b2_retry_on_expired is False


def test_validate_required_environment_raises_with_invalid_values(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PORT", "not-a-number")
    monkeypatch.setenv("B2_AUTH_COOLDOWN_SECONDS", "-1")
    monkeypatch.setenv("B2_API_URL", "ftp://example.test")
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    with pytest.raises(RuntimeError) as exc_info:
        settings_module.validate_required_environment()

    message = str(exc_info.value)
    assert "Invalid environment values" in message
    assert "- PORT must be a positive integer" in message
    assert "B2_AUTH_COOLDOWN_SECONDS must be a non-negative number" in message
    assert "B2_API_URL must be an http(s) URL" in message
    assert "LOG_LEVEL must be one of" in message


def test_missing_credentials_do_not_block_startup():
    settings_module.validate_required_environment()
