"""Unit tests for environment-backed settings and logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from gastos_bot import get_logger, set_log_level
from gastos_bot.config import Settings

_ENV_KEYS = (
    "DEFAULT_CURRENCY",
    "TIMEZONE",
    "STORAGE_BACKEND",
    "FIRESTORE_COLLECTION",
    "EXPENSES_DB",
    "PORT",
    "WHATSAPP_API_VERSION",
    "TELEGRAM_ALLOWED_USERS",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the defaults.
    monkeypatch.chdir(tmp_path)


def test_defaults_match_production_deployment(clean_env: None) -> None:
    settings = Settings()

    assert settings.default_currency == "USD"
    assert settings.timezone == "America/Panama"
    assert settings.storage_backend == "firestore"
    assert settings.firestore_collection == "gastos"
    assert settings.port == 10000
    assert settings.whatsapp_api_version == "v21.0"
    assert settings.telegram_allowed_users == []
    assert str(settings.tzinfo) == "America/Panama"


def test_currency_is_normalized(make_settings) -> None:
    settings = make_settings(DEFAULT_CURRENCY=" pab ")

    assert settings.default_currency == "PAB"


@pytest.mark.parametrize("value", ["US", "DOLLARS", "U$D"])
def test_invalid_currency_is_rejected(make_settings, value: str) -> None:
    with pytest.raises(ValidationError, match="3-letter"):
        make_settings(DEFAULT_CURRENCY=value)


def test_unknown_timezone_is_rejected(make_settings) -> None:
    with pytest.raises(ValidationError, match="Unknown TIMEZONE"):
        make_settings(TIMEZONE="Mars/Olympus_Mons")


def test_unknown_storage_backend_is_rejected(make_settings) -> None:
    with pytest.raises(ValidationError):
        make_settings(STORAGE_BACKEND="postgres")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("111, 222,,333", [111, 222, 333]), (444, [444]), ([5, "6"], [5, 6]), ("", [])],
)
def test_allowed_users_accept_csv_and_lists(make_settings, raw: object, expected: list[int]) -> None:
    settings = make_settings(TELEGRAM_ALLOWED_USERS=raw)

    assert settings.telegram_allowed_users == expected


def test_secrets_are_masked_and_base_url_is_trimmed(make_settings) -> None:
    settings = make_settings(WHATSAPP_API_BASE_URL="https://graph.example.com/")

    assert settings.whatsapp_api_base_url == "https://graph.example.com"
    assert "wa-token" not in repr(settings)
    assert settings.whatsapp_token.get_secret_value() == "wa-token"


def test_log_level_is_uppercased(make_settings) -> None:
    assert make_settings(LOG_LEVEL="debug").log_level == "DEBUG"


def test_loggers_share_the_package_root() -> None:
    logger = get_logger("storage.sqlite")

    assert logger.name == "gastos_bot.storage.sqlite"
    assert get_logger().name == "gastos_bot"


def test_set_log_level_falls_back_to_info_for_unknown_levels() -> None:
    root = logging.getLogger("gastos_bot")
    previous = root.level
    try:
        set_log_level("debug")
        assert root.level == logging.DEBUG
        set_log_level("chatty")
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)


def test_allowed_users_csv_is_read_from_environment(
    clean_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TELEGRAM_ALLOWED_USERS", "111, 222")
    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")

    settings = Settings()

    assert settings.telegram_allowed_users == [111, 222]
    assert settings.storage_backend == "sqlite"
