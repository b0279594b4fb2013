from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from zoneinfo import ZoneInfo

import pytest

from gastos_bot.config import Settings

PANAMA = ZoneInfo("America/Panama")


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Return a factory for Settings backed by a throwaway SQLite file."""

    def _factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "DEFAULT_CURRENCY": "USD",
            "TIMEZONE": "America/Panama",
            "STORAGE_BACKEND": "sqlite",
            "EXPENSES_DB": str(tmp_path / "gastos.sqlite"),
            "WHATSAPP_TOKEN": "wa-token",
            "WHATSAPP_PHONE_NUMBER_ID": "1234567890",
            "WHATSAPP_VERIFY_TOKEN": "verify-me",
            "TELEGRAM_TOKEN": "123:ABC",
            "LOG_LEVEL": "INFO",
        }
        values.update(overrides)
        return Settings.model_validate(values)

    return _factory


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen in the second quincena of March 2025, Panama time."""

    return lambda: datetime(2025, 3, 16, 9, 30, tzinfo=PANAMA)
