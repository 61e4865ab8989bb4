"""Shared pytest fixtures."""

import pytest

from ledger.config import get_settings


SETTINGS_ENV_VARS = [
    "GOOGLE_SHEETS_CREDENTIALS_PATH",
    "GOOGLE_SHEETS_SPREADSHEET_ID",
    "LEDGER_STORAGE_BACKEND",
    "LEDGER_DAYS_PER_YEAR",
    "LEDGER_MAX_SAVE_ATTEMPTS",
    "LEDGER_CURRENCY_SYMBOL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Settings read from a clean environment, with no .env file in reach."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
