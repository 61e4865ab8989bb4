"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from ledger.config import (
    GoogleSheetsSettings,
    LedgerSettings,
    get_settings,
    validate_all_settings,
)


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self, clean_env):
        settings = LedgerSettings()
        assert settings.storage_backend == "memory"
        assert settings.days_per_year == 365
        assert settings.max_save_attempts == 3
        assert settings.currency_symbol == "$"

    def test_environment_override(self, clean_env):
        clean_env.setenv("LEDGER_DAYS_PER_YEAR", "360")
        clean_env.setenv("LEDGER_STORAGE_BACKEND", "google_sheets")

        settings = get_settings().ledger

        assert settings.days_per_year == 360
        assert settings.storage_backend == "google_sheets"

    def test_env_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("LEDGER_CURRENCY_SYMBOL=€\n", encoding="utf-8")
        assert LedgerSettings().currency_symbol == "€"

    @pytest.mark.parametrize("name, value", [
        ("LEDGER_STORAGE_BACKEND", "postgres"),
        ("LEDGER_DAYS_PER_YEAR", "100"),
        ("LEDGER_MAX_SAVE_ATTEMPTS", "0"),
    ])
    def test_invalid_values_rejected(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ValidationError):
            LedgerSettings()


class TestGoogleSheetsSettings:
    """Tests for GoogleSheetsSettings."""

    def test_required_fields(self, clean_env):
        with pytest.raises(ValidationError):
            GoogleSheetsSettings()

    def test_missing_credentials_file_warns(self, clean_env, tmp_path):
        clean_env.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(tmp_path / "missing.json"))
        clean_env.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

        with pytest.warns(UserWarning, match="credentials file not found"):
            settings = GoogleSheetsSettings()

        assert settings.spreadsheet_id == "sheet-123"
        assert settings.accounts_sheet_name == "Accounts"
        assert settings.audit_sheet_name == "AuditLog"


class TestValidateAllSettings:
    """Tests for validate_all_settings."""

    def test_reports_each_section(self, clean_env):
        status = validate_all_settings()

        assert status["ledger"] is True
        assert status["app"] is True
        assert status["google_sheets"] is False
        assert "google_sheets_error" in status
