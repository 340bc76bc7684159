"""Tests for environment-driven configuration and logging setup."""

import importlib
import logging

import pytest
import structlog
from pydantic import ValidationError

from expense_sync.config import (
    AppSettings,
    GoogleSheetsSettings,
    StorageSettings,
    SyncSettings,
    configure_logging,
    get_settings,
    validate_all_settings,
)
from expense_sync.ledger import ledger as ledger_module


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "STORAGE_BACKEND",
        "SYNC_MAX_BATCH_SIZE",
        "SYNC_DEFAULT_CURRENCY",
        "LOG_LEVEL",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for the settings groups."""

    def test_defaults(self):
        assert StorageSettings().backend == "memory"
        sync = SyncSettings()
        assert sync.max_batch_size == 500
        assert sync.default_currency == "USD"
        assert sync.entity_type == "EXPENSE"
        assert AppSettings().log_level == "INFO"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("SYNC_MAX_BATCH_SIZE", "25")
        assert StorageSettings().backend == "google_sheets"
        assert SyncSettings().max_batch_size == 25

    def test_unknown_backend_is_rejected(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        with pytest.raises(ValidationError):
            StorageSettings()

    def test_log_level_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert AppSettings().log_level == "DEBUG"

    def test_bad_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            AppSettings()

    def test_sheets_settings_warn_on_missing_credentials(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(tmp_path / "missing.json"))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")
        with pytest.warns(UserWarning):
            settings = GoogleSheetsSettings()
        assert settings.expenses_sheet_name == "Expenses"
        assert settings.sync_log_sheet_name == "SyncLog"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_validate_all_settings_reports_missing_sheets_config(self):
        results = validate_all_settings()
        assert results["storage"] is True
        assert results["sync"] is True
        assert results["app"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results


class TestLoggingSetup:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        level = root.level
        yield
        root.setLevel(level)
        structlog.reset_defaults()

    def test_configure_logging_sets_level_and_structlog(self):
        structlog.reset_defaults()
        configure_logging("debug")
        assert structlog.is_configured()
        assert logging.getLogger().level == logging.DEBUG

    def test_importing_the_ledger_leaves_logging_alone(self):
        structlog.reset_defaults()
        importlib.reload(ledger_module)
        assert not structlog.is_configured()
