"""Configuration package."""

from expense_sync.config.logging_config import configure_logging
from expense_sync.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    StorageSettings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StorageSettings",
    "SyncSettings",
    "configure_logging",
    "get_settings",
    "validate_all_settings",
]
