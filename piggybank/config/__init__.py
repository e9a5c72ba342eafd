"""Configuration package."""

from piggybank.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    IdentitySettings,
    Settings,
    WebPushSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "IdentitySettings",
    "Settings",
    "WebPushSettings",
    "get_settings",
    "validate_all_settings",
]
