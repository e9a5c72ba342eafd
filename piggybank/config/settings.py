"""
Configuration Management for Piggybank

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per collection
    users_sheet_name: str = Field(
        default="Users",
        description="Name of the sheet for user profiles"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    budgets_sheet_name: str = Field(
        default="Budgets",
        description="Name of the sheet for category budgets"
    )
    recurring_sheet_name: str = Field(
        default="RecurringTransactions",
        description="Name of the sheet for recurring transactions"
    )
    subscriptions_sheet_name: str = Field(
        default="PushSubscriptions",
        description="Name of the sheet for push subscriptions"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class WebPushSettings(BaseSettings):
    """
    Web Push (VAPID) configuration.

    Keys are optional: without them the app still records transactions,
    it just cannot notify devices.
    """

    model_config = SettingsConfigDict(
        env_prefix="VAPID_",
        extra="ignore"
    )

    public_key: Optional[str] = Field(
        default=None,
        description="VAPID public key (URL-safe base64)"
    )
    private_key: Optional[str] = Field(
        default=None,
        description="VAPID private key (URL-safe base64)"
    )
    subject: str = Field(
        default="mailto:admin@piggybank.app",
        description="Contact URI sent in the VAPID claims"
    )

    # Delivery options
    ios_ttl_seconds: int = Field(
        default=86400,
        ge=0,
        description="TTL for notifications to iOS Safari devices"
    )
    default_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        description="TTL for notifications to other browsers"
    )
    urgency: str = Field(
        default="normal",
        pattern="^(very-low|low|normal|high)$",
        description="Web Push urgency header"
    )
    topic: str = Field(
        default="piggybank-transactions",
        max_length=32,
        description="Web Push topic header (collapses pending notifications)"
    )

    @property
    def is_configured(self) -> bool:
        """Both VAPID keys are present."""
        return bool(self.public_key and self.private_key)


class IdentitySettings(BaseSettings):
    """Identity provider configuration (Google Identity Toolkit)."""

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        extra="ignore"
    )

    project_id: str = Field(
        ...,
        description="Project that owns the user accounts"
    )
    credentials_path: str = Field(
        ...,
        description="Path to service account credentials JSON"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for identity lookups"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_backend: str = Field(
        default="google_sheets",
        pattern="^(google_sheets|memory)$",
        description="Storage backend to use"
    )

    # HTTP server
    api_host: str = Field(
        default="0.0.0.0",
        description="Interface the API binds to"
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port the API listens on"
    )

    # New users
    default_categories: str = Field(
        default="F&B,Shopping,Transport,Bills",
        description="Comma-separated expense categories created for new users"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Maximum accepted amount for an ingested transaction"
    )

    @property
    def default_categories_list(self) -> list[str]:
        """Get default categories as a list."""
        return [c.strip() for c in self.default_categories.split(",") if c.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def web_push(self) -> WebPushSettings:
        return WebPushSettings()

    @property
    def identity(self) -> IdentitySettings:
        return IdentitySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        results["web_push"] = settings.web_push.is_configured
    except Exception as e:
        results["web_push"] = False
        results["web_push_error"] = str(e)

    try:
        _ = settings.identity
        results["identity"] = True
    except Exception as e:
        results["identity"] = False
        results["identity_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
