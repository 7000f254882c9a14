"""
Configuration Management for EasyMoney

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Engines take their knobs as arguments; only the orchestrator and the
storage backends read settings, so the pure functions stay testable
without an environment.
"""

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertSettings(BaseSettings):
    """Alerting engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Alert threshold for budgets created without one"
    )
    current_month_only: bool = Field(
        default=True,
        description="Only evaluate budgets for the current month"
    )
    recurring_lookahead_days: int = Field(
        default=3,
        ge=0,
        le=60,
        description="Notify about recurring items due within this many days"
    )
    goal_alerts_enabled: bool = Field(
        default=False,
        description="Emit goalNearTarget/goalCompleted notifications"
    )
    goal_near_target_percent: int = Field(
        default=90,
        ge=1,
        le=100,
        description="Progress at which a goal counts as near target"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(default="Transactions")
    budgets_sheet_name: str = Field(default="Budgets")
    goals_sheet_name: str = Field(default="Goals")
    recurring_sheet_name: str = Field(default="Recurring")
    notifications_sheet_name: str = Field(default="Notifications")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    default_currency: str = Field(
        default="USD",
        pattern="^[A-Z]{3}$",
        description="Currency used when a record does not carry one"
    )
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage implementation to wire up"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    # Validation
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="Transactions dated further ahead than this get a warning"
    )


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

    # Sub-settings are loaded lazily so a missing Sheets config
    # does not break an in-memory setup.

    @property
    def alerts(self) -> AlertSettings:
        return AlertSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus {name}_error entries.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("app", "alerts", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
