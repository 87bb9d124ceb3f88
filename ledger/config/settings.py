"""
Configuration Management for the Ledger Store

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The sharding knobs (bucket count, fan-out batch size, search depth) live
next to the backend credentials so one place shows how data is laid out.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key layout and record-placement configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which key-value backend to use"
    )
    key_prefix: str = Field(
        default="transactions",
        min_length=1,
        description="Prefix shared by every transaction shard key"
    )

    # Changing bucket_count re-routes every generation-3 read.
    # Existing data written under another value becomes unreachable.
    bucket_count: int = Field(
        default=256,
        ge=1,
        le=256,
        description="Hash buckets per day (rendered as 2 hex digits)"
    )
    fan_out_batch_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum concurrent key fetches during a fan-out read"
    )
    search_period_count: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Periods searched (current and preceding) when no hint is given"
    )
    max_id_regenerations: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Identifier regenerations allowed before giving up"
    )
    note_max_length: int = Field(
        default=100,
        ge=0,
        description="Notes longer than this are truncated"
    )

    # Single-document resources
    categories_key: str = Field(
        default="categories",
        description="Key holding the category collection"
    )
    budgets_key: str = Field(
        default="budgets",
        description="Key holding the budget document"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets key-value backend configuration."""

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
    worksheet_name: str = Field(
        default="LedgerKV",
        description="Worksheet holding the key/value rows"
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
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level written by the event logger"
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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the groups that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
