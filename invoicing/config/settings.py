"""
Configuration Management for the Invoicing Core

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Tunables that used to be magic numbers inside the settlement and invoice
code (the rounding margin, GST rates, number-series defaults) live here so
they can be changed and tested independently.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettlementSettings(BaseSettings):
    """Settlement engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_",
        extra="ignore"
    )

    rounding_margin: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="An invoice is Paid once settled >= total - rounding_margin"
    )
    default_tds_section: str = Field(
        default="194J",
        description="TDS section preselected when tax is withheld"
    )


class InvoiceSettings(BaseSettings):
    """Invoice arithmetic and numbering defaults."""

    model_config = SettingsConfigDict(
        env_prefix="INVOICE_",
        extra="ignore"
    )

    cgst_rate: Decimal = Field(default=Decimal("9"), ge=0, le=100)
    sgst_rate: Decimal = Field(default=Decimal("9"), ge=0, le=100)
    igst_rate: Decimal = Field(default=Decimal("18"), ge=0, le=100)
    default_payment_terms: str = Field(
        default="net_30",
        description="Payment terms used when neither invoice nor client sets one"
    )

    # Number series defaults (a business may override each of these)
    number_prefix: str = Field(default="INV", max_length=20)
    number_separator: str = Field(default="/", max_length=3)
    number_start: int = Field(default=1, ge=1)
    number_padding: int = Field(default=4, ge=1, le=10)


class StoreSettings(BaseSettings):
    """Transaction submission and subscription behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        extra="ignore"
    )

    submit_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a transaction is submitted before giving up"
    )
    backoff_min_seconds: float = Field(default=0.5, ge=0)
    backoff_max_seconds: float = Field(default=8.0, ge=0)
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Polling period for stores without push notifications"
    )


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

    # Sheet names within the spreadsheet
    entity_sheet_prefix: str = Field(
        default="",
        description="Prefix prepended to every entity worksheet name"
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

    # Documents
    default_template: str = Field(
        default="classic",
        pattern="^(classic|compact|creative)$",
        description="Template used when the business has no preference"
    )
    document_extension: str = Field(
        default="html",
        description="File extension of rendered invoice documents"
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

    # Sub-settings are loaded lazily so that a missing Google Sheets
    # configuration does not stop the in-memory store from working.

    @property
    def settlement(self) -> SettlementSettings:
        return SettlementSettings()

    @property
    def invoice(self) -> InvoiceSettings:
        return InvoiceSettings()

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

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

    for name in ("settlement", "invoice", "store", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
