"""Configuration package."""

from invoicing.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    InvoiceSettings,
    SettlementSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "InvoiceSettings",
    "SettlementSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
