"""Configuration package."""

from agency_desk.config.settings import (
    DEFAULT_QUOTA_BYTES,
    AppSettings,
    CloudinarySettings,
    DocumentSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_QUOTA_BYTES",
    "AppSettings",
    "CloudinarySettings",
    "DocumentSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
