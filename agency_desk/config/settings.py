"""
Configuration Management for Agency Desk

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Browsers cap origin storage at roughly 5 MiB; the file backend keeps the same budget
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


class StorageSettings(BaseSettings):
    """Record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="file",
        pattern="^(file|memory)$",
        description="Key-value backend: 'file' persists across sessions, 'memory' does not"
    )
    data_dir: Path = Field(
        default=Path(".agency_desk"),
        description="Directory holding one file per storage key"
    )
    quota_bytes: int = Field(
        default=DEFAULT_QUOTA_BYTES,
        ge=1024,
        description="Maximum total payload size across all keys"
    )


class DocumentSettings(BaseSettings):
    """Customer document upload configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DOCUMENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="local",
        pattern="^(local|cloudinary)$",
        description="Where uploaded documents are kept"
    )
    local_dir: Path = Field(
        default=Path(".agency_desk/documents"),
        description="Directory for the local document store"
    )
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    allowed_extensions: str = Field(
        default="pdf,jpg,jpeg,png",
        description="Comma-separated list of accepted document extensions"
    )

    @property
    def allowed_extensions_list(self) -> list[str]:
        """Get accepted extensions as a list."""
        return [ext.strip().lower().lstrip(".") for ext in self.allowed_extensions.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class CloudinarySettings(BaseSettings):
    """Cloudinary document storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="agency_desk",
        description="Folder documents are uploaded into"
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

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Dashboard behaviour
    refresh_interval_seconds: int = Field(
        default=5,
        ge=1,
        le=3600,
        description="How often the dashboard re-reads the store"
    )
    recent_activity_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Items shown in the recent activity feed"
    )
    recent_activity_per_source: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Newest records taken from each collection before merging"
    )
    top_expenses_limit: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Entries shown in the top expenses panel"
    )
    currency_symbol: str = Field(
        default="$",
        max_length=3,
        description="Symbol prefixed to amounts in the UI and reports"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON lines (False renders for a console)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Only accept standard logging level names."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level


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

    # Note: These are loaded lazily so a missing Cloudinary account
    # does not stop the rest of the app from starting

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def documents(self) -> DocumentSettings:
        return DocumentSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

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
    Cloudinary is only checked when it is the selected document backend.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        documents = settings.documents
        results["documents"] = True
    except Exception as e:
        documents = None
        results["documents"] = False
        results["documents_error"] = str(e)

    if documents is not None and documents.backend == "cloudinary":
        try:
            _ = settings.cloudinary
            results["cloudinary"] = True
        except Exception as e:
            results["cloudinary"] = False
            results["cloudinary_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
