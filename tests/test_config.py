"""
Tests for settings and audit logging setup.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from agency_desk.audit import AuditLogger, configure_logging
from agency_desk.config import AppSettings, DocumentSettings, StorageSettings
from agency_desk.models.audit import AuditEventType, AuditSeverity


class TestSettings:
    """Tests for pydantic-settings classes."""

    def test_storage_from_environment(self, monkeypatch, tmp_path):
        """Test that STORAGE_ variables are read."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("STORAGE_DATA_DIR", str(tmp_path))

        settings = StorageSettings()

        assert settings.backend == "memory"
        assert settings.data_dir == Path(tmp_path)

    def test_unknown_storage_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "redis")

        with pytest.raises(PydanticValidationError):
            StorageSettings()

    def test_document_extensions_list(self):
        settings = DocumentSettings(allowed_extensions=" PDF, .png ,jpg", max_upload_size_mb=2)

        assert settings.allowed_extensions_list == ["pdf", "png", "jpg"]
        assert settings.max_upload_size_bytes == 2 * 1024 * 1024

    def test_log_level_is_normalized(self):
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    def test_log_level_rejects_unknown(self):
        with pytest.raises(PydanticValidationError):
            AppSettings(log_level="LOUD")


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_log_keeps_last_event(self):
        configure_logging("DEBUG", json_logs=False)
        audit = AuditLogger()

        event = audit.log_theme_changed("dark")

        assert audit.last_event is event
        assert event.event_type == AuditEventType.THEME_CHANGED

    def test_error_helper(self):
        audit = AuditLogger()

        event = audit.log_error("DocumentUploadError", "timeout", {"filename": "a.pdf"})

        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "timeout"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
