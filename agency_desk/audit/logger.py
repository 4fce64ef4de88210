"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of who changed which record and when
2. Debugging capability
3. A record of imports, clears and restores, which replace data wholesale

The audit logger:
- Writes structured events through structlog (JSON lines by default)
- Does NOT persist events into the record store, so the audit trail never
  competes with customer data for storage space
- Is synchronous; a log call is a local write
"""

import logging
import sys
from typing import Optional

import structlog

from agency_desk.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure stdlib logging and structlog for the whole application.

    Call once at startup. json_logs=False renders for a console.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Each helper builds an AuditEvent and logs it at a level matching the
    event's severity. The last event is kept for the UI to inspect.
    """

    def __init__(self, logger_name: str = "agency_desk.audit"):
        self._logger = structlog.get_logger(logger_name)
        self.last_event: Optional[AuditEvent] = None

    def log(self, event: AuditEvent) -> AuditEvent:
        """Log an audit event and return it."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        self.last_event = event
        return event

    # =========================================================================
    # RECORDS
    # =========================================================================

    def log_record_created(self, entity_type: str, record_id: str, label: str) -> AuditEvent:
        return self.log(AuditEventBuilder.record_created(entity_type, record_id, label))

    def log_record_updated(
        self,
        entity_type: str,
        record_id: str,
        fields: list[str],
        found: bool,
    ) -> AuditEvent:
        return self.log(AuditEventBuilder.record_updated(entity_type, record_id, fields, found))

    def log_record_deleted(self, entity_type: str, record_id: str, found: bool) -> AuditEvent:
        return self.log(AuditEventBuilder.record_deleted(entity_type, record_id, found))

    def log_validation_failed(self, entity_type: str, issues: list[dict]) -> AuditEvent:
        """Log a rejected form submission."""
        return self.log(AuditEventBuilder.validation_failed(entity_type, issues))

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    def log_document_uploaded(self, filename: str, url: str, size: int) -> AuditEvent:
        return self.log(AuditEventBuilder.document_uploaded(filename, url, size))

    def log_document_rejected(self, filename: str, reason: str) -> AuditEvent:
        return self.log(AuditEventBuilder.document_rejected(filename, reason))

    # =========================================================================
    # DATA MANAGEMENT
    # =========================================================================

    def log_data_exported(self, kind: str, record_count: int) -> AuditEvent:
        return self.log(AuditEventBuilder.data_exported(kind, record_count))

    def log_data_imported(
        self,
        customers: int,
        finance_entries: int,
        version: Optional[str],
    ) -> AuditEvent:
        return self.log(AuditEventBuilder.data_imported(customers, finance_entries, version))

    def log_import_rejected(self, reason: str) -> AuditEvent:
        return self.log(AuditEventBuilder.import_rejected(reason))

    def log_data_cleared(self, customers: int, finance_entries: int) -> AuditEvent:
        return self.log(AuditEventBuilder.data_cleared(customers, finance_entries))

    def log_data_restored(self, customers: int, finance_entries: int) -> AuditEvent:
        return self.log(AuditEventBuilder.data_restored(customers, finance_entries))

    def log_theme_changed(self, theme: str) -> AuditEvent:
        return self.log(AuditEventBuilder.theme_changed(theme))

    # =========================================================================
    # ERRORS
    # =========================================================================

    def log_capacity_exceeded(self, key: str, error_message: str) -> AuditEvent:
        """Log a write refused by the storage quota."""
        return self.log(AuditEventBuilder.capacity_exceeded(key, error_message))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        """Log an error."""
        return self.log(AuditEventBuilder.system_error(error_type, error_message, details))
