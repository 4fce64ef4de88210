"""
Audit Models for Agency Desk

Every significant action on the records is described by an AuditEvent
and written to the structured log. This provides:
1. Traceability of who-changed-what in the shared office browser profile
2. Debugging information when an import or a write goes wrong
3. A record of destructive actions (delete, clear, import overwrite)

DESIGN DECISION: Audit events are emitted to the log stream only.
They are never written back into the record store, which has a small
capacity budget reserved for customer and ledger data.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Customers
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_UPDATED = "customer_updated"
    CUSTOMER_DELETED = "customer_deleted"

    # Ledger
    FINANCE_ENTRY_CREATED = "finance_entry_created"
    FINANCE_ENTRY_UPDATED = "finance_entry_updated"
    FINANCE_ENTRY_DELETED = "finance_entry_deleted"

    # Forms
    VALIDATION_FAILED = "validation_failed"

    # Attachments
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_REJECTED = "document_rejected"

    # Data management
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    IMPORT_REJECTED = "import_rejected"
    DATA_CLEARED = "data_cleared"
    DATA_RESTORED = "data_restored"

    # Preferences
    THEME_CHANGED = "theme_changed"

    # System events
    CAPACITY_EXCEEDED = "capacity_exceeded"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    event_id: str = Field(
        default_factory=lambda: uuid4().hex,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'customer', 'finance_entry', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("customer", customer.id, "Jane Doe")
        event = AuditEventBuilder.data_cleared(customers=3, finance_entries=10)
    """

    _CREATED = {
        "customer": AuditEventType.CUSTOMER_CREATED,
        "finance_entry": AuditEventType.FINANCE_ENTRY_CREATED,
    }
    _UPDATED = {
        "customer": AuditEventType.CUSTOMER_UPDATED,
        "finance_entry": AuditEventType.FINANCE_ENTRY_UPDATED,
    }
    _DELETED = {
        "customer": AuditEventType.CUSTOMER_DELETED,
        "finance_entry": AuditEventType.FINANCE_ENTRY_DELETED,
    }

    @staticmethod
    def record_created(entity_type: str, record_id: str, label: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventBuilder._CREATED[entity_type],
            entity_type=entity_type,
            entity_id=record_id,
            description=f"Created {entity_type.replace('_', ' ')}: {label}",
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        entity_type: str,
        record_id: str,
        fields: list[str],
        found: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventBuilder._UPDATED[entity_type],
            severity=AuditSeverity.INFO if found else AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=record_id,
            description=(
                f"Updated {entity_type.replace('_', ' ')}"
                if found
                else f"Update skipped, {entity_type.replace('_', ' ')} not found"
            ),
            details={"fields": fields, "found": found},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(entity_type: str, record_id: str, found: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventBuilder._DELETED[entity_type],
            severity=AuditSeverity.INFO if found else AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=record_id,
            description=(
                f"Deleted {entity_type.replace('_', ' ')}"
                if found
                else f"Delete skipped, {entity_type.replace('_', ' ')} not found"
            ),
            details={"found": found},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(entity_type: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            description=f"Form validation failed with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def document_uploaded(filename: str, url: str, size: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_UPLOADED,
            entity_type="document",
            description=f"Document uploaded: {filename}",
            details={
                "filename": filename,
                "url": url,
                "file_size_bytes": size,
            },
            is_user_action=True,
        )

    @staticmethod
    def document_rejected(filename: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="document",
            description=f"Document rejected: {filename}",
            error_message=reason,
            details={"filename": filename},
            is_user_action=True,
        )

    @staticmethod
    def data_exported(kind: str, record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="export",
            description=f"Exported {kind} ({record_count} records)",
            details={"kind": kind, "record_count": record_count},
            is_user_action=True,
        )

    @staticmethod
    def data_imported(customers: int, finance_entries: int, version: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description=(
                f"Imported backup: {customers} customers, "
                f"{finance_entries} finance entries"
            ),
            details={
                "customers": customers,
                "finance_entries": finance_entries,
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="Backup import rejected",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def data_cleared(customers: int, finance_entries: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description="All records cleared",
            details={"customers": customers, "finance_entries": finance_entries},
            is_user_action=True,
        )

    @staticmethod
    def data_restored(customers: int, finance_entries: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESTORED,
            entity_type="backup",
            description="Records restored from backup",
            details={"customers": customers, "finance_entries": finance_entries},
            is_user_action=True,
        )

    @staticmethod
    def theme_changed(theme: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.THEME_CHANGED,
            entity_type="preference",
            description=f"Theme set to {theme}",
            details={"theme": theme},
            is_user_action=True,
        )

    @staticmethod
    def capacity_exceeded(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPACITY_EXCEEDED,
            severity=AuditSeverity.ERROR,
            entity_type="storage",
            entity_id=key,
            description=f"Storage capacity exceeded writing '{key}'",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
