"""
Data Models Package

This package contains all Pydantic models used in Agency Desk.
All data flowing through the system must conform to these schemas.
"""

from agency_desk.models.records import (
    ActivityItem,
    CategoryTotals,
    Customer,
    CustomerDraft,
    DashboardStats,
    EntryType,
    FinanceCategory,
    FinanceEntry,
    FinanceEntryDraft,
    FinancialTotals,
    MedicalFitnessStatus,
    PerformanceSummary,
    SortDirection,
    StorageStats,
    StoredDocument,
    Theme,
    ValidationIssue,
    ValidationResult,
    VisaStatus,
)
from agency_desk.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "Customer",
    "CustomerDraft",
    "EntryType",
    "FinanceCategory",
    "FinanceEntry",
    "FinanceEntryDraft",
    "MedicalFitnessStatus",
    "SortDirection",
    "Theme",
    "VisaStatus",
    # Report models
    "ActivityItem",
    "CategoryTotals",
    "DashboardStats",
    "FinancialTotals",
    "PerformanceSummary",
    "StorageStats",
    "StoredDocument",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
