"""
Main Orchestrator for Agency Desk

This module ties together all the components and defines the
end-to-end flows for:
1. Customers (form → validate → upload document → store → audit)
2. Finance entries (form → validate → store → audit)
3. Reports (store → derivations → CSV)
4. Settings (theme, backup export/import, clear and restore)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written unless the whole submission validates
- A document is only uploaded once the form around it is valid
- Every change to stored data is audited

The Streamlit pages only talk to these flows, never to the store directly.
"""

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any, NamedTuple, Optional, Union

import structlog

from agency_desk.audit import AuditLogger
from agency_desk.config import Settings, get_settings
from agency_desk.models.records import (
    ActivityItem,
    CategoryTotals,
    Customer,
    DashboardStats,
    EntryType,
    FinanceCategory,
    FinanceEntry,
    FinancialTotals,
    PerformanceSummary,
    SortDirection,
    StorageStats,
    Theme,
    VisaStatus,
)
from agency_desk.reports import (
    CUSTOMER_DEFAULT_SORT,
    CUSTOMER_SEARCH_FIELDS,
    FINANCE_DEFAULT_SORT,
    FINANCE_SEARCH_FIELDS,
    business_report_csv,
    category_breakdown,
    customers_csv,
    dashboard_stats,
    filter_by_date_range,
    filter_entries_by_type,
    finance_entries_csv,
    financial_totals,
    group_by_month,
    performance_summary,
    recent_activity,
    search_records,
    sort_records,
    top_expenses,
    visa_status_counts,
)
from agency_desk.services.backup import BackupDocument, BackupService, FormatError
from agency_desk.services.documents import (
    CloudinaryDocumentStore,
    DocumentRejectedError,
    DocumentStorageInterface,
    DocumentUploadError,
    LocalDocumentStore,
)
from agency_desk.services.storage import (
    CapacityError,
    FileBackend,
    InMemoryBackend,
    KeyValueBackend,
    RecordStore,
)
from agency_desk.validation import RecordValidator, ValidationError, ensure_valid


logger = structlog.get_logger(__name__)

# (content, filename) of an uploaded file
Upload = tuple[bytes, str]


class CustomerFlow:
    """
    Orchestrates customer record management.

    Flow for a new customer:
    1. Validate → all form fields, before anything else happens
    2. Upload → store the attached document, if any
    3. Save → append to the customer collection
    4. Audit → one event per outcome
    """

    ENTITY_TYPE = "customer"

    def __init__(
        self,
        store: RecordStore,
        validator: Optional[RecordValidator] = None,
        document_store: Optional[DocumentStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or RecordValidator()
        self._document_store = document_store
        self._audit_logger = audit_logger or AuditLogger()

    def list_customers(self) -> list[Customer]:
        return self._store.customers.list()

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        return self._store.customers.get(customer_id)

    def add_customer(
        self,
        form: Mapping[str, Any],
        document: Optional[Upload] = None,
    ) -> Customer:
        """
        Validate and save a new customer.

        Raises:
            ValidationError: If the form is invalid; nothing is uploaded or saved
            DocumentError: If the document is rejected or cannot be stored
            CapacityError: If the store is full
        """
        try:
            draft = self._validator.build_customer(form)
        except ValidationError as e:
            self._audit_logger.log_validation_failed(
                self.ENTITY_TYPE, [issue.model_dump() for issue in e.issues]
            )
            raise

        fields = draft.model_dump()
        if document is not None:
            fields.update(self._upload(document))

        customer = self._save(lambda: self._store.customers.add(fields))
        self._audit_logger.log_record_created(
            self.ENTITY_TYPE, customer.id, customer.full_name
        )
        return customer

    def update_customer(
        self,
        customer_id: str,
        changes: Mapping[str, Any],
        document: Optional[Upload] = None,
    ) -> bool:
        """
        Apply an edit form to an existing customer.

        Returns:
            True if the customer existed and was updated
        """
        result = self._validator.validate_customer(changes, partial=True)
        try:
            ensure_valid(result, self.ENTITY_TYPE)
        except ValidationError as e:
            self._audit_logger.log_validation_failed(
                self.ENTITY_TYPE, [issue.model_dump() for issue in e.issues]
            )
            raise

        changes = dict(changes)
        if document is not None:
            if self._store.customers.get(customer_id) is None:
                self._audit_logger.log_record_updated(
                    self.ENTITY_TYPE, customer_id, sorted(changes), found=False
                )
                return False
            changes.update(self._upload(document))

        found = self._save(lambda: self._store.customers.update(customer_id, changes))
        self._audit_logger.log_record_updated(
            self.ENTITY_TYPE, customer_id, sorted(changes), found=found
        )
        return found

    def delete_customer(self, customer_id: str) -> bool:
        found = self._store.customers.delete(customer_id)
        self._audit_logger.log_record_deleted(self.ENTITY_TYPE, customer_id, found)
        return found

    def table(
        self,
        query: str = "",
        sort_field: str = CUSTOMER_DEFAULT_SORT[0],
        direction: Union[SortDirection, str] = CUSTOMER_DEFAULT_SORT[1],
    ) -> list[Customer]:
        """Customers matching the search box, in the chosen column order."""
        matches = search_records(self.list_customers(), query, CUSTOMER_SEARCH_FIELDS)
        return sort_records(matches, sort_field, direction)

    def export_csv(self, customers: Sequence[Customer]) -> str:
        self._audit_logger.log_data_exported("customers_csv", len(customers))
        return customers_csv(customers)

    def _upload(self, document: Upload) -> dict[str, str]:
        if self._document_store is None:
            raise DocumentUploadError("No document store is configured")

        content, filename = document
        try:
            stored = self._document_store.upload(content, filename)
        except DocumentRejectedError as e:
            self._audit_logger.log_document_rejected(filename, str(e))
            raise
        except DocumentUploadError as e:
            self._audit_logger.log_error("DocumentUploadError", str(e), {"filename": filename})
            raise

        self._audit_logger.log_document_uploaded(filename, stored.url, len(content))
        return {"document_url": stored.url, "document_name": stored.name}

    def _save(self, write):
        try:
            return write()
        except CapacityError as e:
            self._audit_logger.log_capacity_exceeded(e.key, str(e))
            raise


class FinanceFlow:
    """
    Orchestrates ledger entry management.

    Same shape as CustomerFlow, without documents.
    """

    ENTITY_TYPE = "finance_entry"

    def __init__(
        self,
        store: RecordStore,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger or AuditLogger()

    def list_entries(self) -> list[FinanceEntry]:
        return self._store.finance_entries.list()

    def add_entry(self, form: Mapping[str, Any]) -> FinanceEntry:
        """
        Validate and save a new ledger entry.

        Raises:
            ValidationError: If the form is invalid; nothing is saved
            CapacityError: If the store is full
        """
        try:
            draft = self._validator.build_finance_entry(form)
        except ValidationError as e:
            self._audit_logger.log_validation_failed(
                self.ENTITY_TYPE, [issue.model_dump() for issue in e.issues]
            )
            raise

        try:
            entry = self._store.finance_entries.add(draft)
        except CapacityError as e:
            self._audit_logger.log_capacity_exceeded(e.key, str(e))
            raise

        self._audit_logger.log_record_created(
            self.ENTITY_TYPE, entry.id, f"{entry.entry_type.value}: {entry.description}"
        )
        return entry

    def update_entry(self, entry_id: str, changes: Mapping[str, Any]) -> bool:
        result = self._validator.validate_finance_entry(changes, partial=True)
        try:
            ensure_valid(result, self.ENTITY_TYPE)
        except ValidationError as e:
            self._audit_logger.log_validation_failed(
                self.ENTITY_TYPE, [issue.model_dump() for issue in e.issues]
            )
            raise

        try:
            found = self._store.finance_entries.update(entry_id, changes)
        except CapacityError as e:
            self._audit_logger.log_capacity_exceeded(e.key, str(e))
            raise

        self._audit_logger.log_record_updated(
            self.ENTITY_TYPE, entry_id, sorted(changes), found=found
        )
        return found

    def delete_entry(self, entry_id: str) -> bool:
        found = self._store.finance_entries.delete(entry_id)
        self._audit_logger.log_record_deleted(self.ENTITY_TYPE, entry_id, found)
        return found

    def table(
        self,
        query: str = "",
        entry_type: Optional[Union[EntryType, str]] = None,
        sort_field: str = FINANCE_DEFAULT_SORT[0],
        direction: Union[SortDirection, str] = FINANCE_DEFAULT_SORT[1],
    ) -> list[FinanceEntry]:
        """Entries matching the search box and type filter, in column order."""
        entries = filter_entries_by_type(self.list_entries(), entry_type)
        matches = search_records(entries, query, FINANCE_SEARCH_FIELDS)
        return sort_records(matches, sort_field, direction)

    def top_expenses(self, n: int = 3) -> list[FinanceEntry]:
        return top_expenses(self.list_entries(), n)

    def monthly_groups(self, entries: Sequence[FinanceEntry]) -> dict[str, list[FinanceEntry]]:
        return group_by_month(entries)

    def totals(self, entries: Sequence[FinanceEntry]) -> FinancialTotals:
        """Income, expense and net over the given entries, e.g. one month group."""
        return financial_totals(entries)

    def export_csv(self, entries: Sequence[FinanceEntry]) -> str:
        """CSV of exactly the rows the table is showing."""
        self._audit_logger.log_data_exported("finance_csv", len(entries))
        return finance_entries_csv(entries)


class PeriodReport(NamedTuple):
    """Everything the reports page shows for one window."""
    start: date
    end: date
    totals: FinancialTotals
    visa_counts: dict[VisaStatus, int]
    categories: dict[FinanceCategory, CategoryTotals]


class ReportFlow:
    """Read-only views over the store for the dashboard and reports pages."""

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    def dashboard(self) -> tuple[DashboardStats, PerformanceSummary]:
        stats = dashboard_stats(
            self._store.customers.list(),
            self._store.finance_entries.list(),
        )
        return stats, performance_summary(stats)

    def recent_activity(self, n: int = 5, per_source: Optional[int] = None) -> list[ActivityItem]:
        return recent_activity(
            self._store.customers.list(),
            self._store.finance_entries.list(),
            n=n,
            per_source=per_source,
        )

    def period_report(self, start: date, end: date) -> PeriodReport:
        """
        Totals and breakdowns for entries dated in [start, end].

        Visa counts cover all customers.
        """
        entries = filter_by_date_range(self._store.finance_entries.list(), start, end)
        return PeriodReport(
            start=start,
            end=end,
            totals=financial_totals(entries),
            visa_counts=visa_status_counts(self._store.customers.list()),
            categories=category_breakdown(entries),
        )

    def export_csv(self, start: date, end: date) -> str:
        customers = self._store.customers.list()
        entries = self._store.finance_entries.list()
        self._audit_logger.log_data_exported("business_report_csv", len(customers) + len(entries))
        return business_report_csv(customers, entries, start, end)


class SettingsFlow:
    """
    Orchestrates the settings page.

    Import, clear and restore replace data wholesale, so each one is
    audited with the record counts involved.
    """

    def __init__(
        self,
        store: RecordStore,
        backup_service: Optional[BackupService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._backup = backup_service or BackupService(store)
        self._audit_logger = audit_logger or AuditLogger()

    def storage_stats(self) -> StorageStats:
        return self._backup.storage_stats()

    def get_theme(self) -> Theme:
        return self._store.get_theme()

    def set_theme(self, theme: Union[Theme, str]) -> Theme:
        theme = self._store.set_theme(theme)
        self._audit_logger.log_theme_changed(theme.value)
        return theme

    def toggle_theme(self) -> Theme:
        current = self.get_theme()
        return self.set_theme(Theme.DARK if current == Theme.LIGHT else Theme.LIGHT)

    def export_backup(self) -> str:
        """Full backup as JSON text."""
        document = self._backup.export_backup()
        self._audit_logger.log_data_exported(
            "backup",
            len(document.customers) + len(document.finance_entries),
        )
        return document.model_dump_json(by_alias=True, indent=2)

    def import_backup(self, payload: Union[str, bytes]) -> BackupDocument:
        """
        Replace all data with a backup file's contents.

        Raises:
            FormatError: If the file is rejected; nothing is changed
            CapacityError: If the imported data does not fit
        """
        try:
            document = self._backup.import_backup(payload)
        except FormatError as e:
            self._audit_logger.log_import_rejected(str(e))
            raise
        except CapacityError as e:
            self._audit_logger.log_capacity_exceeded(e.key, str(e))
            raise

        self._audit_logger.log_data_imported(
            len(document.customers),
            len(document.finance_entries),
            document.version,
        )
        return document

    def clear_all_data(self) -> tuple[int, int]:
        customers, entries = self._backup.clear_all_data()
        self._audit_logger.log_data_cleared(customers, entries)
        return customers, entries

    def restore_from_backup(self) -> tuple[int, int]:
        """
        Undo the last clear.

        Raises:
            NotFoundError: If there is nothing to restore
            FormatError: If the saved snapshot is unreadable
        """
        customers, entries = self._backup.restore_from_backup()
        self._audit_logger.log_data_restored(customers, entries)
        return customers, entries


class AppComponents(NamedTuple):
    store: RecordStore
    customers: CustomerFlow
    finance: FinanceFlow
    reports: ReportFlow
    settings: SettingsFlow


def create_backend(settings: Settings) -> KeyValueBackend:
    storage = settings.storage
    if storage.backend == "memory":
        return InMemoryBackend(quota_bytes=storage.quota_bytes)
    return FileBackend(storage.data_dir, quota_bytes=storage.quota_bytes)


def create_document_store(settings: Settings) -> DocumentStorageInterface:
    """
    Document store selected by settings.

    Falls back to the local store if Cloudinary is selected but not
    configured, so the rest of the app keeps working.
    """
    documents = settings.documents
    if documents.backend == "cloudinary":
        try:
            return CloudinaryDocumentStore(
                settings.cloudinary,
                documents.allowed_extensions_list,
                documents.max_upload_size_bytes,
            )
        except Exception as e:
            # Cloudinary not configured - continue with local files
            logger.warning("cloudinary_not_configured", error=str(e))

    return LocalDocumentStore(
        documents.local_dir,
        documents.allowed_extensions_list,
        documents.max_upload_size_bytes,
    )


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[KeyValueBackend] = None,
    document_store: Optional[DocumentStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Defaults to get_settings()
        backend: Key-value store to use instead of the configured one.
                 Tests pass an InMemoryBackend here.
        document_store: Document store to use instead of the configured one

    Returns:
        AppComponents with one shared store and audit logger
    """
    settings = settings or get_settings()
    store = RecordStore(backend or create_backend(settings))
    audit_logger = AuditLogger()

    return AppComponents(
        store=store,
        customers=CustomerFlow(
            store,
            document_store=document_store or create_document_store(settings),
            audit_logger=audit_logger,
        ),
        finance=FinanceFlow(store, audit_logger=audit_logger),
        reports=ReportFlow(store, audit_logger=audit_logger),
        settings=SettingsFlow(store, audit_logger=audit_logger),
    )
