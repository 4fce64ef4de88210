"""
Backup and Restore Service

Full-state export and import of the record store, plus the "clear all
data" action and its undo.

BACKUP DOCUMENT FORMAT (version 1.0, pretty-printed JSON):
    {
      "customers": [...],
      "financeEntries": [...],
      "theme": "light",
      "exportDate": "2024-03-01T09:30:00Z",
      "version": "1.0"
    }

DESIGN DECISION: An import is checked completely before anything is
written. A document that fails any check raises FormatError and the
store is left exactly as it was. Only after the checks pass is the
current state copied to a snapshot key and then overwritten.

Snapshots are single-slot: a second import replaces the first snapshot.
"""

import json
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

import structlog
from pydantic import Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from agency_desk.models.records import (
    Customer,
    FinanceEntry,
    RecordModel,
    StorageStats,
    Theme,
    Timestamp,
)
from agency_desk.services.storage import (
    BACKUP_BEFORE_CLEAR_KEY,
    BACKUP_BEFORE_IMPORT_KEY,
    CapacityError,
    NotFoundError,
    RecordStore,
    StorageError,
)


logger = structlog.get_logger(__name__)

BACKUP_VERSION = "1.0"

_customers_adapter = TypeAdapter(list[Customer])
_entries_adapter = TypeAdapter(list[FinanceEntry])


class FormatError(StorageError):
    """A backup or snapshot document is not in the expected shape."""
    pass


class BackupDocument(RecordModel):
    """Complete exported state of the dashboard."""

    customers: list[Customer] = Field(default_factory=list)
    finance_entries: list[FinanceEntry] = Field(default_factory=list)
    theme: Optional[Theme] = Field(
        default=None,
        description="Absent or null on import leaves the current theme alone"
    )
    export_date: Optional[Timestamp] = None
    version: str = BACKUP_VERSION


class BackupService:
    """
    Export, import, clear and restore for one RecordStore.

    Args:
        store: The record store to operate on
        clock: Produces export and clear timestamps (UTC)
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_backup(self) -> BackupDocument:
        """Snapshot the whole store as a BackupDocument."""
        return BackupDocument(
            customers=self._store.customers.list(),
            finance_entries=self._store.finance_entries.list(),
            theme=self._store.get_theme(),
            export_date=self._clock(),
            version=BACKUP_VERSION,
        )

    def export_backup_json(self) -> str:
        """Backup document as pretty-printed JSON text."""
        return self.export_backup().model_dump_json(by_alias=True, indent=2)

    # =========================================================================
    # IMPORT
    # =========================================================================

    def parse_backup(self, payload: Union[str, bytes, Mapping[str, Any]]) -> BackupDocument:
        """
        Check a backup document without touching the store.

        Raises:
            FormatError: If the payload is not a valid backup document
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise FormatError(f"Backup is not valid JSON: {e}") from e

        if not isinstance(payload, Mapping):
            raise FormatError("Backup must be a JSON object")

        for key in ("customers", "financeEntries"):
            if key not in payload:
                raise FormatError(f"Backup is missing '{key}'")
            if not isinstance(payload[key], list):
                raise FormatError(f"'{key}' must be a list")

        try:
            document = BackupDocument.model_validate(
                {key: payload[key] for key in ("customers", "financeEntries", "theme") if key in payload}
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise FormatError(
                f"Backup contains invalid data at {location}: {first.get('msg')}"
            ) from e

        for name, records in (
            ("customers", document.customers),
            ("financeEntries", document.finance_entries),
        ):
            ids = [record.id for record in records]
            if len(ids) != len(set(ids)):
                raise FormatError(f"'{name}' contains duplicate ids")

        return document

    def import_backup(self, payload: Union[str, bytes, Mapping[str, Any]]) -> BackupDocument:
        """
        Replace the store contents with a backup document.

        The current state is saved under the backup_before_import key
        first. Record ids are preserved.

        Returns:
            The imported document

        Raises:
            FormatError: If the document is rejected; nothing is written
            CapacityError: If the imported data does not fit; both
                collections are put back as they were
        """
        document = self.parse_backup(payload)

        with self._store.lock:
            previous_customers = self._store.customers.list()
            previous_entries = self._store.finance_entries.list()
            self._store.write_snapshot(BACKUP_BEFORE_IMPORT_KEY, self._current_state())

            try:
                self._store.customers.replace_all(document.customers)
                self._store.finance_entries.replace_all(document.finance_entries)
            except CapacityError:
                # Never leave one collection from the backup and one from before
                self._store.customers.replace_all(previous_customers)
                self._store.finance_entries.replace_all(previous_entries)
                logger.error(
                    "backup_import_rolled_back",
                    customers=len(previous_customers),
                    finance_entries=len(previous_entries),
                )
                raise

            if document.theme is not None:
                self._store.set_theme(document.theme)

        logger.info(
            "backup_imported",
            customers=len(document.customers),
            finance_entries=len(document.finance_entries),
            theme=document.theme.value if document.theme else None,
        )
        return document

    # =========================================================================
    # CLEAR / RESTORE
    # =========================================================================

    def clear_all_data(self) -> tuple[int, int]:
        """
        Empty both collections, keeping a snapshot to restore from.

        The theme preference is kept.

        Returns:
            (customers removed, finance entries removed)
        """
        with self._store.lock:
            state = self._current_state()
            state["clearedDate"] = self._clock().isoformat()
            self._store.write_snapshot(BACKUP_BEFORE_CLEAR_KEY, state)

            self._store.customers.replace_all([])
            self._store.finance_entries.replace_all([])

        counts = (len(state["customers"]), len(state["financeEntries"]))
        logger.info("data_cleared", customers=counts[0], finance_entries=counts[1])
        return counts

    def restore_from_backup(self) -> tuple[int, int]:
        """
        Bring back the collections saved by the last clear_all_data().

        Returns:
            (customers restored, finance entries restored)

        Raises:
            NotFoundError: If no clear has been done yet
            FormatError: If the snapshot is unreadable
        """
        raw = self._store.read_snapshot(BACKUP_BEFORE_CLEAR_KEY)
        if raw is None:
            raise NotFoundError("No backup found to restore from")

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise FormatError("Snapshot must be a JSON object")
            customers = _customers_adapter.validate_python(data.get("customers"))
            entries = _entries_adapter.validate_python(data.get("financeEntries"))
        except json.JSONDecodeError as e:
            raise FormatError(f"Snapshot is not valid JSON: {e}") from e
        except PydanticValidationError as e:
            raise FormatError(f"Snapshot contains invalid records: {e.error_count()} errors") from e

        with self._store.lock:
            self._store.customers.replace_all(customers)
            self._store.finance_entries.replace_all(entries)

        logger.info("data_restored", customers=len(customers), finance_entries=len(entries))
        return len(customers), len(entries)

    # =========================================================================
    # STATS
    # =========================================================================

    def storage_stats(self) -> StorageStats:
        """Record counts and the approximate size of the two collections."""
        customers = self._store.customers.list()
        entries = self._store.finance_entries.list()
        state = {
            "customers": _customers_adapter.dump_python(customers, mode="json", by_alias=True),
            "financeEntries": _entries_adapter.dump_python(entries, mode="json", by_alias=True),
        }
        size = len(json.dumps(state, separators=(",", ":")))
        size_kb = (Decimal(size) / 1024).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return StorageStats(
            customers=len(customers),
            finance_entries=len(entries),
            storage_used_kb=size_kb,
        )

    def _current_state(self) -> dict[str, Any]:
        return {
            "customers": _customers_adapter.dump_python(
                self._store.customers.list(), mode="json", by_alias=True
            ),
            "financeEntries": _entries_adapter.dump_python(
                self._store.finance_entries.list(), mode="json", by_alias=True
            ),
            "theme": self._store.get_theme().value,
        }
