"""
Record Store

Whole-collection persistence for customers and finance entries on top of
a KeyValueBackend.

Each collection is stored as one JSON array under its key, in insertion
order, with camelCase field names. Every mutation reads the whole array,
changes it in memory and writes the whole array back.

TRADEOFFS:
- Simple, and the stored documents are readable and exportable as-is
- Fine for the few thousand records an agency office produces
- Mutations within one process are serialized by a lock shared by all
  collections of a RecordStore. Dashboard sessions are threads of one
  process sharing one store, so they cannot lose each other's updates.
- Two PROCESSES writing the same data directory can still lose an update.
  Run one dashboard per data directory.
"""

import json
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Generic, Optional, Union
from uuid import uuid4

import structlog
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from agency_desk.models.records import (
    IMMUTABLE_FIELDS,
    Customer,
    FinanceEntry,
    Theme,
)
from agency_desk.services.storage.interface import (
    CUSTOMERS_KEY,
    FINANCE_ENTRIES_KEY,
    SNAPSHOT_KEYS,
    THEME_KEY,
    DuplicateError,
    KeyValueBackend,
    RecordCollectionInterface,
    RecordT,
)
from agency_desk.validation import ValidationError, normalize_fields


logger = structlog.get_logger(__name__)


def new_record_id() -> str:
    """Random 128-bit identity; does not depend on clock resolution."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordCollection(RecordCollectionInterface[RecordT], Generic[RecordT]):
    """
    One collection of records stored under a single key.

    Args:
        backend: Key-value store holding the serialized collection
        key: Storage key for this collection
        model: Record model (Customer or FinanceEntry)
        entity_type: Name used in errors and logs
        id_factory: Produces new identities
        clock: Produces creation timestamps
        lock: Serializes read-modify-write cycles; shared across a store
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        key: str,
        model: type[RecordT],
        entity_type: str,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        lock=None,
    ):
        self._backend = backend
        self._key = key
        self._model = model
        self._entity_type = entity_type
        self._id_factory = id_factory or new_record_id
        self._clock = clock or utcnow
        self._adapter = TypeAdapter(list[model])
        self._lock = lock or threading.RLock()

    @property
    def key(self) -> str:
        return self._key

    @property
    def entity_type(self) -> str:
        return self._entity_type

    def serialize(self, items: Iterable[RecordT]) -> str:
        """Encode records as the persisted JSON array."""
        return self._adapter.dump_json(list(items), by_alias=True).decode("utf-8")

    def list(self) -> list[RecordT]:
        raw = self._backend.get(self._key)
        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("collection_unreadable", key=self._key, error=str(e))
            return []

        if not isinstance(data, list):
            logger.error("collection_not_a_list", key=self._key, found=type(data).__name__)
            return []

        records = []
        for index, item in enumerate(data):
            try:
                records.append(self._model.model_validate(item))
            except PydanticValidationError as e:
                # Skip malformed rows
                logger.warning(
                    "record_skipped",
                    key=self._key,
                    index=index,
                    error_count=e.error_count(),
                )
        return records

    def get(self, record_id: str) -> Optional[RecordT]:
        for item in self.list():
            if item.id == record_id:
                return item
        return None

    def replace_all(self, items: Iterable[RecordT]) -> None:
        payload = self.serialize(items)
        with self._lock:
            self._backend.set(self._key, payload)

    def add(self, fields: Union[BaseModel, Mapping[str, Any]]) -> RecordT:
        if isinstance(fields, BaseModel):
            data = fields.model_dump()
        else:
            data = normalize_fields(self._model, fields)
        for name in IMMUTABLE_FIELDS:
            data.pop(name, None)

        with self._lock:
            items = self.list()
            record_id = self._id_factory()
            if any(item.id == record_id for item in items):
                raise DuplicateError(
                    f"{self._entity_type} with id {record_id!r} already exists"
                )

            try:
                record = self._model.model_validate(
                    {**data, "id": record_id, "created_at": self._clock()}
                )
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e, self._entity_type) from e

            items.append(record)
            self.replace_all(items)

        logger.info("record_added", key=self._key, record_id=record_id)
        return record

    def update(self, record_id: str, changes: Mapping[str, Any]) -> bool:
        fields = normalize_fields(self._model, changes)
        for name in IMMUTABLE_FIELDS:
            fields.pop(name, None)

        with self._lock:
            items = self.list()
            for index, item in enumerate(items):
                if item.id == record_id:
                    break
            else:
                logger.debug("record_update_skipped", key=self._key, record_id=record_id)
                return False

            merged = item.model_dump()
            merged.update(fields)
            try:
                items[index] = self._model.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e, self._entity_type) from e

            self.replace_all(items)

        logger.info(
            "record_updated",
            key=self._key,
            record_id=record_id,
            fields=sorted(fields),
        )
        return True

    def delete(self, record_id: str) -> bool:
        with self._lock:
            items = self.list()
            remaining = [item for item in items if item.id != record_id]
            if len(remaining) == len(items):
                logger.debug("record_delete_skipped", key=self._key, record_id=record_id)
                return False

            self.replace_all(remaining)

        logger.info("record_deleted", key=self._key, record_id=record_id)
        return True


class RecordStore:
    """
    The dashboard's whole persistent state.

    Holds the two record collections, the theme preference and the
    rollback snapshots, all on one injected backend.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._backend = backend
        self._lock = threading.RLock()
        self.customers: RecordCollection[Customer] = RecordCollection(
            backend,
            CUSTOMERS_KEY,
            Customer,
            "customer",
            id_factory=id_factory,
            clock=clock,
            lock=self._lock,
        )
        self.finance_entries: RecordCollection[FinanceEntry] = RecordCollection(
            backend,
            FINANCE_ENTRIES_KEY,
            FinanceEntry,
            "finance_entry",
            id_factory=id_factory,
            clock=clock,
            lock=self._lock,
        )

    @property
    def lock(self):
        """Held by BackupService so an import or clear is not interleaved."""
        return self._lock

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    def get_theme(self) -> Theme:
        """Stored theme, or light if unset or unrecognised."""
        raw = self._backend.get(THEME_KEY)
        if raw is None:
            return Theme.LIGHT
        try:
            return Theme(raw.strip().strip('"'))
        except ValueError:
            logger.warning("theme_unrecognised", value=raw)
            return Theme.LIGHT

    def set_theme(self, theme: Union[Theme, str]) -> Theme:
        theme = Theme(theme)
        self._backend.set(THEME_KEY, theme.value)
        return theme

    def read_snapshot(self, key: str) -> Optional[str]:
        """Raw text of a rollback snapshot, or None if none was taken."""
        self._check_snapshot_key(key)
        return self._backend.get(key)

    def write_snapshot(self, key: str, payload: Mapping[str, Any]) -> None:
        self._check_snapshot_key(key)
        self._backend.set(key, json.dumps(payload))

    def usage_bytes(self) -> int:
        return self._backend.usage_bytes()

    @staticmethod
    def _check_snapshot_key(key: str) -> None:
        if key not in SNAPSHOT_KEYS:
            raise ValueError(f"Not a snapshot key: {key!r}")
