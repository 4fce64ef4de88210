"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep records in a directory of files for everyday use
2. Use in-memory storage for testing
3. Inject the store into each flow instead of reaching for a global

There are two layers:
- KeyValueBackend: raw text values under fixed string keys, with a
  capacity limit. This is the only layer that touches disk.
- RecordCollectionInterface: CRUD over one collection of records,
  persisted as one serialized document per key.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel


# Persisted keys
CUSTOMERS_KEY = "customers"
FINANCE_ENTRIES_KEY = "finance_entries"
THEME_KEY = "theme_preference"

# Reserved keys for rollback snapshots
BACKUP_BEFORE_IMPORT_KEY = "backup_before_import"
BACKUP_BEFORE_CLEAR_KEY = "backup_before_clear"

SNAPSHOT_KEYS = frozenset({BACKUP_BEFORE_IMPORT_KEY, BACKUP_BEFORE_CLEAR_KEY})


RecordT = TypeVar("RecordT", bound=BaseModel)


class KeyValueBackend(ABC):
    """
    Abstract interface for the underlying key-value store.

    Values are UTF-8 text. Implementations enforce a capacity limit
    across all keys and raise CapacityError instead of truncating.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored text, or None if the key has never been set
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            CapacityError: If the write would exceed the capacity limit.
                The previous value is left in place.
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Removing a missing key is a no-op."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List all keys currently set."""
        pass

    @abstractmethod
    def usage_bytes(self) -> int:
        """Total encoded size of all keys and values."""
        pass


class RecordCollectionInterface(ABC, Generic[RecordT]):
    """
    Abstract interface for one collection of records.

    Every mutation is a read-modify-write of the whole collection.
    Listing returns records in insertion order.
    """

    @abstractmethod
    def list(self) -> list[RecordT]:
        """
        Return the full persisted sequence.

        Returns:
            All records in insertion order, or an empty list if nothing
            has been stored yet
        """
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[RecordT]:
        """Look up one record by identity."""
        pass

    @abstractmethod
    def replace_all(self, items: Iterable[RecordT]) -> None:
        """
        Overwrite the entire persisted sequence.

        Raises:
            CapacityError: If the serialized collection does not fit
        """
        pass

    @abstractmethod
    def add(self, fields: Union[BaseModel, Mapping[str, Any]]) -> RecordT:
        """
        Create a record from caller-supplied fields.

        Identity and creation time are assigned here; any id or
        createdAt in the input is ignored.

        Returns:
            The new record as persisted

        Raises:
            ValidationError: If the fields do not form a valid record
            DuplicateError: If the generated identity is already taken
            CapacityError: If the collection no longer fits
        """
        pass

    @abstractmethod
    def update(self, record_id: str, changes: Mapping[str, Any]) -> bool:
        """
        Shallow-merge changes over an existing record.

        id and createdAt are never changed. A missing record is a
        silent no-op and nothing is written.

        Returns:
            True if a record was updated

        Raises:
            ValidationError: If the merged record is invalid
            CapacityError: If the collection no longer fits
        """
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """
        Remove the record with this identity.

        Returns:
            True if a record was removed, False if none matched
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a record whose identity already exists."""
    pass


class CapacityError(StorageError):
    """The store refused a write because it would exceed its capacity."""

    def __init__(self, key: str, required_bytes: int, quota_bytes: int):
        self.key = key
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        super().__init__(
            f"Storage quota exceeded writing '{key}': "
            f"{required_bytes} bytes needed, {quota_bytes} bytes available"
        )
