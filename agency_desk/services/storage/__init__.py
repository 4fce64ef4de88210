"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Records live in a key-value backend: a directory of files in normal use,
a dict in tests.
"""

from agency_desk.services.storage.interface import (
    BACKUP_BEFORE_CLEAR_KEY,
    BACKUP_BEFORE_IMPORT_KEY,
    CUSTOMERS_KEY,
    FINANCE_ENTRIES_KEY,
    THEME_KEY,
    CapacityError,
    DuplicateError,
    KeyValueBackend,
    NotFoundError,
    RecordCollectionInterface,
    StorageError,
)
from agency_desk.services.storage.backends import FileBackend, InMemoryBackend
from agency_desk.services.storage.record_store import (
    RecordCollection,
    RecordStore,
    new_record_id,
)

__all__ = [
    # Keys
    "BACKUP_BEFORE_CLEAR_KEY",
    "BACKUP_BEFORE_IMPORT_KEY",
    "CUSTOMERS_KEY",
    "FINANCE_ENTRIES_KEY",
    "THEME_KEY",
    # Interfaces
    "KeyValueBackend",
    "RecordCollectionInterface",
    # Exceptions
    "CapacityError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "FileBackend",
    "InMemoryBackend",
    "RecordCollection",
    "RecordStore",
    "new_record_id",
]
