"""Services package."""

from agency_desk.services.backup import BackupDocument, BackupService, FormatError
from agency_desk.services.documents import (
    CloudinaryDocumentStore,
    DocumentError,
    DocumentRejectedError,
    DocumentStorageInterface,
    DocumentUploadError,
    LocalDocumentStore,
)
from agency_desk.services.storage import (
    CapacityError,
    DuplicateError,
    FileBackend,
    InMemoryBackend,
    KeyValueBackend,
    NotFoundError,
    RecordStore,
    StorageError,
)

__all__ = [
    # Backup
    "BackupDocument",
    "BackupService",
    "FormatError",
    # Document services
    "CloudinaryDocumentStore",
    "DocumentError",
    "DocumentRejectedError",
    "DocumentStorageInterface",
    "DocumentUploadError",
    "LocalDocumentStore",
    # Storage services
    "CapacityError",
    "DuplicateError",
    "FileBackend",
    "InMemoryBackend",
    "KeyValueBackend",
    "NotFoundError",
    "RecordStore",
    "StorageError",
]
