"""Customer document storage package."""

from agency_desk.services.documents.interface import (
    DocumentError,
    DocumentRejectedError,
    DocumentStorageInterface,
    DocumentUploadError,
)
from agency_desk.services.documents.local_store import LocalDocumentStore
from agency_desk.services.documents.cloudinary_store import CloudinaryDocumentStore

__all__ = [
    "CloudinaryDocumentStore",
    "DocumentError",
    "DocumentRejectedError",
    "DocumentStorageInterface",
    "DocumentUploadError",
    "LocalDocumentStore",
]
