"""
Abstract Document Storage Interface

Customer documents (passport scans, medical certificates) are kept apart
from the record store. A customer record only holds the returned locator
and the display name.

DESIGN DECISION: Locators are NOT assumed to stay valid forever. A remote
store may expire or delete them, and a local path may be moved. The UI
shows the link and lets the user re-upload.
"""

from abc import ABC, abstractmethod
from pathlib import PurePath
from typing import Iterable, Optional

from agency_desk.models.records import StoredDocument


class DocumentError(Exception):
    """Base exception for document storage errors."""
    pass


class DocumentRejectedError(DocumentError):
    """The file is not an accepted type or is too large."""
    pass


class DocumentUploadError(DocumentError):
    """The file was accepted but could not be stored."""
    pass


class DocumentStorageInterface(ABC):
    """
    Abstract interface for storing uploaded documents.

    Implementations call check_document() before storing anything.
    """

    def __init__(
        self,
        allowed_extensions: Iterable[str],
        max_size_bytes: int,
    ):
        self._allowed_extensions = {
            ext.lower().lstrip(".") for ext in allowed_extensions
        }
        self._max_size_bytes = max_size_bytes

    @property
    def allowed_extensions(self) -> list[str]:
        return sorted(self._allowed_extensions)

    def check_document(self, content: bytes, filename: str) -> str:
        """
        Reject files that must not be stored.

        Returns:
            The lower-cased extension without the dot

        Raises:
            DocumentRejectedError: Empty, too large or of a type not accepted
        """
        extension = _extension(filename)
        if extension is None or extension not in self._allowed_extensions:
            allowed = ", ".join(f".{ext}" for ext in self.allowed_extensions)
            raise DocumentRejectedError(
                f"{filename!r} is not an accepted document type ({allowed})"
            )
        if not content:
            raise DocumentRejectedError(f"{filename!r} is empty")
        if len(content) > self._max_size_bytes:
            limit_mb = self._max_size_bytes / (1024 * 1024)
            raise DocumentRejectedError(
                f"{filename!r} is larger than the {limit_mb:g} MB limit"
            )
        return extension

    @abstractmethod
    def upload(self, content: bytes, filename: str) -> StoredDocument:
        """
        Store a document.

        Args:
            content: Raw file bytes
            filename: Original file name, shown to the user

        Returns:
            StoredDocument with a locator and the display name

        Raises:
            DocumentRejectedError: If the file fails check_document()
            DocumentUploadError: If storing failed
        """
        pass


def _extension(filename: str) -> Optional[str]:
    suffix = PurePath(filename).suffix
    if not suffix:
        return None
    return suffix[1:].lower()
