"""
Local Document Store

Keeps uploaded documents in a directory next to the record data and
returns file:// locators. Used when no Cloudinary account is configured.
"""

import re
from pathlib import Path
from typing import Iterable, Union
from uuid import uuid4

import structlog

from agency_desk.models.records import StoredDocument
from agency_desk.services.documents.interface import (
    DocumentStorageInterface,
    DocumentUploadError,
)


logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LocalDocumentStore(DocumentStorageInterface):
    """Writes each upload to its own file under a directory."""

    def __init__(
        self,
        directory: Union[str, Path],
        allowed_extensions: Iterable[str],
        max_size_bytes: int,
    ):
        super().__init__(allowed_extensions, max_size_bytes)
        self._directory = Path(directory)

    def _stored_name(self, filename: str) -> str:
        # Prefix keeps two uploads of "passport.pdf" apart
        safe = _UNSAFE_CHARS.sub("_", Path(filename).name).strip("._") or "document"
        return f"{uuid4().hex[:12]}_{safe}"

    def upload(self, content: bytes, filename: str) -> StoredDocument:
        self.check_document(content, filename)

        path = self._directory / self._stored_name(filename)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise DocumentUploadError(f"Could not save {filename!r}: {e}") from e

        logger.info("document_saved", path=str(path), size=len(content))
        return StoredDocument(url=path.resolve().as_uri(), name=filename)
