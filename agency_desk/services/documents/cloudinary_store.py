"""
Document Storage using Cloudinary

DESIGN DECISION: We use Cloudinary because:
1. Reliable cloud infrastructure
2. Simple API
3. Documents stay reachable from any machine that opens the dashboard
4. Free tier sufficient for a small office

Documents are uploaded as "raw" resources so PDFs and scans are stored
byte for byte, without image transformations.

Uploads are retried (network hiccups are common on office connections).
Rejected files are never retried.
"""

import hashlib
from typing import Iterable, Optional
from uuid import uuid4

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from agency_desk.config import CloudinarySettings
from agency_desk.models.records import StoredDocument
from agency_desk.services.documents.interface import (
    DocumentStorageInterface,
    DocumentUploadError,
)


logger = structlog.get_logger(__name__)


class CloudinaryDocumentStore(DocumentStorageInterface):
    """
    Document store backed by Cloudinary.

    Flow:
    1. Check the file type and size locally
    2. Upload the bytes as a raw resource under the configured folder
    3. Return the secure URL
    """

    def __init__(
        self,
        settings: CloudinarySettings,
        allowed_extensions: Iterable[str],
        max_size_bytes: int,
    ):
        super().__init__(allowed_extensions, max_size_bytes)
        self._settings = settings
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _generate_public_id(self, filename: str, extension: str, upload_id: Optional[str] = None) -> str:
        """
        Generate a unique public ID for Cloudinary.

        Format: {upload_id}_{filename_hash}.{extension}

        Raw resources keep the extension in the public ID so the
        downloaded file opens with the right application.
        """
        upload_id = upload_id or uuid4().hex
        filename_hash = hashlib.md5(filename.encode()).hexdigest()[:8]
        return f"{upload_id}_{filename_hash}.{extension}"

    @retry(
        retry=retry_if_exception_type(DocumentUploadError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upload_bytes(self, content: bytes, public_id: str) -> str:
        self._configure()
        try:
            result = cloudinary.uploader.upload(
                content,
                public_id=public_id,
                folder=self._settings.folder,
                resource_type="raw",
            )
        except cloudinary.exceptions.Error as e:
            raise DocumentUploadError(f"Cloudinary error: {e}") from e

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise DocumentUploadError("No URL returned from Cloudinary")
        return url

    def upload(self, content: bytes, filename: str) -> StoredDocument:
        """
        Upload a customer document.

        Raises:
            DocumentRejectedError: If the file type or size is not accepted
            DocumentUploadError: If Cloudinary fails after all retries
        """
        extension = self.check_document(content, filename)
        public_id = self._generate_public_id(filename, extension)

        url = self._upload_bytes(content, public_id)

        logger.info("document_uploaded", public_id=public_id, size=len(content))
        return StoredDocument(url=url, name=filename)
