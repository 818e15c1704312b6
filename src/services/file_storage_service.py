"""File storage service with a dual-path persistence strategy.

Small payloads are embedded directly in their file record; larger ones are
streamed into a GridFS bucket and the record keeps only the blob id.

# ─── UPLOAD PATHS (Junior Developer Guide) ─────────────────────────────
#
#   size <= direct_storage_threshold (1 MiB)      → INLINE
#       one insert: record + bytes, status=completed
#
#   size >  direct_storage_threshold              → GRIDFS
#       1. insert record, status=uploading
#       2. write bytes to the blob store
#          (failure → record status=error, StorageError raised)
#       3. update record: gridfs_id=<blob id>, status=completed
#
# A record left in ``uploading`` means step 2 or 3 never finished (process
# crash, lost connection).  cleanup_expired_uploads() sweeps those.
#
# Reads only serve ``completed`` records.  Deletes are soft: the blob and
# the OCR records go away, the file record stays with status=deleted.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from src.interfaces.blob_store import IBlobStore
from src.interfaces.file_record_store import IFileRecordStore
from src.interfaces.ocr_record_store import IOCRRecordStore
from src.models.file import FileQuery, FileStats, FileStatus, StoredFile
from src.models.ocr import BoundingBox, OCRMetadata, OCRRecord, OCRStatus
from src.utils.errors import (
    FileMissingError,
    FileStateError,
    FileTooLargeError,
    KnowledgeVaultError,
    StorageError,
    UnsupportedFileTypeError,
)
from src.utils.formatting import format_megabytes
from src.utils.logging import get_logger

_MIB = 1024 * 1024
_DEFAULT_MAX_SIZE = 10 * _MIB
_DEFAULT_DIRECT_STORAGE_THRESHOLD = 1 * _MIB
_RANDOM_ALPHABET = string.digits + string.ascii_lowercase
_RANDOM_LENGTH = 13
_RECENT_WINDOW = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class FileStorageService:
    """Uploads, downloads, soft-deletes and reports on stored files.

    Also owns OCR record persistence for stored files, since OCR records
    are removed together with their file.
    """

    def __init__(
        self,
        record_store: IFileRecordStore,
        blob_store: IBlobStore,
        ocr_record_store: IOCRRecordStore,
        max_size: int = _DEFAULT_MAX_SIZE,
        direct_storage_threshold: int = _DEFAULT_DIRECT_STORAGE_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._records = record_store
        self._blobs = blob_store
        self._ocr_records = ocr_record_store
        self._max_size = max_size
        self._direct_storage_threshold = direct_storage_threshold
        self._clock = clock
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        data: bytes,
        original_name: str,
        mimetype: str,
        *,
        max_size: int | None = None,
        direct_storage_threshold: int | None = None,
        allowed_mime_types: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        uploaded_by: str | None = None,
    ) -> StoredFile:
        """Validate and persist one file.

        Raises:
            FileTooLargeError: ``len(data)`` exceeds *max_size*.
            UnsupportedFileTypeError: *mimetype* is not in *allowed_mime_types*.
            StorageError: Any backend failure while persisting.
        """
        max_size = self._max_size if max_size is None else max_size
        threshold = (
            self._direct_storage_threshold
            if direct_storage_threshold is None
            else direct_storage_threshold
        )
        metadata = dict(metadata or {})

        if len(data) > max_size:
            raise FileTooLargeError(f"File size exceeds the limit ({format_megabytes(max_size)})")

        if allowed_mime_types is not None and mimetype not in allowed_mime_types:
            raise UnsupportedFileTypeError(f"Unsupported file type: {mimetype}")

        filename = self.generate_storage_name(original_name)
        record = StoredFile(
            filename=filename,
            original_name=original_name,
            mimetype=mimetype,
            size=len(data),
            uploaded_at=self._clock(),
            uploaded_by=uploaded_by,
            metadata=metadata,
            status=FileStatus.UPLOADING,
        )

        try:
            if len(data) <= threshold:
                inline = record.model_copy(update={"status": FileStatus.COMPLETED}).with_data(data)
                saved = await self._records.insert(inline)
                self._logger.info(
                    "file_uploaded",
                    file_id=saved.id,
                    storage="inline",
                    mimetype=mimetype,
                    size=len(data),
                )
                return saved

            return await self._upload_to_blob_store(record, data)

        except StorageError as exc:
            self._logger.error("file_upload_failed", filename=filename, error=str(exc))
            raise StorageError(
                f"File upload failed: {exc.message}", provider_name=exc.provider_name
            ) from exc

    async def _upload_to_blob_store(self, record: StoredFile, data: bytes) -> StoredFile:
        saved = await self._records.insert(record)

        blob_metadata = {
            "file_doc_id": saved.id,
            "original_name": record.original_name,
            "mimetype": record.mimetype,
            "uploaded_by": record.uploaded_by,
            **record.metadata,
        }
        try:
            blob_id = await self._blobs.put(record.filename, data, blob_metadata)
        except StorageError as exc:
            await self._mark_error(saved.id, exc.message)
            raise

        updated = await self._records.update(
            saved.id, {"gridfs_id": blob_id, "status": FileStatus.COMPLETED}
        )
        if updated is None:
            raise StorageError("upload finished but record update failed")

        self._logger.info(
            "file_uploaded",
            file_id=updated.id,
            storage="gridfs",
            bucket=self._blobs.get_bucket_name(),
            mimetype=record.mimetype,
            size=len(data),
        )
        return updated

    async def _mark_error(self, file_id: str, message: str) -> None:
        try:
            await self._records.update(file_id, {"status": FileStatus.ERROR, "error": message})
        except StorageError as exc:
            self._logger.error("file_mark_error_failed", file_id=file_id, error=str(exc))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_file(self, file_id: str) -> tuple[StoredFile, bytes]:
        """Return the record and its full payload.

        Raises:
            FileMissingError: Unknown id, or a record with no data anywhere.
            FileStateError: The record is not ``completed``.
            StorageError: The GridFS download failed.
        """
        record = await self._load_completed(file_id, include_data=True)

        if record.data is not None:
            return record, record.data

        if record.gridfs_id:
            try:
                data = await self._blobs.get(record.gridfs_id)
            except StorageError as exc:
                raise StorageError(
                    f"File download failed: {exc.message}", provider_name=exc.provider_name
                ) from exc
            return record, data

        raise FileMissingError("file data does not exist")

    async def get_file_info(self, file_id: str) -> StoredFile:
        """Metadata only; same existence and status rules as :meth:`get_file`."""
        return await self._load_completed(file_id, include_data=False)

    async def _load_completed(self, file_id: str, include_data: bool) -> StoredFile:
        record = await self._records.get(file_id, include_data=include_data)
        if record is None:
            raise FileMissingError("File does not exist")
        if record.status != FileStatus.COMPLETED:
            raise FileStateError(f"file status is {record.status.value}")
        return record

    async def query_files(self, query: FileQuery | None = None) -> list[StoredFile]:
        return await self._records.find(query or FileQuery())

    async def get_file_stats(self) -> FileStats:
        return await self._records.stats(self._clock() - _RECENT_WINDOW)

    # ------------------------------------------------------------------
    # Delete / maintenance
    # ------------------------------------------------------------------

    async def delete_file(self, file_id: str) -> bool:
        """Soft-delete a file.

        Removes the GridFS blob (if any) and every OCR record of the file,
        then marks the record ``deleted``.  Returns False for unknown ids and
        when a backend call fails.
        """
        record = await self._records.get(file_id, include_data=False)
        if record is None:
            return False

        try:
            if record.gridfs_id:
                await self._blobs.delete(record.gridfs_id)
            removed = await self._ocr_records.delete_for_file(file_id)
            await self._records.update(file_id, {"status": FileStatus.DELETED})
        except StorageError as exc:
            self._logger.error("file_delete_failed", file_id=file_id, error=str(exc))
            return False

        self._logger.info("file_deleted", file_id=file_id, ocr_records_removed=removed)
        return True

    async def cleanup_expired_uploads(self, hours_old: float = 24) -> int:
        """Delete records stuck in ``uploading`` for longer than *hours_old*.

        Returns the number of records cleaned up.
        """
        cutoff = self._clock() - timedelta(hours=hours_old)
        stale = await self._records.find_stale(FileStatus.UPLOADING, cutoff)

        cleaned = 0
        for record in stale:
            try:
                if await self.delete_file(record.id):
                    cleaned += 1
            except KnowledgeVaultError as exc:
                self._logger.warning("expired_upload_cleanup_failed", file_id=record.id, error=str(exc))

        self._logger.info(
            "expired_uploads_cleaned", candidates=len(stale), cleaned=cleaned, hours_old=hours_old
        )
        return cleaned

    # ------------------------------------------------------------------
    # OCR records
    # ------------------------------------------------------------------

    async def save_ocr_result(
        self,
        file_id: str,
        text: str,
        confidence: float,
        language: str,
        metadata: OCRMetadata,
        bounding_boxes: list[BoundingBox] | None = None,
    ) -> OCRRecord:
        record = OCRRecord(
            file_id=file_id,
            text=text,
            confidence=confidence,
            language=language,
            bounding_boxes=bounding_boxes or [],
            metadata=metadata,
            processed_at=self._clock(),
            status=OCRStatus.COMPLETED,
        )
        saved = await self._ocr_records.insert(record)
        self._logger.info(
            "ocr_result_saved",
            file_id=file_id,
            ocr_record_id=saved.id,
            confidence=confidence,
            language=language,
        )
        return saved

    async def get_ocr_result(self, file_id: str, language: str | None = None) -> OCRRecord | None:
        """Most recent completed OCR record for the file (optionally per language)."""
        return await self._ocr_records.latest_for_file(file_id, language)

    # ------------------------------------------------------------------
    # Naming helpers
    # ------------------------------------------------------------------

    @staticmethod
    def get_file_extension(name: str) -> str:
        """``"notes.tar.gz"`` → ``".gz"``; no dot → ``""``."""
        index = name.rfind(".")
        return name[index:] if index >= 0 else ""

    def generate_storage_name(self, original_name: str) -> str:
        """``<epoch-millis>_<13 base-36 chars><ext>``."""
        millis = int(time.time() * 1000)
        token = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(_RANDOM_LENGTH))
        return f"{millis}_{token}{self.get_file_extension(original_name)}"
