"""Abstract base class for large-payload blob storage.

Payloads above the inline threshold are written here in full and referenced
from their file record by id.  Chunking, checksums and streaming are the
backend's business (GridFS splits blobs into 255 KiB chunks).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: GridFSBlobStore (src/providers/storage/)
class IBlobStore(ABC):
    """Contract for a named-blob bucket."""

    @abstractmethod
    async def put(self, filename: str, data: bytes, metadata: dict[str, Any]) -> str:
        """Store *data* under *filename* and return the new blob id.

        Raises
        ------
        src.utils.errors.StorageError
            If the backend rejects the write.
        """

    @abstractmethod
    async def get(self, blob_id: str) -> bytes:
        """Return the full payload of *blob_id*.

        Raises
        ------
        src.utils.errors.StorageError
            If the blob is missing or cannot be read.
        """

    @abstractmethod
    async def delete(self, blob_id: str) -> None:
        """Remove *blob_id* and all of its chunks."""

    @abstractmethod
    def get_bucket_name(self) -> str:
        """Return the bucket name, e.g. ``"uploads"``."""
