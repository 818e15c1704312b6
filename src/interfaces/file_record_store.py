"""Abstract base class for file record persistence.

A file record is the metadata document for one upload (``StoredFile``).
Small payloads are embedded in the record itself; large payloads live in a
blob store (see ``IBlobStore``) and the record only carries the blob id.
Implementations may use MongoDB, an in-memory dict for tests, or any other
document store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from src.models.file import FileQuery, FileStats, FileStatus, StoredFile


# Concrete implementation: MongoFileRecordStore (src/providers/storage/)
# Used by FileStorageService (src/services/file_storage_service.py).
class IFileRecordStore(ABC):
    """Contract for the ``files`` collection.

    Ids are opaque strings.  A malformed id must behave exactly like an
    unknown one (``get`` returns None, ``update`` returns None) so callers
    never have to validate id syntax themselves.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backing store (create indexes). Idempotent."""

    @abstractmethod
    async def insert(self, record: StoredFile) -> StoredFile:
        """Persist *record* and return it with its assigned ``id``.

        When ``record.data`` is set the bytes are stored inline with the
        document and the returned copy still carries them.
        """

    @abstractmethod
    async def get(self, file_id: str, include_data: bool = True) -> StoredFile | None:
        """Return the record for *file_id*, or None when unknown.

        Parameters
        ----------
        file_id:
            Record id.
        include_data:
            When False the inline payload is not loaded (metadata-only reads).
        """

    @abstractmethod
    async def update(self, file_id: str, changes: dict[str, Any]) -> StoredFile | None:
        """Apply *changes* (``StoredFile`` field names) and return the updated record.

        Returns None when no record matched.
        """

    @abstractmethod
    async def find(self, query: FileQuery) -> list[StoredFile]:
        """Return records matching *query* without inline payloads."""

    @abstractmethod
    async def find_stale(self, status: FileStatus, older_than: datetime) -> list[StoredFile]:
        """Return records in *status* uploaded before *older_than*."""

    @abstractmethod
    async def stats(self, recent_since: datetime) -> FileStats:
        """Aggregate statistics over ``completed`` records.

        ``recent_uploads`` counts completed records uploaded at or after
        *recent_since*.
        """
