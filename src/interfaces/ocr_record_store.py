"""Abstract base class for persisted OCR results."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.ocr import OCRRecord


# Concrete implementation: MongoOCRRecordStore (src/providers/storage/)
class IOCRRecordStore(ABC):
    """Contract for the ``ocr_results`` collection.

    Several records may exist per file (re-runs, other languages); readers
    want the most recent completed one.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create indexes. Idempotent."""

    @abstractmethod
    async def insert(self, record: OCRRecord) -> OCRRecord:
        """Persist *record* and return it with its assigned ``id``."""

    @abstractmethod
    async def latest_for_file(
        self, file_id: str, language: str | None = None
    ) -> OCRRecord | None:
        """Return the newest completed record for *file_id*.

        When *language* is given only records produced with that exact
        language string are considered.
        """

    @abstractmethod
    async def delete_for_file(self, file_id: str) -> int:
        """Delete every record for *file_id*; return how many were removed."""
