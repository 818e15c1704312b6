"""Abstract contracts for the storage and OCR backends.

Services in ``src/services/`` depend only on these ABCs; the concrete
adapters live in ``src/providers/`` and are wired in ``src/main.py``.
Unit tests inject fakes or ``MagicMock(spec=...)`` objects in their place.

CONCRETE PROVIDER MAP:
    Interface           →  Concrete implementation (in src/providers/)
    ─────────────────────────────────────────────────────────────────
    IFileRecordStore    →  MongoFileRecordStore   (storage/)
    IBlobStore          →  GridFSBlobStore        (storage/)
    IOCRRecordStore     →  MongoOCRRecordStore    (storage/)
    IFragmentStore      →  MongoFragmentStore     (fragment/)
    IOCRProvider        →  TesseractOCRProvider   (ocr/)
"""

from src.interfaces.blob_store import IBlobStore
from src.interfaces.file_record_store import IFileRecordStore
from src.interfaces.fragment_store import IFragmentStore
from src.interfaces.ocr_provider import IOCRProvider
from src.interfaces.ocr_record_store import IOCRRecordStore

__all__ = [
    "IBlobStore",
    "IFileRecordStore",
    "IFragmentStore",
    "IOCRProvider",
    "IOCRRecordStore",
]
