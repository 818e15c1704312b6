"""Shared pytest fixtures for the knowledgeVault test suite."""

from __future__ import annotations

import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import mongomock
import pytest
from bson import ObjectId
from PIL import Image, ImageDraw

from src.interfaces.blob_store import IBlobStore
from src.interfaces.ocr_provider import IOCRProvider
from src.models.ocr import OCROptions, OCRResult, TextRegion
from src.providers.fragment.mongo_fragment_store import MongoFragmentStore
from src.providers.storage.mongo_file_record_store import MongoFileRecordStore
from src.providers.storage.mongo_ocr_record_store import MongoOCRRecordStore
from src.services.file_storage_service import FileStorageService
from src.services.fragment_service import FragmentService
from src.utils.errors import StorageError

# Inline/GridFS boundary used by the storage fixtures: small enough that a
# few KB of test bytes exercise the GridFS path.
TEST_DIRECT_THRESHOLD = 1024

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)  # noqa: UP017


def make_image_bytes(
    width: int = 200,
    height: int = 100,
    fmt: str = "PNG",
    color: tuple[int, int, int] = (255, 255, 255),
) -> bytes:
    """Create an in-memory image with a dark bar so it is not blank."""
    img = Image.new("RGB", (width, height), color)
    draw = ImageDraw.Draw(img)
    draw.rectangle([width // 10, height // 3, width // 2, height // 2], fill=(0, 0, 0))
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class InMemoryBlobStore(IBlobStore):
    """Dict-backed blob store; ``fail_puts`` / ``fail_gets`` simulate GridFS errors."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.metadata: dict[str, dict[str, Any]] = {}
        self.fail_puts = False
        self.fail_gets = False

    async def put(self, filename: str, data: bytes, metadata: dict[str, Any]) -> str:
        if self.fail_puts:
            raise StorageError("connection reset", provider_name="gridfs")
        blob_id = str(ObjectId())
        self.blobs[blob_id] = data
        self.metadata[blob_id] = {"filename": filename, **metadata}
        return blob_id

    async def get(self, blob_id: str) -> bytes:
        if self.fail_gets or blob_id not in self.blobs:
            raise StorageError(f"Blob {blob_id} not found", provider_name="gridfs")
        return self.blobs[blob_id]

    async def delete(self, blob_id: str) -> None:
        self.blobs.pop(blob_id, None)

    def get_bucket_name(self) -> str:
        return "uploads"


class FakeOCRProvider(IOCRProvider):
    """Scripted OCR provider; records every call in ``calls``."""

    def __init__(
        self,
        name: str = "fake",
        text: str = "会议纪要\nShip the upload API",
        confidence: float = 85.0,
        available: bool = True,
        error: Exception | None = None,
        version: str = "1.0",
    ) -> None:
        self.name = name
        self.text = text
        self.confidence = confidence
        self.available = available
        self.error = error
        self.version = version
        self.calls: list[OCROptions] = []

    async def extract_text(self, image_data: bytes, options: OCROptions) -> OCRResult:
        self.calls.append(options)
        if self.error is not None:
            raise self.error
        return OCRResult(
            text=self.text,
            confidence=self.confidence,
            provider_used=self.name,
            processing_time_ms=12,
            language=options.language,
            words=[TextRegion(text="会议纪要", confidence=0.9, x=1, y=2, width=30, height=10)],
            image_width=200,
            image_height=100,
        )

    def get_provider_name(self) -> str:
        return self.name

    def is_available(self) -> bool:
        return self.available

    def get_version(self) -> str:
        return self.version


# ---------------------------------------------------------------------------
# Paths / images
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


# ---------------------------------------------------------------------------
# MongoDB (mongomock)
# ---------------------------------------------------------------------------


@pytest.fixture
def mongo_client() -> mongomock.MongoClient:
    return mongomock.MongoClient()


@pytest.fixture
def mongo_db(mongo_client: mongomock.MongoClient):
    return mongo_client["knowledge_vault_test"]


@pytest.fixture
def file_record_store(mongo_db) -> MongoFileRecordStore:
    return MongoFileRecordStore(mongo_db)


@pytest.fixture
def ocr_record_store(mongo_db) -> MongoOCRRecordStore:
    return MongoOCRRecordStore(mongo_db)


@pytest.fixture
def fragment_store(mongo_db) -> MongoFragmentStore:
    return MongoFragmentStore(mongo_db)


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def storage_service(
    file_record_store: MongoFileRecordStore,
    blob_store: InMemoryBlobStore,
    ocr_record_store: MongoOCRRecordStore,
) -> FileStorageService:
    return FileStorageService(
        record_store=file_record_store,
        blob_store=blob_store,
        ocr_record_store=ocr_record_store,
        direct_storage_threshold=TEST_DIRECT_THRESHOLD,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def fragment_service(fragment_store: MongoFragmentStore) -> FragmentService:
    return FragmentService(fragment_store, clock=lambda: FIXED_NOW)
