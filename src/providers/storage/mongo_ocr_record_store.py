"""MongoDB-backed OCR record store (collection ``ocr_results``)."""

from __future__ import annotations

from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from src.interfaces.ocr_record_store import IOCRRecordStore
from src.models.ocr import BoundingBox, OCRMetadata, OCRRecord, OCRStatus
from src.providers.storage.mongo_connection import (
    from_bson_datetime,
    run_sync,
    to_bson_datetime,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

_DEFAULT_COLLECTION = "ocr_results"


class MongoOCRRecordStore(IOCRRecordStore):
    """OCR result persistence on a pymongo ``Database``."""

    def __init__(self, database: Database, collection_name: str = _DEFAULT_COLLECTION) -> None:
        self._collection: Collection = database[collection_name]

    async def initialize(self) -> None:
        await run_sync(self._create_indexes)
        logger.info("ocr_record_indexes_ready", collection=self._collection.name)

    def _create_indexes(self) -> None:
        self._collection.create_index("fileId")
        self._collection.create_index([("fileId", ASCENDING), ("processedAt", DESCENDING)])
        self._collection.create_index([("status", ASCENDING), ("processedAt", DESCENDING)])

    async def insert(self, record: OCRRecord) -> OCRRecord:
        result = await run_sync(self._collection.insert_one, _to_document(record))
        return record.model_copy(update={"id": str(result.inserted_id)})

    async def latest_for_file(
        self, file_id: str, language: str | None = None
    ) -> OCRRecord | None:
        criteria: dict[str, Any] = {"fileId": file_id, "status": OCRStatus.COMPLETED.value}
        if language:
            criteria["language"] = language
        doc = await run_sync(
            self._collection.find_one, criteria, sort=[("processedAt", DESCENDING)]
        )
        return _from_document(doc) if doc else None

    async def delete_for_file(self, file_id: str) -> int:
        result = await run_sync(self._collection.delete_many, {"fileId": file_id})
        return result.deleted_count


def _to_document(record: OCRRecord) -> dict[str, Any]:
    meta = record.metadata
    return {
        "fileId": record.file_id,
        "text": record.text,
        "confidence": record.confidence,
        "language": record.language,
        "boundingBoxes": [box.model_dump() for box in record.bounding_boxes],
        "metadata": {
            "processingTime": meta.processing_time,
            "imageWidth": meta.image_width,
            "imageHeight": meta.image_height,
            "detectedLanguages": list(meta.detected_languages),
            "ocrEngine": meta.ocr_engine,
            "version": meta.version,
        },
        "processedAt": to_bson_datetime(record.processed_at),
        "status": record.status.value,
        "error": record.error,
    }


def _from_document(doc: dict[str, Any]) -> OCRRecord:
    meta = doc.get("metadata") or {}
    return OCRRecord(
        id=str(doc["_id"]),
        file_id=doc["fileId"],
        text=doc.get("text", ""),
        confidence=doc.get("confidence", 0.0),
        language=doc.get("language", ""),
        bounding_boxes=[BoundingBox(**box) for box in doc.get("boundingBoxes") or []],
        metadata=OCRMetadata(
            processing_time=meta.get("processingTime", 0),
            image_width=meta.get("imageWidth", 0),
            image_height=meta.get("imageHeight", 0),
            detected_languages=meta.get("detectedLanguages") or [],
            ocr_engine=meta.get("ocrEngine", ""),
            version=meta.get("version", ""),
        ),
        processed_at=from_bson_datetime(doc.get("processedAt")),
        status=OCRStatus(doc.get("status", OCRStatus.COMPLETED.value)),
        error=doc.get("error"),
    )
