"""Unit tests for the MongoDB adapters (mongomock) and connection helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from src.models.file import FileQuery, FileStatus, StoredFile
from src.models.fragment import FragmentSource, KnowledgeFragment
from src.models.ocr import BoundingBox, OCRMetadata, OCRRecord
from src.providers.storage.mongo_connection import (
    MongoConnection,
    from_bson_datetime,
    parse_object_id,
    run_sync,
    to_bson_datetime,
)
from src.utils.errors import StorageError
from tests.conftest import FIXED_NOW


def _stored(**overrides) -> StoredFile:
    fields = {
        "filename": "1700000000000_abcdefghijklm.png",
        "original_name": "diagram.png",
        "mimetype": "image/png",
        "size": 3,
        "uploaded_at": FIXED_NOW,
        "status": FileStatus.COMPLETED,
        "metadata": {"width": 10, "height": 20, "tags": ["a"]},
    }
    fields.update(overrides)
    return StoredFile(**fields)


# ======================================================================
# Connection helpers
# ======================================================================


class TestConnectionHelpers:
    def test_parse_object_id(self) -> None:
        oid = ObjectId()
        assert parse_object_id(str(oid)) == oid
        assert parse_object_id("xyz") is None
        assert parse_object_id("") is None
        assert parse_object_id(None) is None

    def test_bson_datetime_round_trip(self) -> None:
        aware = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=8)))
        stored = to_bson_datetime(aware)
        assert stored.tzinfo is None
        assert stored == datetime(2026, 1, 1, 19, 4, 5)
        assert from_bson_datetime(stored) == aware
        assert from_bson_datetime(None) is None

    @pytest.mark.asyncio
    async def test_run_sync_translates_driver_errors(self) -> None:
        def boom() -> None:
            raise OperationFailure("not authorized")

        with pytest.raises(StorageError) as exc_info:
            await run_sync(boom)
        assert exc_info.value.provider_name == "mongodb"

    @pytest.mark.asyncio
    async def test_run_sync_returns_value(self) -> None:
        assert await run_sync(lambda a, b=0: a + b, 2, b=3) == 5


class TestMongoConnection:
    @pytest.mark.asyncio
    async def test_ping_ok(self) -> None:
        client = MagicMock()
        client.admin.command.return_value = {"ok": 1}
        conn = MongoConnection("mongodb://unused", "kv", client=client)
        assert await conn.ping() is True
        client.admin.command.assert_called_once_with("ping")

    @pytest.mark.asyncio
    async def test_ping_failure_returns_false(self) -> None:
        client = MagicMock()
        client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
        conn = MongoConnection("mongodb://unused", "kv", client=client)
        assert await conn.ping() is False

    def test_database_and_close(self, mongo_client) -> None:
        conn = MongoConnection("mongodb://unused", "kv", client=mongo_client)
        assert conn.database.name == "kv"
        assert conn.database_name == "kv"
        conn.close()
        assert conn._client is None


# ======================================================================
# File records
# ======================================================================


class TestMongoFileRecordStore:
    @pytest.mark.asyncio
    async def test_initialize_creates_indexes(self, file_record_store, mongo_db) -> None:
        await file_record_store.initialize()
        keys = [list(info["key"]) for info in mongo_db["files"].index_information().values()]
        assert [("status", 1), ("uploadedAt", -1)] in keys
        assert [("gridfsId", 1)] in keys

    @pytest.mark.asyncio
    async def test_insert_and_get_with_and_without_data(self, file_record_store) -> None:
        saved = await file_record_store.insert(_stored().with_data(b"abc"))

        full = await file_record_store.get(saved.id)
        assert full.data == b"abc"
        assert full.has_inline_data
        assert full.metadata == {"width": 10, "height": 20, "tags": ["a"]}
        assert full.uploaded_at == FIXED_NOW

        light = await file_record_store.get(saved.id, include_data=False)
        assert light.data is None
        assert light.has_inline_data

    @pytest.mark.asyncio
    async def test_listing_reports_storage_path_without_loading_bytes(
        self, file_record_store, mongo_db
    ) -> None:
        inline = await file_record_store.insert(_stored(filename="a.png").with_data(b"abc"))
        blob = await file_record_store.insert(_stored(filename="b.png", size=4096))
        await file_record_store.update(blob.id, {"gridfs_id": "blob-1"})

        found = {f.id: f for f in await file_record_store.find(FileQuery())}
        assert found[inline.id].has_inline_data is True
        assert found[inline.id].data is None
        assert found[blob.id].has_inline_data is False
        assert mongo_db["files"].find_one({"_id": ObjectId(inline.id)})["hasInlineData"] is True

    @pytest.mark.asyncio
    async def test_update_returns_new_state(self, file_record_store, mongo_db) -> None:
        saved = await file_record_store.insert(_stored(status=FileStatus.UPLOADING))
        updated = await file_record_store.update(
            saved.id, {"status": FileStatus.COMPLETED, "gridfs_id": "blob-1"}
        )
        assert updated.status == FileStatus.COMPLETED
        assert updated.gridfs_id == "blob-1"
        doc = mongo_db["files"].find_one({"_id": ObjectId(saved.id)})
        assert doc["gridfsId"] == "blob-1"
        assert doc["status"] == "completed"

    @pytest.mark.asyncio
    async def test_update_unknown_returns_none(self, file_record_store) -> None:
        assert await file_record_store.update(str(ObjectId()), {"status": FileStatus.ERROR}) is None
        assert await file_record_store.update("bad-id", {"status": FileStatus.ERROR}) is None

    @pytest.mark.asyncio
    async def test_mimetype_filter_is_regex_escaped(self, file_record_store) -> None:
        await file_record_store.insert(_stored(mimetype="image/svg+xml"))
        await file_record_store.insert(_stored(mimetype="image/svgxxml"))

        found = await file_record_store.find(FileQuery(mimetype="svg+xml"))
        assert [f.mimetype for f in found] == ["image/svg+xml"]


# ======================================================================
# OCR records
# ======================================================================


class TestMongoOCRRecordStore:
    @pytest.mark.asyncio
    async def test_document_shape(self, ocr_record_store, mongo_db) -> None:
        await ocr_record_store.insert(
            OCRRecord(
                file_id="f1",
                text="hello",
                confidence=88.0,
                language="eng",
                bounding_boxes=[BoundingBox(text="hello", x=1, y=2, width=3, height=4, confidence=88)],
                metadata=OCRMetadata(processing_time=50, image_width=640, image_height=480,
                                     detected_languages=["eng"], version="5.3.0"),
                processed_at=FIXED_NOW,
            )
        )
        doc = mongo_db["ocr_results"].find_one({"fileId": "f1"})
        assert doc["metadata"]["imageWidth"] == 640
        assert doc["metadata"]["ocrEngine"] == "tesseract"
        assert doc["boundingBoxes"][0]["x"] == 1
        assert doc["status"] == "completed"

        record = await ocr_record_store.latest_for_file("f1")
        assert record.bounding_boxes[0].text == "hello"
        assert record.metadata.detected_languages == ["eng"]

    @pytest.mark.asyncio
    async def test_delete_for_file_counts(self, ocr_record_store) -> None:
        for _ in range(3):
            await ocr_record_store.insert(OCRRecord(file_id="f2", text="t", processed_at=FIXED_NOW))
        await ocr_record_store.insert(OCRRecord(file_id="other", text="t", processed_at=FIXED_NOW))

        assert await ocr_record_store.delete_for_file("f2") == 3
        assert await ocr_record_store.latest_for_file("f2") is None
        assert await ocr_record_store.latest_for_file("other") is not None


# ======================================================================
# Fragments
# ======================================================================


class TestMongoFragmentStore:
    @staticmethod
    def _fragment(title: str, minutes_ago: int, **overrides) -> KnowledgeFragment:
        created = FIXED_NOW - timedelta(minutes=minutes_ago)
        fields = {
            "title": title,
            "content": f"{title} body",
            "tags": ["notes"],
            "created_at": created,
            "updated_at": created,
        }
        fields.update(overrides)
        return KnowledgeFragment(**fields)

    @pytest.mark.asyncio
    async def test_insert_get_delete(self, fragment_store) -> None:
        saved = await fragment_store.insert(
            self._fragment("ocr note", 0, source=FragmentSource.OCR, source_file_id="f1",
                           ocr_confidence=77.0, language="eng")
        )
        fetched = await fragment_store.get(saved.id)
        assert fetched == saved

        assert await fragment_store.delete(saved.id) is True
        assert await fragment_store.get(saved.id) is None
        assert await fragment_store.delete(saved.id) is False
        assert await fragment_store.delete("bad-id") is False

    @pytest.mark.asyncio
    async def test_list_filters_and_orders(self, fragment_store) -> None:
        await fragment_store.insert(self._fragment("oldest", 30))
        await fragment_store.insert(self._fragment("newest", 1, tags=["notes", "ocr"], source_file_id="f9"))
        await fragment_store.insert(self._fragment("middle", 10, tags=["misc"]))

        assert [f.title for f in await fragment_store.list()] == ["newest", "middle", "oldest"]
        assert [f.title for f in await fragment_store.list(tag="notes")] == ["newest", "oldest"]
        assert [f.title for f in await fragment_store.list(source_file_id="f9")] == ["newest"]
        assert [f.title for f in await fragment_store.list(limit=1, skip=1)] == ["middle"]
