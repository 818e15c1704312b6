"""MongoDB-backed file record store (collection ``files``).

Documents use camelCase field names (``originalName``, ``uploadedAt``,
``gridfsId``) so the collection stays readable by other tools sharing the
database.  Small payloads are embedded in the ``data`` field; large ones
only carry ``gridfsId``.  ``hasInlineData`` records which path was taken so
reads that project ``data`` out still report it.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from src.interfaces.file_record_store import IFileRecordStore
from src.models.file import FileQuery, FileStats, FileStatus, StoredFile
from src.providers.storage.mongo_connection import (
    from_bson_datetime,
    parse_object_id,
    run_sync,
    to_bson_datetime,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

_DEFAULT_COLLECTION = "files"

# StoredFile field -> document field
_FIELD_MAP: dict[str, str] = {
    "filename": "filename",
    "original_name": "originalName",
    "mimetype": "mimetype",
    "size": "size",
    "encoding": "encoding",
    "uploaded_at": "uploadedAt",
    "uploaded_by": "uploadedBy",
    "metadata": "metadata",
    "gridfs_id": "gridfsId",
    "status": "status",
    "error": "error",
}

_SINGLE_INDEXES = ("filename", "mimetype", "uploadedAt", "uploadedBy", "gridfsId", "status")
_COMPOUND_INDEXES = (
    [("filename", ASCENDING), ("uploadedAt", DESCENDING)],
    [("mimetype", ASCENDING), ("size", DESCENDING)],
    [("status", ASCENDING), ("uploadedAt", DESCENDING)],
)


class MongoFileRecordStore(IFileRecordStore):
    """File metadata persistence on a pymongo ``Database``."""

    def __init__(self, database: Database, collection_name: str = _DEFAULT_COLLECTION) -> None:
        self._collection: Collection = database[collection_name]

    async def initialize(self) -> None:
        await run_sync(self._create_indexes)
        logger.info("file_record_indexes_ready", collection=self._collection.name)

    def _create_indexes(self) -> None:
        for field in _SINGLE_INDEXES:
            self._collection.create_index(field)
        for keys in _COMPOUND_INDEXES:
            self._collection.create_index(keys)

    async def insert(self, record: StoredFile) -> StoredFile:
        doc = _to_document(record)
        if record.data is not None:
            doc["data"] = record.data
        result = await run_sync(self._collection.insert_one, doc)
        return record.model_copy(update={"id": str(result.inserted_id)}).with_data(record.data)

    async def get(self, file_id: str, include_data: bool = True) -> StoredFile | None:
        oid = parse_object_id(file_id)
        if oid is None:
            return None
        projection = None if include_data else {"data": 0}
        doc = await run_sync(self._collection.find_one, {"_id": oid}, projection)
        return _from_document(doc) if doc else None

    async def update(self, file_id: str, changes: dict[str, Any]) -> StoredFile | None:
        oid = parse_object_id(file_id)
        if oid is None:
            return None
        doc = await run_sync(
            self._collection.find_one_and_update,
            {"_id": oid},
            {"$set": _to_update(changes)},
            projection={"data": 0},
            return_document=ReturnDocument.AFTER,
        )
        return _from_document(doc) if doc else None

    async def find(self, query: FileQuery) -> list[StoredFile]:
        return await run_sync(self._find, query)

    def _find(self, query: FileQuery) -> list[StoredFile]:
        criteria: dict[str, Any] = {"status": query.status.value}
        if query.mimetype:
            criteria["mimetype"] = {"$regex": re.escape(query.mimetype), "$options": "i"}
        if query.uploaded_by:
            criteria["uploadedBy"] = query.uploaded_by

        sort_field = _FIELD_MAP.get(query.sort_field, query.sort_field)
        cursor = (
            self._collection.find(criteria, {"data": 0})
            .sort(sort_field, DESCENDING if query.sort_descending else ASCENDING)
            .skip(query.skip)
            .limit(query.limit)
        )
        return [_from_document(doc) for doc in cursor]

    async def find_stale(self, status: FileStatus, older_than: datetime) -> list[StoredFile]:
        criteria = {"status": status.value, "uploadedAt": {"$lt": to_bson_datetime(older_than)}}
        docs = await run_sync(lambda: list(self._collection.find(criteria, {"data": 0})))
        return [_from_document(doc) for doc in docs]

    async def stats(self, recent_since: datetime) -> FileStats:
        return await run_sync(self._stats, recent_since)

    def _stats(self, recent_since: datetime) -> FileStats:
        completed = {"status": FileStatus.COMPLETED.value}
        total_files = self._collection.count_documents(completed)
        size_rows = list(
            self._collection.aggregate(
                [
                    {"$match": completed},
                    {"$group": {"_id": None, "totalSize": {"$sum": "$size"}}},
                ]
            )
        )
        type_rows = self._collection.aggregate(
            [
                {"$match": completed},
                {"$group": {"_id": "$mimetype", "count": {"$sum": 1}}},
            ]
        )
        recent = self._collection.count_documents(
            {**completed, "uploadedAt": {"$gte": to_bson_datetime(recent_since)}}
        )
        return FileStats(
            total_files=total_files,
            total_size=size_rows[0]["totalSize"] if size_rows else 0,
            files_by_type={row["_id"]: row["count"] for row in type_rows},
            recent_uploads=recent,
        )


def _to_document(record: StoredFile) -> dict[str, Any]:
    doc = _to_update(record.model_dump(exclude={"id", "has_inline_data"}))
    doc["hasInlineData"] = record.data is not None
    return doc


def _to_update(changes: dict[str, Any]) -> dict[str, Any]:
    update: dict[str, Any] = {}
    for field, value in changes.items():
        key = _FIELD_MAP.get(field, field)
        if isinstance(value, FileStatus):
            value = value.value
        elif isinstance(value, datetime):
            value = to_bson_datetime(value)
        update[key] = value
    return update


def _from_document(doc: dict[str, Any]) -> StoredFile:
    data = doc.get("data")
    record = StoredFile(
        id=str(doc["_id"]),
        filename=doc["filename"],
        original_name=doc.get("originalName", doc["filename"]),
        mimetype=doc["mimetype"],
        size=doc.get("size", 0),
        encoding=doc.get("encoding", "buffer"),
        uploaded_at=from_bson_datetime(doc.get("uploadedAt")),
        uploaded_by=doc.get("uploadedBy"),
        metadata=doc.get("metadata") or {},
        gridfs_id=doc.get("gridfsId"),
        status=FileStatus(doc.get("status", FileStatus.UPLOADING.value)),
        error=doc.get("error"),
        has_inline_data=doc.get("hasInlineData", data is not None),
    )
    if data is not None:
        return record.with_data(bytes(data))
    return record
