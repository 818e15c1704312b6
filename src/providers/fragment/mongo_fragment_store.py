"""MongoDB-backed knowledge fragment store (collection ``fragments``)."""

from __future__ import annotations

from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from src.interfaces.fragment_store import IFragmentStore
from src.models.fragment import FragmentSource, KnowledgeFragment
from src.providers.storage.mongo_connection import (
    from_bson_datetime,
    parse_object_id,
    run_sync,
    to_bson_datetime,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

_DEFAULT_COLLECTION = "fragments"


class MongoFragmentStore(IFragmentStore):
    """Fragment persistence on a pymongo ``Database``."""

    def __init__(self, database: Database, collection_name: str = _DEFAULT_COLLECTION) -> None:
        self._collection: Collection = database[collection_name]

    async def initialize(self) -> None:
        await run_sync(self._create_indexes)
        logger.info("fragment_indexes_ready", collection=self._collection.name)

    def _create_indexes(self) -> None:
        self._collection.create_index("tags")
        self._collection.create_index("sourceFileId")
        self._collection.create_index([("createdAt", DESCENDING)])

    async def insert(self, fragment: KnowledgeFragment) -> KnowledgeFragment:
        result = await run_sync(self._collection.insert_one, _to_document(fragment))
        return fragment.model_copy(update={"id": str(result.inserted_id)})

    async def get(self, fragment_id: str) -> KnowledgeFragment | None:
        oid = parse_object_id(fragment_id)
        if oid is None:
            return None
        doc = await run_sync(self._collection.find_one, {"_id": oid})
        return _from_document(doc) if doc else None

    async def list(
        self,
        tag: str | None = None,
        source_file_id: str | None = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[KnowledgeFragment]:
        criteria: dict[str, Any] = {}
        if tag:
            criteria["tags"] = tag
        if source_file_id:
            criteria["sourceFileId"] = source_file_id

        def _query() -> list[dict[str, Any]]:
            cursor = (
                self._collection.find(criteria)
                .sort([("createdAt", DESCENDING), ("_id", ASCENDING)])
                .skip(skip)
                .limit(limit)
            )
            return list(cursor)

        return [_from_document(doc) for doc in await run_sync(_query)]

    async def delete(self, fragment_id: str) -> bool:
        oid = parse_object_id(fragment_id)
        if oid is None:
            return False
        result = await run_sync(self._collection.delete_one, {"_id": oid})
        return result.deleted_count > 0


def _to_document(fragment: KnowledgeFragment) -> dict[str, Any]:
    return {
        "title": fragment.title,
        "content": fragment.content,
        "tags": list(fragment.tags),
        "source": fragment.source.value,
        "sourceFileId": fragment.source_file_id,
        "ocrConfidence": fragment.ocr_confidence,
        "language": fragment.language,
        "createdAt": to_bson_datetime(fragment.created_at),
        "updatedAt": to_bson_datetime(fragment.updated_at),
    }


def _from_document(doc: dict[str, Any]) -> KnowledgeFragment:
    return KnowledgeFragment(
        id=str(doc["_id"]),
        title=doc.get("title", ""),
        content=doc.get("content", ""),
        tags=doc.get("tags") or [],
        source=FragmentSource(doc.get("source", FragmentSource.MANUAL.value)),
        source_file_id=doc.get("sourceFileId"),
        ocr_confidence=doc.get("ocrConfidence"),
        language=doc.get("language"),
        created_at=from_bson_datetime(doc.get("createdAt")),
        updated_at=from_bson_datetime(doc.get("updatedAt")),
    )
