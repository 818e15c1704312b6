"""GridFS-backed blob store for payloads above the inline threshold.

Uses pymongo's ``gridfs.GridFSBucket``; GridFS handles chunking (255 KiB
chunks in ``<bucket>.chunks``) and the file index (``<bucket>.files``).
"""

from __future__ import annotations

import asyncio
from typing import Any

import gridfs
from gridfs.errors import NoFile
from pymongo.database import Database
from pymongo.errors import PyMongoError

from src.interfaces.blob_store import IBlobStore
from src.providers.storage.mongo_connection import parse_object_id
from src.utils.errors import StorageError
from src.utils.logging import get_logger

_DEFAULT_BUCKET = "uploads"


class GridFSBlobStore(IBlobStore):
    """Blob storage in a named GridFS bucket.

    The bucket object is created on first use so constructing the store
    does not touch the server.
    """

    def __init__(
        self,
        database: Database | None = None,
        bucket_name: str = _DEFAULT_BUCKET,
        bucket: gridfs.GridFSBucket | None = None,
    ) -> None:
        if database is None and bucket is None:
            raise ValueError("GridFSBlobStore needs a database or a bucket")
        self._database = database
        self._bucket_name = bucket_name
        self._bucket = bucket
        self._logger = get_logger(__name__)

    @property
    def bucket(self) -> gridfs.GridFSBucket:
        if self._bucket is None:
            self._bucket = gridfs.GridFSBucket(self._database, bucket_name=self._bucket_name)
        return self._bucket

    def get_bucket_name(self) -> str:
        return self._bucket_name

    async def put(self, filename: str, data: bytes, metadata: dict[str, Any]) -> str:
        try:
            blob_id = await asyncio.to_thread(
                self.bucket.upload_from_stream, filename, data, metadata=metadata
            )
        except PyMongoError as exc:
            raise StorageError(str(exc), provider_name="gridfs") from exc

        self._logger.debug(
            "gridfs_blob_written", bucket=self._bucket_name, blob_id=str(blob_id), size=len(data)
        )
        return str(blob_id)

    async def get(self, blob_id: str) -> bytes:
        oid = parse_object_id(blob_id)
        if oid is None:
            raise StorageError(f"Invalid blob id: {blob_id}", provider_name="gridfs")
        try:
            return await asyncio.to_thread(self._read, oid)
        except NoFile as exc:
            raise StorageError(f"Blob {blob_id} not found", provider_name="gridfs") from exc
        except PyMongoError as exc:
            raise StorageError(str(exc), provider_name="gridfs") from exc

    def _read(self, oid: Any) -> bytes:
        stream = self.bucket.open_download_stream(oid)
        try:
            return stream.read()
        finally:
            stream.close()

    async def delete(self, blob_id: str) -> None:
        oid = parse_object_id(blob_id)
        if oid is None:
            raise StorageError(f"Invalid blob id: {blob_id}", provider_name="gridfs")
        try:
            await asyncio.to_thread(self.bucket.delete, oid)
        except NoFile:
            # Chunks already gone; the caller only cares that the blob is absent.
            self._logger.warning("gridfs_blob_missing_on_delete", blob_id=blob_id)
        except PyMongoError as exc:
            raise StorageError(str(exc), provider_name="gridfs") from exc
