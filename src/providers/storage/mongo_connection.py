"""Process-wide MongoDB connection and helpers shared by the Mongo adapters.

pymongo is a synchronous driver.  Every adapter in this package funnels
driver calls through :func:`run_sync`, which runs them in a worker thread
via ``asyncio.to_thread`` and translates ``PyMongoError`` into the
application's :class:`StorageError`.

Datetimes are stored as naive UTC (BSON has no timezone) and re-labelled
as UTC when documents are read back.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from src.utils.errors import StorageError
from src.utils.logging import get_logger

_T = TypeVar("_T")

logger = get_logger(__name__)


class MongoConnection:
    """Lazily created ``MongoClient`` bound to one database.

    The client is built on first access to :attr:`client`, so importing
    the app or building the DI graph never opens sockets.  Tests pass a
    ``mongomock.MongoClient`` instead.
    """

    def __init__(
        self,
        uri: str,
        database: str,
        client: MongoClient | None = None,
        server_selection_timeout_ms: int = 5000,
    ) -> None:
        self._uri = uri
        self._database_name = database
        self._client = client
        self._timeout_ms = server_selection_timeout_ms

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            self._client = MongoClient(
                self._uri, serverSelectionTimeoutMS=self._timeout_ms
            )
            logger.info("mongo_client_created", database=self._database_name)
        return self._client

    @property
    def database(self) -> Database:
        return self.client[self._database_name]

    @property
    def database_name(self) -> str:
        return self._database_name

    async def ping(self) -> bool:
        """Return True when the server answers ``ping``."""
        try:
            await asyncio.to_thread(self.client.admin.command, "ping")
            return True
        except PyMongoError as exc:
            logger.warning("mongo_ping_failed", error=str(exc))
            return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("mongo_client_closed")


async def run_sync(fn: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
    """Run a blocking driver call off the event loop.

    Raises:
        StorageError: When the driver raises ``PyMongoError``.
    """
    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except PyMongoError as exc:
        raise StorageError(str(exc), provider_name="mongodb") from exc


def parse_object_id(value: str | None) -> ObjectId | None:
    """Return an ``ObjectId`` for a valid hex id, else None."""
    if not value:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_bson_datetime(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC for storage and queries."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)  # noqa: UP017


def from_bson_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)  # noqa: UP017
    return value
