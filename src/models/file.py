"""Stored file models for the knowledgeVault storage layer.

Defines Pydantic v2 models for file records, list queries and aggregate
statistics. All models use frozen config to enforce immutability; status
transitions produce new instances via ``model_copy(update={...})``.

A file record goes through this lifecycle:

    uploading  → completed           (GridFS path, after the blob write)
    uploading  → error               (GridFS path, blob write failed)
    completed                        (inline path, single insert)
    completed / uploading → deleted  (soft delete; record kept for auditing)

Only ``completed`` records are downloadable, listable and counted in stats.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class FileStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Lifecycle state of a stored file record."""

    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"
    DELETED = "deleted"


# ---------------------------------------------------------------------------
# StoredFile — one record in the ``files`` collection.
# ---------------------------------------------------------------------------
class StoredFile(BaseModel):
    """Metadata for one uploaded file.

    Small payloads travel with the record (``has_inline_data=True``) and the
    bytes sit in a private attribute so ``model_dump()`` never includes them.
    Large payloads live in the GridFS bucket and are referenced by
    ``gridfs_id``.
    """

    model_config = ConfigDict(frozen=True)

    # ObjectId hex string assigned by the record store on insert.
    id: str = ""
    # Generated storage name: ``<epoch-millis>_<13 base-36 chars><ext>``.
    filename: str
    original_name: str
    mimetype: str
    size: int = Field(ge=0)
    encoding: str = "buffer"
    uploaded_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    uploaded_by: str | None = None
    # Free-form: width, height, duration, description, tags, ...
    metadata: dict[str, Any] = Field(default_factory=dict)
    gridfs_id: str | None = None
    status: FileStatus = FileStatus.UPLOADING
    error: str | None = None
    has_inline_data: bool = False

    _data: bytes | None = PrivateAttr(default=None)

    @property
    def data(self) -> bytes | None:
        """Inline bytes, or None for GridFS-backed and metadata-only records."""
        return self._data

    def with_data(self, data: bytes | None) -> StoredFile:
        """Return a copy carrying *data* as its inline payload."""
        copy = self.model_copy(update={"has_inline_data": data is not None})
        copy.__pydantic_private__["_data"] = data
        return copy

    @property
    def is_image(self) -> bool:
        return self.mimetype.startswith("image/")


# ---------------------------------------------------------------------------
# FileQuery — filters and paging for listing files.
# ---------------------------------------------------------------------------
class FileQuery(BaseModel):
    """Listing parameters.

    ``mimetype`` is matched as a case-insensitive substring (the value is
    regex-escaped before it reaches the database), so ``"image"`` matches
    every image type.
    """

    model_config = ConfigDict(frozen=True)

    mimetype: str | None = None
    uploaded_by: str | None = None
    status: FileStatus = FileStatus.COMPLETED
    limit: int = Field(default=50, ge=1, le=1000)
    skip: int = Field(default=0, ge=0)
    sort_field: str = "uploaded_at"
    sort_descending: bool = True


class FileStats(BaseModel):
    """Aggregate numbers over ``completed`` files."""

    model_config = ConfigDict(frozen=True)

    total_files: int = 0
    total_size: int = 0
    files_by_type: dict[str, int] = Field(default_factory=dict)
    # Uploads in the last 24 hours.
    recent_uploads: int = 0
