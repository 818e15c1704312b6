"""Pydantic request/response schemas for the knowledgeVault API.

Defines the public contract for the REST endpoints: upload, download
metadata, OCR, knowledge fragments, enrichment jobs and health.

# ─── HOW SCHEMAS WORK (Junior Developer Guide) ────────────────────────
#
# Every JSON body leaves the API inside the same envelope:
#
#     {"success": true,  "data": {...}, "message": "..."}
#     {"success": false, "error": "File does not exist"}
#
# ``ApiResponse[T]`` is a generic Pydantic model, so a route declares
# ``response_model=ApiResponse[UploadData]`` and FastAPI validates the
# ``data`` payload against ``UploadData``.  Routes are registered with
# ``response_model_exclude_none=True`` so unset envelope keys are dropped.
#
# Field names are snake_case in Python and camelCase on the wire
# (``file_id`` ↔ ``fileId``) through ``alias_generator=to_camel``.
# FastAPI serialises response models by alias; request bodies accept
# either spelling because of ``populate_by_name=True``.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.enrichment import EnrichmentJob
from src.models.file import FileStats, StoredFile
from src.models.fragment import KnowledgeFragment
from src.models.ocr import BoundingBox, OCRMetadata
from src.utils.formatting import format_file_size

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for payloads exchanged in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel, Generic[T]):
    """The ``{success, data, error, message}`` envelope."""

    success: bool = True
    data: T | None = None
    error: str | None = None
    message: str | None = None


class ErrorResponse(BaseModel):
    """Body of every failed request."""

    success: bool = False
    error: str


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def download_url(file_id: str) -> str:
    return f"/api/v1/upload/{file_id}"


class UploadData(CamelModel):
    """Returned after a successful upload."""

    file_id: str
    file_name: str
    file_size: int
    uploaded_at: datetime
    download_url: str
    # Set when the upload asked for OCR enrichment.
    job_id: str | None = None
    warnings: list[str] = Field(default_factory=list)


class FileInfoData(CamelModel):
    """Metadata of one stored file (never the bytes)."""

    file_id: str
    file_name: str
    mimetype: str
    size: int
    uploaded_at: datetime
    uploaded_by: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: str
    storage: str
    download_url: str

    @classmethod
    def from_stored(cls, stored: StoredFile) -> FileInfoData:
        return cls(
            file_id=stored.id,
            file_name=stored.original_name,
            mimetype=stored.mimetype,
            size=stored.size,
            uploaded_at=stored.uploaded_at,
            uploaded_by=stored.uploaded_by,
            metadata=stored.metadata,
            status=stored.status.value,
            storage="gridfs" if stored.gridfs_id else "inline",
            download_url=download_url(stored.id),
        )


class FileListData(CamelModel):
    files: list[FileInfoData]
    count: int


class FileStatsData(CamelModel):
    total_files: int
    total_size: int
    total_size_formatted: str
    files_by_type: dict[str, int]
    recent_uploads: int

    @classmethod
    def from_stats(cls, stats: FileStats) -> FileStatsData:
        return cls(
            total_files=stats.total_files,
            total_size=stats.total_size,
            total_size_formatted=format_file_size(stats.total_size),
            files_by_type=stats.files_by_type,
            recent_uploads=stats.recent_uploads,
        )


# ---------------------------------------------------------------------------
# OCR
# ---------------------------------------------------------------------------


class OCRMetadataData(CamelModel):
    processing_time: float
    image_width: int
    image_height: int
    detected_languages: list[str]
    ocr_engine: str
    version: str

    @classmethod
    def from_metadata(cls, metadata: OCRMetadata) -> OCRMetadataData:
        return cls(**metadata.model_dump())


class OCRData(CamelModel):
    """Recognition result returned by ``POST /ocr``."""

    text: str
    confidence: float = Field(ge=0.0, le=100.0)
    language: str
    bounding_boxes: list[BoundingBox] = Field(default_factory=list)
    metadata: OCRMetadataData
    file_id: str | None = None
    # Present when the result was persisted against a stored file.
    ocr_record_id: str | None = None


class LanguageOption(BaseModel):
    code: str
    name: str


class OCRStatusData(CamelModel):
    message: str
    ready: bool
    engine: str
    version: str
    default_language: str
    supported_languages: list[LanguageOption]
    all_languages: list[str] | None = None


# ---------------------------------------------------------------------------
# Knowledge fragments
# ---------------------------------------------------------------------------


class FragmentCreateRequest(CamelModel):
    """Body of ``POST /fragments``.  An empty title is derived from the content."""

    title: str | None = Field(default=None, max_length=200)
    content: str
    tags: list[str] = Field(default_factory=list)


class FragmentData(CamelModel):
    id: str
    title: str
    content: str
    tags: list[str]
    source: str
    source_file_id: str | None = None
    ocr_confidence: float | None = None
    language: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_fragment(cls, fragment: KnowledgeFragment) -> FragmentData:
        return cls(**fragment.model_dump(exclude={"source"}), source=fragment.source.value)


class FragmentListData(CamelModel):
    fragments: list[FragmentData]
    count: int


# ---------------------------------------------------------------------------
# Enrichment jobs
# ---------------------------------------------------------------------------


class EnrichRequest(CamelModel):
    """Optional body of ``POST /enrich/{file_id}``."""

    language: str | None = None
    create_fragment: bool = True
    tags: list[str] = Field(default_factory=list)


class EnrichmentJobData(CamelModel):
    job_id: str
    file_id: str
    language: str
    phase: str
    progress: float
    message: str | None = None
    ocr_record_id: str | None = None
    ocr_confidence: float | None = None
    fragment_id: str | None = None
    text_preview: str | None = None
    errors: list[str] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: EnrichmentJob, message: str | None = None) -> EnrichmentJobData:
        return cls(
            job_id=job.job_id,
            file_id=job.file_id,
            language=job.language,
            phase=job.phase.value,
            progress=job.progress,
            message=message or None,
            ocr_record_id=job.ocr_record_id,
            ocr_confidence=job.ocr_confidence,
            fragment_id=job.fragment_id,
            text_preview=job.text_preview,
            errors=[f"{entry.phase.value}: {entry.message}" for entry in job.errors],
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    checks: dict[str, Any]
