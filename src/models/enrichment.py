"""Enrichment job models for the upload → storage → OCR → fragment pipeline.

Mirrors the immutable session-state approach used for pipeline state:
the enrichment pipeline (src/pipeline/enrichment.py) holds one
``EnrichmentJob`` per job id and advances it by producing new copies with
``model_copy(update={...})``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EnrichmentPhase(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Phases of an enrichment job.

    UPLOAD → STORAGE → OCR → FRAGMENT → DONE, or FAILED from any phase.
    """

    UPLOAD = "UPLOAD"      # Bytes received by the API
    STORAGE = "STORAGE"    # File persisted, loading it back for processing
    OCR = "OCR"            # Text recognition in progress
    FRAGMENT = "FRAGMENT"  # Creating the knowledge fragment
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (EnrichmentPhase.DONE, EnrichmentPhase.FAILED)


class EnrichmentErrorEntry(BaseModel):
    """An error recorded on a job rather than raised out of the background task."""

    model_config = ConfigDict(frozen=True)

    phase: EnrichmentPhase
    message: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class EnrichmentJob(BaseModel):
    """Snapshot of one enrichment job. Immutable."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    file_id: str
    language: str
    create_fragment: bool = True
    tags: list[str] = Field(default_factory=list)
    phase: EnrichmentPhase = EnrichmentPhase.UPLOAD
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    ocr_record_id: str | None = None
    ocr_confidence: float | None = None
    fragment_id: str | None = None
    text_preview: str | None = None
    errors: list[EnrichmentErrorEntry] = Field(default_factory=list)
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    completed_at: datetime | None = None
