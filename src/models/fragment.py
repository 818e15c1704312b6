"""Knowledge fragment model.

A fragment is a short note in the knowledge base. Fragments are either
typed in by a user (``source=manual``) or derived from the OCR text of an
uploaded image (``source=ocr``), in which case ``source_file_id`` links back
to the stored file and ``ocr_confidence`` records the engine's score.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FragmentSource(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    MANUAL = "manual"
    OCR = "ocr"


class KnowledgeFragment(BaseModel):
    """One knowledge note."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    source: FragmentSource = FragmentSource.MANUAL
    source_file_id: str | None = None
    ocr_confidence: float | None = None
    language: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
