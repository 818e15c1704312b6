"""OCR models for the knowledgeVault enrichment layer.

Defines Pydantic v2 models for recognition options, word/line/paragraph
regions, engine results and the persisted OCR record. All models use
frozen config to enforce immutability.

Two confidence scales appear here on purpose:
    - ``TextRegion.confidence`` is normalised to 0..1 (per-region quality)
    - ``OCRResult.confidence`` / ``OCRRecord.confidence`` / ``BoundingBox``
      keep the engine's own 0..100 scale, which is what API clients and the
      ``OCR_MIN_CONFIDENCE`` setting use.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OCR_LANGUAGE = "chi_sim+eng"


class OCROptions(BaseModel):
    """Per-request recognition options.

    ``language`` accepts Tesseract codes joined with ``+`` (``chi_sim+eng``).
    ``psm`` is the page segmentation mode (None = engine default), ``oem`` the
    engine mode (1 = LSTM only).
    """

    model_config = ConfigDict(frozen=True)

    language: str = DEFAULT_OCR_LANGUAGE
    psm: int | None = Field(default=None, ge=0, le=13)
    oem: int = Field(default=1, ge=0, le=3)
    whitelist: str | None = None
    blacklist: str | None = None

    @property
    def language_codes(self) -> list[str]:
        return [code.strip() for code in self.language.split("+") if code.strip()]


# ---------------------------------------------------------------------------
# TextRegion — one word, line or paragraph with its bounding box.
# ---------------------------------------------------------------------------
class TextRegion(BaseModel):
    """A region of recognised text with bounding box coordinates.

    Coordinates use a top-left origin in pixels of the *original* image
    (the provider maps them back if it rescaled before recognition).
    """

    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    x: int
    y: int
    width: int
    height: int


# ---------------------------------------------------------------------------
# OCRResult — the complete output of one recognition run.
# ---------------------------------------------------------------------------
class OCRResult(BaseModel):
    """The result of OCR processing on one image.

    Produced by a provider and returned by src/services/ocr_service.py,
    which tries providers in priority order and returns the first result
    meeting the configured minimum confidence.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    provider_used: str
    processing_time_ms: int = 0
    language: str = DEFAULT_OCR_LANGUAGE
    words: list[TextRegion] = Field(default_factory=list)
    lines: list[TextRegion] = Field(default_factory=list)
    paragraphs: list[TextRegion] = Field(default_factory=list)
    image_width: int = 0
    image_height: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


class BoundingBox(BaseModel):
    """Word box as stored on an OCR record and returned by the API."""

    model_config = ConfigDict(frozen=True)

    text: str
    x: int
    y: int
    width: int
    height: int
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)

    @classmethod
    def from_region(cls, region: TextRegion) -> BoundingBox:
        return cls(
            text=region.text,
            x=region.x,
            y=region.y,
            width=region.width,
            height=region.height,
            confidence=round(region.confidence * 100, 2),
        )


class OCRMetadata(BaseModel):
    """Engine details stored with each OCR record."""

    model_config = ConfigDict(frozen=True)

    processing_time: int = 0  # milliseconds
    image_width: int = 0
    image_height: int = 0
    detected_languages: list[str] = Field(default_factory=list)
    ocr_engine: str = "tesseract"
    version: str = ""


class OCRStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


# ---------------------------------------------------------------------------
# OCRRecord — one document in the ``ocr_results`` collection.
# ---------------------------------------------------------------------------
class OCRRecord(BaseModel):
    """A persisted OCR outcome linked to a stored file."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    file_id: str
    text: str
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    language: str = DEFAULT_OCR_LANGUAGE
    bounding_boxes: list[BoundingBox] = Field(default_factory=list)
    metadata: OCRMetadata = Field(default_factory=OCRMetadata)
    processed_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    status: OCRStatus = OCRStatus.COMPLETED
    error: str | None = None

    def to_api(self) -> dict[str, Any]:
        """camelCase payload shared by the OCR endpoints."""
        return {
            "id": self.id,
            "fileId": self.file_id,
            "text": self.text,
            "confidence": self.confidence,
            "language": self.language,
            "boundingBoxes": [box.model_dump() for box in self.bounding_boxes],
            "metadata": {
                "processingTime": self.metadata.processing_time,
                "imageWidth": self.metadata.image_width,
                "imageHeight": self.metadata.image_height,
                "detectedLanguages": self.metadata.detected_languages,
                "ocrEngine": self.metadata.ocr_engine,
                "version": self.metadata.version,
            },
            "processedAt": self.processed_at.isoformat(),
            "status": self.status.value,
        }
