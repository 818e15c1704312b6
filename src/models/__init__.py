"""knowledgeVault domain models — re-exports all public model classes.

Other parts of the codebase import from ``src.models`` rather than the
individual submodules. The models are organized by domain concern:
    - file.py       — stored file records, list queries, statistics
    - ocr.py        — recognition options, regions, results, persisted records
    - fragment.py   — knowledge fragments (manual or OCR-derived notes)
    - enrichment.py — background enrichment job state

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

from src.models.enrichment import (
    EnrichmentErrorEntry,
    EnrichmentJob,
    EnrichmentPhase,
)
from src.models.file import FileQuery, FileStats, FileStatus, StoredFile
from src.models.fragment import FragmentSource, KnowledgeFragment
from src.models.ocr import (
    DEFAULT_OCR_LANGUAGE,
    BoundingBox,
    OCRMetadata,
    OCROptions,
    OCRRecord,
    OCRResult,
    OCRStatus,
    TextRegion,
)

__all__ = [
    "DEFAULT_OCR_LANGUAGE",
    "BoundingBox",
    "EnrichmentErrorEntry",
    "EnrichmentJob",
    "EnrichmentPhase",
    "FileQuery",
    "FileStats",
    "FileStatus",
    "FragmentSource",
    "KnowledgeFragment",
    "OCRMetadata",
    "OCROptions",
    "OCRRecord",
    "OCRResult",
    "OCRStatus",
    "StoredFile",
    "TextRegion",
]
