"""Knowledge fragment service.

Creates fragments from typed input or from an OCR result of an uploaded
image, and exposes read/list/delete over an ``IFragmentStore``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from src.interfaces.fragment_store import IFragmentStore
from src.models.file import StoredFile
from src.models.fragment import FragmentSource, KnowledgeFragment
from src.models.ocr import OCRRecord, OCRResult
from src.utils.errors import FragmentMissingError, FragmentValidationError
from src.utils.formatting import truncate
from src.utils.logging import get_logger
from src.utils.text_cleanup import first_meaningful_line

_TITLE_MAX_LENGTH = 60
_OCR_TAG = "ocr"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Trim, lower-case and de-duplicate tags, keeping first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags or ():
        cleaned = str(tag).strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class FragmentService:
    """CRUD for knowledge fragments plus OCR-derived creation."""

    def __init__(
        self,
        store: IFragmentStore,
        title_max_length: int = _TITLE_MAX_LENGTH,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._title_max_length = title_max_length
        self._clock = clock
        self._logger = get_logger(__name__)

    async def create_fragment(
        self,
        title: str | None,
        content: str,
        tags: Iterable[str] | None = None,
        *,
        source: FragmentSource = FragmentSource.MANUAL,
        source_file_id: str | None = None,
        ocr_confidence: float | None = None,
        language: str | None = None,
    ) -> KnowledgeFragment:
        """Create and persist a fragment.

        Raises:
            FragmentValidationError: *content* is empty after stripping.
        """
        content = (content or "").strip()
        if not content:
            raise FragmentValidationError("Fragment content must not be empty")

        title = (title or "").strip() or self._derive_title(content, fallback="Untitled")
        now = self._clock()
        fragment = KnowledgeFragment(
            title=title,
            content=content,
            tags=normalize_tags(tags),
            source=source,
            source_file_id=source_file_id,
            ocr_confidence=ocr_confidence,
            language=language,
            created_at=now,
            updated_at=now,
        )
        saved = await self._store.insert(fragment)
        self._logger.info(
            "fragment_created",
            fragment_id=saved.id,
            source=source.value,
            source_file_id=source_file_id,
            num_tags=len(saved.tags),
        )
        return saved

    async def create_from_ocr(
        self,
        stored_file: StoredFile,
        ocr: OCRResult | OCRRecord,
        extra_tags: Iterable[str] | None = None,
    ) -> KnowledgeFragment | None:
        """Turn recognised text into a fragment; None when there is no text.

        The title is the first non-empty line of the text (cut to the
        configured length with an ellipsis), else the original file name.
        Tags are ``ocr`` + the file's upload tags + *extra_tags*.
        """
        text = ocr.text.strip()
        if not text:
            self._logger.info("fragment_skipped_empty_ocr", file_id=stored_file.id)
            return None

        file_tags = stored_file.metadata.get("tags") or []
        if isinstance(file_tags, str):
            file_tags = [file_tags]

        return await self.create_fragment(
            title=self._derive_title(text, fallback=stored_file.original_name),
            content=text,
            tags=[_OCR_TAG, *file_tags, *(extra_tags or ())],
            source=FragmentSource.OCR,
            source_file_id=stored_file.id,
            ocr_confidence=ocr.confidence,
            language=ocr.language,
        )

    async def get_fragment(self, fragment_id: str) -> KnowledgeFragment:
        fragment = await self._store.get(fragment_id)
        if fragment is None:
            raise FragmentMissingError(f"Knowledge fragment {fragment_id} does not exist")
        return fragment

    async def list_fragments(
        self,
        tag: str | None = None,
        source_file_id: str | None = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[KnowledgeFragment]:
        tag = tag.strip().lower() if tag else None
        return await self._store.list(tag=tag, source_file_id=source_file_id, limit=limit, skip=skip)

    async def delete_fragment(self, fragment_id: str) -> bool:
        deleted = await self._store.delete(fragment_id)
        if deleted:
            self._logger.info("fragment_deleted", fragment_id=fragment_id)
        return deleted

    def _derive_title(self, text: str, fallback: str) -> str:
        line = first_meaningful_line(text)
        if not line:
            return fallback
        return truncate(line, self._title_max_length)
