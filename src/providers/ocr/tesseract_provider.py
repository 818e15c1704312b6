"""Tesseract OCR provider for uploaded note images.

Wraps pytesseract with a Pillow preprocessing chain (grayscale, resize,
autocontrast) and a single ``image_to_data`` pass.  The word-level output
is grouped into lines and paragraphs using Tesseract's own
block/paragraph/line numbering, so callers get three granularities of
bounding boxes from one engine run.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable

import pytesseract

from src.interfaces.ocr_provider import IOCRProvider
from src.models.ocr import OCROptions, OCRResult, TextRegion
from src.utils.errors import OCRExtractionError
from src.utils.image_preprocessor import ImagePreprocessor
from src.utils.logging import get_logger
from src.utils.text_cleanup import clean_ocr_text, join_cjk_spacing


class TesseractOCRProvider(IOCRProvider):
    """OCR provider backed by Google Tesseract via pytesseract.

    Blocking engine calls run in a worker thread so the event loop keeps
    serving requests while an image is being recognised.
    """

    def __init__(
        self,
        preprocessor: ImagePreprocessor | None = None,
        tesseract_cmd: str = "",
    ) -> None:
        self._preprocessor = preprocessor or ImagePreprocessor()
        self._logger = get_logger(__name__)
        self._version: str | None = None
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    # ------------------------------------------------------------------
    # IOCRProvider interface
    # ------------------------------------------------------------------

    async def extract_text(self, image_data: bytes, options: OCROptions) -> OCRResult:
        """Recognise text in *image_data* using the language/mode in *options*."""
        start = time.perf_counter()
        try:
            result = await asyncio.to_thread(self._recognize, image_data, options)
        except OCRExtractionError:
            raise
        except Exception as exc:
            elapsed = time.perf_counter() - start
            self._logger.error(
                "ocr_extraction_failed",
                provider="tesseract",
                language=options.language,
                error=str(exc),
                processing_time=round(elapsed, 3),
            )
            raise OCRExtractionError(
                "Image text recognition failed",
                provider_name=self.get_provider_name(),
            ) from exc

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        result = result.model_copy(update={"processing_time_ms": elapsed_ms})

        self._logger.info(
            "ocr_extraction_complete",
            provider="tesseract",
            language=options.language,
            confidence=result.confidence,
            num_words=len(result.words),
            num_lines=len(result.lines),
            processing_time_ms=elapsed_ms,
        )
        return result

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        """Check that the Tesseract binary can be executed."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except OSError:
            return False

    def get_version(self) -> str:
        if self._version is None:
            try:
                self._version = str(pytesseract.get_tesseract_version())
            except OSError:
                return ""
        return self._version

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def build_config(options: OCROptions) -> str:
        """Translate options into a Tesseract CLI config string."""
        parts = [f"--oem {options.oem}"]
        if options.psm is not None:
            parts.append(f"--psm {options.psm}")
        if options.whitelist:
            parts.append(f"-c tessedit_char_whitelist={options.whitelist}")
        if options.blacklist:
            parts.append(f"-c tessedit_char_blacklist={options.blacklist}")
        return " ".join(parts)

    def _recognize(self, image_data: bytes, options: OCROptions) -> OCRResult:
        """Synchronous recognition; runs inside ``asyncio.to_thread``."""
        try:
            original = self._preprocessor.load(image_data)
        except ValueError as exc:
            raise OCRExtractionError(
                "Image text recognition failed: unreadable image",
                provider_name=self.get_provider_name(),
            ) from exc

        width, height = original.size
        prepared, scale = self._preprocessor.prepare(original)

        data = pytesseract.image_to_data(
            prepared,
            lang=options.language,
            config=self.build_config(options),
            output_type=pytesseract.Output.DICT,
        )

        words = list(self._iter_words(data, scale))
        lines = _group_regions(words, key_len=3)
        paragraphs = _group_regions(words, key_len=2, joiner="\n", lines=lines)

        text = clean_ocr_text("\n".join(region.text for _, region in lines))
        confidences = [conf for _, conf, _ in words]
        avg_confidence = round(sum(confidences) / len(confidences), 2) if confidences else 0.0

        return OCRResult(
            text=text,
            confidence=avg_confidence if text else 0.0,
            provider_used=self.get_provider_name(),
            language=options.language,
            words=[region for _, _, region in words],
            lines=[region for _, region in lines],
            paragraphs=[region for _, region in paragraphs],
            image_width=width,
            image_height=height,
        )

    @staticmethod
    def _iter_words(
        data: dict, scale: float
    ) -> Iterable[tuple[tuple[int, int, int], float, TextRegion]]:
        """Yield ``((block, par, line), conf, region)`` for each usable word.

        Entries with empty text or ``conf <= 0`` (-1 marks layout-only rows)
        are skipped.  Coordinates are divided by *scale* to land on the
        original image's pixel grid.
        """
        for i in range(len(data["text"])):
            word = str(data["text"][i]).strip()
            conf = float(data["conf"][i])
            if not word or conf <= 0:
                continue

            key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
            yield key, conf, TextRegion(
                text=word,
                confidence=min(1.0, conf / 100.0),
                x=int(round(data["left"][i] / scale)),
                y=int(round(data["top"][i] / scale)),
                width=int(round(data["width"][i] / scale)),
                height=int(round(data["height"][i] / scale)),
            )


def _group_regions(
    words: list[tuple[tuple[int, int, int], float, TextRegion]],
    key_len: int,
    joiner: str = " ",
    lines: list[tuple[tuple[int, ...], TextRegion]] | None = None,
) -> list[tuple[tuple[int, ...], TextRegion]]:
    """Merge word regions sharing the first *key_len* layout numbers.

    Lines join their words with spaces (CJK gaps removed afterwards).
    Paragraphs are built from already-merged *lines* joined with newlines,
    while confidence is always averaged over the underlying words.
    """
    groups: dict[tuple[int, ...], list[TextRegion]] = {}
    for key, _, region in words:
        groups.setdefault(key[:key_len], []).append(region)

    texts: dict[tuple[int, ...], list[str]] = {}
    if lines is not None:
        for key, line in lines:
            texts.setdefault(key[:key_len], []).append(line.text)

    merged: list[tuple[tuple[int, ...], TextRegion]] = []
    for key, regions in groups.items():
        if lines is not None:
            text = joiner.join(texts.get(key, []))
        else:
            text = join_cjk_spacing(joiner.join(r.text for r in regions))
        left = min(r.x for r in regions)
        top = min(r.y for r in regions)
        right = max(r.x + r.width for r in regions)
        bottom = max(r.y + r.height for r in regions)
        merged.append(
            (
                key,
                TextRegion(
                    text=text,
                    confidence=round(sum(r.confidence for r in regions) / len(regions), 4),
                    x=left,
                    y=top,
                    width=right - left,
                    height=bottom - top,
                ),
            )
        )
    return merged
