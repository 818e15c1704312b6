"""OCR orchestration service with multi-provider fallback chain.

Manages a priority-ordered list of OCR providers and tries each in turn
until one returns a result with acceptable confidence.  Today the only
concrete backend is Tesseract, but the service keeps the chain so another
engine can be added in ``src/main.py`` without touching callers.

Architecture: Fallback Chain Pattern
-------------------------------------
Each provider produces a result with an engine-scale confidence (0-100).
The chain short-circuits as soon as a provider meets ``min_confidence``
but tracks the best sub-threshold result, so:

    1. Preferred providers are tried first.
    2. Unavailable providers (binary missing) are skipped, not failed.
    3. The caller always gets *something* unless every provider hard-fails.

Language handling
-----------------
Tesseract accepts several traineddata packs joined with ``+``
(``chi_sim+eng``).  Every component is validated against the known
Tesseract language list before any engine runs, so a typo surfaces as an
``UnsupportedLanguageError`` (HTTP 400) instead of an engine crash.
"""

from __future__ import annotations

from src.interfaces.ocr_provider import IOCRProvider
from src.models.ocr import (
    DEFAULT_OCR_LANGUAGE,
    BoundingBox,
    OCRMetadata,
    OCROptions,
    OCRResult,
)
from src.utils.errors import (
    OCRExtractionError,
    ProviderUnavailableError,
    UnsupportedLanguageError,
)
from src.utils.logging import get_logger

# 0 on the engine's 0-100 scale: accept the first provider that answers.
_DEFAULT_CONFIDENCE_THRESHOLD = 0.0

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "afr", "amh", "ara", "asm", "aze", "aze_cyrl", "bel", "ben", "bod", "bos",
    "bul", "cat", "ceb", "ces", "chi_sim", "chi_tra", "chr", "cym", "dan",
    "deu", "dzo", "ell", "eng", "enm", "epo", "est", "eus", "fas", "fin",
    "fra", "frk", "frm", "gle", "glg", "grc", "guj", "hat", "heb", "hin",
    "hrv", "hun", "iku", "ind", "isl", "ita", "ita_old", "jav", "jpn", "kan",
    "kat", "kat_old", "kaz", "khm", "kir", "kor", "kur", "lao", "lat", "lav",
    "lit", "mal", "mar", "mkd", "mlt", "mon", "mri", "msa", "mya", "nep",
    "nld", "nor", "ori", "pan", "pol", "por", "pus", "ron", "rus", "san",
    "sin", "slk", "slv", "spa", "spa_old", "sqi", "srp", "srp_latn", "swa",
    "swe", "syr", "tam", "tel", "tgk", "tgl", "tha", "tir", "tur", "uig",
    "ukr", "urd", "uzb", "uzb_cyrl", "vie", "yid",
)

FEATURED_LANGUAGES: tuple[dict[str, str], ...] = (
    {"code": "chi_sim+eng", "name": "中英文"},
    {"code": "eng", "name": "英文"},
    {"code": "chi_sim", "name": "简体中文"},
    {"code": "chi_tra", "name": "繁体中文"},
)


class OCRService:
    """Orchestrates OCR extraction across multiple providers.

    Providers are tried in the order supplied at construction time.  The
    first result that meets the confidence threshold is returned immediately.
    If no provider reaches the threshold, the best result seen so far is
    returned.  If every provider fails with an exception, an
    :class:`OCRExtractionError` is raised.
    """

    def __init__(
        self,
        providers: list[IOCRProvider],
        min_confidence: float = _DEFAULT_CONFIDENCE_THRESHOLD,
        default_language: str = DEFAULT_OCR_LANGUAGE,
        featured_languages: list[dict[str, str]] | None = None,
    ) -> None:
        self._providers = providers
        self._min_confidence = min_confidence
        self._default_language = default_language
        self._featured = [dict(lang) for lang in (featured_languages or FEATURED_LANGUAGES)]
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    async def recognize(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> OCRResult:
        """Run OCR on *image_data* using the provider fallback chain.

        Parameters
        ----------
        image_data:
            Raw image bytes.
        options:
            Recognition options; the configured default language applies
            when omitted.

        Returns
        -------
        OCRResult
            The best extraction result obtained from any provider.

        Raises
        ------
        UnsupportedLanguageError
            If any ``+``-separated language code is unknown.
        ProviderUnavailableError
            If no provider reports itself available.
        OCRExtractionError
            If every available provider raises an exception.
        """
        options = options or OCROptions(language=self._default_language)
        self.validate_language(options.language)

        best_result: OCRResult | None = None
        attempted = False

        for provider in self._providers:
            name = provider.get_provider_name()

            if not provider.is_available():
                self._logger.warning("ocr_provider_unavailable", provider=name)
                continue

            attempted = True

            try:
                self._logger.info(
                    "ocr_provider_attempting", provider=name, language=options.language
                )
                result = await provider.extract_text(image_data, options)

                if result.confidence >= self._min_confidence:
                    self._logger.info(
                        "ocr_provider_accepted",
                        provider=name,
                        confidence=result.confidence,
                    )
                    return result

                if best_result is None or result.confidence > best_result.confidence:
                    best_result = result
                    self._logger.info(
                        "ocr_provider_below_threshold",
                        provider=name,
                        confidence=result.confidence,
                    )

            except Exception as exc:
                self._logger.warning(
                    "ocr_provider_failed",
                    provider=name,
                    error=str(exc),
                )

        if best_result is not None:
            self._logger.info(
                "ocr_returning_best_fallback",
                provider=best_result.provider_used,
                confidence=best_result.confidence,
            )
            return best_result

        if not attempted:
            raise ProviderUnavailableError("No OCR engine is available")
        raise OCRExtractionError("All OCR providers failed")

    async def recognize_text(
        self, image_data: bytes, options: OCROptions | None = None
    ) -> str:
        """Convenience wrapper returning only the recognised text."""
        result = await self.recognize(image_data, options)
        return result.text

    async def recognize_multiple(
        self, images: list[bytes], options: OCROptions | None = None
    ) -> list[OCRResult]:
        """Recognise several images one after another, preserving order.

        Each recognition runs to completion before the next image starts.
        """
        results: list[OCRResult] = []
        for image_data in images:
            results.append(await self.recognize(image_data, options))
        return results

    # ------------------------------------------------------------------
    # Languages / status
    # ------------------------------------------------------------------

    def validate_language(self, language: str) -> None:
        codes = [code.strip() for code in language.split("+")]
        if not codes or any(not code for code in codes):
            raise UnsupportedLanguageError(f"Invalid OCR language: {language!r}")
        unknown = [code for code in codes if code not in SUPPORTED_LANGUAGES]
        if unknown:
            raise UnsupportedLanguageError(
                f"Unsupported OCR language: {', '.join(unknown)}"
            )

    @staticmethod
    def supported_languages() -> list[str]:
        return list(SUPPORTED_LANGUAGES)

    def featured_languages(self) -> list[dict[str, str]]:
        return [dict(lang) for lang in self._featured]

    @property
    def default_language(self) -> str:
        return self._default_language

    def is_ready(self) -> bool:
        """True when at least one provider can run."""
        return any(p.is_available() for p in self._providers)

    def get_available_providers(self) -> list[str]:
        """Return the names of providers that are currently available."""
        return [p.get_provider_name() for p in self._providers if p.is_available()]

    def engine_info(self) -> dict[str, str]:
        """Name and version of the first available provider."""
        for provider in self._providers:
            if provider.is_available():
                return {"engine": provider.get_provider_name(), "version": provider.get_version()}
        return {"engine": "", "version": ""}

    def build_metadata(self, result: OCRResult) -> OCRMetadata:
        """Engine details for an OCR record, taken from the provider that answered."""
        version = ""
        for provider in self._providers:
            if provider.get_provider_name() == result.provider_used:
                version = provider.get_version()
                break
        return OCRMetadata(
            processing_time=result.processing_time_ms,
            image_width=result.image_width,
            image_height=result.image_height,
            detected_languages=[result.language],
            ocr_engine=result.provider_used,
            version=version,
        )

    @staticmethod
    def to_bounding_boxes(result: OCRResult) -> list[BoundingBox]:
        """Word regions in the shape stored on OCR records."""
        return [BoundingBox.from_region(word) for word in result.words]
