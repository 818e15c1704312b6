"""Abstract base class for OCR service providers.

Defines the contract for any OCR engine used to extract text from uploaded
images.  Implementations may wrap Tesseract or any other recognition
backend.  The adapter pattern ensures that adding an engine requires only a
new concrete class — no call-site changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.ocr import OCROptions, OCRResult


# Concrete implementation: TesseractOCRProvider
# Located in: src/providers/ocr/
# The OCR service (src/services/ocr_service.py) tries providers in priority
# order and uses the first one that meets the confidence threshold.
class IOCRProvider(ABC):
    """Contract for OCR services that extract text from images.

    Every concrete provider must be able to:
    * Accept raw image bytes plus ``OCROptions`` and return an ``OCRResult``.
    * Report its availability (binary installed, service reachable).
    * Report the engine version for OCR record metadata.
    """

    @abstractmethod
    async def extract_text(self, image_data: bytes, options: OCROptions) -> OCRResult:
        """Run OCR on *image_data* and return the extraction result.

        Parameters
        ----------
        image_data:
            Raw image file bytes (PNG, JPEG, WebP, ...).
        options:
            Language, segmentation mode and character filters.

        Returns
        -------
        OCRResult
            Text, engine-scale confidence, word/line/paragraph regions and
            processing time.  An image without text yields an empty result,
            not an error.

        Raises
        ------
        src.utils.errors.OCRExtractionError
            If the engine fails or the bytes are not a decodable image.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"tesseract"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider can run without a full OCR pass."""

    @abstractmethod
    def get_version(self) -> str:
        """Return the engine version string, or ``""`` when unknown."""
