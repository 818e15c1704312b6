"""OCR provider implementations for uploaded images.

TesseractOCRProvider is the single IOCRProvider shipped today; ocr_service.py
keeps a priority-ordered provider list so further engines can be added next
to it.  Preprocessing (grayscale, resize, autocontrast) lives in
src/utils/image_preprocessor.py.
"""

from src.providers.ocr.tesseract_provider import TesseractOCRProvider

__all__ = ["TesseractOCRProvider"]
