"""Utility modules for knowledgeVault.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at
  KnowledgeVaultError; each layer raises its own subclass so the API
  middleware can map failures onto HTTP status codes.
- **formatting** -- Byte-size and truncation helpers used in error
  messages, API payloads and CLI output.
- **image_preprocessor** -- Pillow-based grayscale/resize/contrast chain
  applied before Tesseract runs.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_cleanup** -- Whitespace normalisation for OCR output, including
  removal of the spaces Tesseract inserts between CJK glyphs.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    EnrichmentError,
    FileMissingError,
    FileStateError,
    FileTooLargeError,
    FragmentMissingError,
    FragmentValidationError,
    KnowledgeVaultError,
    OCRExtractionError,
    ProviderUnavailableError,
    StorageError,
    UnsupportedFileTypeError,
    UnsupportedLanguageError,
    UploadValidationError,
)

# -- Formatting ------------------------------------------------------------
from src.utils.formatting import format_file_size, format_megabytes, truncate

# -- Image preprocessing for OCR -------------------------------------------
from src.utils.image_preprocessor import ImagePreprocessor, read_image_size

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- OCR text cleanup ------------------------------------------------------
from src.utils.text_cleanup import clean_ocr_text, first_meaningful_line

__all__ = [
    "ConfigurationError",
    "EnrichmentError",
    "FileMissingError",
    "FileStateError",
    "FileTooLargeError",
    "FragmentMissingError",
    "FragmentValidationError",
    "ImagePreprocessor",
    "KnowledgeVaultError",
    "OCRExtractionError",
    "ProviderUnavailableError",
    "StorageError",
    "UnsupportedFileTypeError",
    "UnsupportedLanguageError",
    "UploadValidationError",
    "clean_ocr_text",
    "configure_logging",
    "first_meaningful_line",
    "format_file_size",
    "format_megabytes",
    "get_logger",
    "read_image_size",
    "truncate",
]
