"""Custom exception hierarchy for knowledgeVault.

All application exceptions inherit from :class:`KnowledgeVaultError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "mongodb", "gridfs", "tesseract") caused the failure.

The hierarchy is organized by service domain:

    KnowledgeVaultError  (base -- catch-all for any knowledgeVault error)
    +-- UploadValidationError     (request-level validation of an upload)
    |   +-- FileTooLargeError
    |   +-- UnsupportedFileTypeError
    +-- FileMissingError          (unknown id or record without data)
    +-- FileStateError            (record exists but is not ``completed``)
    +-- StorageError              (record store / GridFS failures)
    +-- OCRExtractionError        (image-to-text extraction)
    +-- UnsupportedLanguageError  (unknown Tesseract language code)
    +-- FragmentValidationError   (knowledge fragment input)
    +-- FragmentMissingError
    +-- EnrichmentError           (background enrichment orchestration)
    +-- ConfigurationError        (startup / missing config)
    +-- ProviderUnavailableError  (backend down / unreachable)

The API middleware maps each branch to an HTTP status code, so raising the
most specific class is what decides the response a client sees.
"""


class KnowledgeVaultError(Exception):
    """Base exception for all knowledgeVault errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[gridfs] File download failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Upload validation
# ---------------------------------------------------------------------------

class UploadValidationError(KnowledgeVaultError):
    """Raised when an upload is rejected before anything is persisted."""

    def __init__(
        self,
        message: str = "Upload rejected",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FileTooLargeError(UploadValidationError):
    """Raised when a payload exceeds the configured maximum size."""

    def __init__(
        self,
        message: str = "File size exceeds the limit",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFileTypeError(UploadValidationError):
    """Raised when a MIME type is not on the allow-list."""

    def __init__(
        self,
        message: str = "Unsupported file type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# File storage
# ---------------------------------------------------------------------------

class FileMissingError(KnowledgeVaultError):
    """Raised when a file id is unknown or the record has no retrievable data."""

    def __init__(
        self,
        message: str = "File does not exist",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FileStateError(KnowledgeVaultError):
    """Raised when a file record exists but is not in the ``completed`` state."""

    def __init__(
        self,
        message: str = "File is not available",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(KnowledgeVaultError):
    """Raised when the record store or the GridFS bucket fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# OCR
# ---------------------------------------------------------------------------

class OCRExtractionError(KnowledgeVaultError):
    """Raised when OCR text extraction fails."""

    def __init__(
        self,
        message: str = "OCR text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedLanguageError(KnowledgeVaultError):
    """Raised when an OCR language code is not known to the engine."""

    def __init__(
        self,
        message: str = "Unsupported OCR language",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Knowledge fragments
# ---------------------------------------------------------------------------

class FragmentValidationError(KnowledgeVaultError):
    """Raised when a knowledge fragment cannot be created from the given input."""

    def __init__(
        self,
        message: str = "Invalid knowledge fragment",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FragmentMissingError(KnowledgeVaultError):
    """Raised when a fragment id is unknown."""

    def __init__(
        self,
        message: str = "Knowledge fragment does not exist",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class EnrichmentError(KnowledgeVaultError):
    """Raised when the enrichment pipeline cannot advance a job."""

    def __init__(
        self,
        message: str = "Enrichment pipeline failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KnowledgeVaultError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(KnowledgeVaultError):
    """Raised when a backend service is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
