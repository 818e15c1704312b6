"""Request-level validation of uploaded files.

Runs before anything touches storage: size limit first, then the MIME
allow-list, then soft warnings.  The first hard failure wins, so an
oversized ``.exe`` is reported as too large rather than as the wrong type.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from src.utils.errors import UnsupportedFileTypeError
from src.utils.formatting import format_file_size

_MIB = 1024 * 1024

DEFAULT_ALLOWED_TYPES: tuple[str, ...] = (
    # Images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    "image/svg+xml",
    # Text
    "text/plain",
    "text/csv",
    "text/html",
    "text/xml",
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)

_TEXT_LIKE_TYPES = frozenset({"application/json"})


@dataclass(frozen=True)
class UploadOptions:
    """Limits applied by :class:`UploadValidator`.

    An empty ``allowed_types`` disables the type check.
    """

    max_file_size: int = 10 * _MIB
    allowed_types: tuple[str, ...] = DEFAULT_ALLOWED_TYPES
    large_file_warning: int = 5 * _MIB


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class UploadCandidate:
    """What the validator needs to know about one file in a batch."""

    filename: str
    content_type: str
    size: int


@dataclass(frozen=True)
class RejectedUpload:
    candidate: UploadCandidate
    error: str


class UploadValidator:
    """Checks uploads against an :class:`UploadOptions` policy."""

    def __init__(self, options: UploadOptions | None = None) -> None:
        self._options = options or UploadOptions()

    @property
    def options(self) -> UploadOptions:
        return self._options

    def validate_file(self, filename: str, content_type: str, size: int) -> ValidationResult:
        opts = self._options

        if size > opts.max_file_size:
            return ValidationResult(
                is_valid=False,
                error=(
                    f"File size exceeds the limit of {format_file_size(opts.max_file_size)} "
                    f"({filename}: {format_file_size(size)})"
                ),
            )

        if opts.allowed_types and content_type not in opts.allowed_types:
            return ValidationResult(
                is_valid=False,
                error=f"Unsupported file type: {content_type or 'unknown'}",
            )

        warnings: list[str] = []
        if size > opts.large_file_warning:
            warnings.append(
                f"large file ({format_file_size(size)}), upload may take a while"
            )
        return ValidationResult(is_valid=True, warnings=warnings)

    def validate_files(
        self, files: Iterable[UploadCandidate]
    ) -> tuple[list[UploadCandidate], list[RejectedUpload]]:
        """Partition a batch into accepted and rejected files, preserving order."""
        valid: list[UploadCandidate] = []
        invalid: list[RejectedUpload] = []
        for candidate in files:
            result = self.validate_file(candidate.filename, candidate.content_type, candidate.size)
            if result.is_valid:
                valid.append(candidate)
            else:
                invalid.append(RejectedUpload(candidate=candidate, error=result.error or ""))
        return valid, invalid


def is_image(content_type: str | None) -> bool:
    return bool(content_type) and content_type.startswith("image/")


def is_text(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.startswith("text/") or content_type in _TEXT_LIKE_TYPES


def read_text(data: bytes, content_type: str) -> str:
    """Decode a text-like payload as UTF-8, replacing undecodable bytes.

    Raises:
        UnsupportedFileTypeError: For non-text content types.
    """
    if not is_text(content_type):
        raise UnsupportedFileTypeError(f"Cannot read {content_type} as text")
    return data.decode("utf-8", errors="replace")
