"""knowledgeVault API layer — routes, schemas, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from src.api.routes import router
from src.api.schemas import (
    ApiResponse,
    EnrichmentJobData,
    EnrichRequest,
    ErrorResponse,
    FileInfoData,
    FragmentCreateRequest,
    FragmentData,
    HealthResponse,
    OCRData,
    UploadData,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "register_exception_handlers",
    "router",
    "ApiResponse",
    "EnrichmentJobData",
    "EnrichRequest",
    "ErrorResponse",
    "FileInfoData",
    "FragmentCreateRequest",
    "FragmentData",
    "HealthResponse",
    "OCRData",
    "UploadData",
]
