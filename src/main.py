"""knowledgeVault FastAPI application entry point.

Wires together storage providers, services and routes via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and configures structured logging.

Also exposes ``build_components`` so the CLI can reuse the same wiring
outside the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from src.api.routes import API_VERSION
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.pipeline.enrichment import EnrichmentPipeline
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.fragment.mongo_fragment_store import MongoFragmentStore
from src.providers.ocr.tesseract_provider import TesseractOCRProvider
from src.providers.storage.gridfs_blob_store import GridFSBlobStore
from src.providers.storage.mongo_connection import MongoConnection
from src.providers.storage.mongo_file_record_store import MongoFileRecordStore
from src.providers.storage.mongo_ocr_record_store import MongoOCRRecordStore
from src.services.file_storage_service import FileStorageService
from src.services.fragment_service import FragmentService
from src.services.ocr_service import OCRService
from src.services.upload_validator import DEFAULT_ALLOWED_TYPES, UploadOptions, UploadValidator
from src.utils.image_preprocessor import ImagePreprocessor
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def _build_all(
    app_settings: Settings,
    app_config: dict[str, Any],
    connection: MongoConnection | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    mongo_cfg = app_config.get("mongodb", {})
    collections = mongo_cfg.get("collections", {})
    storage_cfg = app_config.get("storage", {})
    ocr_cfg = app_config.get("ocr", {})
    fragment_cfg = app_config.get("fragments", {})
    enrichment_cfg = app_config.get("enrichment", {})

    # -- MongoDB (client is created lazily on first use) --
    mongo = connection or MongoConnection(app_settings.mongodb_uri, app_settings.mongodb_db)
    database = mongo.database

    file_records = MongoFileRecordStore(database, collections.get("files", "files"))
    blob_store = GridFSBlobStore(database, bucket_name=app_settings.gridfs_bucket)
    ocr_records = MongoOCRRecordStore(database, collections.get("ocr_results", "ocr_results"))
    fragment_store = MongoFragmentStore(database, collections.get("fragments", "fragments"))

    # -- Services --
    storage = FileStorageService(
        record_store=file_records,
        blob_store=blob_store,
        ocr_record_store=ocr_records,
        max_size=app_settings.max_upload_size,
        direct_storage_threshold=app_settings.direct_storage_threshold,
    )

    # The upload route accepts a narrower list than the storage layer.
    upload_types = storage_cfg.get("upload_allowed_types") or DEFAULT_ALLOWED_TYPES
    upload_validator = UploadValidator(
        UploadOptions(
            max_file_size=app_settings.max_upload_size,
            allowed_types=tuple(upload_types),
        )
    )

    # -- OCR providers (ordered by priority) --
    ocr_providers = [
        TesseractOCRProvider(
            preprocessor=ImagePreprocessor(),
            tesseract_cmd=app_settings.tesseract_cmd,
        )
    ]
    ocr_service = OCRService(
        providers=ocr_providers,
        min_confidence=app_settings.ocr_min_confidence,
        default_language=app_settings.ocr_default_language,
        featured_languages=ocr_cfg.get("featured_languages"),
    )

    fragment_service = FragmentService(
        fragment_store,
        title_max_length=fragment_cfg.get("title_max_length", 60),
    )

    max_jobs = enrichment_cfg.get("max_jobs", 1000)
    job_ttl = enrichment_cfg.get("job_ttl_seconds", 3600)
    progress_tracker = ProgressTracker(max_jobs=max_jobs, ttl=job_ttl)
    pipeline = EnrichmentPipeline(
        storage=storage,
        ocr_service=ocr_service,
        fragment_service=fragment_service,
        progress_tracker=progress_tracker,
        max_jobs=max_jobs,
        job_ttl=job_ttl,
    )

    return {
        "mongo": mongo,
        "indexed_stores": [file_records, ocr_records, fragment_store],
        "storage": storage,
        "upload_validator": upload_validator,
        "ocr_service": ocr_service,
        "fragment_service": fragment_service,
        "progress_tracker": progress_tracker,
        "pipeline": pipeline,
        "cleanup_hours": storage_cfg.get("cleanup_hours", 24),
    }


def build_components(custom_settings: Settings | None = None) -> dict[str, Any]:
    """Build the application components for CLI or scripting use."""
    app_settings = custom_settings or settings
    app_config = config if custom_settings is None else load_config(settings=custom_settings)
    return _build_all(app_settings, app_config)


async def initialize_stores(components: dict[str, Any]) -> None:
    """Create the collection indexes; idempotent."""
    for store in components["indexed_stores"]:
        await store.initialize()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    mongo: MongoConnection = components["mongo"]
    if await mongo.ping():
        await initialize_stores(components)
    else:
        # The API still starts; /health reports unhealthy until the database is back.
        _logger.warning("mongodb_unreachable", database=mongo.database_name)

    _logger.info(
        "app_startup",
        version=API_VERSION,
        environment=settings.app_env,
        database=mongo.database_name,
        ocr_ready=components["ocr_service"].is_ready(),
    )

    yield

    mongo.close()
    _logger.info("app_shutdown", message="MongoDB client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="knowledgeVault API",
        version=API_VERSION,
        description=(
            "Upload files into MongoDB (inline or GridFS), recognise text in "
            "images with Tesseract, and turn the text into searchable "
            "knowledge fragments."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())
    register_exception_handlers(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
