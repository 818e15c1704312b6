"""FastAPI API routes for knowledgeVault.

Provides REST endpoints for file upload and download, OCR, knowledge
fragments, enrichment jobs and health checks.  Service dependencies are
resolved from ``app.state`` via FastAPI's ``Depends`` using the
``Annotated`` pattern.

# ─── API ROUTE MAP (Junior Developer Guide) ───────────────────────────
#
# Endpoint                         Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/upload                   POST    Multipart upload (+ optional enrich)
# /api/v1/upload                   GET     ?action=list | stats | info
# /api/v1/upload/{file_id}         GET     Download bytes (ETag / 304)
# /api/v1/upload/{file_id}         DELETE  Soft-delete a file
# /api/v1/ocr                      POST    Recognise an uploaded image or stored file
# /api/v1/ocr                      GET     OCR engine status and languages
# /api/v1/ocr/{file_id}            GET     Latest stored OCR record for a file
# /api/v1/fragments                POST    Create a knowledge fragment
# /api/v1/fragments                GET     List fragments (?tag, ?sourceFileId)
# /api/v1/fragments/{id}           GET     Fetch one fragment
# /api/v1/fragments/{id}           DELETE  Delete one fragment
# /api/v1/enrich/{file_id}         POST    Start OCR → fragment job (202)
# /api/v1/enrich/{job_id}          GET     Poll an enrichment job
# /api/v1/health                   GET     Database + OCR engine health
#
# DEPENDENCY INJECTION PATTERN:
# Each route function declares its dependencies as type-annotated params.
# FastAPI resolves these via Depends() which calls helper functions that
# read from app.state (populated at startup in main.py's _build_all).
#
# Domain errors (FileMissingError, UploadValidationError, ...) are not
# caught here; ErrorHandlingMiddleware maps them to status codes.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
from typing import Annotated, Any
from urllib.parse import quote

import structlog
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
)

from src.api.schemas import (
    ApiResponse,
    EnrichmentJobData,
    EnrichRequest,
    ErrorResponse,
    FileInfoData,
    FileListData,
    FileStatsData,
    FragmentCreateRequest,
    FragmentData,
    FragmentListData,
    HealthResponse,
    LanguageOption,
    OCRData,
    OCRMetadataData,
    OCRStatusData,
    UploadData,
    download_url,
)
from src.models.file import FileQuery
from src.models.ocr import OCROptions
from src.pipeline.enrichment import EnrichmentPipeline
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.storage.mongo_connection import MongoConnection
from src.services.file_storage_service import FileStorageService
from src.services.fragment_service import FragmentService
from src.services.ocr_service import OCRService
from src.services.upload_validator import UploadValidator, is_image
from src.utils.errors import FileMissingError, FileStateError, KnowledgeVaultError
from src.utils.formatting import format_megabytes
from src.utils.image_preprocessor import read_image_size
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# All routes in this file are prefixed with /api/v1.
router = APIRouter(prefix="/api/v1")

# Chunk size for streaming uploads — read in 64 KB increments to reject
# oversized files before the whole payload is buffered.
_UPLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB

# Downloads carry the record id as ETag; stored bytes never change.
_DOWNLOAD_CACHE_CONTROL = "public, max-age=31536000"

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

API_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependency injection helpers — resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_storage(request: Request) -> FileStorageService:
    return request.app.state.storage


def _get_ocr_service(request: Request) -> OCRService:
    return request.app.state.ocr_service


def _get_fragment_service(request: Request) -> FragmentService:
    return request.app.state.fragment_service


def _get_pipeline(request: Request) -> EnrichmentPipeline:
    return request.app.state.pipeline


def _get_progress_tracker(request: Request) -> ProgressTracker:
    return request.app.state.progress_tracker


def _get_upload_validator(request: Request) -> UploadValidator:
    return request.app.state.upload_validator


StorageDep = Annotated[FileStorageService, Depends(_get_storage)]
OCRServiceDep = Annotated[OCRService, Depends(_get_ocr_service)]
FragmentServiceDep = Annotated[FragmentService, Depends(_get_fragment_service)]
PipelineDep = Annotated[EnrichmentPipeline, Depends(_get_pipeline)]
TrackerDep = Annotated[ProgressTracker, Depends(_get_progress_tracker)]
ValidatorDep = Annotated[UploadValidator, Depends(_get_upload_validator)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_upload(file: UploadFile, max_size: int) -> bytes:
    """Read *file* in chunks, rejecting it as soon as it passes *max_size*."""
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_size:
            raise HTTPException(
                status_code=400,
                detail=f"File size exceeds the limit ({format_megabytes(max_size)})",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def parse_tags(raw: str | None) -> list[str]:
    """Accept a JSON array (``["a", "b"]``) or a comma-separated string."""
    if not raw or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return [str(tag).strip() for tag in parsed if str(tag).strip()]
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _job_data(job_id: str, pipeline: EnrichmentPipeline, tracker: ProgressTracker) -> EnrichmentJobData:
    job = pipeline.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Enrichment job {job_id} not found")
    return EnrichmentJobData.from_job(job, tracker.get_status(job_id)["message"])


# ---------------------------------------------------------------------------
# Upload endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/upload",
    response_model=ApiResponse[UploadData],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Upload a file",
)
async def upload_file(
    background_tasks: BackgroundTasks,
    storage: StorageDep,
    validator: ValidatorDep,
    ocr_service: OCRServiceDep,
    pipeline: PipelineDep,
    file: Annotated[UploadFile | None, File()] = None,
    uploaded_by: Annotated[str | None, Form(alias="uploadedBy")] = None,
    description: Annotated[str | None, Form()] = None,
    tags: Annotated[str | None, Form()] = None,
    enrich: Annotated[bool, Form()] = False,
    language: Annotated[str | None, Form()] = None,
) -> ApiResponse[UploadData]:
    """Store one file; images can be queued for OCR with ``enrich=true``."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file was found in the upload")

    options = validator.options
    data = await _read_upload(file, options.max_file_size)
    original_name = file.filename or "upload"
    content_type = file.content_type or "application/octet-stream"

    check = validator.validate_file(original_name, content_type, len(data))
    if not check.is_valid:
        raise HTTPException(status_code=400, detail=check.error)

    want_enrich = enrich and is_image(content_type)
    if want_enrich:
        # Rejected before anything is stored.
        ocr_service.validate_language(language or ocr_service.default_language)

    metadata: dict[str, Any] = {}
    if description:
        metadata["description"] = description
    tag_list = parse_tags(tags)
    if tag_list:
        metadata["tags"] = tag_list
    if is_image(content_type):
        size = read_image_size(data)
        if size is not None:
            metadata["width"], metadata["height"] = size

    saved = await storage.upload_file(
        data,
        original_name,
        content_type,
        max_size=options.max_file_size,
        allowed_mime_types=list(options.allowed_types) or None,
        metadata=metadata,
        uploaded_by=uploaded_by,
    )

    job_id: str | None = None
    if want_enrich:
        job = await pipeline.start(saved.id, language)
        background_tasks.add_task(pipeline.run, job)
        job_id = job.job_id

    return ApiResponse(
        data=UploadData(
            file_id=saved.id,
            file_name=saved.original_name,
            file_size=saved.size,
            uploaded_at=saved.uploaded_at,
            download_url=download_url(saved.id),
            job_id=job_id,
            warnings=check.warnings,
        ),
        message="File uploaded",
    )


@router.get(
    "/upload",
    response_model=ApiResponse[Any],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="List files, aggregate stats, or one file's metadata",
)
async def query_uploads(
    storage: StorageDep,
    action: str = "info",
    file_id: Annotated[str | None, Query(alias="fileId")] = None,
    mimetype: str | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 50,
    skip: Annotated[int, Query(ge=0)] = 0,
) -> ApiResponse[Any]:
    if action == "list":
        files = await storage.query_files(FileQuery(mimetype=mimetype, limit=limit, skip=skip))
        listing = FileListData(files=[FileInfoData.from_stored(f) for f in files], count=len(files))
        return ApiResponse(data=listing.model_dump(by_alias=True))

    if action == "stats":
        stats = await storage.get_file_stats()
        return ApiResponse(data=FileStatsData.from_stats(stats).model_dump(by_alias=True))

    if action != "info":
        raise HTTPException(status_code=400, detail=f"Unknown action: {action}")

    if not file_id:
        raise HTTPException(status_code=400, detail="Missing fileId parameter")
    try:
        stored = await storage.get_file_info(file_id)
    except KnowledgeVaultError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return ApiResponse(data=FileInfoData.from_stored(stored).model_dump(by_alias=True))


@router.get(
    "/upload/{file_id}",
    responses={200: {"content": {"application/octet-stream": {}}}, **_ERROR_RESPONSES},
    summary="Download a stored file",
)
async def download_file(file_id: str, request: Request, storage: StorageDep) -> Response:
    stored = await storage.get_file_info(file_id)

    etag = f'"{stored.id}"'
    headers = {
        "Content-Disposition": f"inline; filename=\"{quote(stored.original_name)}\"",
        "Cache-Control": _DOWNLOAD_CACHE_CONTROL,
        "ETag": etag,
    }
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers=headers)

    stored, data = await storage.get_file(file_id)

    return Response(content=data, media_type=stored.mimetype, headers=headers)


@router.delete(
    "/upload/{file_id}",
    response_model=ApiResponse[Any],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Delete a stored file",
)
async def delete_file(file_id: str, storage: StorageDep) -> ApiResponse[Any]:
    if not await storage.delete_file(file_id):
        raise HTTPException(status_code=404, detail="File does not exist or could not be deleted")
    return ApiResponse(message="File deleted")


# ---------------------------------------------------------------------------
# OCR endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/ocr",
    response_model=ApiResponse[OCRData],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Recognise text in an uploaded image or a stored file",
)
async def recognize_image(
    storage: StorageDep,
    ocr_service: OCRServiceDep,
    validator: ValidatorDep,
    file: Annotated[UploadFile | None, File()] = None,
    file_id: Annotated[str | None, Form(alias="fileId")] = None,
    language: Annotated[str | None, Form()] = None,
) -> ApiResponse[OCRData]:
    """Run OCR on the stored file ``fileId`` or on an uploaded ``file``.

    ``fileId`` wins when both are sent, and its result is also saved as an
    OCR record for that file.
    """
    language = language or ocr_service.default_language
    ocr_service.validate_language(language)

    if file_id:
        try:
            stored, image_data = await storage.get_file(file_id)
        except (FileMissingError, FileStateError) as exc:
            raise HTTPException(
                status_code=404, detail="File does not exist or cannot be accessed"
            ) from exc
        content_type = stored.mimetype
    elif file is not None:
        image_data = await _read_upload(file, validator.options.max_file_size)
        content_type = file.content_type or ""
    else:
        raise HTTPException(status_code=400, detail="Provide an image file or a fileId")

    if not is_image(content_type):
        raise HTTPException(status_code=400, detail="Only image files can be recognised")

    try:
        result = await ocr_service.recognize(image_data, OCROptions(language=language))
    except KnowledgeVaultError as exc:
        _logger.error("ocr_request_failed", file_id=file_id, error=exc.message)
        raise HTTPException(
            status_code=500, detail=f"OCR recognition failed: {exc.message}"
        ) from exc

    metadata = ocr_service.build_metadata(result)
    boxes = ocr_service.to_bounding_boxes(result)

    ocr_record_id: str | None = None
    if file_id:
        record = await storage.save_ocr_result(
            file_id, result.text, result.confidence, language, metadata, boxes
        )
        ocr_record_id = record.id

    return ApiResponse(
        data=OCRData(
            text=result.text,
            confidence=result.confidence,
            language=language,
            bounding_boxes=boxes,
            metadata=OCRMetadataData.from_metadata(metadata),
            file_id=file_id or None,
            ocr_record_id=ocr_record_id,
        )
    )


@router.get(
    "/ocr",
    response_model=ApiResponse[OCRStatusData],
    response_model_exclude_none=True,
    summary="OCR engine status and languages",
)
async def ocr_status(
    ocr_service: OCRServiceDep,
    include_all: Annotated[bool, Query(alias="all")] = False,
) -> ApiResponse[OCRStatusData]:
    info = ocr_service.engine_info()
    ready = ocr_service.is_ready()
    return ApiResponse(
        data=OCRStatusData(
            message="OCR service is running" if ready else "OCR engine is not available",
            ready=ready,
            engine=info["engine"],
            version=info["version"],
            default_language=ocr_service.default_language,
            supported_languages=[LanguageOption(**lang) for lang in ocr_service.featured_languages()],
            all_languages=ocr_service.supported_languages() if include_all else None,
        )
    )


@router.get(
    "/ocr/{file_id}",
    response_model=ApiResponse[dict[str, Any]],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Latest OCR record for a stored file",
)
async def get_ocr_record(
    file_id: str,
    storage: StorageDep,
    language: str | None = None,
) -> ApiResponse[dict[str, Any]]:
    record = await storage.get_ocr_result(file_id, language=language)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No OCR result for file {file_id}")
    return ApiResponse(data=record.to_api())


# ---------------------------------------------------------------------------
# Knowledge fragment endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/fragments",
    status_code=201,
    response_model=ApiResponse[FragmentData],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Create a knowledge fragment",
)
async def create_fragment(
    body: FragmentCreateRequest, fragments: FragmentServiceDep
) -> ApiResponse[FragmentData]:
    fragment = await fragments.create_fragment(body.title, body.content, body.tags)
    return ApiResponse(data=FragmentData.from_fragment(fragment), message="Fragment created")


@router.get(
    "/fragments",
    response_model=ApiResponse[FragmentListData],
    response_model_exclude_none=True,
    summary="List knowledge fragments",
)
async def list_fragments(
    fragments: FragmentServiceDep,
    tag: str | None = None,
    source_file_id: Annotated[str | None, Query(alias="sourceFileId")] = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 50,
    skip: Annotated[int, Query(ge=0)] = 0,
) -> ApiResponse[FragmentListData]:
    items = await fragments.list_fragments(
        tag=tag, source_file_id=source_file_id, limit=limit, skip=skip
    )
    return ApiResponse(
        data=FragmentListData(
            fragments=[FragmentData.from_fragment(f) for f in items], count=len(items)
        )
    )


@router.get(
    "/fragments/{fragment_id}",
    response_model=ApiResponse[FragmentData],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Fetch one knowledge fragment",
)
async def get_fragment(fragment_id: str, fragments: FragmentServiceDep) -> ApiResponse[FragmentData]:
    fragment = await fragments.get_fragment(fragment_id)
    return ApiResponse(data=FragmentData.from_fragment(fragment))


@router.delete(
    "/fragments/{fragment_id}",
    response_model=ApiResponse[Any],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Delete a knowledge fragment",
)
async def delete_fragment(fragment_id: str, fragments: FragmentServiceDep) -> ApiResponse[Any]:
    if not await fragments.delete_fragment(fragment_id):
        raise HTTPException(status_code=404, detail=f"Knowledge fragment {fragment_id} does not exist")
    return ApiResponse(message="Fragment deleted")


# ---------------------------------------------------------------------------
# Enrichment endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/enrich/{file_id}",
    status_code=202,
    response_model=ApiResponse[EnrichmentJobData],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Start OCR enrichment for a stored image",
)
async def start_enrichment(
    file_id: str,
    background_tasks: BackgroundTasks,
    storage: StorageDep,
    pipeline: PipelineDep,
    tracker: TrackerDep,
    body: EnrichRequest | None = None,
) -> ApiResponse[EnrichmentJobData]:
    body = body or EnrichRequest()
    stored = await storage.get_file_info(file_id)
    if not stored.is_image:
        raise HTTPException(
            status_code=400, detail=f"Only image files can be enriched (got {stored.mimetype})"
        )

    job = await pipeline.start(
        file_id, body.language, create_fragment=body.create_fragment, tags=body.tags
    )
    background_tasks.add_task(pipeline.run, job)
    return ApiResponse(
        data=_job_data(job.job_id, pipeline, tracker), message="Enrichment started"
    )


@router.get(
    "/enrich/{job_id}",
    response_model=ApiResponse[EnrichmentJobData],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    summary="Poll an enrichment job",
)
async def get_enrichment(
    job_id: str, pipeline: PipelineDep, tracker: TrackerDep
) -> ApiResponse[EnrichmentJobData]:
    return ApiResponse(data=_job_data(job_id, pipeline, tracker))


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Database reachability decides healthy/unhealthy; a missing OCR engine degrades."""
    checks: dict[str, Any] = {}

    mongo: MongoConnection | None = getattr(request.app.state, "mongo", None)
    checks["database"] = bool(mongo is not None and await mongo.ping())

    ocr_service: OCRService | None = getattr(request.app.state, "ocr_service", None)
    checks["ocr"] = bool(ocr_service is not None and ocr_service.is_ready())
    if ocr_service is not None:
        checks["ocr_engine"] = ocr_service.engine_info()

    if not checks["database"]:
        status = "unhealthy"
    elif not checks["ocr"]:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(status=status, version=API_VERSION, checks=checks)
