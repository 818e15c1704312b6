"""Asynchronous enrichment pipeline: stored file → OCR → knowledge fragment.

Runs after an upload has been persisted.  Each job advances a frozen
:class:`EnrichmentJob` through its phases via ``model_copy`` and broadcasts
progress through the injected :class:`ProgressTracker`.

ARCHITECTURE NOTE (for junior developers):
    The HTTP layer calls ``start()`` while handling the upload request,
    returns the job id to the client, and schedules ``run()`` with FastAPI
    ``BackgroundTasks``.  ``run()`` executes after the response is sent:

        STORAGE   load the bytes back from FileStorageService
        OCR       reuse a completed OCR record for the same language, or
                  run OCRService and persist a new record
        FRAGMENT  (optional) FragmentService.create_from_ocr
        DONE

    Any failure moves the job to FAILED with the error recorded on the
    job.  ``run()`` never raises: there is no caller left to catch it once
    the response has gone out.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from uuid import uuid4

import structlog
from cachetools import TTLCache

from src.models.enrichment import EnrichmentErrorEntry, EnrichmentJob, EnrichmentPhase
from src.models.ocr import OCROptions, OCRRecord
from src.pipeline.progress_tracker import ProgressTracker
from src.services.file_storage_service import FileStorageService
from src.services.fragment_service import FragmentService
from src.services.ocr_service import OCRService
from src.utils.errors import EnrichmentError
from src.utils.formatting import truncate
from src.utils.logging import get_logger

_PREVIEW_LENGTH = 120


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class EnrichmentPipeline:
    """Coordinates storage, OCR and fragment creation for uploaded images.

    Jobs live in an in-process ``TTLCache``: a job is dropped *job_ttl*
    seconds after its last change, or earlier once *max_jobs* is reached.
    They are lost on restart, while the OCR records and fragments they
    produced are persisted.
    """

    def __init__(
        self,
        storage: FileStorageService,
        ocr_service: OCRService,
        fragment_service: FragmentService,
        progress_tracker: ProgressTracker,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
        max_jobs: int = 1000,
        job_ttl: float = 3600,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._storage = storage
        self._ocr = ocr_service
        self._fragments = fragment_service
        self._tracker = progress_tracker
        self._id_factory = id_factory
        self._jobs: TTLCache[str, EnrichmentJob] = TTLCache(
            maxsize=max_jobs, ttl=job_ttl, timer=timer
        )
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def start(
        self,
        file_id: str,
        language: str | None = None,
        create_fragment: bool = True,
        tags: Iterable[str] = (),
    ) -> EnrichmentJob:
        """Register a job for an already-stored file and return it.

        The language is validated here so a bad code is rejected while the
        client is still waiting for a response.
        """
        language = language or self._ocr.default_language
        self._ocr.validate_language(language)

        job = EnrichmentJob(
            job_id=self._id_factory(),
            file_id=file_id,
            language=language,
            create_fragment=create_fragment,
            tags=list(tags),
            phase=EnrichmentPhase.STORAGE,
            progress=5.0,
        )
        self._jobs[job.job_id] = job
        await self._tracker.update(job.job_id, job.phase, job.progress, "File stored, queued for OCR")
        self._logger.info("enrichment_job_started", job_id=job.job_id, file_id=file_id, language=language)
        return job

    def get_job(self, job_id: str) -> EnrichmentJob | None:
        return self._jobs.get(job_id)

    def list_jobs(self, file_id: str | None = None) -> list[EnrichmentJob]:
        self._jobs.expire()
        jobs = [
            job for job in list(self._jobs.values()) if file_id is None or job.file_id == file_id
        ]
        return sorted(jobs, key=lambda job: job.started_at, reverse=True)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, job: EnrichmentJob) -> EnrichmentJob:
        """Execute *job* to DONE or FAILED and return the final snapshot."""
        job_id = job.job_id
        try:
            job = await self._advance(job, EnrichmentPhase.STORAGE, 10.0, "Loading file from storage")
            stored, data = await self._storage.get_file(job.file_id)
            if not stored.is_image:
                raise EnrichmentError(
                    f"Only image files can be enriched with OCR (got {stored.mimetype})"
                )

            job = await self._advance(job, EnrichmentPhase.OCR, 30.0, "Running text recognition")
            record, reused = await self._ocr_record_for(job, data)
            job = self._store(
                job.model_copy(
                    update={
                        "ocr_record_id": record.id,
                        "ocr_confidence": record.confidence,
                        "text_preview": truncate(record.text, _PREVIEW_LENGTH),
                    }
                )
            )
            self._logger.info(
                "enrichment_ocr_complete",
                job_id=job_id,
                ocr_record_id=record.id,
                reused=reused,
                confidence=record.confidence,
            )

            if job.create_fragment:
                job = await self._advance(
                    job, EnrichmentPhase.FRAGMENT, 80.0, "Creating knowledge fragment"
                )
                fragment = await self._fragments.create_from_ocr(stored, record, job.tags)
                if fragment is not None:
                    job = self._store(job.model_copy(update={"fragment_id": fragment.id}))

            job = await self._advance(
                job,
                EnrichmentPhase.DONE,
                100.0,
                "Enrichment complete",
                completed_at=_utcnow(),
            )
            self._logger.info(
                "enrichment_job_complete",
                job_id=job_id,
                file_id=job.file_id,
                fragment_id=job.fragment_id,
            )
        except Exception as exc:
            job = await self._fail(job, exc)
        finally:
            self._tracker.clear_listeners(job_id)
        return job

    async def enrich(
        self,
        file_id: str,
        language: str | None = None,
        create_fragment: bool = True,
        tags: Iterable[str] = (),
    ) -> EnrichmentJob:
        """``start`` + ``run`` in one call, for callers that can wait."""
        job = await self.start(file_id, language, create_fragment, tags)
        return await self.run(job)

    async def _ocr_record_for(self, job: EnrichmentJob, data: bytes) -> tuple[OCRRecord, bool]:
        existing = await self._storage.get_ocr_result(job.file_id, language=job.language)
        if existing is not None:
            return existing, True

        result = await self._ocr.recognize(data, OCROptions(language=job.language))
        record = await self._storage.save_ocr_result(
            job.file_id,
            result.text,
            result.confidence,
            job.language,
            self._ocr.build_metadata(result),
            self._ocr.to_bounding_boxes(result),
        )
        return record, False

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _store(self, job: EnrichmentJob) -> EnrichmentJob:
        self._jobs[job.job_id] = job
        return job

    async def _advance(
        self,
        job: EnrichmentJob,
        phase: EnrichmentPhase,
        progress: float,
        message: str,
        completed_at: datetime | None = None,
    ) -> EnrichmentJob:
        update: dict = {"phase": phase, "progress": progress}
        if completed_at is not None:
            update["completed_at"] = completed_at
        job = self._store(job.model_copy(update=update))
        await self._tracker.update(job.job_id, phase, progress, message)
        return job

    async def _fail(self, job: EnrichmentJob, exc: Exception) -> EnrichmentJob:
        message = str(exc) or exc.__class__.__name__
        self._logger.error(
            "enrichment_job_failed",
            job_id=job.job_id,
            file_id=job.file_id,
            phase=job.phase.value,
            error=message,
        )
        errors = [*job.errors, EnrichmentErrorEntry(phase=job.phase, message=message)]
        job = self._store(
            job.model_copy(
                update={
                    "phase": EnrichmentPhase.FAILED,
                    "errors": errors,
                    "completed_at": _utcnow(),
                }
            )
        )
        await self._tracker.update(job.job_id, EnrichmentPhase.FAILED, job.progress, message)
        return job
