"""Integration tests for the enrichment pipeline.

Real storage, OCR and fragment services on mongomock with a scripted
OCR provider; the pipeline runs start to finish in-process.
"""

from __future__ import annotations

import itertools

import pytest

from src.models.enrichment import EnrichmentPhase
from src.pipeline.enrichment import EnrichmentPipeline
from src.pipeline.progress_tracker import ProgressTracker
from src.services.ocr_service import OCRService
from src.utils.errors import UnsupportedLanguageError
from tests.conftest import FakeOCRProvider, make_image_bytes


@pytest.fixture
def provider() -> FakeOCRProvider:
    return FakeOCRProvider()


@pytest.fixture
def tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def pipeline(storage_service, fragment_service, provider, tracker) -> EnrichmentPipeline:
    counter = itertools.count(1)
    return EnrichmentPipeline(
        storage=storage_service,
        ocr_service=OCRService([provider], default_language="chi_sim+eng"),
        fragment_service=fragment_service,
        progress_tracker=tracker,
        id_factory=lambda: f"job-{next(counter)}",
    )


class TestEnrichmentPipeline:
    @pytest.mark.asyncio
    async def test_full_run_broadcasts_phases(
        self, pipeline, storage_service, fragment_service, tracker
    ) -> None:
        stored = await storage_service.upload_file(
            make_image_bytes(), "board.png", "image/png", metadata={"tags": ["Team"]}
        )
        job = await pipeline.start(stored.id, tags=["inbox"])
        assert job.job_id == "job-1"
        assert (job.phase, job.progress) == (EnrichmentPhase.STORAGE, 5.0)

        seen: list[tuple[EnrichmentPhase, float]] = []
        tracker.register_listener(
            job.job_id, lambda _id, phase, progress, _msg: seen.append((phase, progress))
        )

        final = await pipeline.run(job)

        assert seen == [
            (EnrichmentPhase.STORAGE, 10.0),
            (EnrichmentPhase.OCR, 30.0),
            (EnrichmentPhase.FRAGMENT, 80.0),
            (EnrichmentPhase.DONE, 100.0),
        ]
        assert final.phase == EnrichmentPhase.DONE
        assert final.completed_at is not None
        assert final.ocr_confidence == 85.0
        assert pipeline.get_job("job-1") == final

        fragment = await fragment_service.get_fragment(final.fragment_id)
        assert fragment.source_file_id == stored.id
        assert fragment.tags == ["ocr", "team", "inbox"]

        record = await storage_service.get_ocr_result(stored.id)
        assert record.id == final.ocr_record_id
        assert record.metadata.ocr_engine == "fake"

    @pytest.mark.asyncio
    async def test_listeners_cleared_after_run(self, pipeline, storage_service, tracker) -> None:
        stored = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")
        job = await pipeline.start(stored.id)
        calls: list[str] = []
        tracker.register_listener(job.job_id, lambda *args: calls.append(args[3]))

        await pipeline.run(job)
        count = len(calls)
        await tracker.update(job.job_id, EnrichmentPhase.DONE, 100.0, "late")
        assert len(calls) == count

    @pytest.mark.asyncio
    async def test_without_fragment(self, pipeline, storage_service, fragment_service) -> None:
        stored = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")
        final = await pipeline.enrich(stored.id, language="eng", create_fragment=False)

        assert final.phase == EnrichmentPhase.DONE
        assert final.fragment_id is None
        assert await fragment_service.list_fragments() == []

    @pytest.mark.asyncio
    async def test_blank_text_finishes_without_fragment(
        self, pipeline, storage_service, provider
    ) -> None:
        provider.text = "  "
        provider.confidence = 0.0
        stored = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")

        final = await pipeline.enrich(stored.id)
        assert final.phase == EnrichmentPhase.DONE
        assert final.fragment_id is None
        assert final.ocr_record_id

    @pytest.mark.asyncio
    async def test_ocr_record_reused_per_language(
        self, pipeline, storage_service, provider
    ) -> None:
        stored = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")

        first = await pipeline.enrich(stored.id, language="eng", create_fragment=False)
        second = await pipeline.enrich(stored.id, language="eng", create_fragment=False)
        third = await pipeline.enrich(stored.id, language="chi_sim", create_fragment=False)

        assert second.ocr_record_id == first.ocr_record_id
        assert third.ocr_record_id != first.ocr_record_id
        assert [call.language for call in provider.calls] == ["eng", "chi_sim"]

    @pytest.mark.asyncio
    async def test_non_image_fails_in_storage_phase(self, pipeline, storage_service) -> None:
        stored = await storage_service.upload_file(b"plain", "a.txt", "text/plain")
        final = await pipeline.enrich(stored.id)

        assert final.phase == EnrichmentPhase.FAILED
        assert final.errors[0].phase == EnrichmentPhase.STORAGE
        assert "Only image files" in final.errors[0].message
        assert final.completed_at is not None

    @pytest.mark.asyncio
    async def test_unknown_file_fails(self, pipeline, tracker) -> None:
        final = await pipeline.enrich("65f0c0ffee0000000000abcd")

        assert final.phase == EnrichmentPhase.FAILED
        assert final.errors[0].message == "File does not exist"
        assert tracker.get_status(final.job_id)["phase"] == "FAILED"

    @pytest.mark.asyncio
    async def test_ocr_failure_recorded(self, pipeline, storage_service, provider) -> None:
        provider.error = RuntimeError("engine down")
        stored = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")

        final = await pipeline.enrich(stored.id)
        assert final.phase == EnrichmentPhase.FAILED
        assert final.errors[0].phase == EnrichmentPhase.OCR
        assert final.errors[0].message == "All OCR providers failed"
        assert await storage_service.get_ocr_result(stored.id) is None

    @pytest.mark.asyncio
    async def test_start_rejects_unknown_language(self, pipeline) -> None:
        with pytest.raises(UnsupportedLanguageError):
            await pipeline.start("65f0c0ffee0000000000abcd", language="xx")
        assert pipeline.list_jobs() == []

    @pytest.mark.asyncio
    async def test_list_jobs_filtered_by_file(self, pipeline, storage_service) -> None:
        a = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")
        b = await storage_service.upload_file(make_image_bytes(), "b.png", "image/png")
        await pipeline.start(a.id)
        await pipeline.start(b.id)
        await pipeline.start(a.id)

        assert len(pipeline.list_jobs()) == 3
        assert {job.file_id for job in pipeline.list_jobs(file_id=a.id)} == {a.id}
        assert len(pipeline.list_jobs(file_id=a.id)) == 2


class TestJobRegistry:
    @pytest.mark.asyncio
    async def test_finished_jobs_expire(self, storage_service, fragment_service, provider) -> None:
        now = [0.0]
        tracker = ProgressTracker(ttl=60, timer=lambda: now[0])
        pipeline = EnrichmentPipeline(
            storage=storage_service,
            ocr_service=OCRService([provider], default_language="chi_sim+eng"),
            fragment_service=fragment_service,
            progress_tracker=tracker,
            job_ttl=60,
            timer=lambda: now[0],
        )
        stored = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")
        final = await pipeline.run(await pipeline.start(stored.id))
        assert final.phase == EnrichmentPhase.DONE

        now[0] = 59.0
        assert pipeline.list_jobs() == [final]
        assert tracker.get_status(final.job_id)["phase"] == "DONE"

        now[0] = 61.0
        assert pipeline.get_job(final.job_id) is None
        assert pipeline.list_jobs() == []
        assert tracker.get_status(final.job_id)["phase"] == "UPLOAD"

    @pytest.mark.asyncio
    async def test_registry_is_capped(self, storage_service, fragment_service, provider) -> None:
        counter = itertools.count(1)
        pipeline = EnrichmentPipeline(
            storage=storage_service,
            ocr_service=OCRService([provider], default_language="chi_sim+eng"),
            fragment_service=fragment_service,
            progress_tracker=ProgressTracker(),
            id_factory=lambda: f"job-{next(counter)}",
            max_jobs=2,
        )
        stored = await storage_service.upload_file(make_image_bytes(), "a.png", "image/png")
        for _ in range(3):
            await pipeline.start(stored.id)

        assert pipeline.get_job("job-1") is None
        assert {job.job_id for job in pipeline.list_jobs()} == {"job-2", "job-3"}
