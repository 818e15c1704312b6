"""Unit tests for the enrichment ProgressTracker."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.enrichment import EnrichmentPhase
from src.pipeline.progress_tracker import ProgressTracker


class TestProgressTracker:
    @pytest.mark.asyncio
    async def test_update_and_status(self) -> None:
        tracker = ProgressTracker()
        await tracker.update("job-1", EnrichmentPhase.OCR, 30.0, "Running text recognition")

        assert tracker.get_status("job-1") == {
            "phase": "OCR",
            "progress": 30.0,
            "message": "Running text recognition",
        }

    def test_unknown_job_status(self) -> None:
        assert ProgressTracker().get_status("missing") == {
            "phase": "UPLOAD",
            "progress": 0.0,
            "message": "",
        }

    @pytest.mark.asyncio
    async def test_snapshots_expire_after_ttl(self) -> None:
        now = [100.0]
        tracker = ProgressTracker(ttl=30, timer=lambda: now[0])
        await tracker.update("job-1", EnrichmentPhase.DONE, 100.0, "Done")

        now[0] = 129.0
        assert tracker.get_status("job-1")["phase"] == "DONE"
        now[0] = 131.0
        assert tracker.get_status("job-1") == {"phase": "UPLOAD", "progress": 0.0, "message": ""}

    @pytest.mark.asyncio
    async def test_oldest_snapshot_dropped_when_full(self) -> None:
        tracker = ProgressTracker(max_jobs=2)
        for job_id in ("a", "b", "c"):
            await tracker.update(job_id, EnrichmentPhase.OCR, 30.0, "")

        assert tracker.get_status("a")["progress"] == 0.0
        assert tracker.get_status("c")["progress"] == 30.0

    @pytest.mark.asyncio
    async def test_progress_clamped(self) -> None:
        tracker = ProgressTracker()
        await tracker.update("j", EnrichmentPhase.DONE, 150.0, "")
        assert tracker.get_status("j")["progress"] == 100.0
        await tracker.update("j", EnrichmentPhase.OCR, -5.0, "")
        assert tracker.get_status("j")["progress"] == 0.0

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners_scoped_by_job(self) -> None:
        tracker = ProgressTracker()
        sync_cb = MagicMock()
        async_cb = AsyncMock()
        other_cb = MagicMock()
        tracker.register_listener("a", sync_cb)
        tracker.register_listener("a", sync_cb)  # duplicate ignored
        tracker.register_listener("a", async_cb)
        tracker.register_listener("b", other_cb)

        await tracker.update("a", EnrichmentPhase.FRAGMENT, 80.0, "Creating knowledge fragment")

        sync_cb.assert_called_once_with("a", EnrichmentPhase.FRAGMENT, 80.0, "Creating knowledge fragment")
        async_cb.assert_awaited_once()
        other_cb.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self) -> None:
        tracker = ProgressTracker()
        broken = MagicMock(side_effect=RuntimeError("listener bug"))
        healthy = MagicMock()
        tracker.register_listener("a", broken)
        tracker.register_listener("a", healthy)

        await tracker.update("a", EnrichmentPhase.OCR, 30.0, "")
        healthy.assert_called_once()

    @pytest.mark.asyncio
    async def test_unregister_and_clear(self) -> None:
        tracker = ProgressTracker()
        cb = MagicMock()
        tracker.register_listener("a", cb)
        tracker.unregister_listener("a", cb)
        await tracker.update("a", EnrichmentPhase.OCR, 30.0, "")
        cb.assert_not_called()

        tracker.register_listener("a", cb)
        tracker.clear_listeners("a")
        await tracker.update("a", EnrichmentPhase.DONE, 100.0, "")
        cb.assert_not_called()
        # Status survives clearing listeners.
        assert tracker.get_status("a")["phase"] == "DONE"

    def test_phase_terminal(self) -> None:
        assert EnrichmentPhase.DONE.is_terminal
        assert EnrichmentPhase.FAILED.is_terminal
        assert not EnrichmentPhase.OCR.is_terminal
