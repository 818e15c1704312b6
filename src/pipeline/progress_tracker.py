"""Enrichment progress tracking with callback-based listener notification.

Tracks the current phase and progress percentage for each enrichment job
and broadcasts updates to registered listener callbacks.  Listeners are
keyed by job id so many background jobs can run at once without
cross-talk.

# ─── HOW PROGRESS TRACKING WORKS (Junior Developer Guide) ─────────────
#
# Observer pattern:
#
#   EnrichmentPipeline ──update()──→ ProgressTracker ──callback()──→ listener(s)
#
#   1. The pipeline calls tracker.update(job_id, phase, progress, msg)
#   2. ProgressTracker stores the snapshot and calls the job's listeners
#   3. Listeners may be plain functions or coroutines
#   4. A listener that raises is logged and skipped; the job carries on
#
# Snapshots are kept after a job finishes so GET /enrich/{job_id} can
# still report the final phase, then expire ``ttl`` seconds after their
# last update; listeners are dropped by clear_listeners().
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from cachetools import TTLCache

from src.models.enrichment import EnrichmentPhase
from src.utils.logging import get_logger


@dataclass
class _JobStatus:
    """Internal, mutable snapshot of one job's progress."""

    phase: EnrichmentPhase = EnrichmentPhase.UPLOAD
    progress: float = 0.0
    message: str = ""


class ProgressTracker:
    """Tracks and broadcasts enrichment progress via callbacks.

    Callbacks receive ``(job_id, phase, progress, message)``.  At most
    *max_jobs* snapshots are kept; the least recently used go first.
    """

    def __init__(
        self,
        max_jobs: int = 1000,
        ttl: float = 3600,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._statuses: TTLCache[str, _JobStatus] = TTLCache(
            maxsize=max_jobs, ttl=ttl, timer=timer
        )
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def update(
        self,
        job_id: str,
        phase: EnrichmentPhase,
        progress: float,
        message: str,
    ) -> None:
        """Record a progress update and notify the job's listeners.

        *progress* is clamped to 0.0 – 100.0.
        """
        progress = max(0.0, min(100.0, progress))
        self._statuses[job_id] = _JobStatus(phase=phase, progress=progress, message=message)

        self._logger.debug(
            "enrichment_progress",
            job_id=job_id,
            phase=phase.value,
            progress=round(progress, 1),
            message=message,
        )

        await self._notify_listeners(job_id, phase, progress, message)

    def register_listener(self, job_id: str, callback: Callable) -> None:
        listeners = self._listeners.setdefault(job_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered", job_id=job_id, total_listeners=len(listeners)
            )

    def unregister_listener(self, job_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(job_id, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered", job_id=job_id, remaining_listeners=len(listeners)
            )

    def clear_listeners(self, job_id: str) -> None:
        self._listeners.pop(job_id, None)

    def get_status(self, job_id: str) -> dict:
        """Return ``{phase, progress, message}``; zeroed defaults for unknown jobs."""
        status = self._statuses.get(job_id) or _JobStatus()
        return {
            "phase": status.phase.value,
            "progress": status.progress,
            "message": status.message,
        }

    async def _notify_listeners(
        self,
        job_id: str,
        phase: EnrichmentPhase,
        progress: float,
        message: str,
    ) -> None:
        # Copy: a callback may unregister itself while we iterate.
        for callback in list(self._listeners.get(job_id, [])):
            try:
                result = callback(job_id, phase, progress, message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    job_id=job_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
