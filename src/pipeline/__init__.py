"""Background enrichment components: the job pipeline and its progress tracker."""

from src.pipeline.enrichment import EnrichmentPipeline
from src.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "EnrichmentPipeline",
    "ProgressTracker",
]
