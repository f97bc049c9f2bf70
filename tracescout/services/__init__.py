"""Pipeline services."""

from tracescout.services.cancellation import CancellationToken, PipelineCancelled
from tracescout.services.config import PipelineConfig
from tracescout.services.pipeline_service import RunResult, TracePipeline
from tracescout.services.progress import PipelineStage, ProgressEvent

__all__ = [
    "CancellationToken",
    "PipelineCancelled",
    "PipelineConfig",
    "PipelineStage",
    "ProgressEvent",
    "RunResult",
    "TracePipeline",
]
