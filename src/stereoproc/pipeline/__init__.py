"""Pipeline orchestration package for stereo frame processing.

Provides the pipeline context, builder, and runner for processing frame
ranges through the export, rectification, disparity and reprojection stages.
"""

from .builder import build_pipeline_context
from .context import PipelineContext
from .runner import (
    Pipeline,
    RunSummary,
    process_frame,
    process_frame_range,
    run_pipeline,
)

__all__ = [
    "Pipeline",
    "PipelineContext",
    "RunSummary",
    "build_pipeline_context",
    "process_frame",
    "process_frame_range",
    "run_pipeline",
]
