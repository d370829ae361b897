"""Pipeline context dataclass for per-run collaborators."""

from dataclasses import dataclass

from ..config import PipelineConfig
from .interfaces import FrameSource, Rectifier, Reprojector, StereoMatcher


@dataclass
class PipelineContext:
    """Collaborators that are constant across all frame ranges.

    Created once by build_pipeline_context() and reused for every frame.
    Optional collaborators are None when the configuration does not enable
    them: no calibration means no rectifier and no reprojector, no stereo
    method means no matcher.
    """

    config: PipelineConfig
    source: FrameSource
    rectifier: Rectifier | None = None
    matcher: StereoMatcher | None = None
    reprojector: Reprojector | None = None
