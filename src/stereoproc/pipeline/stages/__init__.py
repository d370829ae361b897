"""Per-frame pipeline stages."""

from .disparity import run_disparity_stage
from .frames import run_frame_export_stage
from .rectification import run_rectification_stage
from .reprojection import run_reprojection_stage

__all__ = [
    "run_disparity_stage",
    "run_frame_export_stage",
    "run_rectification_stage",
    "run_reprojection_stage",
]
