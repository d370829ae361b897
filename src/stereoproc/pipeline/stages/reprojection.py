"""Reprojection stage."""

import logging

import numpy as np

from ...config import Stage
from ...output import Artifact, OutputSink
from ...sources import ImagePair
from ..context import PipelineContext

logger = logging.getLogger(__name__)


def run_reprojection_stage(
    disparity: np.ndarray,
    rectified: ImagePair,
    variables: dict[str, object],
    ctx: PipelineContext,
    sink: OutputSink,
) -> np.ndarray:
    """Reproject disparity to 3D and write every points template.

    The rectified left image is the color reference for point cloud output.

    Args:
        disparity: Disparity map (H, W).
        rectified: Rectified image pair.
        variables: Range and frame variables.
        ctx: Pipeline context (must have a reprojector).
        sink: Output sink.

    Returns:
        Points (H, W, 3) float32.
    """
    logger.debug("Frame %d: reprojecting", rectified.frame_idx)
    points = ctx.reprojector.reproject(disparity)

    artifact = Artifact.points(points)
    for template in ctx.config.outputs.templates(Stage.POINTS):
        sink.write(template, variables, artifact, color_reference=rectified.left)

    return points
