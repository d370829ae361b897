"""Disparity computation stage."""

import logging

import numpy as np

from ...config import Stage
from ...output import Artifact, OutputSink
from ...sources import ImagePair
from ..context import PipelineContext

logger = logging.getLogger(__name__)


def run_disparity_stage(
    rectified: ImagePair,
    variables: dict[str, object],
    ctx: PipelineContext,
    sink: OutputSink,
) -> np.ndarray:
    """Compute disparity and write every disparity template.

    Args:
        rectified: Rectified image pair.
        variables: Range and frame variables.
        ctx: Pipeline context (must have a matcher).
        sink: Output sink.

    Returns:
        Disparity map (H, W) float32.
    """
    logger.debug("Frame %d: computing disparity", rectified.frame_idx)
    disparity, num_disparities = ctx.matcher.compute_disparity(
        rectified.left, rectified.right
    )

    artifact = Artifact.disparity(disparity, num_disparities)
    for template in ctx.config.outputs.templates(Stage.DISPARITY):
        sink.write(template, variables, artifact)

    return disparity
