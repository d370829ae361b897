"""Rectification stage."""

import logging

from ...config import Stage
from ...output import OutputSink
from ...sources import ImagePair
from ..context import PipelineContext
from ..helpers import write_pair

logger = logging.getLogger(__name__)


def run_rectification_stage(
    pair: ImagePair,
    variables: dict[str, object],
    ctx: PipelineContext,
    sink: OutputSink,
) -> ImagePair:
    """Rectify the pair and write every rectified template.

    Without a rectifier the input is taken to be rectified already and is
    passed through unchanged.

    Args:
        pair: Image pair as returned by the frame source.
        variables: Range and frame variables.
        ctx: Pipeline context.
        sink: Output sink.

    Returns:
        Rectified image pair.
    """
    if ctx.rectifier is None:
        rectified = pair
    else:
        logger.debug("Frame %d: rectifying", pair.frame_idx)
        left, right = ctx.rectifier.rectify(pair.left, pair.right)
        rectified = ImagePair(left=left, right=right, frame_idx=pair.frame_idx)

    templates = ctx.config.outputs.templates(Stage.RECTIFIED)
    write_pair(sink, templates, variables, rectified)
    return rectified
