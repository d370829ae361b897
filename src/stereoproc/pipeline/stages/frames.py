"""Raw frame export stage."""

import logging

from ...config import Stage
from ...output import OutputSink
from ...sources import ImagePair
from ..context import PipelineContext
from ..helpers import write_pair

logger = logging.getLogger(__name__)


def run_frame_export_stage(
    pair: ImagePair,
    variables: dict[str, object],
    ctx: PipelineContext,
    sink: OutputSink,
) -> None:
    """Write the fetched pair to every configured frame template.

    Args:
        pair: Image pair as returned by the frame source.
        variables: Range and frame variables.
        ctx: Pipeline context.
        sink: Output sink.
    """
    templates = ctx.config.outputs.templates(Stage.FRAME)
    if templates:
        logger.debug(
            "Frame %d: writing %d frame output(s)", pair.frame_idx, len(templates)
        )
        write_pair(sink, templates, variables, pair)
