"""Helper functions for pipeline stages."""

import logging

from ..output import Artifact, OutputSink
from ..sources import SIDES, ImagePair

logger = logging.getLogger(__name__)


def write_pair(
    sink: OutputSink,
    templates: list[str],
    variables: dict[str, object],
    pair: ImagePair,
) -> None:
    """Write both sides of an image pair to every template.

    The side marker is exposed to the templates as ``s``.

    Args:
        sink: Output sink.
        templates: Output filename templates.
        variables: Range and frame variables.
        pair: Image pair to write.
    """
    for template in templates:
        for side, image in zip(SIDES, pair):
            sink.write(template, {**variables, "s": side}, Artifact.image(image))
