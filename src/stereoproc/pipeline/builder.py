"""Pipeline context builder for one-time initialization."""

import logging

from ..calibration import StereoRectification
from ..config import PipelineConfig
from ..matching import OpenCvStereoMatcher
from ..reprojection import DisparityReprojector
from ..sources import VrmsReaderFactory, open_source
from .context import PipelineContext

logger = logging.getLogger(__name__)


def build_pipeline_context(
    config: PipelineConfig,
    vrms_reader_factory: VrmsReaderFactory | None = None,
) -> PipelineContext:
    """Perform one-time pipeline initialization.

    Validates the requested outputs, loads the stereo calibration and method
    (when configured), and opens the frame source. The source is opened last
    so that a configuration error never leaves it open.

    Args:
        config: Full pipeline configuration.
        vrms_reader_factory: Reader factory for VRMS input.

    Returns:
        PipelineContext with all collaborators.

    Raises:
        ConfigError: If the configuration is invalid or a parameter file
            cannot be loaded.
        SourceOpenError: If the input cannot be opened.
    """
    config.check_outputs()
    input_type = config.resolved_input_type()

    rectifier = None
    if config.stereo_calibration:
        logger.info("Loading stereo calibration from %s", config.stereo_calibration)
        rectifier = StereoRectification.from_file(config.stereo_calibration)

    matcher = None
    if config.stereo_method:
        logger.info("Loading stereo method from %s", config.stereo_method)
        matcher = OpenCvStereoMatcher.from_file(config.stereo_method)
        logger.info(
            "Using stereo method %s (%d disparities)",
            matcher.method,
            matcher.num_disparities,
        )

    # Reprojection needs Q, which only exists with a calibration
    reprojector = None
    if rectifier is not None:
        reprojector = DisparityReprojector(rectifier.reprojection_matrix)

    logger.info("Opening %s input %s", input_type, config.input_file)
    source = open_source(
        config.input_file, input_type, vrms_reader_factory=vrms_reader_factory
    )

    return PipelineContext(
        config=config,
        source=source,
        rectifier=rectifier,
        matcher=matcher,
        reprojector=reprojector,
    )
