"""Pipeline runner: drives frame ranges through the stages."""

import logging
import sys
from dataclasses import dataclass, field

from tqdm import tqdm

from ..config import PipelineConfig
from ..errors import EndOfSequenceError
from ..frame_range import FrameRange
from ..output import OutputSink
from ..sources import ImagePair, VrmsReaderFactory
from .builder import build_pipeline_context
from .context import PipelineContext
from .stages.disparity import run_disparity_stage
from .stages.frames import run_frame_export_stage
from .stages.rectification import run_rectification_stage
from .stages.reprojection import run_reprojection_stage

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Result of a pipeline run.

    Attributes:
        frames_per_range: Number of frames processed, per frame range in order.
        files_written: Total number of output files written.
    """

    frames_per_range: list[int] = field(default_factory=list)
    files_written: int = 0

    @property
    def frames_processed(self) -> int:
        return sum(self.frames_per_range)


def range_variables(frame_range: FrameRange) -> dict[str, object]:
    """Template variables shared by every frame of a range."""
    return {
        "rangeStart": frame_range.start,
        "rangeEnd": frame_range.end,
        "rangeStep": frame_range.step,
    }


def process_frame(
    pair: ImagePair,
    variables: dict[str, object],
    ctx: PipelineContext,
    sink: OutputSink,
) -> None:
    """Process a single fetched frame through all stages.

    Stages run in order: frame export, rectification, disparity and
    reprojection. Disparity and reprojection are skipped when no matcher is
    configured.

    Args:
        pair: Fetched image pair.
        variables: Range variables plus the frame index ``f``.
        ctx: Pipeline context from build_pipeline_context().
        sink: Output sink.
    """
    run_frame_export_stage(pair, variables, ctx, sink)

    rectified = run_rectification_stage(pair, variables, ctx, sink)

    if ctx.matcher is None:
        return

    disparity = run_disparity_stage(rectified, variables, ctx, sink)

    if ctx.reprojector is not None:
        run_reprojection_stage(disparity, rectified, variables, ctx, sink)


def process_frame_range(
    frame_range: FrameRange,
    ctx: PipelineContext,
    sink: OutputSink,
) -> int:
    """Process every frame of a range.

    An unbounded range ends when the source reports the end of the
    sequence. On a bounded range the same condition is an error.

    Args:
        frame_range: Frames to process.
        ctx: Pipeline context.
        sink: Output sink.

    Returns:
        Number of frames processed.

    Raises:
        EndOfSequenceError: If the source is exhausted inside a bounded range.
        StereoProcError: On any other source, sink or processing failure.
    """
    variables = range_variables(frame_range)
    logger.info("Processing frame range %s", frame_range)

    processed = 0
    with tqdm(
        frame_range.frames(),
        total=frame_range.count(),
        desc="Processing frames",
        disable=ctx.config.runtime.quiet or not sys.stderr.isatty(),
        unit="frame",
    ) as frames:
        for frame_idx in frames:
            logger.debug("Processing frame %d", frame_idx)
            try:
                pair = ctx.source.get_frame(frame_idx)
            except EndOfSequenceError:
                if frame_range.is_bounded:
                    raise
                logger.info("Reached end of sequence!")
                break

            process_frame(pair, {**variables, "f": frame_idx}, ctx, sink)
            processed += 1

    logger.info("Frame range %s: %d frame(s) processed", frame_range, processed)
    return processed


def _log_run_description(ctx: PipelineContext) -> None:
    config = ctx.config
    logger.info("Input: %s (%s)", config.input_file, config.resolved_input_type())
    if config.stereo_calibration:
        logger.info("Stereo calibration: %s", config.stereo_calibration)
    else:
        logger.info("No stereo calibration; input is assumed to be rectified")
    if config.stereo_method:
        logger.info("Stereo method: %s", config.stereo_method)
    logger.info("Frame ranges: %s", ", ".join(config.frame_ranges))
    for spec in config.outputs.specs():
        logger.info("Output %s: %s", spec.stage.value, spec.template)


def run_pipeline(
    config: PipelineConfig,
    vrms_reader_factory: VrmsReaderFactory | None = None,
) -> RunSummary:
    """Run the pipeline over every configured frame range.

    Ranges are processed in order on the same source. The source is closed
    when the run ends, whether it succeeds or fails; files written before a
    failure stay on disk.

    Args:
        config: Full pipeline configuration.
        vrms_reader_factory: Reader factory for VRMS input.

    Returns:
        RunSummary with per-range frame counts and the number of files written.
    """
    ctx = build_pipeline_context(config, vrms_reader_factory=vrms_reader_factory)
    _log_run_description(ctx)

    sink = OutputSink()
    summary = RunSummary()
    with ctx.source:
        for frame_range in config.parsed_frame_ranges():
            summary.frames_per_range.append(process_frame_range(frame_range, ctx, sink))
            summary.files_written = sink.files_written

    logger.info(
        "Pipeline complete: %d frame(s), %d file(s) written",
        summary.frames_processed,
        summary.files_written,
    )
    return summary


class Pipeline:
    """Stereo image processing pipeline.

    Primary programmatic entry point for stereoproc.

    Example:
        pipeline = Pipeline(config)
        summary = pipeline.run()
    """

    def __init__(
        self,
        config: PipelineConfig,
        vrms_reader_factory: VrmsReaderFactory | None = None,
    ):
        self.config = config
        self.vrms_reader_factory = vrms_reader_factory

    def run(self) -> RunSummary:
        """Run the pipeline.

        Equivalent to calling run_pipeline(config).
        """
        return run_pipeline(self.config, vrms_reader_factory=self.vrms_reader_factory)
