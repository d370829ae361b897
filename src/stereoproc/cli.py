"""Command-line interface for the stereo processing pipeline."""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from stereoproc.config import (
    DEFAULT_FRAME_RANGE,
    OutputConfig,
    PipelineConfig,
    RuntimeConfig,
    format_validation_errors,
)
from stereoproc.errors import StereoProcError
from stereoproc.sources import INPUT_TYPES


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _execute(config: PipelineConfig) -> None:
    """Run the pipeline, reporting failures on stderr with exit status 1."""
    from stereoproc.pipeline import run_pipeline

    try:
        run_pipeline(config)
    except (StereoProcError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def process_command(args: argparse.Namespace) -> None:
    """Build a configuration from command-line options and run it.

    Args:
        args: Parsed arguments of the ``process`` subcommand.
    """
    log_level = "DEBUG" if args.verbose else "INFO"
    _configure_logging(log_level)

    try:
        config = PipelineConfig(
            input_file=args.input,
            input_type=args.input_type,
            stereo_calibration=args.stereo_calibration,
            stereo_method=args.stereo_method,
            frame_ranges=args.frame_range or [DEFAULT_FRAME_RANGE],
            outputs=OutputConfig(
                frames=args.output_frames,
                rectified=args.output_rectified,
                disparity=args.output_disparity,
                points=args.output_points,
            ),
            runtime=RuntimeConfig(quiet=args.quiet, log_level=log_level),
        )
    except ValidationError as e:
        print(
            f"Error: Invalid options:\n{format_validation_errors(e)}",
            file=sys.stderr,
        )
        sys.exit(1)

    if args.save_config is not None:
        config.to_yaml(args.save_config)
        logging.getLogger(__name__).info("Config saved to %s", args.save_config)

    _execute(config)


def run_command(
    config_path: Path, verbose: bool = False, quiet: bool = False
) -> None:
    """Execute the pipeline from a config file.

    Args:
        config_path: Path to the pipeline config YAML file.
        verbose: If True, set logging to DEBUG level.
        quiet: If True, suppress the progress bar.
    """
    # 1. Load config
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)

    try:
        config = PipelineConfig.from_yaml(config_path)
    except Exception as e:
        print(f"Error: Failed to load config: {e}", file=sys.stderr)
        sys.exit(1)

    # 2. Apply CLI overrides
    if verbose:
        config.runtime.log_level = "DEBUG"
    if quiet:
        config.runtime.quiet = True

    # 3. Configure logging
    _configure_logging(config.runtime.log_level)

    # 4. Run pipeline
    _execute(config)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress the progress bar",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the ``stereoproc`` command."""
    parser = argparse.ArgumentParser(
        prog="stereoproc",
        description=(
            "Rectification, disparity and reprojection of stereo image pairs "
            "from image sequences, side-by-side video and VRMS recordings."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # process subcommand
    process_parser = subparsers.add_parser(
        "process",
        help="Process an input from command-line options",
        description=(
            "Output filenames are templates: %{f} is the frame index, %{s} the "
            "side (L/R), %{rangeStart}, %{rangeStep} and %{rangeEnd} the "
            "current frame range. A printf conversion may follow a bar, e.g. "
            "%{f|05d}. The extension selects the writer (xml/yml/yaml, bin, "
            "pcd, or any image format)."
        ),
    )
    process_parser.add_argument(
        "input",
        type=str,
        help="Input video, VRMS file, or image filename template",
    )
    process_parser.add_argument(
        "--input-type",
        choices=INPUT_TYPES,
        default=None,
        help="Input type (default: detected from the file suffix)",
    )
    process_parser.add_argument(
        "--stereo-calibration",
        type=str,
        default=None,
        help="Stereo calibration file (enables rectification and reprojection)",
    )
    process_parser.add_argument(
        "--stereo-method",
        type=str,
        default=None,
        help="Stereo method parameter file (enables disparity)",
    )
    process_parser.add_argument(
        "-f",
        "--frame-range",
        action="append",
        default=[],
        metavar="RANGE",
        help="Frame range start:end or start:step:end; repeatable (default: 0:1:-1)",
    )
    for stage, help_text in (
        ("frames", "Output for the raw image pair"),
        ("rectified", "Output for the rectified image pair"),
        ("disparity", "Output for the disparity map"),
        ("points", "Output for the reprojected points"),
    ):
        process_parser.add_argument(
            f"--output-{stage}",
            action="append",
            default=[],
            metavar="FMT",
            help=f"{help_text}; repeatable",
        )
    process_parser.add_argument(
        "--save-config",
        type=Path,
        default=None,
        help="Also save the options as a config YAML file",
    )
    _add_common_arguments(process_parser)

    # run subcommand
    run_parser = subparsers.add_parser(
        "run",
        help="Run the pipeline from a config YAML file",
    )
    run_parser.add_argument(
        "config",
        type=Path,
        help="Path to pipeline config YAML file",
    )
    _add_common_arguments(run_parser)

    return parser


def main() -> None:
    """Main entry point for the stereoproc CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Dispatch
    if args.command == "process":
        process_command(args)
    elif args.command == "run":
        run_command(
            config_path=args.config,
            verbose=args.verbose,
            quiet=args.quiet,
        )
    else:
        parser.print_help()
        sys.exit(1)
