"""Configuration management for the stereo processing pipeline."""

import logging
from enum import Enum
from pathlib import Path
from typing import Literal, NamedTuple

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ConfigError
from .frame_range import FrameRange, parse_frame_range
from .sources import detect_input_type

logger = logging.getLogger(__name__)

DEFAULT_FRAME_RANGE = "0:1:-1"


class Stage(str, Enum):
    """Pipeline stage an output template is attached to."""

    FRAME = "frames"
    RECTIFIED = "rectified"
    DISPARITY = "disparity"
    POINTS = "points"


class OutputSpec(NamedTuple):
    stage: Stage
    template: str


class OutputConfig(BaseModel):
    """Output filename templates per pipeline stage.

    Each entry is a template rendered with ``f`` (frame index),
    ``rangeStart``, ``rangeEnd``, ``rangeStep`` and, for frames and rectified
    images, ``s`` (``L`` or ``R``). The file extension selects the writer.

    Attributes:
        frames: Templates for the fetched image pair.
        rectified: Templates for the rectified image pair.
        disparity: Templates for the disparity map.
        points: Templates for the reprojected points.
    """

    model_config = ConfigDict(extra="allow")

    frames: list[str] = Field(default_factory=list)
    rectified: list[str] = Field(default_factory=list)
    disparity: list[str] = Field(default_factory=list)
    points: list[str] = Field(default_factory=list)

    def templates(self, stage: Stage) -> list[str]:
        """Templates configured for a stage."""
        return getattr(self, stage.value)

    def specs(self) -> list[OutputSpec]:
        """All output specs, in stage order."""
        return [
            OutputSpec(stage, template)
            for stage in Stage
            for template in self.templates(stage)
        ]

    def is_empty(self) -> bool:
        """Whether no output template is configured for any stage."""
        return not self.specs()

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "OutputConfig":
        """Warn about unknown configuration keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in OutputConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self


class RuntimeConfig(BaseModel):
    """Runtime settings.

    Attributes:
        quiet: Suppress the progress bar.
        log_level: Logging level used by the CLI.
    """

    model_config = ConfigDict(extra="allow")

    quiet: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "RuntimeConfig":
        """Warn about unknown configuration keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in RuntimeConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self


class PipelineConfig(BaseModel):
    """Top-level configuration for a stereo processing run.

    Attributes:
        input_file: Video path, VRMS path, or image filename template.
        input_type: "image", "video" or "vrms"; detected from the suffix if None.
        stereo_calibration: Stereo calibration file (enables rectification
            and reprojection).
        stereo_method: Stereo method parameter file (enables disparity).
        frame_ranges: Frame ranges as ``start:end`` or ``start:step:end``
            strings, processed in order.
        outputs: Output templates per stage.
        runtime: Runtime settings.
    """

    model_config = ConfigDict(extra="allow")

    input_file: str = ""
    input_type: Literal["image", "video", "vrms"] | None = None
    stereo_calibration: str | None = None
    stereo_method: str | None = None
    frame_ranges: list[str] = Field(default_factory=lambda: [DEFAULT_FRAME_RANGE])

    outputs: OutputConfig = Field(default_factory=OutputConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @field_validator("frame_ranges")
    @classmethod
    def validate_frame_ranges(cls, v: list[str]) -> list[str]:
        """Validate that every frame range string parses."""
        for text in v:
            try:
                parse_frame_range(text)
            except ConfigError as e:
                raise ValueError(str(e)) from None
        return v

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "PipelineConfig":
        """Warn about unknown top-level keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in PipelineConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self

    def parsed_frame_ranges(self) -> list[FrameRange]:
        """Frame ranges as FrameRange objects, in configured order."""
        return [parse_frame_range(text) for text in self.frame_ranges]

    def resolved_input_type(self) -> str:
        """Input type, auto-detected from the input file suffix when unset.

        Raises:
            ConfigError: If the suffix is not recognized.
        """
        if self.input_type is not None:
            return self.input_type
        return detect_input_type(self.input_file)

    def check_outputs(self) -> None:
        """Check that the requested outputs can be produced.

        Raises:
            ConfigError: If no input or no output is configured, or an output
                needs a calibration or stereo method that is not set.
        """
        if not self.input_file:
            raise ConfigError("No input file specified")

        outputs = self.outputs
        if outputs.is_empty():
            raise ConfigError("No output formats specified; nothing to do!")

        # Without calibration the input is assumed to be rectified already
        if not self.stereo_calibration:
            if outputs.rectified:
                raise ConfigError("Rectified images output requires stereo calibration!")
            if outputs.points:
                raise ConfigError("Reprojected points output requires stereo calibration!")

        if not self.stereo_method:
            if outputs.disparity:
                raise ConfigError("Disparity output requires stereo method!")
            if outputs.points:
                raise ConfigError("Reprojected points output requires stereo method!")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PipelineConfig":
        """Load configuration from a YAML file.

        Missing fields use their default values.

        Args:
            path: Path to YAML configuration file.

        Returns:
            Loaded configuration.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            ConfigError: If validation fails (with all errors collected).
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}

        for section in ("outputs", "runtime"):
            if section not in data:
                logger.info("Using default: %s (all defaults)", section)

        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            formatted_errors = format_validation_errors(e)
            raise ConfigError(
                f"Configuration validation failed:\n{formatted_errors}"
            ) from None

        return config

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file.

        All fields including defaults are written for explicitness.

        Args:
            path: Path to output YAML file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json")

        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic validation errors with YAML-style paths.

    Args:
        error: Pydantic ValidationError.

    Returns:
        Formatted error string with YAML paths and messages.
    """
    lines = []
    for err in error.errors():
        path_parts = []
        for part in err["loc"]:
            if isinstance(part, int) and path_parts:
                path_parts[-1] = f"{path_parts[-1]}[{part}]"
            else:
                path_parts.append(str(part))

        path = ".".join(path_parts)
        lines.append(f"  {path}: {err['msg']}")

    return "\n".join(lines)


__all__ = [
    "DEFAULT_FRAME_RANGE",
    "OutputConfig",
    "OutputSpec",
    "PipelineConfig",
    "RuntimeConfig",
    "Stage",
    "format_validation_errors",
]
