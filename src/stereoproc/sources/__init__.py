"""Stereo frame sources: image sequences, side-by-side video, and VRMS recordings."""

import logging
from pathlib import Path

from ..errors import ConfigError
from .base import LEFT, RIGHT, SIDES, BaseFrameSource, FrameSource, ImagePair
from .image import ImageSource
from .video import VideoSource, split_side_by_side
from .vrms import VrmsReader, VrmsReaderFactory, VrmsSource

logger = logging.getLogger(__name__)

INPUT_TYPES = ("image", "video", "vrms")

IMAGE_SUFFIXES = {"jpeg", "jpg", "png", "ppm", "bmp"}
VIDEO_SUFFIXES = {"avi", "mp4", "mkv", "mpg"}
VRMS_SUFFIXES = {"vrms"}


def detect_input_type(input_file: str) -> str:
    """Detect the input type from the file suffix.

    Args:
        input_file: Input path or image filename template.

    Returns:
        "image", "video" or "vrms".

    Raises:
        ConfigError: If the suffix is not recognized.
    """
    suffix = Path(input_file).suffix.lstrip(".")
    if suffix in IMAGE_SUFFIXES:
        return "image"
    elif suffix in VRMS_SUFFIXES:
        return "vrms"
    elif suffix in VIDEO_SUFFIXES:
        return "video"
    raise ConfigError(f"Unrecognized input file type; unhandled suffix '{suffix}'")


def open_source(
    input_file: str,
    input_type: str | None = None,
    vrms_reader_factory: VrmsReaderFactory | None = None,
) -> FrameSource:
    """Create the frame source for an input file.

    Args:
        input_file: Input path (filename template for image input).
        input_type: "image", "video" or "vrms"; auto-detected when None.
        vrms_reader_factory: Reader factory passed to VrmsSource.

    Returns:
        Opened frame source.

    Raises:
        ConfigError: If the input type is unknown.
        SourceOpenError: If the media cannot be opened.
    """
    if input_type is None:
        input_type = detect_input_type(input_file)
        logger.debug("Auto-determined input type: %s", input_type)

    if input_type == "image":
        return ImageSource(input_file)
    elif input_type == "video":
        return VideoSource(input_file)
    elif input_type == "vrms":
        return VrmsSource(input_file, reader_factory=vrms_reader_factory)
    raise ConfigError(f"Unhandled input source type: {input_type}")


__all__ = [
    "LEFT",
    "RIGHT",
    "SIDES",
    "INPUT_TYPES",
    "BaseFrameSource",
    "FrameSource",
    "ImagePair",
    "ImageSource",
    "VideoSource",
    "VrmsReader",
    "VrmsReaderFactory",
    "VrmsSource",
    "detect_input_type",
    "open_source",
    "split_side_by_side",
]
