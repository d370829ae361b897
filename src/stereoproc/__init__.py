"""Stereo image processing: rectification, disparity and reprojection of frame ranges."""

from .calibration import (
    StereoCalibration,
    StereoRectification,
    load_stereo_calibration,
    save_stereo_calibration,
)
from .config import OutputConfig, PipelineConfig, RuntimeConfig, Stage
from .errors import (
    ConfigError,
    DecodeFailedError,
    EndOfSequenceError,
    SinkError,
    SourceError,
    StereoProcError,
)
from .frame_range import FrameRange, parse_frame_range
from .matching import OpenCvStereoMatcher, StereoMethodParameters
from .output import Artifact, OutputSink
from .pipeline import (
    Pipeline,
    PipelineContext,
    RunSummary,
    process_frame,
    process_frame_range,
    run_pipeline,
)
from .reprojection import DisparityReprojector
from .sources import ImagePair, ImageSource, VideoSource, VrmsSource, open_source
from .templating import StringTemplate, format_string

__version__ = "0.1.0"
