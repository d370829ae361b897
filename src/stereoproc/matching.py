"""OpenCV block-matching stereo methods configured from parameter files."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, fields
from pathlib import Path

import cv2
import numpy as np

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class StereoMethodParameters:
    """Parameters shared by the OpenCV block-matching methods.

    Field names map to CamelCase nodes in the method file, e.g.
    ``num_disparities`` is read from ``NumDisparities``.

    Attributes:
        num_disparities: Disparity search range (rounded up to a multiple of 16).
        block_size: Matching block size (odd).
        min_disparity: Minimum possible disparity value.
        uniqueness_ratio: Margin by which the best match must win (%).
        speckle_window_size: Maximum speckle size to invalidate (0 disables).
        speckle_range: Maximum disparity variation within a speckle.
        disp12_max_diff: Maximum left-right disparity check difference.
        pre_filter_cap: Truncation value for prefiltered pixels.
        texture_threshold: Minimum texture for BM matches.
        p1: SGBM penalty for disparity changes of 1 (0 = derived from block size).
        p2: SGBM penalty for larger disparity changes (0 = derived from block size).
        mode: SGBM mode ("sgbm", "hh", "3way", "hh4").
    """

    num_disparities: int = 128
    block_size: int = 5
    min_disparity: int = 0
    uniqueness_ratio: int = 10
    speckle_window_size: int = 100
    speckle_range: int = 32
    disp12_max_diff: int = 1
    pre_filter_cap: int = 31
    texture_threshold: int = 10
    p1: int = 0
    p2: int = 0
    mode: str = "sgbm"

    def __post_init__(self) -> None:
        if self.num_disparities <= 0:
            raise ConfigError(f"NumDisparities must be positive, got {self.num_disparities}")
        # OpenCV requires a multiple of 16 and an odd block size
        self.num_disparities = ((self.num_disparities + 15) // 16) * 16
        if self.block_size % 2 == 0:
            self.block_size += 1


SGBM_MODES = {
    "sgbm": cv2.STEREO_SGBM_MODE_SGBM,
    "hh": cv2.STEREO_SGBM_MODE_HH,
    "3way": cv2.STEREO_SGBM_MODE_SGBM_3WAY,
    "hh4": cv2.STEREO_SGBM_MODE_HH4,
}


def _camel_case(name: str) -> str:
    # num_disparities -> NumDisparities, disp12_max_diff -> Disp12MaxDiff, p1 -> P1
    return "".join(part[:1].upper() + part[1:] for part in name.split("_"))


def _create_bm(params: StereoMethodParameters):
    matcher = cv2.StereoBM_create(
        numDisparities=params.num_disparities, blockSize=max(params.block_size, 5)
    )
    matcher.setMinDisparity(params.min_disparity)
    matcher.setUniquenessRatio(params.uniqueness_ratio)
    matcher.setSpeckleWindowSize(params.speckle_window_size)
    matcher.setSpeckleRange(params.speckle_range)
    matcher.setDisp12MaxDiff(params.disp12_max_diff)
    matcher.setPreFilterCap(max(1, min(params.pre_filter_cap, 63)))
    matcher.setTextureThreshold(params.texture_threshold)
    return matcher


def _create_sgbm(params: StereoMethodParameters):
    if params.mode not in SGBM_MODES:
        raise ConfigError(
            f"Invalid SGBM mode {params.mode!r}. Valid modes: {sorted(SGBM_MODES)}"
        )
    # Default smoothness penalties for 3-channel input
    p1 = params.p1 or 8 * 3 * params.block_size**2
    p2 = params.p2 or 32 * 3 * params.block_size**2
    return cv2.StereoSGBM_create(
        minDisparity=params.min_disparity,
        numDisparities=params.num_disparities,
        blockSize=params.block_size,
        P1=p1,
        P2=p2,
        disp12MaxDiff=params.disp12_max_diff,
        preFilterCap=params.pre_filter_cap,
        uniquenessRatio=params.uniqueness_ratio,
        speckleWindowSize=params.speckle_window_size,
        speckleRange=params.speckle_range,
        mode=SGBM_MODES[params.mode],
    )


# Method name (as given by the MethodName entry) -> (matcher factory, needs grayscale)
STEREO_METHODS: dict[str, tuple[Callable[[StereoMethodParameters], object], bool]] = {
    "bm": (_create_bm, True),
    "OpenCV_BM": (_create_bm, True),
    "sgbm": (_create_sgbm, False),
    "OpenCV_SGBM": (_create_sgbm, False),
}


class OpenCvStereoMatcher:
    """Disparity computation with OpenCV StereoBM / StereoSGBM.

    Args:
        method: Method name, a key of STEREO_METHODS.
        params: Matcher parameters.

    Raises:
        ConfigError: If the method name is unknown.
    """

    def __init__(self, method: str = "sgbm", params: StereoMethodParameters | None = None):
        if method not in STEREO_METHODS:
            raise ConfigError(
                f"Stereo method '{method}' not found. "
                f"Available methods: {sorted(STEREO_METHODS)}"
            )
        self.method = method
        self.params = params or StereoMethodParameters()

        factory, self._needs_grayscale = STEREO_METHODS[method]
        self._matcher = factory(self.params)

    @classmethod
    def from_file(cls, path: str | Path) -> "OpenCvStereoMatcher":
        """Create a matcher from an OpenCV file storage with a ``MethodName`` entry.

        Remaining entries are read as CamelCase parameter names (see
        StereoMethodParameters); absent entries keep their defaults.

        Raises:
            ConfigError: If the file cannot be opened or names an unknown method.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Stereo method file not found: {path}")

        storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
        try:
            if not storage.isOpened():
                raise ConfigError(f"Failed to open OpenCV file storage on '{path}'")

            method = storage.getNode("MethodName").string()
            if not method:
                raise ConfigError(f"Stereo method file {path} has no MethodName entry")

            values = {}
            for field in fields(StereoMethodParameters):
                node = storage.getNode(_camel_case(field.name))
                if node.empty():
                    continue
                if field.type is str:
                    values[field.name] = node.string()
                else:
                    values[field.name] = int(node.real())
        finally:
            storage.release()

        logger.debug("Loaded stereo method %s from %s: %s", method, path, values)
        return cls(method, StereoMethodParameters(**values))

    @property
    def num_disparities(self) -> int:
        return self.params.num_disparities

    def compute_disparity(
        self, left: np.ndarray, right: np.ndarray
    ) -> tuple[np.ndarray, int]:
        """Compute the disparity of a rectified pair.

        Args:
            left: Rectified left image.
            right: Rectified right image.

        Returns:
            Tuple of (disparity, num_disparities) where disparity is float32
            in pixels, shape (H, W). Unmatched pixels are below min_disparity.
        """
        if self._needs_grayscale and left.ndim == 3:
            left = cv2.cvtColor(left, cv2.COLOR_BGR2GRAY)
            right = cv2.cvtColor(right, cv2.COLOR_BGR2GRAY)

        # OpenCV returns fixed-point disparity with 4 fractional bits
        raw = self._matcher.compute(left, right)
        disparity = raw.astype(np.float32) / 16.0
        return disparity, self.params.num_disparities


__all__ = [
    "STEREO_METHODS",
    "OpenCvStereoMatcher",
    "StereoMethodParameters",
]
