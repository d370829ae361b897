"""Stereo calibration loading and image pair rectification."""

import logging
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class StereoCalibration:
    """Calibration of a stereo camera pair.

    Attributes:
        M1: Left camera intrinsic matrix, shape (3, 3), float64.
        D1: Left camera distortion coefficients, shape (N,), float64.
        M2: Right camera intrinsic matrix, shape (3, 3), float64.
        D2: Right camera distortion coefficients, shape (N,), float64.
        R: Rotation from left to right camera, shape (3, 3), float64.
        T: Translation from left to right camera, shape (3,), float64.
        image_size: Image dimensions as (width, height) in pixels.
    """

    M1: np.ndarray
    D1: np.ndarray
    M2: np.ndarray
    D2: np.ndarray
    R: np.ndarray
    T: np.ndarray
    image_size: tuple[int, int]

    @property
    def baseline(self) -> float:
        """Distance between the camera centers (calibration units)."""
        return float(np.linalg.norm(self.T))


def _read_matrix(storage: cv2.FileStorage, key: str, path: Path) -> np.ndarray:
    node = storage.getNode(key)
    if node.empty():
        raise ConfigError(f"Stereo calibration {path} is missing '{key}'")
    matrix = node.mat()
    if matrix is None:
        raise ConfigError(f"Stereo calibration entry '{key}' in {path} is not a matrix")
    return np.asarray(matrix, dtype=np.float64)


def _read_image_size(storage: cv2.FileStorage, path: Path) -> tuple[int, int]:
    for key in ("imageSize", "image_size"):
        node = storage.getNode(key)
        if node.empty():
            continue
        if node.isSeq():
            values = [node.at(i).real() for i in range(node.size())]
        else:
            values = np.asarray(node.mat()).ravel().tolist()
        if len(values) != 2:
            raise ConfigError(f"Image size in {path} must have 2 elements, got {values}")
        return int(values[0]), int(values[1])
    raise ConfigError(f"Stereo calibration {path} is missing 'imageSize'")


def load_stereo_calibration(path: str | Path) -> StereoCalibration:
    """Load a stereo calibration from an OpenCV XML/YAML file storage.

    The file must contain ``M1``, ``D1``, ``M2``, ``D2``, ``R``, ``T`` and
    ``imageSize`` (``[width, height]``).

    Args:
        path: Path to the calibration file.

    Returns:
        Loaded StereoCalibration.

    Raises:
        ConfigError: If the file cannot be opened or entries are missing/invalid.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Stereo calibration file not found: {path}")

    storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    try:
        if not storage.isOpened():
            raise ConfigError(f"Failed to open stereo calibration: {path}")

        calibration = StereoCalibration(
            M1=_read_matrix(storage, "M1", path),
            D1=_read_matrix(storage, "D1", path).ravel(),
            M2=_read_matrix(storage, "M2", path),
            D2=_read_matrix(storage, "D2", path).ravel(),
            R=_read_matrix(storage, "R", path),
            T=_read_matrix(storage, "T", path).ravel(),
            image_size=_read_image_size(storage, path),
        )
    finally:
        storage.release()

    if calibration.M1.shape != (3, 3) or calibration.M2.shape != (3, 3):
        raise ConfigError("Camera matrices M1 and M2 must be 3x3")
    if calibration.R.shape != (3, 3):
        raise ConfigError("R (rotation matrix) must be 3x3")
    if calibration.T.shape != (3,):
        raise ConfigError("T (translation vector) must have 3 elements")

    return calibration


def save_stereo_calibration(calibration: StereoCalibration, path: str | Path) -> None:
    """Write a stereo calibration in the format read by load_stereo_calibration."""
    storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    try:
        storage.write("M1", calibration.M1)
        storage.write("D1", calibration.D1.reshape(1, -1))
        storage.write("M2", calibration.M2)
        storage.write("D2", calibration.D2.reshape(1, -1))
        storage.write("R", calibration.R)
        storage.write("T", calibration.T.reshape(3, 1))
        storage.write("imageSize", np.array(calibration.image_size, dtype=np.int32).reshape(1, 2))
    finally:
        storage.release()


class StereoRectification:
    """Rectifies stereo image pairs using precomputed remap tables.

    Rectification transforms and maps are computed once from the
    calibration; ``rectify`` is stateless per call.

    Args:
        calibration: Stereo calibration.
        alpha: Free scaling parameter for ``cv2.stereoRectify`` (-1 = default,
            0 = only valid pixels, 1 = all source pixels).
    """

    def __init__(self, calibration: StereoCalibration, alpha: float = -1):
        self.calibration = calibration

        R1, R2, P1, P2, Q, _, _ = cv2.stereoRectify(
            calibration.M1,
            calibration.D1,
            calibration.M2,
            calibration.D2,
            calibration.image_size,
            calibration.R,
            calibration.T,
            flags=cv2.CALIB_ZERO_DISPARITY,
            alpha=alpha,
        )
        self._Q = Q
        self._size_warned = False

        self._maps_left = cv2.initUndistortRectifyMap(
            calibration.M1, calibration.D1, R1, P1, calibration.image_size, cv2.CV_32FC1
        )
        self._maps_right = cv2.initUndistortRectifyMap(
            calibration.M2, calibration.D2, R2, P2, calibration.image_size, cv2.CV_32FC1
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "StereoRectification":
        """Load a calibration file and build the rectification.

        Raises:
            ConfigError: If the calibration cannot be loaded.
        """
        return cls(load_stereo_calibration(path))

    @property
    def reprojection_matrix(self) -> np.ndarray:
        """Disparity-to-depth reprojection matrix Q, shape (4, 4)."""
        return self._Q

    def rectify(
        self, left: np.ndarray, right: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Rectify an image pair.

        Args:
            left: Left image at calibration resolution.
            right: Right image at calibration resolution.

        Returns:
            Tuple of (rectified_left, rectified_right).
        """
        width, height = self.calibration.image_size
        if left.shape[:2] != (height, width) and not self._size_warned:
            self._size_warned = True
            logger.warning(
                "Image size %s does not match calibration size (%d, %d)",
                left.shape[:2],
                height,
                width,
            )

        rectified_left = cv2.remap(
            left, self._maps_left[0], self._maps_left[1], cv2.INTER_LINEAR
        )
        rectified_right = cv2.remap(
            right, self._maps_right[0], self._maps_right[1], cv2.INTER_LINEAR
        )
        return rectified_left, rectified_right


__all__ = [
    "StereoCalibration",
    "StereoRectification",
    "load_stereo_calibration",
    "save_stereo_calibration",
]
