"""Protocol interfaces for the pipeline collaborators."""

from typing import Protocol, runtime_checkable

import numpy as np

from ..sources import FrameSource


@runtime_checkable
class Rectifier(Protocol):
    """Protocol for stereo pair rectification.

    StereoRectification satisfies this protocol structurally.
    """

    def rectify(
        self, left: np.ndarray, right: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Rectify an image pair.

        Args:
            left: Left image.
            right: Right image.

        Returns:
            Tuple of (rectified_left, rectified_right), same sizes as input.
        """
        ...

    @property
    def reprojection_matrix(self) -> np.ndarray:
        """Disparity-to-depth matrix Q, shape (4, 4)."""
        ...


@runtime_checkable
class StereoMatcher(Protocol):
    """Protocol for disparity computation on rectified pairs."""

    def compute_disparity(
        self, left: np.ndarray, right: np.ndarray
    ) -> tuple[np.ndarray, int]:
        """Compute disparity for a rectified pair.

        Args:
            left: Rectified left image.
            right: Rectified right image.

        Returns:
            Tuple of (disparity, num_disparities). Disparity is (H, W) float32
            in pixels; num_disparities is the search range, used to scale
            the disparity for 8-bit image export.
        """
        ...


@runtime_checkable
class Reprojector(Protocol):
    """Protocol for disparity to 3D point reprojection."""

    def reproject(self, disparity: np.ndarray) -> np.ndarray:
        """Reproject a disparity map.

        Args:
            disparity: Disparity map (H, W).

        Returns:
            Points (H, W, 3) float32 in the rectified left camera frame.
        """
        ...


__all__ = ["FrameSource", "Rectifier", "Reprojector", "StereoMatcher"]
