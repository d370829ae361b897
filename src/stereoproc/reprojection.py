"""Disparity reprojection to per-pixel 3-D points."""

import cv2
import numpy as np

# Depth assigned by cv2.reprojectImageTo3D to pixels with missing disparity
MISSING_DEPTH = 10000.0


class DisparityReprojector:
    """Reprojects disparity maps to 3-D using a fixed reprojection matrix.

    Args:
        Q: Disparity-to-depth matrix, shape (4, 4), typically taken from the
            stereo rectification.
    """

    def __init__(self, Q: np.ndarray):
        Q = np.asarray(Q, dtype=np.float64)
        if Q.shape != (4, 4):
            raise ValueError(f"Reprojection matrix must be 4x4, got {Q.shape}")
        self.Q = Q

    def reproject(self, disparity: np.ndarray) -> np.ndarray:
        """Reproject a disparity map.

        Args:
            disparity: Disparity in pixels, shape (H, W).

        Returns:
            Points (H, W, 3) float32 in calibration units. Pixels with missing
            disparity get Z = MISSING_DEPTH.
        """
        return cv2.reprojectImageTo3D(
            disparity.astype(np.float32), self.Q, handleMissingValues=True
        )


__all__ = ["MISSING_DEPTH", "DisparityReprojector"]
