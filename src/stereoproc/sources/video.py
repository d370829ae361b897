"""Frame source backed by a side-by-side stereo video file."""

import logging

import cv2
import numpy as np

from ..errors import EndOfSequenceError, SourceOpenError
from .base import BaseFrameSource, ImagePair

logger = logging.getLogger(__name__)


def split_side_by_side(image: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Split a side-by-side frame at the horizontal midpoint.

    Both halves have width ``W // 2``; for odd widths the last column is
    dropped. The halves are copies, not views.

    Args:
        image: Decoded frame (H, W) or (H, W, C).

    Returns:
        Tuple of (left, right) images.
    """
    half = image.shape[1] // 2
    left = image[:, :half].copy()
    right = image[:, half : 2 * half].copy()
    return left, right


class VideoSource(BaseFrameSource):
    """Reads stereo frames from a video whose frames hold left|right halves.

    Seek policy: forward access only advances, backward access seeks once.

    * If the requested index is behind the capture position, the capture is
      rewound with a single ``CAP_PROP_POS_FRAMES`` seek.
    * Frames are then grabbed one at a time until the position counter passes
      the requested index, and that frame is decoded.

    Forward skips are therefore paid for with sequential grabs instead of a
    seek, since seek tables of lossy containers are often imprecise. Strictly
    increasing access never seeks.

    Args:
        filename: Path to the video file.

    Raises:
        SourceOpenError: If the video cannot be opened.
    """

    def __init__(self, filename: str):
        self.filename = filename
        self._capture = cv2.VideoCapture(str(filename))
        if not self._capture.isOpened():
            raise SourceOpenError(f"Failed to open video source {filename}")

        self.seek_count = 0

        frame_count = int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT))
        logger.debug(
            "Opened video %s (%s frames reported)",
            filename,
            frame_count if frame_count > 0 else "unknown",
        )

    @property
    def position(self) -> int:
        """Index of the next physical frame the capture will grab."""
        return int(self._capture.get(cv2.CAP_PROP_POS_FRAMES))

    def get_frame(self, index: int) -> ImagePair:
        """Decode frame ``index`` and split it into left and right halves.

        Raises:
            EndOfSequenceError: If the stream is exhausted or decoding fails.
        """
        if index < self.position:
            logger.debug("Seeking back to frame %d", index)
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, index)
            self.seek_count += 1

        while True:
            if not self._capture.grab():
                raise EndOfSequenceError(f"Failed to retrieve frame {index}")
            if self.position > index:
                break

        ok, image = self._capture.retrieve()
        if not ok or image is None:
            raise EndOfSequenceError(f"Failed to decode frame {index}")

        left, right = split_side_by_side(image)
        return ImagePair(left=left, right=right, frame_idx=index)

    def close(self) -> None:
        """Release the video capture."""
        self._capture.release()

    def __repr__(self) -> str:
        return f"VideoSource({self.filename!r})"
