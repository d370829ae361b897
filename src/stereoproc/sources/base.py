"""Frame source protocol and the stereo image pair container."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np

# Side markers substituted for the ``s`` template variable
LEFT = "L"
RIGHT = "R"
SIDES = (LEFT, RIGHT)


@dataclass(frozen=True)
class ImagePair:
    """Left and right images of one stereo frame.

    Attributes:
        left: Left image (H, W) or (H, W, C).
        right: Right image, same size as left.
        frame_idx: Frame index the pair was fetched for.
    """

    left: np.ndarray
    right: np.ndarray
    frame_idx: int

    def __iter__(self):
        # Allows ``left, right = pair``
        yield self.left
        yield self.right


@runtime_checkable
class FrameSource(Protocol):
    """Protocol for stereo frame sources.

    The underlying media is opened in the constructor and released by
    ``close()`` (or the context manager). Implementations always deliver
    both sides of a frame together.
    """

    def get_frame(self, index: int) -> ImagePair:
        """Fetch frame ``index`` as a left/right image pair.

        Raises:
            DecodeFailedError: If the frame cannot be decoded (fatal).
            EndOfSequenceError: If the source cannot deliver the frame.
        """
        ...

    def close(self) -> None:
        """Release the underlying media."""
        ...

    def __enter__(self):
        """Enter context manager."""
        ...

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager."""
        ...


class BaseFrameSource:
    """Shared lifecycle plumbing for the concrete sources."""

    def close(self) -> None:
        """Release the underlying media (no-op by default)."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
