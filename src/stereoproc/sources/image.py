"""Frame source backed by per-side image files named from a template."""

import logging

import cv2

from ..errors import DecodeFailedError
from ..templating import StringTemplate
from .base import LEFT, RIGHT, BaseFrameSource, ImagePair

logger = logging.getLogger(__name__)


class ImageSource(BaseFrameSource):
    """Reads stereo frames from an image sequence.

    The filename template is rendered with ``f`` set to the frame index and
    ``s`` set to ``"L"`` or ``"R"``, e.g. ``frames/img_%{f|05d}_%{s}.png``.
    There is no natural end of sequence: a missing or unreadable image is a
    decode failure.

    Args:
        filename: Filename template.
    """

    def __init__(self, filename: str):
        self.filename = filename
        self._template = StringTemplate(filename)
        if not {"f", "s"} <= set(self._template.names):
            logger.warning(
                "Image filename template %r does not reference both %%{f} and %%{s}",
                filename,
            )

    def _read_side(self, index: int, side: str):
        path = self._template.render({"f": index, "s": side})
        image = cv2.imread(path)
        if image is None:
            raise DecodeFailedError(f"Failed to open image '{path}'")
        return image

    def get_frame(self, index: int) -> ImagePair:
        """Read the left and right images for frame ``index``.

        Raises:
            DecodeFailedError: If either image cannot be read.
        """
        left = self._read_side(index, LEFT)
        right = self._read_side(index, RIGHT)
        return ImagePair(left=left, right=right, frame_idx=index)

    def __repr__(self) -> str:
        return f"ImageSource({self.filename!r})"
