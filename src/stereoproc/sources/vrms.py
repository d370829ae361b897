"""Frame source backed by a VRMS multiplexed stereo recording."""

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import numpy as np

from ..errors import DecodeFailedError, EndOfSequenceError, SourceOpenError
from .base import BaseFrameSource, ImagePair

logger = logging.getLogger(__name__)


@runtime_checkable
class VrmsReader(Protocol):
    """Protocol for readers of the VRMS container format.

    Readers maintain their own random-access seek table. A failed seek is
    reported by raising ``IndexError``, ``ValueError`` or ``OSError``, or by
    returning False.
    """

    def open_file(self, filename: str) -> bool:
        """Open a recording; returns False on failure."""
        ...

    def build_seek_table(self) -> None:
        """Index the recording for random access."""
        ...

    def set_video_position(self, frame: int) -> bool | None:
        """Position the reader at ``frame``."""
        ...

    def get_images(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the (left, right) images at the current position."""
        ...


VrmsReaderFactory = Callable[[], VrmsReader]


class VrmsSource(BaseFrameSource):
    """Reads pre-split stereo frames from a VRMS recording with true random access.

    The seek table is built once when the source is opened; every
    ``get_frame`` call seeks directly to the requested index.

    Args:
        filename: Path to the ``.vrms`` file.
        reader_factory: Callable creating a VrmsReader. VRMS decoding is
            provided externally; without a factory the source cannot open.

    Raises:
        SourceOpenError: If no reader is available or the file cannot be opened.
    """

    def __init__(self, filename: str, reader_factory: VrmsReaderFactory | None = None):
        self.filename = filename
        if reader_factory is None:
            raise SourceOpenError("VRMS support not enabled (no VRMS reader available)")

        self._reader = reader_factory()
        if not self._reader.open_file(str(filename)):
            raise SourceOpenError(f"Failed to open VRMS file '{filename}'")

        logger.info("Building VRMS seek table for %s", filename)
        self._reader.build_seek_table()

    def get_frame(self, index: int) -> ImagePair:
        """Seek to frame ``index`` and return its image pair.

        Raises:
            EndOfSequenceError: If the reader cannot seek to the frame.
            DecodeFailedError: If the reader returns no images after seeking.
        """
        try:
            ok = self._reader.set_video_position(index)
        except (IndexError, ValueError, OSError) as e:
            raise EndOfSequenceError(f"VRMS reader error: {e}") from e
        if ok is False:
            raise EndOfSequenceError(f"VRMS reader error: cannot seek to frame {index}")

        left, right = self._reader.get_images()
        if left is None or right is None:
            raise DecodeFailedError(f"VRMS reader returned no images for frame {index}")

        return ImagePair(left=left, right=right, frame_idx=index)

    def close(self) -> None:
        """Close the reader if it supports closing."""
        close = getattr(self._reader, "close", None)
        if close is not None:
            close()

    def __repr__(self) -> str:
        return f"VrmsSource({self.filename!r})"
