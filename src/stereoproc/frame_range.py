"""Frame ranges: arithmetic progressions of frame indices with open-ended support."""

import re
from collections.abc import Iterator
from dataclasses import dataclass

from .errors import ConfigError

DEFAULT_START = 0
DEFAULT_STEP = 1
DEFAULT_END = -1  # negative end = unbounded

INTEGER_TOKEN = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class FrameRange:
    """Frame indices ``start, start+step, ...`` up to and including ``end``.

    Attributes:
        start: First frame index.
        step: Increment between frames (>= 1).
        end: Last frame index (inclusive). Negative means unbounded; the
            caller terminates on source exhaustion.
    """

    start: int = DEFAULT_START
    step: int = DEFAULT_STEP
    end: int = DEFAULT_END

    def __post_init__(self) -> None:
        if self.step < 1:
            raise ConfigError(f"Frame range step must be >= 1, got {self.step}")

    @property
    def is_bounded(self) -> bool:
        """Whether the range has an explicit end frame."""
        return self.end >= 0

    def frames(self) -> Iterator[int]:
        """Lazily yield the frame indices of this range."""
        frame = self.start
        while self.end < 0 or frame <= self.end:
            yield frame
            frame += self.step

    def __iter__(self) -> Iterator[int]:
        return self.frames()

    def count(self) -> int | None:
        """Number of frames in a bounded range, or None if unbounded."""
        if not self.is_bounded:
            return None
        if self.end < self.start:
            return 0
        return (self.end - self.start) // self.step + 1

    def __str__(self) -> str:
        return f"{self.start}:{self.step}:{self.end}"


def _parse_token(token: str, default: int, text: str) -> int:
    if not token:
        return default
    # Plain ASCII decimal only; int() would also take "1_0" or padded tokens
    if not INTEGER_TOKEN.fullmatch(token):
        raise ConfigError(f"Invalid number token in frame range '{text}': '{token}'")
    return int(token)


def parse_frame_range(text: str) -> FrameRange:
    """Parse ``start:end`` or ``start:step:end`` into a FrameRange.

    Empty tokens keep their defaults (start=0, step=1, end=-1).

    Args:
        text: Range string, e.g. ``"5:10"``, ``":2:"`` or ``"0:1:-1"``.

    Returns:
        Parsed FrameRange.

    Raises:
        ConfigError: On a wrong token count, a non-integer token or step < 1.
    """
    tokens = text.split(":")
    if len(tokens) == 2:
        start = _parse_token(tokens[0], DEFAULT_START, text)
        step = DEFAULT_STEP
        end = _parse_token(tokens[1], DEFAULT_END, text)
    elif len(tokens) == 3:
        start = _parse_token(tokens[0], DEFAULT_START, text)
        step = _parse_token(tokens[1], DEFAULT_STEP, text)
        end = _parse_token(tokens[2], DEFAULT_END, text)
    else:
        raise ConfigError(f"Invalid frame range string '{text}'")

    return FrameRange(start=start, step=step, end=end)


__all__ = ["FrameRange", "parse_frame_range"]
