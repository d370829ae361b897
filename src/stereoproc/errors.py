"""Exception taxonomy for the stereo processing pipeline."""


class StereoProcError(RuntimeError):
    """Base class for all pipeline errors."""


class ConfigError(StereoProcError, ValueError):
    """Invalid configuration (frame range syntax, missing inputs, unknown types)."""


class TemplateError(ConfigError):
    """A placeholder directive could not be applied to its value."""


# --- Frame sources ---


class SourceError(StereoProcError):
    """Failure while opening or reading a frame source."""


class SourceOpenError(SourceError):
    """The underlying media could not be opened."""


class DecodeFailedError(SourceError):
    """A frame exists but could not be decoded. Always fatal."""


class EndOfSequenceError(SourceError):
    """The source cannot deliver the requested frame (exhausted or seek failed).

    Recovered locally only when the active frame range is unbounded.
    """


# --- Output sinks ---


class SinkError(StereoProcError):
    """Failure while writing an output artifact."""


class MissingColorReferenceError(SinkError):
    """Point-cloud output requested without a color reference image."""


class UnsupportedFormatError(SinkError):
    """The output extension cannot represent the artifact of this stage."""


class EncodeFailedError(SinkError):
    """The encoder or serializer failed to write the file."""


class DirectoryCreateError(SinkError):
    """An ancestor directory of the output path could not be created."""


__all__ = [
    "StereoProcError",
    "ConfigError",
    "TemplateError",
    "SourceError",
    "SourceOpenError",
    "DecodeFailedError",
    "EndOfSequenceError",
    "SinkError",
    "MissingColorReferenceError",
    "UnsupportedFormatError",
    "EncodeFailedError",
    "DirectoryCreateError",
]
