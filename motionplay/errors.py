"""Error taxonomy shared by the decoders and the load boundary."""

from enum import Enum


class ErrorKind(str, Enum):
    MALFORMED_INPUT = "malformed_input"
    UNSUPPORTED_FORMAT = "unsupported_format"
    OUT_OF_BOUNDS = "out_of_bounds"
    INCONSISTENT_FRAME = "inconsistent_frame"


class MotionFormatError(ValueError):
    """Raised inside the decoders; converted to a LoadError by the loader."""

    def __init__(self, kind, reason):
        super().__init__(reason)
        self.kind = ErrorKind(kind)
        self.reason = reason
