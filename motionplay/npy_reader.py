"""Parse .npy tensor buffers (float32, little-endian, rank >= 2) into a float64 matrix.

Only the subset of the NumPy format needed for RIC feature files is handled.
``parse_npy`` never raises: every outcome is an ``NpyResult``.
"""

import logging
import math
import re
import struct
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from .errors import ErrorKind

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# NPY constants
# ---------------------------------------------------------------------------
NPY_MAGIC = b"\x93NUMPY"
MIN_BUFFER_LEN = 10
SUPPORTED_DESCR = "<f4"
FLOAT32_SIZE = 4

# major version → (struct fmt, byte size) of the header-length field
_HEADER_LEN_FIELD = {
    1: ("<H", 2),
    2: ("<I", 4),
}

_MAX_DIM = np.iinfo(np.intp).max

_DESCR_RE = re.compile(r"""['"]descr['"]\s*:\s*['"]([^'"]+)['"]""")
_SHAPE_RE = re.compile(r"""['"]shape['"]\s*:\s*\(([^)]*)\)""")
_FORTRAN_RE = re.compile(r"""['"]fortran_order['"]\s*:\s*(True|False)""")

# Failure reason codes
TOO_SMALL = "too small"
BAD_MAGIC = "bad magic"
UNSUPPORTED_VERSION = "unsupported version"
HEADER_OUT_OF_BOUNDS = "header out of bounds"
MISSING_DESCR_SHAPE = "missing descr/shape"
UNSUPPORTED_DTYPE = "unsupported dtype"
BAD_SHAPE = "bad shape"
SHAPE_TOO_SMALL = "shape too small"
UNSUPPORTED_LAYOUT = "unsupported layout"
DATA_OUT_OF_BOUNDS = "data out of bounds"
UNREADABLE = "unreadable"


@dataclass
class NpyHeader:
    version: tuple
    descr: str
    shape: tuple
    fortran_order: bool
    data_offset: int
    text: str


@dataclass
class NpyResult:
    ok: bool
    matrix: np.ndarray = None  # (rows, cols) float64
    header: NpyHeader = None
    reason: str = ""
    kind: ErrorKind = None
    detail: str = ""
    extra: dict = field(default_factory=dict)

    @property
    def shape(self):
        return self.header.shape if self.header is not None else ()

    @property
    def descr(self):
        return self.header.descr if self.header is not None else ""


def _fail(reason, kind, detail="", **extra):
    return NpyResult(ok=False, reason=reason, kind=kind,
                     detail=detail or reason, extra=extra)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_shape(text):
    """'3, 67,' → (3, 67). Raises ValueError on non-integer, negative or oversized entries."""
    dims = []
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        value = int(token)
        if value < 0:
            raise ValueError(f"negative dimension {value}")
        if value > _MAX_DIM:
            raise ValueError(f"dimension {value} too large")
        dims.append(value)
    return tuple(dims)


# ---------------------------------------------------------------------------
# Main parser
# ---------------------------------------------------------------------------

def parse_npy(buffer) -> NpyResult:
    """Decode an in-memory .npy buffer into a (rows, cols) float64 matrix."""
    raw = bytes(buffer)

    if len(raw) < MIN_BUFFER_LEN:
        return _fail(TOO_SMALL, ErrorKind.OUT_OF_BOUNDS,
                     f"buffer too small ({len(raw)} bytes)")

    if raw[:6] != NPY_MAGIC:
        return _fail(BAD_MAGIC, ErrorKind.UNSUPPORTED_FORMAT, "bad magic header")

    # --- version + header length ---
    major, minor = raw[6], raw[7]
    if major not in _HEADER_LEN_FIELD:
        return _fail(UNSUPPORTED_VERSION, ErrorKind.UNSUPPORTED_FORMAT,
                     f"unsupported npy version {major}.{minor}")
    fmt, size = _HEADER_LEN_FIELD[major]
    if 8 + size > len(raw):
        return _fail(HEADER_OUT_OF_BOUNDS, ErrorKind.OUT_OF_BOUNDS,
                     "header length field out of bounds")
    (header_len,) = struct.unpack_from(fmt, raw, 8)
    offset = 8 + size

    if offset + header_len > len(raw):
        return _fail(HEADER_OUT_OF_BOUNDS, ErrorKind.OUT_OF_BOUNDS,
                     f"header length {header_len} out of bounds")
    header_text = raw[offset:offset + header_len].decode("latin-1")
    offset += header_len

    # --- header dictionary ---
    descr_match = _DESCR_RE.search(header_text)
    shape_match = _SHAPE_RE.search(header_text)
    if not descr_match or not shape_match:
        return _fail(MISSING_DESCR_SHAPE, ErrorKind.MALFORMED_INPUT,
                     header_text=header_text)

    descr = descr_match.group(1)
    if descr != SUPPORTED_DESCR:
        return _fail(UNSUPPORTED_DTYPE, ErrorKind.UNSUPPORTED_FORMAT,
                     f"unsupported descr {descr}", header_text=header_text)

    try:
        shape = _parse_shape(shape_match.group(1))
    except ValueError as e:
        return _fail(BAD_SHAPE, ErrorKind.MALFORMED_INPUT,
                     f"bad shape ({e})", header_text=header_text)
    if len(shape) < 2:
        return _fail(SHAPE_TOO_SMALL, ErrorKind.MALFORMED_INPUT,
                     f"shape too small {shape}", header_text=header_text)

    fortran_match = _FORTRAN_RE.search(header_text)
    fortran_order = bool(fortran_match) and fortran_match.group(1) == "True"
    if fortran_order:
        return _fail(UNSUPPORTED_LAYOUT, ErrorKind.UNSUPPORTED_FORMAT,
                     "fortran_order arrays are not supported")

    header = NpyHeader(
        version=(major, minor),
        descr=descr,
        shape=shape,
        fortran_order=fortran_order,
        data_offset=offset,
        text=header_text,
    )

    # --- payload ---
    # Python ints: the element count of a forged header can exceed int64
    total = math.prod(shape)
    if offset + total * FLOAT32_SIZE > len(raw):
        return _fail(DATA_OUT_OF_BOUNDS, ErrorKind.OUT_OF_BOUNDS,
                     f"data length out of bounds: need {total * FLOAT32_SIZE} bytes, "
                     f"have {len(raw) - offset}")

    rows, cols = shape[0], shape[1]
    if total == 0:
        matrix = np.zeros((rows, cols), dtype=np.float64)
    else:
        values = np.frombuffer(raw, dtype="<f4", count=total, offset=offset)
        matrix = values[:rows * cols].astype(np.float64).reshape(rows, cols)
    log.debug("Parsed npy v%d.%d shape=%s", major, minor, shape)
    return NpyResult(ok=True, matrix=matrix, header=header)


def read_npy(path) -> NpyResult:
    """Read ``path`` and decode it with ``parse_npy``."""
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        return _fail(UNREADABLE, ErrorKind.MALFORMED_INPUT, f"cannot read {path}: {e}")
    return parse_npy(raw)
