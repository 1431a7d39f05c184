"""Floor alignment and root-centering of joint-position sequences."""

import logging
from dataclasses import dataclass

import numpy as np

from .errors import ErrorKind, MotionFormatError

log = logging.getLogger(__name__)


@dataclass
class NormalizedMotion:
    frames: np.ndarray      # (T, J, 3) height-corrected, root-centered
    trajectory: np.ndarray  # (T, 2) root (x, z) before centering
    bbox_min: np.ndarray    # (3,) height-corrected, pre-centering
    bbox_max: np.ndarray    # (3,)
    height_offset: float


def compute_bounds(frames):
    """Global (min, max) corners over every finite joint coordinate."""
    flat = np.asarray(frames, dtype=np.float64).reshape(-1, 3)
    finite = np.isfinite(flat).all(axis=1)
    if not finite.any():
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, "no finite joint coordinates")
    flat = flat[finite]
    return flat.min(axis=0), flat.max(axis=0)


def normalize_frames(frames) -> NormalizedMotion:
    """
    Drop the sequence onto the floor and anchor each pose at the origin.

    Parameters
    ----------
    frames : (T, J, 3) array-like, T >= 1, J >= 1. Missing joints may be NaN;
        they are ignored by the bounds and stay NaN.

    Returns
    -------
    NormalizedMotion. After this, the minimum y over all joints is 0 and
    joint 0 sits at x = z = 0 in every frame. A frame whose root is missing
    records (0, 0) in the trajectory and is not shifted.
    """
    out = np.array(frames, dtype=np.float64, copy=True)
    if out.ndim != 3 or out.shape[2] != 3 or out.shape[0] == 0 or out.shape[1] == 0:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT,
                                f"expected (T>=1, J>=1, 3) frames, got shape {out.shape}")

    bbox_min, bbox_max = compute_bounds(out)
    height_offset = float(bbox_min[1])

    out[..., 1] -= height_offset
    bbox_min = bbox_min.copy()
    bbox_max = bbox_max.copy()
    bbox_min[1] -= height_offset
    bbox_max[1] -= height_offset

    roots_xz = np.nan_to_num(out[:, 0, [0, 2]], nan=0.0, posinf=0.0, neginf=0.0)
    trajectory = roots_xz.copy()

    out[..., 0] -= roots_xz[:, np.newaxis, 0]
    out[..., 2] -= roots_xz[:, np.newaxis, 1]

    log.debug("Normalized %d frames (height offset %.4f)", out.shape[0], height_offset)
    return NormalizedMotion(
        frames=out,
        trajectory=trajectory,
        bbox_min=bbox_min,
        bbox_max=bbox_max,
        height_offset=height_offset,
    )
