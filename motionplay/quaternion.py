"""3-vector and yaw-quaternion helpers (wxyz convention, w at index 0).

The RIC root rotation is built as ``(cos a, 0, sin a, 0)`` from the raw yaw
angle ``a``, with no half-angle. The same quaternion is used for every
conjugate/rotate step of the reconstruction, so decoded positions depend on
this exact form. It is not a general angle-axis quaternion.
"""

from typing import NamedTuple

import numpy as np


# ---------------------------------------------------------------------------
# Vectorised helpers on (..., 3) / (..., 4) arrays
# ---------------------------------------------------------------------------

def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Right-handed cross product along the last axis."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return np.stack([
        a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1],
        a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2],
        a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0],
    ], axis=-1)


def qinv(q: np.ndarray) -> np.ndarray:
    """Conjugate of quaternion(s) q (..., 4). Equals the inverse for unit quaternions."""
    qi = np.array(q, dtype=np.float64, copy=True)
    qi[..., 1:] *= -1
    return qi


def qrot(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector(s) v (..., 3) by quaternion(s) q (..., 4). Shapes must broadcast."""
    q = np.asarray(q, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    qvec = q[..., 1:]
    uv = cross(qvec, v)
    uuv = cross(qvec, uv)
    return v + 2 * (q[..., :1] * uv + uuv)


def yaw_quats(angles: np.ndarray) -> np.ndarray:
    """(T,) yaw angles → (T, 4) quaternions ``(cos a, 0, sin a, 0)``."""
    angles = np.asarray(angles, dtype=np.float64)
    quats = np.zeros(angles.shape + (4,), dtype=np.float64)
    quats[..., 0] = np.cos(angles)
    quats[..., 2] = np.sin(angles)
    return quats


# ---------------------------------------------------------------------------
# Fixed-arity value types
# ---------------------------------------------------------------------------

class Vec3(NamedTuple):
    x: float
    y: float
    z: float

    def cross(self, other) -> "Vec3":
        return Vec3(*cross(self, other).tolist())

    def as_array(self) -> np.ndarray:
        return np.array(self, dtype=np.float64)


class YawQuat(NamedTuple):
    """Rotation about +Y only, stored as (w, x, y, z) = (cos a, 0, sin a, 0)."""
    w: float
    x: float
    y: float
    z: float

    @classmethod
    def from_angle(cls, angle: float) -> "YawQuat":
        return cls(*yaw_quats(angle).tolist())

    def conjugate(self) -> "YawQuat":
        return YawQuat(self.w, -self.x, -self.y, -self.z)

    def rotate(self, v) -> Vec3:
        return Vec3(*qrot(self, v).tolist())
