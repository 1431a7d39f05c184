"""Decode RIC feature rows (T, C) → (T, J, 3) joint positions.

Row layout: [root_rot_vel, root_lin_vel_x, root_lin_vel_z, root_y,
             j1.x, j1.y, j1.z, ..., j{J-1}.z, <further channels ignored>]

Integration runs in float64 whatever the input dtype.
"""

import logging
from dataclasses import dataclass

import numpy as np

from .config import DEFAULT_JOINTS_NUM
from .errors import ErrorKind, MotionFormatError
from .npy_reader import read_npy
from .quaternion import qinv, qrot, yaw_quats

log = logging.getLogger(__name__)

ROOT_CHANNELS = 4


@dataclass
class RootTrajectory:
    angles: np.ndarray     # (T,)   accumulated yaw
    quats: np.ndarray      # (T, 4) wxyz
    positions: np.ndarray  # (T, 3)


def ric_width(joints_num):
    """Number of leading columns a row needs for ``joints_num`` joints."""
    return ROOT_CHANNELS + (joints_num - 1) * 3


def _as_rows(data, min_cols):
    rows = np.asarray(data, dtype=np.float64)
    if rows.ndim != 2:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT,
                                f"expected 2-D rows, got shape {rows.shape}")
    if rows.shape[0] == 0:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, "no frames")
    if rows.shape[1] < min_cols:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT,
                                f"rows have {rows.shape[1]} columns, need {min_cols}")
    return rows


def recover_root_rot_pos(data) -> RootTrajectory:
    """Integrate root angular/linear velocity into absolute yaw and position."""
    data = _as_rows(data, ROOT_CHANNELS)
    T = data.shape[0]

    # Each velocity displaces the *next* frame
    rot_vel = data[:, 0]
    r_rot_ang = np.zeros(T, dtype=np.float64)
    r_rot_ang[1:] = rot_vel[:-1]
    r_rot_ang = np.cumsum(r_rot_ang)

    r_rot_quat = yaw_quats(r_rot_ang)

    r_pos = np.zeros((T, 3), dtype=np.float64)
    r_pos[1:, [0, 2]] = data[:-1, 1:3]
    r_pos = qrot(qinv(r_rot_quat), r_pos)
    r_pos = np.cumsum(r_pos, axis=0)
    # Height is absolute, not integrated
    r_pos[:, 1] = data[:, 3]

    return RootTrajectory(angles=r_rot_ang, quats=r_rot_quat, positions=r_pos)


def recover_from_ric(data, joints_num=DEFAULT_JOINTS_NUM) -> np.ndarray:
    """RIC rows → (T, joints_num, 3) float64 world joint positions (root first)."""
    joints_num = int(joints_num)
    if joints_num < 1:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT,
                                f"joints_num must be >= 1, got {joints_num}")
    data = _as_rows(data, ric_width(joints_num))
    T = data.shape[0]

    root = recover_root_rot_pos(data)

    positions = data[:, ROOT_CHANNELS:ric_width(joints_num)]
    positions = positions.reshape(T, joints_num - 1, 3)

    # Rotate local joints to world frame
    inv_q = qinv(root.quats)[:, np.newaxis, :]
    positions = qrot(inv_q, positions)

    # Add root XZ to joints
    positions[..., 0] += root.positions[:, np.newaxis, 0]
    positions[..., 2] += root.positions[:, np.newaxis, 2]

    positions = np.concatenate([root.positions[:, np.newaxis, :], positions], axis=1)
    log.debug("Recovered %d frames x %d joints from RIC", T, joints_num)
    return positions


def decode_joint_vecs(npy_path, joints_num=DEFAULT_JOINTS_NUM) -> np.ndarray:
    """Decode an .npy file of RIC rows into (T, joints_num, 3) joint positions."""
    result = read_npy(npy_path)
    if not result.ok:
        raise MotionFormatError(result.kind, result.detail)
    return recover_from_ric(result.matrix, joints_num)
