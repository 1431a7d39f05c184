"""
Pytest configuration and shared fixtures for motionplay tests

Fixtures:
- npy_bytes: serialize an array to an in-memory .npy buffer
- make_ric_rows: build RIC feature rows with chosen root channels
- walk_frames: small deterministic joint-position sequence
"""

import io

import numpy as np
from numpy.lib import format as npy_format
import pytest


@pytest.fixture
def npy_bytes():
    """Return a helper that serializes an array the way np.save does."""
    def _dump(arr, version=None):
        buf = io.BytesIO()
        if version is None:
            np.save(buf, arr)
        else:
            npy_format.write_array(buf, np.asarray(arr), version=version)
        return buf.getvalue()
    return _dump


@pytest.fixture
def make_ric_rows():
    """Return a helper building (T, 4 + (J-1)*3) RIC rows."""
    def _rows(num_frames, joints_num=22, height=1.0, rot_vel=0.0,
              lin_x=0.0, lin_z=0.0, offsets=None, extra_cols=0):
        width = 4 + (joints_num - 1) * 3 + extra_cols
        rows = np.zeros((num_frames, width), dtype=np.float64)
        rows[:, 0] = rot_vel
        rows[:, 1] = lin_x
        rows[:, 2] = lin_z
        rows[:, 3] = height
        if offsets is not None:
            rows[:, 4:4 + (joints_num - 1) * 3] = np.asarray(offsets).reshape(-1)
        return rows
    return _rows


@pytest.fixture
def walk_frames():
    """(4, 3, 3) frames: root drifting in x/z, two joints above and below it."""
    frames = []
    for t in range(4):
        root = [0.5 * t, 1.0, -0.25 * t]
        frames.append([
            root,
            [root[0] + 0.1, 1.5, root[2]],
            [root[0] - 0.1, 0.2 + 0.05 * t, root[2] + 0.3],
        ])
    return np.array(frames, dtype=np.float64)
