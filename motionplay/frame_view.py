"""Render-ready geometry for one displayed frame (float32 at this boundary).

Missing or non-finite joints are drawn at the origin instead of failing the
whole sequence.
"""

from dataclasses import dataclass

import numpy as np

MIN_BONE_LENGTH = 1e-6


@dataclass
class BoneSegments:
    starts: np.ndarray      # (B, 3)
    ends: np.ndarray        # (B, 3)
    midpoints: np.ndarray   # (B, 3)
    lengths: np.ndarray     # (B,)
    directions: np.ndarray  # (B, 3) unit vectors, zero for hidden bones
    visible: np.ndarray     # (B,) bool, False below MIN_BONE_LENGTH
    colors: list


@dataclass
class FrameView:
    index: int
    joints: np.ndarray      # (J, 3)
    joint_colors: list
    bones: BoneSegments
    plane: np.ndarray       # (4, 3) ground quad corners
    trail: np.ndarray       # (N, 3) past trajectory, relative to the current root


def joint_positions(frame, joints_num) -> np.ndarray:
    """(J, 3) positions; absent or non-finite joints are replaced by the origin."""
    out = np.zeros((joints_num, 3), dtype=np.float32)
    if frame is None:
        return out
    frame = np.asarray(frame, dtype=np.float64).reshape(-1, 3)[:joints_num]
    # A partly missing joint is missing as a whole
    finite = np.isfinite(frame).all(axis=1)
    out[:frame.shape[0]][finite] = frame[finite]
    return out


def bone_segments(joints, topology) -> BoneSegments:
    """Midpoint/length/direction per bone for cylinder placement."""
    bones = topology.bones
    parents = [b.parent for b in bones]
    children = [b.child for b in bones]

    starts = joints[parents].astype(np.float32)
    ends = joints[children].astype(np.float32)
    midpoints = ((starts + ends) / 2).astype(np.float32)

    vecs = ends.astype(np.float64) - starts
    lengths = np.linalg.norm(vecs, axis=-1)
    visible = lengths >= MIN_BONE_LENGTH
    safe = np.maximum(lengths, 1e-10)
    directions = np.where(visible[:, np.newaxis], vecs / safe[:, np.newaxis], 0.0)

    return BoneSegments(
        starts=starts.reshape(-1, 3),
        ends=ends.reshape(-1, 3),
        midpoints=midpoints.reshape(-1, 3),
        lengths=lengths.astype(np.float32),
        directions=directions.astype(np.float32).reshape(-1, 3),
        visible=visible,
        colors=[b.color for b in bones],
    )


def ground_plane(bbox_min, bbox_max, traj) -> np.ndarray:
    """Floor quad spanning the motion's xz extent, shifted into the root-centered frame."""
    tx, tz = float(traj[0]), float(traj[1])
    x0, z0 = bbox_min[0] - tx, bbox_min[2] - tz
    x1, z1 = bbox_max[0] - tx, bbox_max[2] - tz
    return np.array([
        [x0, 0.0, z0],
        [x0, 0.0, z1],
        [x1, 0.0, z1],
        [x1, 0.0, z0],
    ], dtype=np.float32)


def trajectory_trail(trajectory, index) -> np.ndarray:
    """Root path up to (excluding) ``index``, relative to the current root. Empty before frame 2."""
    if index < 2:
        return np.zeros((0, 3), dtype=np.float32)
    current = trajectory[index]
    past = trajectory[:index] - current
    trail = np.zeros((index, 3), dtype=np.float32)
    trail[:, 0] = past[:, 0]
    trail[:, 2] = past[:, 1]
    return trail


def frame_view(clip, index) -> FrameView:
    """Assemble every per-frame primitive for ``clip`` at ``index``."""
    frame = clip.frames[index] if 0 <= index < clip.num_frames else None
    traj = clip.trajectory[index] if 0 <= index < clip.num_frames else (0.0, 0.0)
    joints = joint_positions(frame, clip.joints_num)
    return FrameView(
        index=index,
        joints=joints,
        joint_colors=list(clip.topology.joint_colors),
        bones=bone_segments(joints, clip.topology),
        plane=ground_plane(clip.bbox_min, clip.bbox_max, traj),
        trail=trajectory_trail(clip.trajectory, index) if frame is not None
        else np.zeros((0, 3), dtype=np.float32),
    )
