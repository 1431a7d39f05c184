"""Turn JSON payloads and .npy buffers into a normalized ``MotionClip``.

Every ``load_*`` entry point returns a ``LoadOk`` or a ``LoadError``; decoding
errors never escape. Payload layouts are matched against an ordered list of
named schema variants, and the variant that matched is reported with the clip.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, NamedTuple, Optional, Union

import numpy as np

from .clock import valid_fps
from .config import DEFAULT_FPS, DEFAULT_JOINTS_NUM, NPY_JOINTS_NUM, NPY_RIC_COLUMNS
from .decoder import recover_from_ric
from .errors import ErrorKind, MotionFormatError
from .normalize import normalize_frames
from .npy_reader import parse_npy
from .topology import Topology, build_topology

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MotionClip:
    frames: np.ndarray      # (T, J, 3) float64, normalized
    trajectory: np.ndarray  # (T, 2)
    bbox_min: np.ndarray
    bbox_max: np.ndarray
    height_offset: float
    joints_num: int
    topology: Topology
    fps: float
    source: str
    variant: str

    @property
    def num_frames(self):
        return self.frames.shape[0]


@dataclass(frozen=True)
class LoadOk:
    clip: MotionClip
    variant: str
    ok: bool = True


@dataclass(frozen=True)
class LoadError:
    kind: ErrorKind
    reason: str
    ok: bool = False


LoadOutcome = Union[LoadOk, LoadError]


# ---------------------------------------------------------------------------
# Schema variants
# ---------------------------------------------------------------------------

class SchemaVariant(NamedTuple):
    name: str
    extract: Callable  # payload → value or None


def _key(name):
    def extract(payload):
        return payload.get(name) if isinstance(payload, dict) else None
    return extract


def _non_empty_list(value):
    return isinstance(value, list) and len(value) > 0


JOINTS_VARIANTS = [
    SchemaVariant("array", lambda payload: payload if isinstance(payload, list) else None),
    SchemaVariant("frames", _key("frames")),
    SchemaVariant("joints", _key("joints")),
]

RIC_VARIANTS = [
    SchemaVariant("data", _key("data")),
    SchemaVariant("ric", _key("ric")),
    SchemaVariant("frames", _key("frames")),
]

JOINTS_NUM_KEYS = ("joints_num", "jointsNum", "joints")


def match_variant(payload, variants) -> Optional[tuple]:
    """First (variant name, value) whose value is a non-empty list, else None."""
    for variant in variants:
        value = variant.extract(payload)
        if _non_empty_list(value):
            return variant.name, value
    return None


def resolve_joints_num(payload, default=DEFAULT_JOINTS_NUM):
    """First positive integer among the joint-count keys, else ``default``."""
    if not isinstance(payload, dict):
        return default
    for key in JOINTS_NUM_KEYS:
        value = payload.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if value > 0 and float(value).is_integer():
            return int(value)
    return default


# ---------------------------------------------------------------------------
# Payload → raw frames
# ---------------------------------------------------------------------------

def _joint_xyz(joint):
    if isinstance(joint, (list, tuple)) and len(joint) >= 3:
        try:
            return [float(joint[0]), float(joint[1]), float(joint[2])]
        except (TypeError, ValueError):
            pass
    return [np.nan, np.nan, np.nan]


def frames_to_array(frames) -> np.ndarray:
    """Ragged list of frames → (T, J, 3); J comes from the first frame.

    Short frames are padded with NaN and malformed joints become NaN, so the
    sequence survives and consumers substitute the origin per frame.
    """
    if not _non_empty_list(frames) or not _non_empty_list(frames[0]):
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, "first frame has no joints")
    joints_num = len(frames[0])
    out = np.full((len(frames), joints_num, 3), np.nan, dtype=np.float64)
    inconsistent = 0
    for t, frame in enumerate(frames):
        if not isinstance(frame, list):
            inconsistent += 1
            continue
        if len(frame) != joints_num:
            inconsistent += 1
        for j, joint in enumerate(frame[:joints_num]):
            out[t, j] = _joint_xyz(joint)
    if inconsistent:
        log.warning("%d frame(s) do not have %d joints; missing joints render at the origin",
                    inconsistent, joints_num)
    return out


def parse_joints_json(payload):
    """Joints payload → (variant, (T, J, 3) array)."""
    matched = match_variant(payload, JOINTS_VARIANTS)
    if matched is None:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, "invalid joints JSON format")
    name, frames = matched
    return name, frames_to_array(frames)


def parse_ric_json(payload):
    """RIC payload → (variant, (T, J, 3) array)."""
    matched = match_variant(payload, RIC_VARIANTS)
    if matched is None:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, "invalid RIC JSON format")
    name, rows = matched
    joints_num = resolve_joints_num(payload)
    try:
        rows = np.asarray(rows, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, f"RIC rows are not numeric: {e}")
    return name, recover_from_ric(rows, joints_num)


def ric_from_npy(matrix):
    """Tensor rows → (T, 22, 3) using the first 67 RIC columns."""
    if matrix.shape[1] < NPY_RIC_COLUMNS:
        raise MotionFormatError(
            ErrorKind.UNSUPPORTED_FORMAT,
            f"npy has {matrix.shape[1]} columns, need {NPY_RIC_COLUMNS} for RIC conversion")
    return recover_from_ric(matrix[:, :NPY_RIC_COLUMNS], NPY_JOINTS_NUM)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def build_clip(frames, source="", fps=DEFAULT_FPS, variant="") -> MotionClip:
    """Normalize raw (T, J, 3) frames and bundle them with their topology."""
    norm = normalize_frames(frames)
    joints_num = norm.frames.shape[1]
    return MotionClip(
        frames=norm.frames,
        trajectory=norm.trajectory,
        bbox_min=norm.bbox_min,
        bbox_max=norm.bbox_max,
        height_offset=norm.height_offset,
        joints_num=joints_num,
        topology=build_topology(joints_num),
        fps=valid_fps(fps),
        source=source,
        variant=variant,
    )


def _guarded(source, fn) -> LoadOutcome:
    try:
        variant, frames, fps = fn()
        clip = build_clip(frames, source=source, fps=fps, variant=variant)
    except MotionFormatError as e:
        log.warning("Failed to load %s: %s", source or "<buffer>", e.reason)
        return LoadError(e.kind, e.reason)
    log.info("Loaded %s (%d frames, %d joints, variant=%s)",
             source or "<buffer>", clip.num_frames, clip.joints_num, variant)
    return LoadOk(clip, variant)


def _decode_json(text):
    if not isinstance(text, (str, bytes, bytearray)):
        return text  # already parsed
    try:
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode("utf-8")
        return json.loads(text)
    except UnicodeDecodeError as e:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, f"not UTF-8 JSON: {e}")
    except json.JSONDecodeError as e:
        raise MotionFormatError(ErrorKind.MALFORMED_INPUT, f"failed to parse JSON: {e}")


def _payload_fps(payload, fps):
    """Explicit ``fps``, then the payload's ``fps`` key, then the default; invalid rates are skipped."""
    fps = valid_fps(fps, default=None)
    if fps is not None:
        return fps
    if isinstance(payload, dict):
        value = payload.get("fps")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return valid_fps(value)
    return DEFAULT_FPS


def load_joints_json(text, source="", fps=None) -> LoadOutcome:
    """Load direct joint positions from JSON text, bytes, or an already-parsed payload."""
    def run():
        payload = _decode_json(text)
        variant, frames = parse_joints_json(payload)
        return variant, frames, _payload_fps(payload, fps)
    return _guarded(source, run)


def load_ric_json(text, source="", fps=None) -> LoadOutcome:
    """Load RIC rows from JSON text, bytes, or an already-parsed payload."""
    def run():
        payload = _decode_json(text)
        variant, frames = parse_ric_json(payload)
        return variant, frames, _payload_fps(payload, fps)
    return _guarded(source, run)


def load_npy(buffer, source="", fps=None) -> LoadOutcome:
    """Load an .npy buffer of RIC rows."""
    def run():
        result = parse_npy(buffer)
        if not result.ok:
            raise MotionFormatError(result.kind, result.detail)
        return "npy", ric_from_npy(result.matrix), _payload_fps(None, fps)
    return _guarded(source, run)


def sniff_json_kind(payload):
    """'ric' when a RIC row key holds flat numeric rows, otherwise 'joints'."""
    matched = match_variant(payload, RIC_VARIANTS)
    if matched is not None:
        first = matched[1][0]
        if _non_empty_list(first) and isinstance(first[0], (int, float)):
            return "ric"
    return "joints"


LOADERS = {"joints": load_joints_json, "ric": load_ric_json, "npy": load_npy}


def load_path(path, kind="auto", fps=None) -> LoadOutcome:
    """Load a file from disk. ``kind`` is 'auto', 'joints', 'ric' or 'npy'."""
    path = Path(path)
    if kind != "auto" and kind not in LOADERS:
        return LoadError(ErrorKind.UNSUPPORTED_FORMAT, f"unknown input kind {kind!r}")
    try:
        data = path.read_bytes()
    except OSError as e:
        log.warning("Failed to read %s: %s", path, e)
        return LoadError(ErrorKind.MALFORMED_INPUT, f"cannot read {path}: {e}")

    if kind == "auto" and path.suffix.lower() == ".npy":
        kind = "npy"
    if kind != "npy":
        try:
            data = _decode_json(data)
        except MotionFormatError as e:
            log.warning("Failed to load %s: %s", path.name, e.reason)
            return LoadError(e.kind, e.reason)
        if kind == "auto":
            kind = sniff_json_kind(data)
    return LOADERS[kind](data, source=path.name, fps=fps)
