"""
Unit tests for schema detection and the load boundary.
"""

import json
import logging

import numpy as np
import pytest

from motionplay.errors import ErrorKind
from motionplay.loader import (
    JOINTS_VARIANTS,
    RIC_VARIANTS,
    LoadError,
    LoadOk,
    frames_to_array,
    load_joints_json,
    load_npy,
    load_path,
    load_ric_json,
    match_variant,
    resolve_joints_num,
    sniff_json_kind,
)


@pytest.fixture
def joint_frames(walk_frames):
    return walk_frames.tolist()


# ==============================================================================
# SCHEMA VARIANTS
# ==============================================================================


@pytest.mark.unit
class TestSchemaVariants:
    def test_joints_priority_order(self, joint_frames):
        assert match_variant(joint_frames, JOINTS_VARIANTS)[0] == "array"
        payload = {"frames": joint_frames, "joints": joint_frames}
        assert match_variant(payload, JOINTS_VARIANTS)[0] == "frames"
        assert match_variant({"joints": joint_frames}, JOINTS_VARIANTS)[0] == "joints"

    def test_empty_variant_falls_through(self, joint_frames):
        payload = {"frames": [], "joints": joint_frames}
        assert match_variant(payload, JOINTS_VARIANTS)[0] == "joints"

    def test_ric_priority_order(self):
        rows = [[0.0] * 67]
        assert match_variant({"ric": rows, "frames": rows}, RIC_VARIANTS)[0] == "ric"
        assert match_variant({"data": rows, "ric": rows}, RIC_VARIANTS)[0] == "data"

    def test_no_match(self):
        assert match_variant({"foo": [1]}, RIC_VARIANTS) is None
        assert match_variant("text", JOINTS_VARIANTS) is None

    @pytest.mark.parametrize("payload, expected", [
        ({"joints_num": 52}, 52),
        ({"jointsNum": 30.0}, 30),
        ({"joints": 2}, 2),
        ({"joints_num": 0, "jointsNum": 24}, 24),
        ({"joints_num": True}, 22),
        ({"joints_num": 2.5}, 22),
        ({"joints": [[0.0]]}, 22),
        ({}, 22),
    ])
    def test_joint_count_keys(self, payload, expected):
        assert resolve_joints_num(payload) == expected

    def test_sniff_json_kind(self, joint_frames):
        assert sniff_json_kind({"frames": joint_frames}) == "joints"
        assert sniff_json_kind({"frames": [[0.0, 0.0, 0.0, 1.0]]}) == "ric"
        assert sniff_json_kind(joint_frames) == "joints"


# ==============================================================================
# JOINTS JSON
# ==============================================================================


@pytest.mark.unit
class TestLoadJointsJson:
    def test_loads_array_payload(self, joint_frames):
        outcome = load_joints_json(json.dumps(joint_frames), source="walk.json")
        assert isinstance(outcome, LoadOk)
        clip = outcome.clip
        assert outcome.variant == "array"
        assert clip.num_frames == 4
        assert clip.joints_num == 3
        assert clip.source == "walk.json"
        assert clip.frames[..., 1].min() == 0.0
        assert np.all(clip.frames[:, 0, [0, 2]] == 0.0)

    def test_accepts_bytes_and_parsed_payload(self, joint_frames):
        assert load_joints_json(json.dumps({"frames": joint_frames}).encode()).ok
        assert load_joints_json({"joints": joint_frames}).variant == "joints"

    def test_payload_fps(self, joint_frames):
        outcome = load_joints_json({"frames": joint_frames, "fps": 20})
        assert outcome.clip.fps == 20.0
        assert load_joints_json({"frames": joint_frames, "fps": 20}, fps=60).clip.fps == 60

    def test_topology_follows_joint_count(self, walk_frames):
        frames = np.zeros((2, 22, 3))
        frames[:, :, 1] = np.linspace(0, 1, 22)
        clip = load_joints_json(frames.tolist()).clip
        assert clip.topology.joints_num == 22
        assert len(clip.topology.chains) == 5

    def test_invalid_json(self):
        outcome = load_joints_json("{not json")
        assert isinstance(outcome, LoadError)
        assert outcome.kind is ErrorKind.MALFORMED_INPUT

    def test_invalid_utf8(self):
        outcome = load_joints_json(b"\xff\xfe\x00")
        assert outcome.kind is ErrorKind.MALFORMED_INPUT

    def test_unknown_schema(self):
        outcome = load_joints_json({"poses": []})
        assert not outcome.ok
        assert "joints JSON" in outcome.reason


@pytest.mark.unit
class TestInconsistentFrames:
    def test_short_frames_padded_with_nan(self, caplog):
        frames = [
            [[0, 1, 0], [1, 1, 0], [2, 1, 0]],
            [[0, 1, 0], [1, 1, 0]],
        ]
        with caplog.at_level(logging.WARNING, logger="motionplay.loader"):
            arr = frames_to_array(frames)
        assert arr.shape == (2, 3, 3)
        assert np.isnan(arr[1, 2]).all()
        assert "do not have 3 joints" in caplog.text

    def test_malformed_joint_becomes_nan(self):
        arr = frames_to_array([[[0, 1, 0], [1, "x", 0]], [[0, 1, 0], [1]]])
        assert np.isnan(arr[0, 1]).all()
        assert np.isnan(arr[1, 1]).all()

    def test_ragged_sequence_still_loads(self):
        outcome = load_joints_json([[[0, 1, 0], [0, 2, 0]], [[0, 1, 0]]])
        assert outcome.ok
        assert np.isnan(outcome.clip.frames[1, 1]).all()

    def test_empty_first_frame_rejected(self):
        outcome = load_joints_json([[], [[0, 1, 0]]])
        assert outcome.kind is ErrorKind.MALFORMED_INPUT


# ==============================================================================
# RIC JSON / NPY
# ==============================================================================


@pytest.mark.unit
class TestLoadRic:
    def test_ric_json_default_joint_count(self, make_ric_rows):
        rows = make_ric_rows(3, joints_num=22, lin_x=0.1).tolist()
        outcome = load_ric_json(json.dumps({"data": rows}))
        assert outcome.ok
        assert outcome.variant == "data"
        assert outcome.clip.joints_num == 22
        np.testing.assert_allclose(outcome.clip.trajectory[:, 0], [0.0, 0.1, 0.2])

    def test_ric_json_explicit_joint_count(self, make_ric_rows):
        rows = make_ric_rows(2, joints_num=4).tolist()
        outcome = load_ric_json({"ric": rows, "jointsNum": 4})
        assert outcome.clip.joints_num == 4

    def test_ric_json_missing_rows(self):
        outcome = load_ric_json({"joints_num": 22})
        assert outcome.kind is ErrorKind.MALFORMED_INPUT

    def test_ric_json_short_rows(self, make_ric_rows):
        outcome = load_ric_json({"frames": make_ric_rows(2, joints_num=5).tolist()})
        assert outcome.kind is ErrorKind.MALFORMED_INPUT

    def test_ric_json_non_numeric_rows(self):
        outcome = load_ric_json({"data": [["a", "b", "c", "d"]], "joints_num": 1})
        assert outcome.kind is ErrorKind.MALFORMED_INPUT

    def test_npy_uses_first_67_columns(self, npy_bytes, make_ric_rows):
        rows = make_ric_rows(5, joints_num=22, extra_cols=196).astype(np.float32)
        rows[:, 67:] = 9.0
        outcome = load_npy(npy_bytes(rows), source="000000.npy")
        assert outcome.ok
        assert outcome.variant == "npy"
        assert outcome.clip.joints_num == 22
        assert outcome.clip.frames.shape == (5, 22, 3)

    def test_npy_too_few_columns(self, npy_bytes):
        outcome = load_npy(npy_bytes(np.zeros((3, 66), dtype=np.float32)))
        assert outcome.kind is ErrorKind.UNSUPPORTED_FORMAT

    def test_npy_decode_failure_is_tagged(self, npy_bytes):
        raw = npy_bytes(np.zeros((3, 67), dtype=np.float32))
        outcome = load_npy(raw[:-8])
        assert outcome.kind is ErrorKind.OUT_OF_BOUNDS
        assert "out of bounds" in outcome.reason

    def test_npy_without_rows(self, npy_bytes):
        outcome = load_npy(npy_bytes(np.zeros((0, 67), dtype=np.float32)))
        assert outcome.kind is ErrorKind.MALFORMED_INPUT


# ==============================================================================
# FILES
# ==============================================================================


@pytest.mark.integration
class TestLoadPath:
    def test_npy_by_suffix(self, tmp_path, make_ric_rows):
        path = tmp_path / "clip.npy"
        np.save(path, make_ric_rows(3).astype(np.float32))
        outcome = load_path(path)
        assert outcome.ok
        assert outcome.clip.source == "clip.npy"

    def test_json_sniffed_as_ric(self, tmp_path, make_ric_rows):
        path = tmp_path / "clip.json"
        path.write_text(json.dumps({"frames": make_ric_rows(3).tolist()}))
        outcome = load_path(path)
        assert outcome.ok
        assert outcome.clip.joints_num == 22

    def test_json_sniffed_as_joints(self, tmp_path, joint_frames):
        path = tmp_path / "clip.json"
        path.write_text(json.dumps({"frames": joint_frames}))
        outcome = load_path(path)
        assert outcome.ok
        assert outcome.clip.joints_num == 3

    def test_explicit_kind(self, tmp_path, joint_frames):
        path = tmp_path / "clip.txt"
        path.write_text(json.dumps(joint_frames))
        assert load_path(path, kind="joints").ok
        assert load_path(path, kind="bvh").kind is ErrorKind.UNSUPPORTED_FORMAT

    def test_missing_file(self, tmp_path):
        outcome = load_path(tmp_path / "missing.json")
        assert outcome.kind is ErrorKind.MALFORMED_INPUT


# ==============================================================================
# FRAME RATE
# ==============================================================================


@pytest.mark.unit
class TestFrameRate:
    @pytest.mark.parametrize("bad", [0, -12, 1e999, float("nan")])
    def test_invalid_payload_fps_uses_default(self, joint_frames, bad):
        outcome = load_joints_json({"frames": joint_frames, "fps": bad})
        assert outcome.clip.fps == 30.0

    def test_infinite_fps_from_json_text(self, joint_frames):
        text = '{"fps": 1e999, "frames": %s}' % json.dumps(joint_frames)
        assert load_joints_json(text).clip.fps == 30.0

    @pytest.mark.parametrize("bad", [0, -24.0, float("inf")])
    def test_invalid_explicit_fps_falls_back(self, joint_frames, make_ric_rows, npy_bytes, bad):
        assert load_joints_json({"frames": joint_frames, "fps": 20}, fps=bad).clip.fps == 20.0
        assert load_ric_json({"data": make_ric_rows(2).tolist()}, fps=bad).clip.fps == 30.0
        rows = make_ric_rows(2).astype(np.float32)
        assert load_npy(npy_bytes(rows), fps=bad).clip.fps == 30.0

    def test_npy_explicit_fps(self, make_ric_rows, npy_bytes):
        rows = make_ric_rows(2).astype(np.float32)
        assert load_npy(npy_bytes(rows), fps=24).clip.fps == 24.0


@pytest.mark.unit
def test_npy_oversized_shape_stays_inside_load_boundary():
    header = b"{'descr': '<f4', 'fortran_order': False, 'shape': (4294967296, 4294967296), }"
    raw = b"\x93NUMPY\x01\x00" + len(header).to_bytes(2, "little") + header + b"\x00" * 16
    outcome = load_npy(raw)
    assert isinstance(outcome, LoadError)
    assert outcome.kind is ErrorKind.OUT_OF_BOUNDS
