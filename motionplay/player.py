"""Playback session: owns the loaded clip and the clock state.

A load replaces clip and clock together, and only when it succeeds.
"""

import logging

import numpy as np

from . import clock
from .config import DEFAULT_FPS, SKELETON
from .frame_view import frame_view
from .loader import LoadOk, build_clip, load_joints_json, load_npy, load_path, load_ric_json

log = logging.getLogger(__name__)


def idle_frames():
    """Single-frame rest pose shown before anything is loaded."""
    return np.array([SKELETON["idle_pose"]], dtype=np.float64)


class MotionPlayer:
    def __init__(self, fps=DEFAULT_FPS, on_recording_complete=None):
        self.on_recording_complete = on_recording_complete
        self.clip = build_clip(idle_frames(), source="idle", fps=fps, variant="idle")
        self.state = clock.start(self.clip.num_frames, fps)

    # --- loading ---

    def _apply(self, outcome):
        if isinstance(outcome, LoadOk):
            self.clip = outcome.clip
            self.state = clock.start(self.clip.num_frames, self.state.fps)
        return outcome

    def load_joints_json(self, text, source=""):
        return self._apply(load_joints_json(text, source=source, fps=self.state.fps))

    def load_ric_json(self, text, source=""):
        return self._apply(load_ric_json(text, source=source, fps=self.state.fps))

    def load_npy(self, buffer, source=""):
        return self._apply(load_npy(buffer, source=source, fps=self.state.fps))

    def load_path(self, path, kind="auto"):
        return self._apply(load_path(path, kind=kind, fps=self.state.fps))

    # --- clock ---

    @property
    def frame(self):
        return self.state.frame

    @property
    def mode(self):
        return self.state.mode

    def tick(self, now_ms):
        """Per-refresh update. Returns True when the displayed frame changed."""
        result = clock.tick(self.state, now_ms)
        self.state = result.state
        if result.completed:
            log.info("Recording of %s reached the last frame", self.clip.source)
            if self.on_recording_complete is not None:
                self.on_recording_complete(self)
        return result.frame_changed

    def scrub(self, index):
        self.state = clock.scrub(self.state, index)

    def set_fps(self, fps):
        self.state = clock.set_fps(self.state, fps)

    def toggle_play(self):
        self.state = clock.toggle_play(self.state)

    def start_recording(self):
        self.state = clock.start_recording(self.state)

    def stop_recording(self):
        self.state = clock.stop_recording(self.state)

    def finish_recording(self):
        self.state = clock.finish_recording(self.state)

    # --- view ---

    def current_view(self):
        return frame_view(self.clip, self.state.frame)
