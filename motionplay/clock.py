"""Frame-advance state machine driven once per display refresh.

All functions are pure: they take a ``ClockState`` and return the next one.
Changing fps does not rescale time that has already been accumulated, so the
displayed frame can jump right after a change.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum

from .config import DEFAULT_FPS

# Relative tolerance absorbing float rounding at exact frame boundaries
_BOUNDARY_EPS = 1e-9


def valid_fps(fps, default=DEFAULT_FPS):
    """``fps`` as a float when it is finite and positive, else ``default``."""
    try:
        fps = float(fps)
    except (TypeError, ValueError):
        return default
    if not fps > 0 or math.isinf(fps):
        return default
    return fps


class PlaybackMode(str, Enum):
    IDLE = "idle"
    LOOPING = "looping"
    RECORDING = "recording"  # clamped: stops on the last frame
    STOPPED = "stopped"


@dataclass(frozen=True)
class ClockState:
    mode: PlaybackMode = PlaybackMode.IDLE
    frame: int = 0
    accumulated_ms: float = 0.0
    last_time_ms: float = None  # None until the first tick after a reset
    fps: float = DEFAULT_FPS
    frame_count: int = 0
    resume_looping: bool = False

    @property
    def frame_duration_ms(self):
        return 1000.0 / self.fps

    @property
    def playing(self):
        return self.mode in (PlaybackMode.LOOPING, PlaybackMode.RECORDING)


@dataclass(frozen=True)
class TickResult:
    state: ClockState
    frame_changed: bool = False
    completed: bool = False


def start(frame_count, fps=DEFAULT_FPS) -> ClockState:
    """Fresh clock for a newly loaded clip; loops when there is more than one frame."""
    mode = PlaybackMode.LOOPING if frame_count > 1 else PlaybackMode.IDLE
    return ClockState(mode=mode, frame=0, accumulated_ms=0.0, last_time_ms=None,
                      fps=valid_fps(fps), frame_count=int(frame_count))


def advance(state: ClockState, delta_ms) -> TickResult:
    """Add ``delta_ms`` of real time and pick the frame to display."""
    if not state.playing or state.frame_count <= 0:
        return TickResult(state)

    accumulated = state.accumulated_ms + delta_ms
    quotient = accumulated / state.frame_duration_ms
    candidate = int(math.floor(quotient + _BOUNDARY_EPS * max(1.0, abs(quotient))))

    if state.mode is PlaybackMode.RECORDING:
        frame = min(state.frame_count - 1, candidate)
    else:
        frame = candidate % state.frame_count

    nxt = replace(state, accumulated_ms=accumulated, frame=frame)
    completed = False
    if nxt.mode is PlaybackMode.RECORDING and frame >= state.frame_count - 1:
        nxt = replace(nxt, mode=PlaybackMode.STOPPED)
        completed = True
    return TickResult(nxt, frame_changed=frame != state.frame, completed=completed)


def tick(state: ClockState, now_ms) -> TickResult:
    """Advance using a monotonic timestamp; the first tick after a reset adds no time."""
    delta = 0.0 if state.last_time_ms is None else now_ms - state.last_time_ms
    return advance(replace(state, last_time_ms=now_ms), delta)


def scrub(state: ClockState, index) -> ClockState:
    """Jump to ``index`` and pause; accumulated time realigns to that frame."""
    if state.frame_count > 0:
        index = max(0, min(int(index), state.frame_count - 1))
    else:
        index = 0
    return replace(state, frame=index, mode=PlaybackMode.IDLE,
                   accumulated_ms=index * state.frame_duration_ms,
                   resume_looping=False)


def set_fps(state: ClockState, fps) -> ClockState:
    """Ignore rates that are not finite and positive."""
    fps = valid_fps(fps, default=None)
    if fps is None:
        return state
    return replace(state, fps=fps)


def toggle_play(state: ClockState) -> ClockState:
    if state.playing:
        return replace(state, mode=PlaybackMode.IDLE, resume_looping=False)
    return replace(state, mode=PlaybackMode.LOOPING, last_time_ms=None)


def start_recording(state: ClockState) -> ClockState:
    """Rewind and play once through in clamped mode. No-op for single-frame clips."""
    if state.frame_count <= 1:
        return state
    return replace(state, mode=PlaybackMode.RECORDING, frame=0, accumulated_ms=0.0,
                   last_time_ms=None,
                   resume_looping=state.mode is PlaybackMode.LOOPING)


def stop_recording(state: ClockState) -> ClockState:
    if state.mode is not PlaybackMode.RECORDING:
        return state
    return replace(state, mode=PlaybackMode.STOPPED)


def finish_recording(state: ClockState) -> ClockState:
    """Called once the recorder has flushed: resume looping if it was looping before."""
    if state.resume_looping:
        return replace(state, mode=PlaybackMode.LOOPING,
                       accumulated_ms=state.frame * state.frame_duration_ms,
                       last_time_ms=None, resume_looping=False)
    if state.mode is PlaybackMode.STOPPED:
        return replace(state, mode=PlaybackMode.IDLE)
    return state
