import math

import pytest

from reptrack.common.config import TrackerSettings
from reptrack.counter.landmarks import LANDMARK_MAP, NUM_LANDMARKS

ARM = 0.2
ELBOW_POS = {"left": (0.6, 0.5), "right": (0.4, 0.5)}


def _blank(visibility=1.0, presence=1.0):
    return [{"x": 0.5, "y": 0.5, "z": 0.0, "visibility": visibility, "presence": presence}
            for _ in range(NUM_LANDMARKS)]


def _put(frame, name, x, y):
    frame[LANDMARK_MAP[name]].update(x=x, y=y)


def arm_frame(left=None, right=None, visibility=1.0, presence=1.0):
    """
    33-landmark frame with the elbow angle of each arm set to the given degrees.
    Upper arm points straight up from the elbow; the forearm opens by the angle.
    An arm given as None keeps its landmarks stacked on the elbow (no angle).
    """
    frame = _blank(visibility, presence)
    for side, angle in (("left", left), ("right", right)):
        ex, ey = ELBOW_POS[side]
        _put(frame, f"{side}_elbow", ex, ey)
        _put(frame, f"{side}_hip", ex, ey + 0.3)
        if angle is None:
            _put(frame, f"{side}_shoulder", ex, ey)
            _put(frame, f"{side}_wrist", ex, ey)
            continue
        _put(frame, f"{side}_shoulder", ex, ey - ARM)
        rad = math.radians(angle)
        _put(frame, f"{side}_wrist", ex + ARM * math.sin(rad), ey - ARM * math.cos(rad))
    return frame


def jack_frame(pose="down", visibility=1.0):
    """Jumping-jack frames: arms 'down' by the sides, 'up' overhead, or 'mid' out to the sides."""
    frame = _blank(visibility)
    _put(frame, "nose", 0.5, 0.15)
    _put(frame, "left_shoulder", 0.55, 0.3)
    _put(frame, "right_shoulder", 0.45, 0.3)
    _put(frame, "left_ankle", 0.58, 0.95)
    _put(frame, "right_ankle", 0.42, 0.95)
    if pose == "down":
        _put(frame, "left_wrist", 0.6, 0.75)
        _put(frame, "right_wrist", 0.4, 0.75)
    elif pose == "up":
        _put(frame, "left_wrist", 0.52, 0.0)
        _put(frame, "right_wrist", 0.48, 0.0)
    else:
        _put(frame, "left_wrist", 0.85, 0.3)
        _put(frame, "right_wrist", 0.15, 0.3)
    return frame


@pytest.fixture
def frame():
    return arm_frame


@pytest.fixture
def jack():
    return jack_frame


@pytest.fixture
def settings():
    # explicit values so a developer's REPTRACK_* environment cannot leak into tests
    return TrackerSettings(
        strict_landmark_visibility=False,
        visibility_threshold=0.7,
        use_confidence_as_fallback=True,
        confidence_threshold=0.8,
        smoothing_factor=15,
        use_smoothed_rep_counting=False,
        rep_debounce_duration=200,
        frame_sampling_rate=1,
        use_three_phases=False,
        visibility_grace_period_ms=300,
    )
