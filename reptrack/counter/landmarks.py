from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

# BlazePose topology (33 points)
LANDMARK_MAP = {
    "nose": 0,
    "left_eye_inner": 1,
    "left_eye": 2,
    "left_eye_outer": 3,
    "right_eye_inner": 4,
    "right_eye": 5,
    "right_eye_outer": 6,
    "left_ear": 7,
    "right_ear": 8,
    "mouth_left": 9,
    "mouth_right": 10,
    "left_shoulder": 11,
    "right_shoulder": 12,
    "left_elbow": 13,
    "right_elbow": 14,
    "left_wrist": 15,
    "right_wrist": 16,
    "left_pinky": 17,
    "right_pinky": 18,
    "left_index": 19,
    "right_index": 20,
    "left_thumb": 21,
    "right_thumb": 22,
    "left_hip": 23,
    "right_hip": 24,
    "left_knee": 25,
    "right_knee": 26,
    "left_ankle": 27,
    "right_ankle": 28,
    "left_heel": 29,
    "right_heel": 30,
    "left_foot_index": 31,
    "right_foot_index": 32,
}

NUM_LANDMARKS = len(LANDMARK_MAP)

# Only consumed by renderers; kept here so clients can fetch it from one place.
CONNECTIONS: List[Tuple[int, int]] = [
    (0, 1), (1, 2), (2, 3), (3, 7), (0, 4), (4, 5), (5, 6), (6, 8),
    (9, 10),
    (11, 12), (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
    (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    (11, 23), (12, 24), (23, 24),
    (23, 25), (25, 27), (27, 29), (29, 31), (27, 31),
    (24, 26), (26, 28), (28, 30), (30, 32), (28, 32),
]


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0
    presence: float = 1.0

    def minimal(self) -> "Landmark":
        """Copy without the presence score (the engine keeps only this much)."""
        return Landmark(self.x, self.y, self.z, self.visibility)


Landmarks = Sequence[Optional[Landmark]]


def _coerce(raw: Any) -> Optional[Landmark]:
    if raw is None:
        return None
    if isinstance(raw, Landmark):
        return raw
    try:
        if isinstance(raw, dict):
            x, y = raw["x"], raw["y"]
            z = raw.get("z", 0.0)
            vis = raw.get("visibility", 1.0)
            pres = raw.get("presence", 1.0)
        elif isinstance(raw, (list, tuple)):
            x, y = raw[0], raw[1]
            z = raw[2] if len(raw) > 2 else 0.0
            vis = raw[3] if len(raw) > 3 else 1.0
            pres = raw[4] if len(raw) > 4 else 1.0
        else:
            # mediapipe NormalizedLandmark and friends
            x, y = raw.x, raw.y
            z = getattr(raw, "z", 0.0)
            vis = getattr(raw, "visibility", 1.0)
            pres = getattr(raw, "presence", 1.0)
        return Landmark(
            float(x),
            float(y),
            float(z if z is not None else 0.0),
            float(vis if vis is not None else 1.0),
            float(pres if pres is not None else 1.0),
        )
    except (KeyError, IndexError, AttributeError, TypeError, ValueError):
        return None


def parse_landmarks(raw: Optional[Iterable[Any]]) -> List[Optional[Landmark]]:
    """Normalize a frame of landmarks; malformed entries become None."""
    if raw is None:
        return []
    return [_coerce(item) for item in raw]


def minimize(landmarks: Landmarks) -> Tuple[Optional[Landmark], ...]:
    return tuple(lm.minimal() if lm is not None else None for lm in landmarks)


def landmark_index(name: str) -> Optional[int]:
    return LANDMARK_MAP.get(name)


def get_landmark(landmarks: Optional[Landmarks], name: str) -> Optional[Landmark]:
    if not landmarks:
        return None
    idx = LANDMARK_MAP.get(name)
    if idx is None or idx >= len(landmarks):
        return None
    return landmarks[idx]


def resolve_point(name: str, side: Optional[str]) -> str:
    """Map a generic point name ('elbow') to a concrete landmark for a side."""
    if name in LANDMARK_MAP:
        return name
    if side and f"{side}_{name}" in LANDMARK_MAP:
        return f"{side}_{name}"
    return name


def resolve_points(points: Sequence[str], side: Optional[str]) -> List[str]:
    return [resolve_point(p, side) for p in points]
