from __future__ import annotations
import math
from typing import Optional, Sequence

import numpy as np

from reptrack.counter.landmarks import Landmark, Landmarks, get_landmark, resolve_points

# Utility math

_EPS = 1e-9


def angle_3pt(a: Optional[Landmark], b: Optional[Landmark], c: Optional[Landmark]) -> Optional[float]:
    """Return angle ABC in degrees with B as vertex, on the (x, y) projection.

    None when a point is missing or a ray has zero length.
    """
    if a is None or b is None or c is None:
        return None
    ba = np.array([a.x - b.x, a.y - b.y], dtype=float)
    bc = np.array([c.x - b.x, c.y - b.y], dtype=float)
    norm_ba = float(np.linalg.norm(ba))
    norm_bc = float(np.linalg.norm(bc))
    if norm_ba < _EPS or norm_bc < _EPS:
        return None
    cosine = float(np.dot(ba, bc)) / (norm_ba * norm_bc)
    if not math.isfinite(cosine):
        return None
    cosine = float(np.clip(cosine, -1.0, 1.0))
    return math.degrees(math.acos(cosine))


def distance_2d(a: Optional[Landmark], b: Optional[Landmark]) -> Optional[float]:
    if a is None or b is None:
        return None
    return math.hypot(a.x - b.x, a.y - b.y)


def distance_3d(a: Optional[Landmark], b: Optional[Landmark]) -> Optional[float]:
    if a is None or b is None:
        return None
    return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2 + (a.z - b.z) ** 2)


def joint_angle(landmarks: Optional[Landmarks], points: Sequence[str], side: Optional[str]) -> Optional[float]:
    """Angle for a three-point joint declared with generic or concrete names."""
    if not landmarks or len(points) != 3:
        return None
    a, b, c = (get_landmark(landmarks, name) for name in resolve_points(points, side))
    return angle_3pt(a, b, c)
