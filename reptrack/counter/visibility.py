from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from reptrack.counter.landmarks import LANDMARK_MAP, Landmark, Landmarks
from reptrack.exercises.models import ExerciseConfig


@dataclass(frozen=True)
class VisibilityResult:
    required_visible: bool
    secondary_visible: bool
    # min scores over each set, 1.0 for an empty set
    required_visibility: float = 1.0
    secondary_visibility: float = 1.0
    required_confidence: float = 1.0
    secondary_confidence: float = 1.0

    @property
    def ok(self) -> bool:
        return self.required_visible and self.secondary_visible


def _indices(names: List[str]) -> List[int]:
    # unmapped names are dropped, like an undeclared landmark
    return [LANDMARK_MAP[n] for n in names if n in LANDMARK_MAP]


def _at(landmarks: Landmarks, idx: int) -> Optional[Landmark]:
    return landmarks[idx] if idx < len(landmarks) else None


def is_visible(
    lm: Optional[Landmark],
    threshold: float,
    confidence_threshold: Optional[float] = None,
) -> bool:
    """A landmark passes when its visibility (or, with a fallback, its presence) clears the bar."""
    if lm is None:
        return False
    if lm.visibility > threshold:
        return True
    return confidence_threshold is not None and lm.presence > confidence_threshold


def required_landmarks_visible(
    landmarks: Optional[Landmarks],
    exercise: Optional[ExerciseConfig],
    threshold: float,
    require_all: bool = False,
    confidence_threshold: Optional[float] = None,
) -> bool:
    if not landmarks:
        return False
    if require_all:
        return all(is_visible(lm, threshold, confidence_threshold) for lm in landmarks)
    if exercise is None:
        return False
    indices = _indices(exercise.landmarks.primary_names(exercise.sides))
    if not indices:
        return False
    return all(is_visible(_at(landmarks, i), threshold, confidence_threshold) for i in indices)


def secondary_landmarks_visible(
    landmarks: Optional[Landmarks],
    exercise: Optional[ExerciseConfig],
    threshold: float,
    confidence_threshold: Optional[float] = None,
) -> bool:
    if not landmarks:
        return False
    if exercise is None:
        return True
    indices = _indices(exercise.landmarks.secondary_names(exercise.sides))
    if not indices:
        return True
    return all(is_visible(_at(landmarks, i), threshold, confidence_threshold) for i in indices)


def _min_scores(landmarks: Landmarks, indices: List[int]):
    vis, conf = 1.0, 1.0
    for idx in indices:
        lm = _at(landmarks, idx)
        if lm is None:
            vis, conf = 0.0, 0.0
            continue
        vis = min(vis, lm.visibility)
        conf = min(conf, lm.presence)
    return vis, conf


def evaluate_visibility(
    landmarks: Optional[Landmarks],
    exercise: Optional[ExerciseConfig],
    threshold: float,
    require_all: bool = False,
    use_confidence_fallback: bool = False,
    confidence_threshold: float = 0.8,
) -> VisibilityResult:
    """Run the visibility gate for one frame. Pure; never raises on bad data."""
    conf = confidence_threshold if use_confidence_fallback else None
    required = required_landmarks_visible(landmarks, exercise, threshold, require_all, conf)
    secondary = secondary_landmarks_visible(landmarks, exercise, threshold, conf)

    if not landmarks or exercise is None:
        return VisibilityResult(required, secondary, 0.0, 0.0, 0.0, 0.0)

    req_vis, req_conf = _min_scores(landmarks, _indices(exercise.landmarks.primary_names(exercise.sides)))
    sec_vis, sec_conf = _min_scores(landmarks, _indices(exercise.landmarks.secondary_names(exercise.sides)))
    return VisibilityResult(required, secondary, req_vis, sec_vis, req_conf, sec_conf)
