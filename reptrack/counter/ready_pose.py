from __future__ import annotations
from typing import Iterable, List, Optional

from reptrack.counter.landmarks import Landmarks, get_landmark
from reptrack.counter.pose_core import distance_2d, joint_angle
from reptrack.exercises.models import AngleConfig, ExerciseConfig, PositionConfig


def position_satisfied(landmarks: Optional[Landmarks], pos: PositionConfig) -> bool:
    """
    Distance and vertical-offset checks between two landmarks.
    Image y grows downward, so a negative offset means point B sits above point A.
    """
    if not landmarks or len(pos.points) != 2:
        return False
    a = get_landmark(landmarks, pos.points[0])
    b = get_landmark(landmarks, pos.points[1])
    if a is None or b is None:
        return False

    if pos.min_distance is not None or pos.max_distance is not None:
        dist = distance_2d(a, b)
        if dist is None:
            return False
        if pos.min_distance is not None and dist < pos.min_distance:
            return False
        if pos.max_distance is not None and dist > pos.max_distance:
            return False

    dy = b.y - a.y
    if pos.min_vertical is not None and dy > pos.min_vertical:
        return False
    if pos.max_vertical is not None and dy < pos.max_vertical:
        return False
    return True


def all_positions_satisfied(landmarks: Optional[Landmarks], positions: Iterable[PositionConfig]) -> bool:
    return all(position_satisfied(landmarks, p) for p in positions)


def rep_counter_positions(exercise: ExerciseConfig) -> List[PositionConfig]:
    return [p for p in exercise.logic_config.positions_to_track if p.is_rep_counter]


def in_ready_pose(landmarks: Optional[Landmarks], exercise: ExerciseConfig, side: str) -> bool:
    """Raw start-pose match for one side: every required angle within tolerance, every required position met."""
    if not landmarks:
        return False
    start = exercise.start_position
    required = [ra for ra in start.required_angles if ra.applies_to(side)]
    if not required and not start.required_positions:
        return False

    for ra in required:
        angle = joint_angle(landmarks, ra.points, side)
        if angle is None:
            return False
        if abs(angle - ra.target_angle) > ra.tolerance:
            return False

    return all_positions_satisfied(landmarks, start.required_positions)


def _tracked_angles(landmarks: Landmarks, exercise: ExerciseConfig, side: str):
    for cfg in exercise.angles_for(side):
        angle = joint_angle(landmarks, cfg.points, side)
        if angle is not None:
            yield cfg, angle


def _left_relaxed(cfg: AngleConfig, angle: float) -> bool:
    if cfg.relaxed_is_high:
        return angle < cfg.max_threshold
    return angle > cfg.min_threshold


def _back_to_relaxed(cfg: AngleConfig, angle: float) -> bool:
    if cfg.relaxed_is_high:
        return angle > cfg.max_threshold
    return angle < cfg.min_threshold


def rep_started(landmarks: Optional[Landmarks], exercise: ExerciseConfig, side: str) -> bool:
    """Movement away from the relaxed boundary on any tracked angle of the side."""
    if not landmarks:
        return False
    if exercise.logic_config.type == "position":
        positions = exercise.start_position.required_positions
        return bool(positions) and not all_positions_satisfied(landmarks, positions)
    return any(_left_relaxed(cfg, angle) for cfg, angle in _tracked_angles(landmarks, exercise, side))


def rep_completed(
    landmarks: Optional[Landmarks],
    exercise: ExerciseConfig,
    side: str,
    was_in_ready_pose: bool,
) -> bool:
    """Return past the relaxed boundary after the side had been in its ready pose."""
    if not landmarks or not was_in_ready_pose:
        return False
    if exercise.logic_config.type == "position":
        positions = exercise.start_position.required_positions
        return bool(positions) and all_positions_satisfied(landmarks, positions)
    return any(_back_to_relaxed(cfg, angle) for cfg, angle in _tracked_angles(landmarks, exercise, side))
