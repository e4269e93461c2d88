from __future__ import annotations
import json
import logging
import pathlib
from typing import Dict, List, Union

from reptrack.exercises.models import ExerciseConfig

logger = logging.getLogger(__name__)


class UnknownExerciseError(KeyError):
    pass


def _arm_sides(primary, secondary):
    return {
        side: {"primary": [f"{side}_{p}" for p in primary], "secondary": [f"{side}_{s}" for s in secondary]}
        for side in ("left", "right")
    }


def _both(id_: str, points, **kw):
    return [{"id": f"{side}{id_}", "side": side, "points": list(points), **kw} for side in ("left", "right")]


_BUILTIN: List[dict] = [
    {
        "id": "bicep-curls",
        "name": "Bicep Curls",
        "is_two_sided": True,
        "has_weight": True,
        "landmarks": _arm_sides(["shoulder", "elbow", "wrist"], ["hip"]),
        "start_position": {
            "description": "Stand tall, arms fully extended downwards by your sides.",
            "required_angles": _both("ElbowStart", ["shoulder", "elbow", "wrist"], target_angle=170, tolerance=15),
            "ready_position_hold_time": 0.5,
        },
        "logic_config": {
            "type": "angle",
            "angles_to_track": _both(
                "ElbowCurlAngle", ["shoulder", "elbow", "wrist"],
                min_threshold=45, max_threshold=160, is_rep_counter=True,
            ),
        },
        "instructions": "Keep your elbows tucked in. Control the movement.",
        "muscle_groups": ["Biceps", "Forearms"],
    },
    {
        "id": "tricep-kickbacks",
        "name": "Tricep Kickbacks",
        "is_two_sided": True,
        "has_weight": True,
        "landmarks": _arm_sides(["shoulder", "elbow", "wrist"], ["hip", "knee"]),
        "start_position": {
            "description": "Hinge forward, upper arms parallel to the floor, elbows bent at 90 degrees.",
            "required_angles": [
                *_both("ElbowStart", ["shoulder", "elbow", "wrist"], target_angle=90, tolerance=15),
                *_both("ArmPosition", ["hip", "shoulder", "elbow"], target_angle=0, tolerance=20),
            ],
            "ready_position_hold_time": 1.5,
        },
        "logic_config": {
            "type": "angle",
            "angles_to_track": _both(
                "ElbowExtensionAngle", ["shoulder", "elbow", "wrist"],
                min_threshold=90, max_threshold=170, is_rep_counter=True, relaxed_is_high=False,
            ),
        },
        "instructions": "Keep your upper arms parallel to the floor. Extend your forearms backward using only your triceps.",
        "muscle_groups": ["Triceps"],
    },
    {
        "id": "squats",
        "name": "Squats",
        "is_two_sided": True,
        "landmarks": _arm_sides(["hip", "knee", "ankle"], ["shoulder"]),
        "start_position": {
            "description": "Stand with your legs straight.",
            "required_angles": _both("KneeStart", ["hip", "knee", "ankle"], target_angle=180, tolerance=15),
            "ready_position_hold_time": 1.5,
        },
        "logic_config": {
            "type": "angle",
            "angles_to_track": _both(
                "KneeSquatAngle", ["hip", "knee", "ankle"],
                min_threshold=90, max_threshold=160, is_rep_counter=True,
            ),
        },
        "instructions": "Lower your body as if sitting back into a chair, keeping your chest up and knees behind your toes.",
        "muscle_groups": ["Quadriceps", "Hamstrings", "Glutes"],
    },
    {
        "id": "dumbbell-rows",
        "name": "Dumbbell Rows",
        "is_two_sided": True,
        "has_weight": True,
        "landmarks": _arm_sides(["shoulder", "elbow", "wrist"], ["hip"]),
        "start_position": {
            "description": "Hinge forward with the dumbbells hanging below your shoulders.",
            "required_angles": _both("ElbowStart", ["shoulder", "elbow", "wrist"], target_angle=160, tolerance=15),
            "ready_position_hold_time": 1.5,
        },
        "logic_config": {
            "type": "angle",
            "angles_to_track": _both(
                "RowAngle", ["shoulder", "elbow", "wrist"],
                min_threshold=90, max_threshold=150, is_rep_counter=True,
            ),
        },
        "instructions": "Keep your elbows tucked in. Control the movement.",
        "muscle_groups": ["Back"],
    },
    {
        "id": "seated-overhead-press",
        "name": "Seated Overhead Press",
        "has_weight": True,
        "landmarks": _arm_sides(["shoulder", "elbow", "wrist", "hip"], ["hip"]),
        "start_position": {
            "description": "Sit upright with the dumbbells held at shoulder level.",
            "required_angles": _both("ShoulderStart", ["shoulder", "elbow", "hip"], target_angle=60, tolerance=15),
            "ready_position_hold_time": 2.0,
        },
        "logic_config": {
            "type": "angle",
            "angles_to_track": _both(
                "ShoulderAbductionAngle", ["shoulder", "elbow", "hip"],
                min_threshold=75, max_threshold=150, is_rep_counter=True, relaxed_is_high=False,
            ),
        },
        "instructions": "Keep your back straight and control the movement.",
        "muscle_groups": ["Shoulders", "Traps", "Deltoids"],
    },
    {
        "id": "kettlebell-swings",
        "name": "Kettlebell Swings",
        "landmarks": {"left": {"primary": ["left_hip", "left_shoulder", "left_wrist"], "secondary": ["left_shoulder"]}},
        "start_position": {
            "description": "Stand with the kettlebell resting straight down below the shoulder.",
            "required_angles": [
                {"id": "leftShoulderStart", "side": "left", "points": ["hip", "shoulder", "wrist"],
                 "target_angle": 30, "tolerance": 15},
            ],
            "ready_position_hold_time": 1.5,
        },
        "logic_config": {
            "type": "angle",
            "angles_to_track": [
                {"id": "leftShoulderAngle", "side": "left", "points": ["hip", "shoulder", "wrist"],
                 "min_threshold": 30, "max_threshold": 80, "is_rep_counter": True, "relaxed_is_high": False},
            ],
        },
        "muscle_groups": ["Glutes", "Hamstrings", "Back"],
    },
    {
        "id": "push-up-test",
        "name": "Push Up Test",
        "landmarks": {"primary": ["left_shoulder", "nose"], "secondary": ["right_shoulder"]},
        "start_position": {
            "description": "Top of a push-up, arms locked out.",
            "required_angles": [
                {"id": "leftArmStart", "side": "left", "points": ["shoulder", "elbow", "wrist"],
                 "target_angle": 180, "tolerance": 20},
            ],
            "ready_position_hold_time": 1.5,
        },
        "logic_config": {
            "type": "angle",
            "angles_to_track": [
                {"id": "leftArmRep", "side": "left", "points": ["shoulder", "elbow", "wrist"],
                 "min_threshold": 90, "max_threshold": 150, "is_rep_counter": True},
            ],
        },
        "instructions": "Keep your body in a straight line. Lower until your elbows reach 90 degrees.",
        "muscle_groups": ["Chest", "Triceps", "Shoulders"],
    },
    {
        "id": "jumping-jacks",
        "name": "Jumping Jacks",
        "landmarks": {
            "primary": ["left_wrist", "right_wrist", "nose", "left_ankle", "right_ankle"],
            "secondary": ["left_shoulder", "right_shoulder"],
        },
        "start_position": {
            "description": "Stand upright with arms at your sides and feet together.",
            "required_positions": [
                {"id": "leftHandAtSide", "points": ["left_wrist", "left_ankle"], "max_distance": 0.25},
                {"id": "rightHandAtSide", "points": ["right_wrist", "right_ankle"], "max_distance": 0.25},
            ],
            "ready_position_hold_time": 1.0,
        },
        "logic_config": {
            "type": "position",
            "positions_to_track": [
                {"id": "handsTogetherAboveHead", "points": ["left_wrist", "right_wrist"],
                 "max_distance": 0.18, "is_rep_counter": True},
                {"id": "leftHandAboveHead", "points": ["nose", "left_wrist"],
                 "min_vertical": -0.10, "is_rep_counter": True},
                {"id": "rightHandAboveHead", "points": ["nose", "right_wrist"],
                 "min_vertical": -0.10, "is_rep_counter": True},
            ],
        },
        "instructions": "Jump, spreading your legs and raising your arms overhead until your hands touch. Return to start.",
        "muscle_groups": ["Legs", "Shoulders", "Cardio"],
    },
]

_CATALOG: Dict[str, ExerciseConfig] = {}


def _ensure_loaded():
    if not _CATALOG:
        for raw in _BUILTIN:
            cfg = ExerciseConfig.model_validate(raw)
            _CATALOG[cfg.id] = cfg


def list_exercises() -> List[ExerciseConfig]:
    _ensure_loaded()
    return list(_CATALOG.values())


def get_exercise(exercise_id: str) -> ExerciseConfig:
    _ensure_loaded()
    try:
        return _CATALOG[exercise_id]
    except KeyError:
        raise UnknownExerciseError(exercise_id) from None


def register_exercise(cfg: ExerciseConfig) -> ExerciseConfig:
    _ensure_loaded()
    if cfg.id in _CATALOG:
        logger.info("replacing exercise %s", cfg.id)
    _CATALOG[cfg.id] = cfg
    return cfg


def load_exercise_file(path: Union[str, pathlib.Path], register: bool = True) -> ExerciseConfig:
    """Load an exercise from JSON (snake_case or camelCase keys). Raises pydantic.ValidationError on bad data."""
    data = json.loads(pathlib.Path(path).read_text(encoding="utf-8"))
    cfg = ExerciseConfig.model_validate(data)
    if register:
        register_exercise(cfg)
    return cfg
