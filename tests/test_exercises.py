import json

import pytest
from pydantic import ValidationError

from reptrack.exercises.catalog import UnknownExerciseError, get_exercise, list_exercises, load_exercise_file
from reptrack.exercises.models import AngleConfig, ExerciseConfig


def test_catalog_contents():
    ids = {ex.id for ex in list_exercises()}
    assert {
        "bicep-curls", "tricep-kickbacks", "squats", "dumbbell-rows",
        "seated-overhead-press", "kettlebell-swings", "push-up-test", "jumping-jacks",
    } <= ids


def test_unknown_exercise():
    with pytest.raises(UnknownExerciseError):
        get_exercise("handstand-walk")
    # still a KeyError for callers that only know dict semantics
    with pytest.raises(KeyError):
        get_exercise("handstand-walk")


def test_curls_shape():
    curls = get_exercise("bicep-curls")
    assert curls.sides == ["left", "right"]
    assert curls.hold_time == pytest.approx(0.5)
    assert curls.rep_angle("right").side == "right"
    assert curls.landmarks.primary_names(curls.sides) == [
        "left_shoulder", "left_elbow", "left_wrist", "right_shoulder", "right_elbow", "right_wrist",
    ]
    assert curls.landmarks.secondary_names(curls.sides) == ["left_hip", "right_hip"]


def test_single_sided_with_per_side_sets_uses_left():
    press = get_exercise("seated-overhead-press")
    assert press.sides == ["left"]
    assert press.landmarks.primary_names(press.sides) == ["left_shoulder", "left_elbow", "left_wrist", "left_hip"]


def test_flat_landmarks():
    pushups = get_exercise("push-up-test")
    assert pushups.landmarks.primary_names(pushups.sides) == ["left_shoulder", "nose"]


def test_camel_case_and_hold_time_aliases():
    ex = ExerciseConfig.model_validate({
        "id": "x",
        "isTwoSided": True,
        "startPosition": {"holdTime": 1.25},
        "logicConfig": {"anglesToTrack": [
            {"points": ["hip", "knee", "ankle"], "minThreshold": 80, "maxThreshold": 170, "relaxedIsHigh": True},
        ]},
        "repDebounceDuration": 120,
    })
    assert ex.is_two_sided
    assert ex.hold_time == pytest.approx(1.25)
    # a side-less angle applies to both sides
    assert ex.rep_angle("left") is ex.rep_angle("right")
    assert ex.debounce_ms(200) == 120


def test_debounce_fallbacks():
    assert ExerciseConfig(id="a").debounce_ms(200) == 200
    nested = ExerciseConfig.model_validate({"id": "b", "logicConfig": {"repDebounceDuration": 50}})
    assert nested.debounce_ms(200) == 50


def test_rep_angle_prefers_counter():
    ex = ExerciseConfig.model_validate({"id": "y", "logicConfig": {"anglesToTrack": [
        {"id": "a", "points": ["hip", "knee", "ankle"]},
        {"id": "b", "points": ["shoulder", "elbow", "wrist"], "isRepCounter": True},
    ]}})
    assert ex.rep_angle("left").id == "b"


def test_bad_thresholds_rejected():
    with pytest.raises(ValidationError):
        AngleConfig(points=["a", "b", "c"], min_threshold=120, max_threshold=90)


def test_load_exercise_file(tmp_path):
    path = tmp_path / "lunges.json"
    path.write_text(json.dumps({
        "id": "lunges",
        "name": "Lunges",
        "isTwoSided": True,
        "landmarks": {"left": {"primary": ["left_knee"]}, "right": {"primary": ["right_knee"]}},
        "startPosition": {"requiredAngles": [{"points": ["hip", "knee", "ankle"], "targetAngle": 175}],
                          "readyPositionHoldTime": 1},
        "logicConfig": {"type": "angle", "anglesToTrack": [{"points": ["hip", "knee", "ankle"],
                                                            "minThreshold": 90, "maxThreshold": 165}]},
    }))
    ex = load_exercise_file(path)
    assert get_exercise("lunges") is ex
    assert ex.start_position.required_angles[0].tolerance == 15


def test_load_bad_file(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"name": "no id"}))
    with pytest.raises(ValidationError):
        load_exercise_file(path, register=False)
