import pytest

from reptrack.counter.engine import TrackingEngine
from reptrack.counter.tracking import Phase, TrackingState
from reptrack.exercises.catalog import get_exercise
from reptrack.exercises.models import ExerciseConfig

SINGLE_CURL = {
    "id": "single-curl",
    "name": "Single Arm Curl",
    "landmarks": {"primary": ["left_shoulder", "left_elbow", "left_wrist"]},
    "startPosition": {
        "requiredAngles": [{"side": "left", "points": ["shoulder", "elbow", "wrist"],
                            "targetAngle": 170, "tolerance": 15}],
        "readyPositionHoldTime": 0.5,
    },
    "logicConfig": {
        "type": "angle",
        "anglesToTrack": [{"side": "left", "points": ["shoulder", "elbow", "wrist"],
                           "minThreshold": 45, "maxThreshold": 160, "isRepCounter": True}],
    },
}


@pytest.fixture
def single_curl():
    return ExerciseConfig.model_validate(SINGLE_CURL)


def one_rep(engine, frame, start, step=0.1, left_only=True):
    """Ready hold then a full curl. Returns the outputs."""
    outs = []
    t = start
    for angle in (165, 165, 165, 165, 165, 165, 165, 150, 120, 90, 60, 50, 90, 130, 165):
        raw = frame(left=angle) if left_only else frame(angle, angle)
        outs.append(engine.process(raw, t))
        t += step
    return outs


def test_single_sided_end_to_end(frame, settings, single_curl):
    engine = TrackingEngine(single_curl, settings)
    outs = one_rep(engine, frame, 0.0)
    states = [o.tracking_state for o in outs]

    assert states[:5] == [TrackingState.IDLE] * 5
    assert states[5] == TrackingState.READY
    assert states[7] == TrackingState.ACTIVE
    assert outs[-1].rep_count == {"left": 1, "right": 0}
    assert outs[-1].credited == ("left",)
    assert outs[-1].phase_by_side["left"] == Phase.RELAXED
    assert outs[10].phase_by_side["left"] == Phase.PEAK
    # hold back in the start pose → READY again
    out = engine.process(frame(left=165), outs[-1].timestamp + 0.6)
    assert out.tracking_state == TrackingState.READY
    assert out.rep_count["left"] == 1


def test_counts_never_decrease_and_reset_on_switch(frame, settings, single_curl):
    engine = TrackingEngine(single_curl, settings)
    seen = []
    t = 0.0
    for _ in range(3):
        outs = one_rep(engine, frame, t)
        seen.extend(o.rep_count["left"] for o in outs)
        t = outs[-1].timestamp + 1.0
    assert seen == sorted(seen)
    assert seen[-1] == 3

    engine.select_exercise(get_exercise("bicep-curls"))
    snap = engine.snapshot()
    assert snap.rep_count == {"left": 0, "right": 0}
    assert snap.tracking_state == TrackingState.IDLE
    assert len(engine.history) == 0


def test_two_sided_counts_both(frame, settings):
    engine = TrackingEngine(get_exercise("bicep-curls"), settings)
    outs = one_rep(engine, frame, 0.0, left_only=False)
    assert outs[-1].rep_count == {"left": 1, "right": 1}


def test_phases_frozen_while_paused(frame, settings, single_curl):
    engine = TrackingEngine(single_curl, settings)
    for i, angle in enumerate((165, 165, 165, 165, 165, 165, 150, 120)):
        engine.process(frame(left=angle), i * 0.1)
    assert engine.snapshot().tracking_state == TrackingState.ACTIVE

    for t in (1.0, 1.2, 1.4):
        out = engine.process(frame(left=60, visibility=0.1, presence=0.1), t)
    assert out.tracking_state == TrackingState.PAUSED
    queue = list(engine._logic.counters["left"].queue)

    # a hidden return to the start pose must not move phases or the cycle queue
    for t in (1.6, 1.8):
        later = engine.process(frame(left=165, visibility=0.1, presence=0.1), t)
    assert later.tracking_state == TrackingState.PAUSED
    assert later.phase_by_side == out.phase_by_side
    assert later.rep_count == out.rep_count
    assert list(engine._logic.counters["left"].queue) == queue


def test_history_recorded_every_frame(frame, settings, single_curl):
    engine = TrackingEngine(single_curl, settings)
    for i in range(5):
        engine.process(frame(left=165), i * 0.1)
    hist = engine.snapshot().rep_history
    assert len(hist) == 5
    assert hist[-1].left_angle == pytest.approx(165.0)
    assert hist[-1].right_angle is None
    assert hist[-1].tracking_state == "IDLE"


def test_malformed_landmarks_do_not_raise(settings, single_curl):
    engine = TrackingEngine(single_curl, settings)
    out = engine.process([{"x": "nope"}, 42, None], 0.0)
    assert out.tracking_state == TrackingState.IDLE
    assert out.angles["left"] is None
    out = engine.process(None, 0.1)
    assert out.visibility.required_visible is False


def test_logic_error_keeps_previous_state(frame, settings):
    broken = ExerciseConfig.model_validate({
        **SINGLE_CURL,
        "id": "broken",
        "logicConfig": {**SINGLE_CURL["logicConfig"], "type": "pipeline", "steps": ["angle", "nope"]},
    })
    traces = []
    engine = TrackingEngine(broken, settings, debug_cb=traces.append)
    first = engine.snapshot()
    out = engine.process(frame(left=165), 0.0)
    assert out is first
    assert len(engine.history) == 0
    assert any("logic error" in t["msg"] for t in traces)


def test_debounce_from_settings(frame, settings, single_curl):
    settings = settings.model_copy(update={"rep_debounce_duration": 5000})
    engine = TrackingEngine(single_curl, settings)
    assert engine._logic.counters["left"].debounce_ms == 5000
    engine.update_settings(rep_debounce_duration=0)
    assert engine._logic.counters["left"].debounce_ms == 0


def test_smoothed_counting_lags_raw(frame, settings, single_curl):
    smooth = settings.model_copy(update={"use_smoothed_rep_counting": True, "smoothing_factor": 9})
    raw_engine = TrackingEngine(single_curl, settings)
    smooth_engine = TrackingEngine(single_curl, smooth)
    seq = [165] * 7 + [150, 60]
    for i, angle in enumerate(seq):
        raw_out = raw_engine.process(frame(left=angle), i * 0.1)
        smooth_out = smooth_engine.process(frame(left=angle), i * 0.1)
    assert raw_out.phase_by_side["left"] == Phase.PEAK
    # the EMA has not caught up with the drop yet
    assert smooth_out.phase_by_side["left"] == Phase.CONCENTRIC


def test_trace_events(frame, settings, single_curl):
    traces = []
    engine = TrackingEngine(single_curl, settings, debug_cb=traces.append)
    one_rep(engine, frame, 0.0)
    msgs = [t["msg"] for t in traces]
    assert "state→READY" in msgs
    assert "state→ACTIVE" in msgs
    assert "rep++ left (1)" in msgs


def test_output_to_dict(frame, settings, single_curl):
    engine = TrackingEngine(single_curl, settings)
    out = engine.process(frame(left=165), 0.0).to_dict()
    assert out["tracking_state"] == "IDLE"
    assert out["phase_by_side"] == {"left": "relaxed"}
    assert out["rep_count"] == {"left": 0, "right": 0}
    assert len(out["rep_history"]) == 1
    assert "rep_history" not in engine.snapshot().to_dict(include_history=False)


def feed(engine, frame, angles, start_idx, step=0.1):
    """Left-arm frames at consecutive ticks; returns the outputs and the next tick index."""
    outs = [engine.process(frame(left=a), (start_idx + i) * step) for i, a in enumerate(angles)]
    return outs, start_idx + len(angles)


def test_rep_completing_outside_start_tolerance_is_counted(frame, settings):
    # push-up test: max threshold 150, start pose 180 +/- 20, so 155 ends the rep without matching the start
    engine = TrackingEngine(get_exercise("push-up-test"), settings)
    outs, idx = feed(engine, frame, [180] * 18, 0)
    assert outs[-1].tracking_state == TrackingState.READY

    outs, idx = feed(engine, frame, [140, 110, 95, 110, 130, 155], idx)
    assert [o.tracking_state for o in outs[:-1]] == [TrackingState.ACTIVE] * 5
    assert outs[-1].tracking_state == TrackingState.PAUSED
    assert outs[-1].credited == ("left",)
    assert outs[-1].rep_count["left"] == 1
    assert list(engine._logic.counters["left"].queue) == [0]

    outs, idx = feed(engine, frame, [180] * 18, idx)
    assert outs[-1].tracking_state == TrackingState.READY

    outs, idx = feed(engine, frame, [140, 110, 95, 110, 130, 145, 155], idx)
    assert outs[-1].rep_count["left"] == 2


def test_ready_pose_restarts_a_partial_cycle(frame, settings, single_curl):
    engine = TrackingEngine(single_curl, settings)
    outs, idx = feed(engine, frame, [165] * 6 + [150, 120, 90], 0)
    assert outs[-1].tracking_state == TrackingState.ACTIVE
    assert list(engine._logic.counters["left"].queue) != [0]

    # abandon the rep and settle back into the start pose
    outs, idx = feed(engine, frame, [165] * 7, idx)
    assert outs[-1].tracking_state == TrackingState.READY
    assert outs[-1].rep_count["left"] == 0
    assert list(engine._logic.counters["left"].queue) == [0]

    outs, idx = feed(engine, frame, [150, 120, 90, 60, 50, 90, 130, 165], idx)
    assert outs[-1].rep_count["left"] == 1
