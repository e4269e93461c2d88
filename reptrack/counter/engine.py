from __future__ import annotations
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Tuple

from reptrack.common.config import TrackerSettings, get_settings
from reptrack.counter.history import HistoryBuffer, HistoryEntry, smooth_rep_history_ema
from reptrack.counter.landmarks import Landmark, minimize, parse_landmarks
from reptrack.counter.logic import FrameInput, LogicConfigError, LogicState, run_logic
from reptrack.counter.pose_core import joint_angle
from reptrack.counter.tracking import Phase, SideState, TrackerState, TrackingState, update_tracking_state
from reptrack.counter.visibility import VisibilityResult, evaluate_visibility
from reptrack.exercises.models import ExerciseConfig

logger = logging.getLogger(__name__)

SIDES = ("left", "right")


@dataclass(frozen=True)
class EngineOutput:
    exercise_id: str
    timestamp: float
    tracking_state: TrackingState
    rep_count: Dict[str, int]
    side_status: Dict[str, SideState]
    phase_by_side: Dict[str, Phase]
    angles: Dict[str, Optional[float]]
    visibility: VisibilityResult
    rep_history: Tuple[HistoryEntry, ...] = ()
    # sides credited with a rep on this frame
    credited: Tuple[str, ...] = ()

    @property
    def total_reps(self) -> int:
        return sum(self.rep_count.values())

    def to_dict(self, include_history: bool = True) -> dict:
        out = {
            "exercise_id": self.exercise_id,
            "timestamp": self.timestamp,
            "tracking_state": self.tracking_state.value,
            "rep_count": dict(self.rep_count),
            "side_status": {side: s.to_dict() for side, s in self.side_status.items()},
            "phase_by_side": {side: p.value for side, p in self.phase_by_side.items()},
            "angles": dict(self.angles),
            "visibility": {
                "required_visible": self.visibility.required_visible,
                "secondary_visible": self.visibility.secondary_visible,
                "required_visibility": self.visibility.required_visibility,
                "secondary_visibility": self.visibility.secondary_visibility,
                "required_confidence": self.visibility.required_confidence,
                "secondary_confidence": self.visibility.secondary_confidence,
            },
            "credited": list(self.credited),
        }
        if include_history:
            out["rep_history"] = [e.to_dict() for e in self.rep_history]
        return out


class TrackingEngine:
    """
    Owns every piece of mutable tracking state for one session and turns landmark
    frames into immutable EngineOutput snapshots.

    Each frame is computed on copies and committed at the end, so a frame that
    fails (e.g. malformed logic config) leaves the previous state untouched.
    """
    def __init__(
        self,
        exercise: ExerciseConfig,
        settings: Optional[TrackerSettings] = None,
        debug_cb: Optional[Callable[[dict], None]] = None,
    ):
        self.settings = settings or get_settings()
        self._dbg = debug_cb or (lambda *_: None)
        self.exercise = exercise
        self.latest_landmarks: Tuple[Optional[Landmark], ...] = ()
        self._reset_state()

    # ----- lifecycle -----
    def _reset_state(self):
        s = self.settings
        self._tracker = TrackerState.initial(self.exercise, s.visibility_grace_period_ms / 1000.0)
        self._logic = LogicState.create(
            self.exercise,
            self.exercise.debounce_ms(s.rep_debounce_duration),
            s.use_three_phases,
            self._dbg,
        )
        self.history = HistoryBuffer(s.display_window_seconds, s.smoothing_buffer_seconds, s.max_history_entries)
        self.latest_landmarks = ()
        self._last = self._snapshot(time.time(), {side: None for side in SIDES},
                                    VisibilityResult(False, False, 0.0, 0.0, 0.0, 0.0), ())

    def select_exercise(self, exercise: ExerciseConfig):
        """Switch exercise; rep counts, history and tracking state start over."""
        self.exercise = exercise
        self._reset_state()
        self._dbg({"type": "trace", "msg": f"exercise → {exercise.id}"})

    def update_settings(self, **values: Any) -> TrackerSettings:
        """Apply new runtime settings; raises pydantic.ValidationError on bad values."""
        merged = {**self.settings.model_dump(), **values}
        new = TrackerSettings(**merged)
        old, self.settings = self.settings, new

        debounce = self.exercise.debounce_ms(new.rep_debounce_duration)
        self._logic.debounce_ms = debounce
        for counter in self._logic.counters.values():
            counter.debounce_ms = debounce
        if new.use_three_phases != old.use_three_phases:
            # the band encoding changed; restart the cycle queues, counts carry over
            for counter in self._logic.counters.values():
                counter.three_phases = new.use_three_phases
                counter.restart()
        if new.visibility_grace_period_ms != old.visibility_grace_period_ms:
            self._tracker = replace(
                self._tracker,
                visibility_loss=replace(self._tracker.visibility_loss, duration=new.visibility_grace_period_ms / 1000.0),
            )
        if (new.display_window_seconds, new.smoothing_buffer_seconds, new.max_history_entries) != (
            old.display_window_seconds, old.smoothing_buffer_seconds, old.max_history_entries
        ):
            entries = self.history.entries()
            self.history = HistoryBuffer(new.display_window_seconds, new.smoothing_buffer_seconds, new.max_history_entries)
            for e in entries:
                self.history.append(e)
        return new

    # ----- per frame -----
    def snapshot(self) -> EngineOutput:
        return self._last

    def _snapshot(self, now, angles, vis, credited) -> EngineOutput:
        return EngineOutput(
            exercise_id=self.exercise.id,
            timestamp=now,
            tracking_state=self._tracker.state,
            rep_count={side: self._logic.counts.get(side, 0) for side in SIDES},
            side_status=dict(self._tracker.sides),
            phase_by_side={side: s.phase for side, s in self._tracker.sides.items()},
            angles=dict(angles),
            visibility=vis,
            rep_history=tuple(self.history.entries()),
            credited=tuple(credited),
        )

    def _angles(self, landmarks) -> Dict[str, Optional[float]]:
        angles: Dict[str, Optional[float]] = {side: None for side in SIDES}
        for side in self.exercise.sides:
            cfg = self.exercise.rep_angle(side)
            if cfg is not None:
                angles[side] = joint_angle(landmarks, cfg.points, side)
        return angles

    def process(self, landmarks: Any, ts: Optional[float] = None) -> EngineOutput:
        now = float(ts) if ts is not None else time.time()
        try:
            return self._process(landmarks, now)
        except LogicConfigError as e:
            logger.error("logic config error for %s: %s", self.exercise.id, e)
            self._dbg({"type": "trace", "msg": f"logic error: {e}"})
            return self._last
        except Exception:
            logger.exception("frame processing failed for %s", self.exercise.id)
            return self._last

    def _process(self, raw_landmarks: Any, now: float) -> EngineOutput:
        s = self.settings
        landmarks = parse_landmarks(raw_landmarks)
        vis = evaluate_visibility(
            landmarks,
            self.exercise,
            s.visibility_threshold,
            require_all=s.strict_landmark_visibility or self.exercise.require_all_landmarks_visible,
            use_confidence_fallback=s.use_confidence_as_fallback,
            confidence_threshold=s.confidence_threshold,
        )
        prev_state = self._tracker.state
        tracker = update_tracking_state(self._tracker, landmarks, self.exercise, vis.ok, now)

        angles = self._angles(landmarks)
        entry = HistoryEntry(
            timestamp=now,
            left_angle=angles["left"],
            right_angle=angles["right"],
            required_visibility=vis.required_visibility,
            secondary_visibility=vis.secondary_visibility,
            tracking_state=tracker.state.value,
        )

        logic_angles = angles
        if s.use_smoothed_rep_counting and s.smoothing_factor > 0:
            smoothed = smooth_rep_history_ema([*self.history.entries(), entry], s.smoothing_factor)
            last = smoothed[-1]
            logic_angles = {"left": last.left_angle, "right": last.right_angle}

        logic = self._logic.copy()
        prev_phases = {side: tracker.side(side).phase for side in self.exercise.sides}
        # the frame that completes a rep belongs to it even when the tracker settles out of ACTIVE
        active = tracker.state == TrackingState.ACTIVE or (
            prev_state == TrackingState.ACTIVE and bool(tracker.completed)
        )
        result = run_logic(
            self.exercise,
            logic,
            FrameInput(
                landmarks=landmarks,
                angles=logic_angles,
                phases=prev_phases,
                now=now,
                active=active,
            ),
        )
        if tracker.state == TrackingState.READY and prev_state != TrackingState.READY:
            # a cycle starts from the armed ready pose
            for counter in logic.counters.values():
                counter.restart()

        sides = {}
        for side in self.exercise.sides:
            st = tracker.side(side)
            phase = result.phases.get(side, st.phase)
            sides[side] = replace(
                st,
                phase=phase,
                last_angle=angles.get(side) if angles.get(side) is not None else st.last_angle,
                last_transition_timestamp=now if phase != st.phase else st.last_transition_timestamp,
            )
        tracker = replace(tracker, sides=sides)

        # commit
        self._tracker = tracker
        self._logic = logic
        self.history.append(entry)
        self.latest_landmarks = minimize(landmarks)

        if tracker.state != prev_state:
            logger.debug("tracking %s → %s", prev_state.value, tracker.state.value)
            self._dbg({"type": "trace", "msg": f"state→{tracker.state.value}"})
        for side in result.credited:
            logger.info("rep credited %s side=%s count=%d", self.exercise.id, side, logic.counts[side])
            self._dbg({"type": "trace", "msg": f"rep++ {side} ({logic.counts[side]})"})

        self._last = self._snapshot(now, angles, vis, result.credited)
        return self._last
