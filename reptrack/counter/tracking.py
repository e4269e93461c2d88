from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from reptrack.counter.landmarks import Landmarks
from reptrack.counter.ready_pose import in_ready_pose, rep_completed, rep_started
from reptrack.counter.timers import HoldTimer
from reptrack.exercises.models import ExerciseConfig


class TrackingState(str, Enum):
    IDLE = "IDLE"
    READY = "READY"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class Phase(str, Enum):
    RELAXED = "relaxed"
    CONCENTRIC = "concentric"
    PEAK = "peak"
    ECCENTRIC = "eccentric"


@dataclass(frozen=True)
class SideState:
    in_ready_pose: bool = False
    rep_in_progress: bool = False
    was_in_ready_pose: bool = False
    phase: Phase = Phase.RELAXED
    last_angle: Optional[float] = None
    last_transition_timestamp: Optional[float] = None
    ready_hold: HoldTimer = field(default_factory=lambda: HoldTimer(0.0))

    def to_dict(self) -> dict:
        return {
            "in_ready_pose": self.in_ready_pose,
            "rep_in_progress": self.rep_in_progress,
            "was_in_ready_pose": self.was_in_ready_pose,
            "phase": self.phase.value,
            "last_angle": self.last_angle,
            "last_transition_timestamp": self.last_transition_timestamp,
        }


@dataclass(frozen=True)
class TrackerState:
    state: TrackingState = TrackingState.IDLE
    sides: Dict[str, SideState] = field(default_factory=dict)
    ready_hold: HoldTimer = field(default_factory=lambda: HoldTimer(0.0))
    visibility_loss: HoldTimer = field(default_factory=lambda: HoldTimer(0.3))
    # sides whose rep completed on the frame that produced this state
    completed: Tuple[str, ...] = ()

    @classmethod
    def initial(cls, exercise: ExerciseConfig, grace_s: float = 0.3) -> "TrackerState":
        hold = HoldTimer(exercise.hold_time)
        return cls(
            sides={side: SideState(ready_hold=hold) for side in exercise.sides},
            ready_hold=hold,
            visibility_loss=HoldTimer(grace_s),
        )

    def side(self, name: str) -> SideState:
        return self.sides.get(name) or SideState(ready_hold=HoldTimer(self.ready_hold.duration))


def _step_side(
    prev: SideState,
    landmarks: Landmarks,
    exercise: ExerciseConfig,
    side: str,
    now: float,
) -> Tuple[SideState, bool, bool]:
    """Returns (new side state, raw start-pose match, rep completed this frame)."""
    matched = in_ready_pose(landmarks, exercise, side)
    hold = prev.ready_hold.step(matched, now)
    ready = matched and hold.held(now)

    was_ready = prev.was_in_ready_pose or ready
    in_progress = prev.rep_in_progress
    # a rep only begins from a side that has reached its ready pose
    if not ready and was_ready and rep_started(landmarks, exercise, side):
        in_progress = True

    completed = False
    if in_progress and rep_completed(landmarks, exercise, side, was_ready):
        completed = True
        in_progress = False
        was_ready = False

    new = replace(
        prev,
        in_ready_pose=ready,
        rep_in_progress=in_progress,
        was_in_ready_pose=was_ready,
        ready_hold=hold,
    )
    return new, matched, completed


def update_tracking_state(
    prev: TrackerState,
    landmarks: Optional[Landmarks],
    exercise: ExerciseConfig,
    visible: bool,
    now: float,
) -> TrackerState:
    """
    One frame of the tracking state machine. Rules, first match wins:
      1. visibility lost: hold the previous state through the grace period, then PAUSED
      2. every side in its start pose: READY once the global hold is satisfied
      3. any side mid-rep and out of its start pose: ACTIVE
      4. no side ready and a rep just completed: PAUSED
      5. otherwise keep the previous state
    """
    if not visible or not landmarks:
        loss = prev.visibility_loss.step(True, now)
        state = TrackingState.PAUSED if loss.held(now) else prev.state
        sides = {name: replace(s, ready_hold=s.ready_hold.reset()) for name, s in prev.sides.items()}
        return replace(
            prev,
            state=state,
            sides=sides,
            ready_hold=prev.ready_hold.reset(),
            visibility_loss=loss,
            completed=(),
        )

    sides: Dict[str, SideState] = {}
    all_matched = True
    completed = []
    for side in exercise.sides:
        new_side, matched, done = _step_side(prev.side(side), landmarks, exercise, side, now)
        sides[side] = new_side
        all_matched = all_matched and matched
        if done:
            completed.append(side)

    any_ready = any(s.in_ready_pose for s in sides.values())
    all_ready = all(s.in_ready_pose for s in sides.values())
    any_active = any(s.rep_in_progress and not s.in_ready_pose for s in sides.values())

    ready_hold = prev.ready_hold.step(all_matched, now)
    state = prev.state
    if all_matched:
        if ready_hold.held(now) and all_ready:
            state = TrackingState.READY
    elif any_active:
        state = TrackingState.ACTIVE
    elif not any_ready and completed:
        state = TrackingState.PAUSED

    return TrackerState(
        state=state,
        sides=sides,
        ready_hold=ready_hold,
        visibility_loss=prev.visibility_loss.reset(),
        completed=tuple(completed),
    )
