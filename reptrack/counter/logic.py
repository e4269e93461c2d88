from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from reptrack.counter.landmarks import Landmarks
from reptrack.counter.phases import PhaseThresholds, classify_phase, cycle_position
from reptrack.counter.ready_pose import all_positions_satisfied, rep_counter_positions
from reptrack.counter.rep_counter import RepCounter
from reptrack.counter.tracking import Phase
from reptrack.exercises.models import ExerciseConfig

logger = logging.getLogger(__name__)


class LogicConfigError(ValueError):
    """The exercise's logic configuration cannot be interpreted."""


@dataclass(frozen=True)
class PositionRepState:
    """Edge-triggered pose hold: one rep per entry into the counted pose."""
    in_pose: bool = False
    since: Optional[float] = None
    counted: bool = False

    def step(self, satisfied: bool, now: float, debounce_ms: float):
        if not satisfied:
            return PositionRepState(), False
        since = self.since if self.in_pose and self.since is not None else now
        if self.counted:
            return replace(self, in_pose=True, since=since), False
        if (now - since) * 1000.0 >= debounce_ms:
            return PositionRepState(in_pose=True, since=since, counted=True), True
        return PositionRepState(in_pose=True, since=since, counted=False), False


@dataclass
class LogicState:
    """Mutable per-exercise counting state. The engine works on a copy and commits it after a clean frame."""
    counters: Dict[str, RepCounter] = field(default_factory=dict)
    position: PositionRepState = field(default_factory=PositionRepState)
    counts: Dict[str, int] = field(default_factory=lambda: {"left": 0, "right": 0})
    debounce_ms: float = 0.0

    @classmethod
    def create(
        cls,
        exercise: ExerciseConfig,
        debounce_ms: float,
        three_phases: bool = False,
        debug_cb: Optional[Callable[[dict], None]] = None,
    ) -> "LogicState":
        counters = {side: RepCounter(debounce_ms, three_phases, debug_cb) for side in exercise.sides}
        return cls(counters=counters, debounce_ms=float(debounce_ms))

    def copy(self) -> "LogicState":
        return LogicState(
            counters={side: c.copy() for side, c in self.counters.items()},
            position=self.position,
            counts=dict(self.counts),
            debounce_ms=self.debounce_ms,
        )


@dataclass
class FrameInput:
    landmarks: Landmarks
    # angle per side used for classification (raw or smoothed)
    angles: Dict[str, Optional[float]]
    phases: Dict[str, Phase]
    now: float
    active: bool


@dataclass
class LogicResult:
    phases: Dict[str, Phase]
    credited: List[str] = field(default_factory=list)
    positions_met: Optional[bool] = None


def _angle_step(exercise: ExerciseConfig, state: LogicState, frame: FrameInput, result: LogicResult):
    for side in exercise.sides:
        cfg = exercise.rep_angle(side)
        if cfg is None:
            continue
        angle = frame.angles.get(side)
        th = PhaseThresholds.from_angle(cfg)
        result.phases[side] = classify_phase(angle, result.phases.get(side, Phase.RELAXED), th)
        if angle is None:
            continue
        counter = state.counters.get(side)
        if counter is None:
            continue
        if counter.update(cycle_position(angle, th, counter.three_phases), frame.now):
            state.counts[side] = state.counts.get(side, 0) + 1
            result.credited.append(side)


def _position_step(exercise: ExerciseConfig, state: LogicState, frame: FrameInput, result: LogicResult):
    positions = rep_counter_positions(exercise)
    if not positions:
        raise LogicConfigError(f"exercise '{exercise.id}': position logic needs a rep-counter position")
    met = all_positions_satisfied(frame.landmarks, positions)
    result.positions_met = met
    state.position, credited = state.position.step(met, frame.now, state.debounce_ms)

    side = exercise.sides[0]
    start = exercise.start_position.required_positions
    prev = result.phases.get(side, Phase.RELAXED)
    if met:
        result.phases[side] = Phase.PEAK
    elif start and all_positions_satisfied(frame.landmarks, start):
        result.phases[side] = Phase.RELAXED
    else:
        result.phases[side] = Phase.ECCENTRIC if prev in (Phase.PEAK, Phase.ECCENTRIC) else Phase.CONCENTRIC

    if credited:
        state.counts[side] = state.counts.get(side, 0) + 1
        result.credited.append(side)


STEPS = {
    "angle": _angle_step,
    "position": _position_step,
}


def logic_steps(exercise: ExerciseConfig) -> List[str]:
    kind = exercise.logic_config.type
    if kind in ("angle", "position"):
        return [kind]
    if kind == "pipeline":
        if not exercise.logic_config.steps:
            raise LogicConfigError(f"exercise '{exercise.id}': pipeline logic with no steps")
        return list(exercise.logic_config.steps)
    raise LogicConfigError(f"exercise '{exercise.id}': unknown logic type {kind!r}")


def run_logic(exercise: ExerciseConfig, state: LogicState, frame: FrameInput) -> LogicResult:
    """
    Interpret the exercise's logic kind for one frame, mutating `state`.
    Phases and counts only move while the tracker is ACTIVE.
    """
    result = LogicResult(phases=dict(frame.phases))
    steps = logic_steps(exercise)
    for name in steps:
        if name not in STEPS:
            raise LogicConfigError(f"exercise '{exercise.id}': unknown logic step {name!r}")
    if not frame.active:
        return result
    for name in steps:
        STEPS[name](exercise, state, frame, result)
    return result
