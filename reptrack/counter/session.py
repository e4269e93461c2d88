from __future__ import annotations
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from reptrack.common.config import TrackerSettings, get_settings
from reptrack.common.events import EventType, RepEvent, SessionEvent, StateEvent
from reptrack.counter.engine import EngineOutput, TrackingEngine
from reptrack.counter.history import angle_stats
from reptrack.counter.scheduler import FrameScheduler
from reptrack.counter.tracking import TrackingState
from reptrack.counter.web_pipeline import WebLandmarkPipeline
from reptrack.exercises.catalog import get_exercise

logger = logging.getLogger(__name__)


@dataclass
class SessionStatus:
    session_id: str
    state: str
    exercise: Optional[str] = None
    tracking_state: str = TrackingState.IDLE.value
    rep_count: Dict[str, int] = field(default_factory=lambda: {"left": 0, "right": 0})

    @property
    def total(self) -> int:
        return sum(self.rep_count.values())

    def to_dict(self) -> dict:
        out = asdict(self)
        out["total"] = self.total
        return out


@dataclass
class FinalSummary:
    session_id: str
    exercise: Optional[str]
    total_reps: int
    rep_count: Dict[str, int]
    duration_s: float
    range_of_motion: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class TrackingSessionManager:
    def __init__(self, settings: Optional[TrackerSettings] = None):
        self.settings = settings or get_settings()
        self.active_id: Optional[str] = None
        self.engine: Optional[TrackingEngine] = None
        self.pipeline: Optional[WebLandmarkPipeline] = None
        self.started_at: Optional[float] = None
        self._last_state = TrackingState.IDLE
        self._event_sink: Optional[Callable[[dict], None]] = None

    def set_event_sink(self, sink: Optional[Callable[[dict], None]]):
        self._event_sink = sink

    def _emit(self, ev):
        """
        Accepts either an event dataclass, a dict like {"type":"trace","msg": "..."} or any object;
        normalizes and forwards to the sink.
        """
        if self._event_sink is None:
            return
        if hasattr(ev, "to_dict"):
            payload = ev.to_dict()
        elif isinstance(ev, dict):
            payload = ev
        else:
            payload = {"type": "trace", "msg": str(ev)}
        try:
            self._event_sink(payload)
        except Exception:
            # a broken client must not take the counter down
            logger.warning("event sink failed for %s", payload.get("type"), exc_info=True)

    @property
    def exercise_id(self) -> Optional[str]:
        return self.engine.exercise.id if self.engine else None

    def _counts(self) -> Dict[str, int]:
        if self.engine is None:
            return {"left": 0, "right": 0}
        return dict(self.engine.snapshot().rep_count)

    def _on_output(self, out: EngineOutput):
        sid = self.active_id or ""
        prev_state, self._last_state = self._last_state, out.tracking_state
        if out.tracking_state != prev_state:
            self._emit(StateEvent(EventType.STATE_CHANGED, sid, out.timestamp, prev_state.value, out.tracking_state.value))
        for side in out.credited:
            self._emit(RepEvent(
                EventType.REP, sid, out.timestamp, side,
                rep_count=out.rep_count[side], total=out.total_reps, angle=out.angles.get(side),
            ))

    def start(self, exercise_id: str, **setting_overrides: Any) -> Tuple[str, str]:
        """Start a new session; raises UnknownExerciseError for an unknown id."""
        exercise = get_exercise(exercise_id)
        if self.pipeline is not None:
            self.stop()

        settings = self.settings
        if setting_overrides:
            settings = TrackerSettings(**{**settings.model_dump(), **setting_overrides})

        sid = str(uuid.uuid4())
        self.active_id = sid
        self.started_at = time.time()
        self.engine = TrackingEngine(exercise, settings, debug_cb=self._emit)
        self._last_state = TrackingState.IDLE
        self.pipeline = WebLandmarkPipeline(self.engine, on_output=self._on_output, debug_cb=self._emit)
        self.pipeline.start()

        logger.info("session %s started: %s", sid, exercise.id)
        self._emit(SessionEvent(EventType.SESSION_STARTED, sid, exercise.id, self.started_at))
        return sid, f"started {exercise.id}"

    def select_exercise(self, exercise_id: str) -> str:
        exercise = get_exercise(exercise_id)
        if self.engine is None:
            sid, _ = self.start(exercise_id)
            return sid
        self.engine.select_exercise(exercise)
        self._last_state = TrackingState.IDLE
        self.pipeline.scheduler.reset()
        self._emit(SessionEvent(EventType.EXERCISE_CHANGED, self.active_id or "", exercise.id, time.time()))
        return self.active_id or ""

    def push_frame(self, landmarks: Any, ts: Optional[float] = None) -> Optional[EngineOutput]:
        if self.pipeline is None or self.engine is None:
            return None
        return self.pipeline.push_frame(landmarks, ts)

    def pause(self) -> str:
        if self.pipeline is None:
            return self.active_id or ""
        self.pipeline.pause()
        counts = self._counts()
        self._emit(SessionEvent(EventType.SESSION_PAUSED, self.active_id or "", self.exercise_id or "", time.time(),
                                counts["left"], counts["right"]))
        return self.active_id or ""

    def resume(self) -> str:
        if self.pipeline is None:
            return self.active_id or ""
        self.pipeline.resume()
        counts = self._counts()
        self._emit(SessionEvent(EventType.SESSION_RESUMED, self.active_id or "", self.exercise_id or "", time.time(),
                                counts["left"], counts["right"]))
        return self.active_id or ""

    def stop(self) -> FinalSummary:
        sid = self.active_id or ""
        counts = self._counts()
        end = time.time()
        rom = {}
        if self.engine is not None:
            history = self.engine.history.entries()
            rom = {side: angle_stats(history, side) for side in self.engine.exercise.sides}
        summary = FinalSummary(
            session_id=sid,
            exercise=self.exercise_id,
            total_reps=sum(counts.values()),
            rep_count=counts,
            duration_s=max(0.0, end - self.started_at) if self.started_at else 0.0,
            range_of_motion=rom,
        )
        if self.pipeline is not None:
            self.pipeline.stop()
            self._emit(SessionEvent(EventType.SESSION_STOPPED, sid, self.exercise_id or "", end,
                                    counts["left"], counts["right"]))
            logger.info("session %s stopped: %d reps", sid, summary.total_reps)

        self.pipeline = None
        self.engine = None
        self.active_id = None
        self.started_at = None
        return summary

    def status(self) -> SessionStatus:
        if self.pipeline is None or self.engine is None:
            return SessionStatus(session_id=self.active_id or "", state="stopped")
        snap = self.engine.snapshot()
        return SessionStatus(
            session_id=self.active_id or "",
            state="running" if self.pipeline.running else "paused",
            exercise=self.exercise_id,
            tracking_state=snap.tracking_state.value,
            rep_count=dict(snap.rep_count),
        )

    def update_settings(self, **values: Any) -> TrackerSettings:
        """Validate and apply settings; the running engine picks them up immediately."""
        self.settings = TrackerSettings(**{**self.settings.model_dump(), **values})
        if self.engine is not None:
            s = self.engine.update_settings(**values)
            if self.pipeline is not None:
                self.pipeline.scheduler = FrameScheduler(
                    budget_ms=s.latency_budget_ms,
                    base=s.frame_sampling_rate,
                    max_factor=max(s.max_skip_factor, s.frame_sampling_rate),
                )
        return self.settings


# Process-wide manager; the server binds its routes and event sink to it
_ACTIVE: Optional[TrackingSessionManager] = None

def ACTIVE_MANAGER() -> TrackingSessionManager:
    global _ACTIVE
    if _ACTIVE is None:
        _ACTIVE = TrackingSessionManager()
    return _ACTIVE
