from __future__ import annotations
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_PAUSED = "session_paused"
    SESSION_RESUMED = "session_resumed"
    SESSION_STOPPED = "session_stopped"
    EXERCISE_CHANGED = "exercise_changed"
    STATE_CHANGED = "state_changed"
    REP = "rep"


class _Event:
    def to_dict(self) -> dict:
        out = asdict(self)
        out["type"] = self.type.value
        return out


@dataclass
class SessionEvent(_Event):
    type: EventType
    session_id: str
    exercise: str
    ts: float
    left: int = 0
    right: int = 0


@dataclass
class StateEvent(_Event):
    type: EventType
    session_id: str
    ts: float
    previous: str
    current: str


@dataclass
class RepEvent(_Event):
    type: EventType
    session_id: str
    ts: float
    side: str
    rep_count: int
    total: int
    angle: Optional[float] = None
