from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

_EPS = 1e-9


@dataclass(frozen=True)
class HoldTimer:
    """
    "Condition held for at least `duration` seconds" as a value.
    Used for the per-side ready hold, the global ready hold and the visibility grace period.
    """
    duration: float
    started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self.started_at is not None

    def step(self, active: bool, now: float) -> "HoldTimer":
        """Start on the first active frame, keep the start while active, reset otherwise."""
        if not active:
            return self.reset()
        if self.started_at is None:
            return replace(self, started_at=now)
        return self

    def reset(self) -> "HoldTimer":
        if self.started_at is None:
            return self
        return replace(self, started_at=None)

    def elapsed(self, now: float) -> float:
        if self.started_at is None:
            return 0.0
        return max(0.0, now - self.started_at)

    def held(self, now: float) -> bool:
        # float timestamps: 0.3 - 0.1 must still satisfy a 0.2 s hold
        return self.started_at is not None and self.elapsed(now) >= self.duration - _EPS
