from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from reptrack.counter.tracking import Phase
from reptrack.exercises.models import AngleConfig


@dataclass(frozen=True)
class PhaseThresholds:
    """
    Angle landmarks along one rep for a tracked joint.

    relaxed_is_high (curl):   relaxed >= relaxed   > mid > peak >= peak zone
    relaxed low (press):      relaxed <= relaxed   < mid < peak <= peak zone
    """
    relaxed: float
    peak: float
    mid: float
    relaxed_is_high: bool = True

    @classmethod
    def from_angle(cls, cfg: AngleConfig) -> "PhaseThresholds":
        lo, hi = cfg.min_threshold, cfg.max_threshold
        mid = (lo + hi) / 2.0
        if cfg.relaxed_is_high:
            return cls(relaxed=hi * 0.95, peak=(lo + mid) / 2.0, mid=mid, relaxed_is_high=True)
        return cls(relaxed=lo * 1.05, peak=(hi + mid) / 2.0, mid=mid, relaxed_is_high=False)

    def is_relaxed(self, angle: float) -> bool:
        return angle >= self.relaxed if self.relaxed_is_high else angle <= self.relaxed

    def is_peak(self, angle: float) -> bool:
        return angle <= self.peak if self.relaxed_is_high else angle >= self.peak

    def past_mid(self, angle: float) -> bool:
        """True while the joint is still on the relaxed half of its range."""
        return angle > self.mid if self.relaxed_is_high else angle < self.mid


def classify_phase(angle: Optional[float], previous: Phase, th: PhaseThresholds) -> Phase:
    """Phase with hysteresis: between the thresholds the previous direction of travel continues."""
    if angle is None:
        return previous
    if th.is_relaxed(angle):
        return Phase.RELAXED
    if th.is_peak(angle):
        return Phase.PEAK
    if previous in (Phase.RELAXED, Phase.CONCENTRIC):
        return Phase.CONCENTRIC
    return Phase.ECCENTRIC


def cycle_position(angle: float, th: PhaseThresholds, three_phases: bool = False) -> int:
    """
    Band index along the rep: 0 relaxed .. 3 peak (0 .. 2 in three-phase mode).
    The rep counter reads a full rep as the band sequence out and back.
    """
    if th.is_relaxed(angle):
        return 0
    if three_phases:
        return 2 if th.is_peak(angle) else 1
    if th.past_mid(angle):
        return 1
    if not th.is_peak(angle):
        return 2
    return 3
