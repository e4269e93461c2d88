from __future__ import annotations
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Deque, Dict, List, Optional, Sequence

import numpy as np

from reptrack.counter.phases import PhaseThresholds
from reptrack.exercises.models import ExerciseConfig


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: float
    left_angle: Optional[float]
    right_angle: Optional[float]
    required_visibility: float
    secondary_visibility: float
    tracking_state: str

    def angle(self, side: str) -> Optional[float]:
        return self.left_angle if side == "left" else self.right_angle

    def to_dict(self) -> dict:
        return asdict(self)


class HistoryBuffer:
    """Time-ordered, bounded angle history (display window + smoothing margin)."""
    def __init__(self, display_window_s: float = 8.0, buffer_s: float = 2.0, max_entries: int = 200):
        self.max_age = float(display_window_s) + float(buffer_s)
        self.max_entries = int(max_entries)
        self._entries: Deque[HistoryEntry] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def clear(self):
        self._entries.clear()

    def append(self, entry: HistoryEntry) -> None:
        if self._entries and entry.timestamp < self._entries[-1].timestamp:
            # out-of-order frame; keep the buffer sorted
            return
        cutoff = entry.timestamp - self.max_age
        while self._entries and self._entries[0].timestamp < cutoff:
            self._entries.popleft()
        self._entries.append(entry)
        while len(self._entries) > self.max_entries:
            self._entries.popleft()


def _ema(values: Sequence[Optional[float]], alpha: float) -> List[Optional[float]]:
    out: List[Optional[float]] = []
    prev: Optional[float] = None
    for i, v in enumerate(values):
        if i == 0:
            out.append(v)
            prev = v
        elif v is None:
            out.append(None)
        elif prev is None:
            # chain resumes at the next real sample
            out.append(v)
            prev = v
        else:
            prev = alpha * v + (1.0 - alpha) * prev
            out.append(prev)
    return out


def smooth_rep_history_ema(history: Sequence[HistoryEntry], smoothing_factor: float = 5):
    """
    Per-side exponential moving average over the angle history.
    Factor 0 hands back the input object untouched; otherwise alpha = 2 / (factor + 1).
    """
    if smoothing_factor == 0:
        return history
    if not history:
        return []
    alpha = 2.0 / (float(smoothing_factor) + 1.0)
    left = _ema([e.left_angle for e in history], alpha)
    right = _ema([e.right_angle for e in history], alpha)
    return [replace(e, left_angle=l, right_angle=r) for e, l, r in zip(history, left, right)]


def _display_value(angle: Optional[float], relaxed_is_high: bool) -> Optional[float]:
    if angle is None:
        return None
    # plot contraction as "up" for every exercise
    return 180.0 - angle if relaxed_is_high else angle


def display_series(
    history: Sequence[HistoryEntry],
    exercise: ExerciseConfig,
    window_seconds: float,
    smoothing_factor: float,
    now: float,
) -> List[dict]:
    series = smooth_rep_history_ema(list(history), smoothing_factor)
    relaxed_high = {}
    for side in ("left", "right"):
        cfg = exercise.rep_angle(side)
        relaxed_high[side] = cfg.relaxed_is_high if cfg is not None else True

    out = []
    for e in series:
        age = now - e.timestamp
        if age > window_seconds or age < 0:
            continue
        out.append({
            "time_ago": age,
            "left": _display_value(e.left_angle, relaxed_high["left"]),
            "right": _display_value(e.right_angle, relaxed_high["right"]) if exercise.is_two_sided else None,
            "tracking_state": e.tracking_state,
        })
    return out


def reference_lines(exercise: ExerciseConfig) -> Dict[str, Dict[str, float]]:
    """Threshold lines for the display series, in display units."""
    lines = {}
    for side in exercise.sides:
        cfg = exercise.rep_angle(side)
        if cfg is None:
            continue
        th = PhaseThresholds.from_angle(cfg)
        lines[side] = {
            name: _display_value(value, cfg.relaxed_is_high)
            for name, value in (
                ("min", cfg.min_threshold),
                ("max", cfg.max_threshold),
                ("relaxed", th.relaxed),
                ("peak", th.peak),
            )
        }
    return lines


def angle_stats(history: Sequence[HistoryEntry], side: str) -> Dict[str, Optional[float]]:
    """Range of motion summary for a side over the buffered history."""
    values = np.array([a for a in (e.angle(side) for e in history) if a is not None], dtype=float)
    if values.size == 0:
        return {"min": None, "max": None, "mean": None, "rom": None}
    return {
        "min": float(values.min()),
        "max": float(values.max()),
        "mean": float(values.mean()),
        "rom": float(values.max() - values.min()),
    }
