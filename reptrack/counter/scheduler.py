from __future__ import annotations
from collections import deque
from typing import Deque, Sequence

import numpy as np


def next_skip_factor(
    samples_ms: Sequence[float],
    current: int,
    budget_ms: float,
    base: int = 1,
    max_factor: int = 6,
) -> int:
    """
    Control law for frame skipping, as a pure function of recent processing times.

    - mean above budget: process one frame fewer (skip factor + 1)
    - mean below 80% of budget: back off toward the base rate (skip factor - 1)
    - otherwise hold
    Always clamped to [base, max_factor].
    """
    base = max(1, int(base))
    max_factor = max(base, int(max_factor))
    current = min(max(int(current), base), max_factor)
    if len(samples_ms) == 0:
        return current
    mean = float(np.mean(np.asarray(samples_ms, dtype=float)))
    if mean > budget_ms:
        return min(current + 1, max_factor)
    if mean < budget_ms * 0.8:
        return max(current - 1, base)
    return current


class FrameScheduler:
    """Decides which incoming frames get processed; every Nth frame where N is the skip factor."""
    def __init__(self, budget_ms: float = 33.0, base: int = 1, max_factor: int = 6, window: int = 10):
        self.budget_ms = float(budget_ms)
        self.base = max(1, int(base))
        self.max_factor = max(self.base, int(max_factor))
        self.skip_factor = self.base
        self._samples: Deque[float] = deque(maxlen=window)
        self._frame_idx = 0

    def should_process(self) -> bool:
        idx = self._frame_idx
        self._frame_idx += 1
        return idx % self.skip_factor == 0

    def record(self, elapsed_ms: float) -> int:
        self._samples.append(float(elapsed_ms))
        self.skip_factor = next_skip_factor(
            list(self._samples), self.skip_factor, self.budget_ms, self.base, self.max_factor
        )
        return self.skip_factor

    def reset(self):
        self.skip_factor = self.base
        self._samples.clear()
        self._frame_idx = 0
