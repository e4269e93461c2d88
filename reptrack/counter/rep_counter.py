from __future__ import annotations
import logging
from collections import deque
from typing import Callable, Deque, Optional

logger = logging.getLogger(__name__)

FULL_PATTERN = "0123210"
THREE_PHASE_PATTERN = "01210"
QUEUE_LEN = 8


class RepCounter:
    """
    Per-side cycle-position counter.

    Feed band indices (0 relaxed .. 3 peak). A rep is credited when the recent
    sequence reads out-and-back (0123210). Repeated samples of one band collapse,
    and a jump across bands is filled in since the joint passed through them.
    """
    def __init__(
        self,
        debounce_ms: float = 0.0,
        three_phases: bool = False,
        debug_cb: Optional[Callable[[dict], None]] = None,
    ):
        self.debounce_ms = float(debounce_ms)
        self.three_phases = three_phases
        self._dbg = debug_cb or (lambda *_: None)
        self.count = 0
        self.last_rep_ts: Optional[float] = None
        self.queue: Deque[int] = deque([0], maxlen=QUEUE_LEN)

    @property
    def pattern(self) -> str:
        return THREE_PHASE_PATTERN if self.three_phases else FULL_PATTERN

    @property
    def top(self) -> int:
        return 2 if self.three_phases else 3

    def reset(self):
        self.count = 0
        self.last_rep_ts = None
        self.queue = deque([0], maxlen=QUEUE_LEN)

    def restart(self):
        """Drop the partial cycle; count and debounce clock carry over."""
        self.queue = deque([0], maxlen=QUEUE_LEN)

    def copy(self) -> "RepCounter":
        other = RepCounter(self.debounce_ms, self.three_phases, self._dbg)
        other.count = self.count
        other.last_rep_ts = self.last_rep_ts
        other.queue = deque(self.queue, maxlen=QUEUE_LEN)
        return other

    def _append(self, pos: int):
        last = self.queue[-1] if self.queue else None
        if last == pos:
            return
        if last is not None:
            step = 1 if pos > last else -1
            for mid in range(last + step, pos, step):
                self.queue.append(mid)
        self.queue.append(pos)

    def update(self, pos: int, ts: float) -> bool:
        """Push one band index at time ts (seconds). True when a rep was credited."""
        pos = max(0, min(self.top, int(pos)))
        self._append(pos)
        if self.pattern not in "".join(str(p) for p in self.queue):
            return False

        self.queue = deque([pos], maxlen=QUEUE_LEN)
        if self.last_rep_ts is not None and (ts - self.last_rep_ts) * 1000.0 < self.debounce_ms:
            self._dbg({"type": "trace", "msg": f"rep debounced ({(ts - self.last_rep_ts) * 1000.0:.0f} ms)"})
            logger.debug("rep debounced at %.3f", ts)
            return False

        self.count += 1
        self.last_rep_ts = ts
        return True
