# reptrack/counter/web_pipeline.py
from __future__ import annotations
import time
from typing import Any, Callable, Optional

from reptrack.counter.engine import EngineOutput, TrackingEngine
from reptrack.counter.scheduler import FrameScheduler


class WebLandmarkPipeline:
    """
    A minimal 'pipeline' that consumes landmark frames pushed by a client.
    No camera, no threads. Just call push_frame(landmarks, ts).
    """
    def __init__(
        self,
        engine: TrackingEngine,
        on_output: Callable[[EngineOutput], None],
        debug_cb: Optional[Callable[[dict], None]] = None,
        scheduler: Optional[FrameScheduler] = None,
    ):
        self.engine = engine
        self.on_output = on_output
        self.debug_cb = debug_cb
        s = engine.settings
        self.scheduler = scheduler or FrameScheduler(
            budget_ms=s.latency_budget_ms,
            base=s.frame_sampling_rate,
            max_factor=max(s.max_skip_factor, s.frame_sampling_rate),
        )
        self._running = False
        self.frames_in = 0
        self.frames_processed = 0

    def start(self):
        self._running = True
        self.scheduler.reset()

    def stop(self):
        self._running = False

    def pause(self):
        self._running = False

    def resume(self):
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    def push_frame(self, landmarks: Any, ts: Optional[float] = None) -> Optional[EngineOutput]:
        """Feed one landmark frame at timestamp ts (sec). None when paused or skipped."""
        if not self._running:
            return None
        self.frames_in += 1
        if not self.scheduler.should_process():
            return None
        t = float(ts) if ts is not None else time.time()

        started = time.perf_counter()
        out = self.engine.process(landmarks, t)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self.frames_processed += 1

        prev_skip = self.scheduler.skip_factor
        skip = self.scheduler.record(elapsed_ms)
        if skip != prev_skip and self.debug_cb:
            self.debug_cb({"type": "trace", "msg": f"frame skip {prev_skip}→{skip} ({elapsed_ms:.1f} ms)"})

        self.on_output(out)
        return out
