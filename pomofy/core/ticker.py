"""
Tick source for the interval engine.

``PeriodicTask`` is the only background-thread primitive in Pomofy.
``CountdownTicker`` turns elapsed clock time into whole-second
``IntervalEngine.tick(n)`` calls, so a stalled thread or a sleeping host
produces one clamped tick instead of a burst of transitions.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .interval_engine import IntervalEngine
from .models import TransitionEvent

logger = logging.getLogger("pomofy.engine")


class ManualClock:
    """Deterministic logical clock for tests."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, value: float) -> None:
        with self._lock:
            self._now = float(value)


class PeriodicTask:
    """Run ``callback`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, name: str, interval: float, callback: Callable[[], object]):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = float(interval)
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()
        logger.debug("🔁 Periodic task %s started (every %.2fs)", self.name, self.interval)

    def stop(self, timeout: float = 2.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            logger.debug("🛑 Periodic task %s stopped", self.name)

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)


class CountdownTicker:
    """Drive an engine from a monotonic clock.

    The ticker anchors when it first sees a run of the engine and re-anchors
    whenever the engine was stopped or restarted since the last pump, so
    paused time never counts even when pause and start both happen between
    two pumps.
    """

    def __init__(self, engine: IntervalEngine, clock: Callable[[], float] = time.monotonic):
        self.engine = engine
        self._clock = clock
        self._anchor: Optional[float] = None
        self._generation: Optional[int] = None
        self._lock = threading.Lock()

    def pump(self) -> Optional[TransitionEvent]:
        """Deliver the whole seconds elapsed since the last pump."""
        with self._lock:
            now = self._clock()
            running, generation = self.engine.run_state
            if not running:
                self._anchor = None
                return None
            if self._anchor is None or generation != self._generation:
                self._anchor = now
                self._generation = generation
                return None
            elapsed = int(now - self._anchor)
            if elapsed < 1:
                return None
            self._anchor += elapsed
            if elapsed > 2:
                logger.info("engine.tick.catch_up", extra={"seconds": elapsed})
            return self.engine.tick(elapsed)

    def create_task(self, resolution: float) -> PeriodicTask:
        return PeriodicTask("pomofy-ticker", resolution, self.pump)
