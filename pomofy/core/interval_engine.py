"""
⏱️ Interval engine: owns the session kind, the countdown and the transitions.

The engine never sleeps. A tick source (``core.ticker``) calls ``tick()``
while the engine is running; tests call it directly.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from ..constants import (DEFAULT_LONG_BREAK_INTERVAL, DEFAULT_LONG_BREAK_MINUTES,
                         DEFAULT_SHORT_BREAK_MINUTES, DEFAULT_WORK_MINUTES,
                         MAX_DURATION_MINUTES, MAX_LONG_BREAK_INTERVAL,
                         MIN_DURATION_MINUTES, MIN_LONG_BREAK_INTERVAL)
from ..errors import ConfigError
from ..utils.logger import log_structured
from .models import EngineState, Session, SessionKind, TransitionEvent

logger = logging.getLogger("pomofy.engine")

SESSION_CHANGED = "session_changed"
SESSION_STARTED = "session_started"
SESSION_PAUSED = "session_paused"
EVENTS = (SESSION_CHANGED, SESSION_STARTED, SESSION_PAUSED)

Listener = Callable[[object], None]


def _validate_minutes(field_name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(field_name, f"must be a whole number of minutes, got {value!r}")
    if not MIN_DURATION_MINUTES <= value <= MAX_DURATION_MINUTES:
        raise ConfigError(
            field_name,
            f"must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes, got {value}",
        )
    return value


class IntervalEngine:
    """Work/break state machine.

    Args:
        work_minutes: Work session length
        short_break_minutes: Short break length
        long_break_minutes: Long break length
        long_break_interval: Every Nth completed work session is followed by
            a long break
        auto_continue: Keep running across a completed session instead of
            stopping at the boundary

    Raises:
        ConfigError: If any value is out of range
    """

    def __init__(
        self,
        work_minutes: int = DEFAULT_WORK_MINUTES,
        short_break_minutes: int = DEFAULT_SHORT_BREAK_MINUTES,
        long_break_minutes: int = DEFAULT_LONG_BREAK_MINUTES,
        long_break_interval: int = DEFAULT_LONG_BREAK_INTERVAL,
        *,
        auto_continue: bool = False,
    ):
        self._lock = threading.RLock()
        self._durations: Dict[SessionKind, int] = {}
        self._apply_durations(work_minutes, short_break_minutes, long_break_minutes)
        self._long_break_interval = self._validate_interval(long_break_interval)
        self.auto_continue = auto_continue
        self._session = Session.fresh(SessionKind.WORK, self._durations[SessionKind.WORK])
        self._running = False
        self._run_generation = 0
        self._completed_work = 0
        self._listeners: Dict[str, List[Listener]] = {event: [] for event in EVENTS}

    # Listeners
    def add_listener(self, event: str, callback: Listener) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown engine event: {event}")
        with self._lock:
            self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Listener) -> None:
        with self._lock:
            try:
                self._listeners.get(event, []).remove(callback)
            except ValueError:
                pass

    def _emit(self, event: str, payload: object) -> None:
        """Call listeners outside the engine lock; their failures are logged only."""
        with self._lock:
            callbacks = list(self._listeners[event])
        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                logger.exception("engine.listener_failed", extra={"event": event})

    # Helpers
    @staticmethod
    def _validate_interval(value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError("long_break_interval", f"must be a whole number, got {value!r}")
        if not MIN_LONG_BREAK_INTERVAL <= value <= MAX_LONG_BREAK_INTERVAL:
            raise ConfigError(
                "long_break_interval",
                f"must be between {MIN_LONG_BREAK_INTERVAL} and {MAX_LONG_BREAK_INTERVAL}, got {value}",
            )
        return value

    def _apply_durations(self, work: int, short_break: int, long_break: int) -> None:
        minutes = {
            SessionKind.WORK: _validate_minutes("work", work),
            SessionKind.SHORT_BREAK: _validate_minutes("short_break", short_break),
            SessionKind.LONG_BREAK: _validate_minutes("long_break", long_break),
        }
        self._durations = {kind: value * 60 for kind, value in minutes.items()}

    def duration_for(self, kind: SessionKind) -> int:
        """Configured length of ``kind`` in seconds."""
        with self._lock:
            return self._durations[kind]

    def _state(self) -> EngineState:
        return EngineState(
            session=self._session,
            is_running=self._running,
            completed_work_sessions=self._completed_work,
            long_break_interval=self._long_break_interval,
        )

    def snapshot(self) -> EngineState:
        with self._lock:
            return self._state()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def run_state(self) -> Tuple[bool, int]:
        """(is_running, generation); the generation bumps on every start."""
        with self._lock:
            return self._running, self._run_generation

    @property
    def durations_minutes(self) -> Dict[str, int]:
        with self._lock:
            return {kind.value: seconds // 60 for kind, seconds in self._durations.items()}

    # Intents
    def start(self) -> EngineState:
        with self._lock:
            if self._running:
                return self._state()
            self._running = True
            self._run_generation += 1
            state = self._state()
        logger.info("engine.start", extra={"kind": state.session.kind.value})
        self._emit(SESSION_STARTED, state)
        return state

    def pause(self) -> EngineState:
        with self._lock:
            was_running = self._running
            self._running = False
            state = self._state()
        if was_running:
            logger.info("engine.pause", extra={"remaining": state.session.remaining_seconds})
            self._emit(SESSION_PAUSED, state)
        return state

    def reset(self) -> EngineState:
        """Stop and refill the current session; kind and counters are kept.

        Resetting a running timer notifies ``session_paused`` listeners the
        same way ``pause()`` does.
        """
        with self._lock:
            was_running = self._running
            self._running = False
            self._session = Session.fresh(self._session.kind, self._durations[self._session.kind])
            state = self._state()
        logger.info("engine.reset", extra={"kind": state.session.kind.value})
        if was_running:
            self._emit(SESSION_PAUSED, state)
        return state

    def tick(self, seconds: int = 1) -> Optional[TransitionEvent]:
        """Advance the countdown while running.

        Returns:
            The TransitionEvent if this tick completed the session, else None.
            At most one transition happens per call; overshoot is absorbed.
        """
        if seconds <= 0:
            return None
        with self._lock:
            if not self._running:
                return None
            remaining = self._session.remaining_seconds - int(seconds)
            if remaining > 0:
                self._session = Session(self._session.kind, self._session.duration_seconds, remaining)
                return None
            event = self._complete("completed")
        self._emit(SESSION_CHANGED, event)
        return event

    def skip(self) -> TransitionEvent:
        """Complete the current session immediately, running or not."""
        with self._lock:
            event = self._complete("skipped")
        self._emit(SESSION_CHANGED, event)
        return event

    def _complete(self, reason: str) -> TransitionEvent:
        """Session completion; caller holds the lock."""
        finished = self._session.kind
        if finished is SessionKind.WORK:
            self._completed_work += 1
            if self._completed_work % self._long_break_interval == 0:
                next_kind = SessionKind.LONG_BREAK
            else:
                next_kind = SessionKind.SHORT_BREAK
        else:
            next_kind = SessionKind.WORK

        self._session = Session.fresh(next_kind, self._durations[next_kind])
        self._running = self._running and self.auto_continue

        log_structured(
            logger, logging.INFO, "engine.transition",
            from_kind=finished.value,
            to_kind=next_kind.value,
            completed=self._completed_work,
            reason=reason,
        )
        return TransitionEvent(
            from_kind=finished,
            to_kind=next_kind,
            completed_work_sessions=self._completed_work,
            reason=reason,
        )

    # Settings
    def set_durations(self, work: int, short_break: int, long_break: int) -> EngineState:
        """Replace all three durations (minutes).

        Raises:
            ConfigError: If any value is outside 1-180; nothing changes then
        """
        with self._lock:
            previous = dict(self._durations)
            self._apply_durations(work, short_break, long_break)
            kind = self._session.kind
            if not self._running and previous[kind] != self._durations[kind]:
                self._session = Session.fresh(kind, self._durations[kind])
            state = self._state()
        logger.info("engine.durations", extra={"work": work, "short_break": short_break, "long_break": long_break})
        return state

    def set_long_break_interval(self, interval: int) -> EngineState:
        with self._lock:
            self._long_break_interval = self._validate_interval(interval)
            return self._state()

    def settings(self) -> Tuple[int, int, int, int]:
        """(work, short_break, long_break, long_break_interval) in minutes."""
        with self._lock:
            return (
                self._durations[SessionKind.WORK] // 60,
                self._durations[SessionKind.SHORT_BREAK] // 60,
                self._durations[SessionKind.LONG_BREAK] // 60,
                self._long_break_interval,
            )
