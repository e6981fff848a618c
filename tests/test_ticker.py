"""
Tests for the tick source: clock-driven countdown and the periodic task.
"""
import threading

import pytest

from pomofy.core.interval_engine import IntervalEngine
from pomofy.core.models import SessionKind
from pomofy.core.ticker import CountdownTicker, ManualClock, PeriodicTask


@pytest.fixture
def engine():
    return IntervalEngine()


@pytest.fixture
def monotonic():
    return ManualClock(100.0)


@pytest.fixture
def ticker(engine, monotonic):
    return CountdownTicker(engine, clock=monotonic)


def _remaining(engine):
    return engine.snapshot().session.remaining_seconds


class TestCountdownTicker:
    def test_stopped_engine_does_not_move(self, engine, ticker, monotonic):
        ticker.pump()
        monotonic.advance(30)
        assert ticker.pump() is None
        assert _remaining(engine) == 1500

    def test_whole_seconds_are_delivered(self, engine, ticker, monotonic):
        engine.start()
        ticker.pump()  # anchors

        monotonic.advance(0.5)
        ticker.pump()
        assert _remaining(engine) == 1500

        monotonic.advance(0.75)
        ticker.pump()
        assert _remaining(engine) == 1499

        monotonic.advance(0.75)
        ticker.pump()
        assert _remaining(engine) == 1498

    def test_paused_time_is_not_counted(self, engine, ticker, monotonic):
        engine.start()
        ticker.pump()
        monotonic.advance(10)
        ticker.pump()
        assert _remaining(engine) == 1490

        engine.pause()
        monotonic.advance(600)
        ticker.pump()
        engine.start()
        ticker.pump()
        monotonic.advance(1)
        ticker.pump()

        assert _remaining(engine) == 1489

    def test_pause_and_start_between_pumps(self, engine, ticker, monotonic):
        engine.start()
        ticker.pump()

        engine.pause()
        monotonic.advance(300)
        engine.start()
        ticker.pump()
        assert _remaining(engine) == 1500

        monotonic.advance(1)
        ticker.pump()
        assert _remaining(engine) == 1499

    def test_restart_after_completion_between_pumps(self, engine, ticker, monotonic):
        engine.start()
        ticker.pump()
        engine.tick(1500)  # completes and stops at the boundary
        monotonic.advance(120)
        engine.start()

        ticker.pump()
        assert _remaining(engine) == 300

        monotonic.advance(2)
        ticker.pump()
        assert _remaining(engine) == 298

    def test_long_stall_completes_session_once(self, engine, ticker, monotonic):
        engine.start()
        ticker.pump()
        monotonic.advance(10_000)

        event = ticker.pump()

        state = engine.snapshot()
        assert event is not None
        assert event.to_kind is SessionKind.SHORT_BREAK
        assert state.completed_work_sessions == 1
        assert state.session.remaining_seconds == 300
        assert state.is_running is False

    def test_create_task_uses_resolution(self, ticker):
        task = ticker.create_task(0.25)
        assert task.interval == 0.25
        assert task.running is False


class TestManualClock:
    def test_advance_and_set(self):
        clock = ManualClock(5)
        assert clock() == 5.0
        assert clock.advance(2.5) == 7.5
        clock.set(1)
        assert clock() == 1.0


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None)

    def test_runs_until_stopped(self):
        calls = []
        done = threading.Event()

        def callback():
            calls.append(1)
            if len(calls) >= 3:
                done.set()

        task = PeriodicTask("test-task", 0.01, callback)
        task.start()
        task.start()  # idempotent
        try:
            assert done.wait(2.0)
        finally:
            task.stop()

        assert task.running is False
        count = len(calls)
        done.wait(0.05)
        assert len(calls) == count

    def test_survives_callback_errors(self):
        calls = []
        done = threading.Event()

        def callback():
            calls.append(1)
            if len(calls) >= 2:
                done.set()
            raise RuntimeError("boom")

        task = PeriodicTask("failing-task", 0.01, callback)
        task.start()
        try:
            assert done.wait(2.0)
        finally:
            task.stop()
