"""
Unit tests for the fan-out/fan-in Manager
"""

import os
import sys
import threading
import time

import pytest

project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import WorkState
from workers.manager import Manager
from workers.work import Work


class TimedWork(Work):
    """Sleeps `duration` per attempt, then succeeds or raises; records when it finished."""

    def __init__(self, name, *, ok=True, duration=0.0, max_attempts=3):
        self._name = name
        self.ok = ok
        self.duration = duration
        self.max_attempts = max_attempts
        self.calls = 0
        self.finished_at = None

    @property
    def name(self):
        return self._name

    def execute(self):
        self.calls += 1
        time.sleep(self.duration)
        self.finished_at = time.monotonic()
        if not self.ok:
            raise RuntimeError(f"{self._name} failed")
        return self._name


class ConcurrencyProbe(Work):
    max_attempts = 1

    def __init__(self, name, tracker):
        self._name = name
        self.tracker = tracker

    @property
    def name(self):
        return self._name

    def execute(self):
        self.tracker.enter()
        try:
            time.sleep(0.02)
        finally:
            self.tracker.leave()
        return True


class Tracker:
    def __init__(self):
        self.lock = threading.Lock()
        self.current = 0
        self.peak = 0

    def enter(self):
        with self.lock:
            self.current += 1
            self.peak = max(self.peak, self.current)

    def leave(self):
        with self.lock:
            self.current -= 1


class TestManager:
    """Fan-out, fan-in and failure policy"""

    def test_all_succeed(self):
        m = Manager(cooldown_s=0)
        for i in range(10):
            m.submit(TimedWork(f"w{i}", duration=0.001))
        assert m.await_all() is True
        assert len(m.results()) == 10
        assert m.failed() == []
        assert m.finished == 10

    def test_failure_reported_only_after_every_unit_is_terminal(self):
        # U1 succeeds quickly, U2 fails slowly on every attempt
        u1 = TimedWork("u1", ok=True, duration=0.0)
        u2 = TimedWork("u2", ok=False, duration=0.05, max_attempts=3)
        m = Manager(cooldown_s=0.01)
        m.submit(u1)
        m.submit(u2)

        ok = m.await_all()
        returned_at = time.monotonic()

        assert ok is False
        assert u2.calls == 3
        assert u1.finished_at is not None and u2.finished_at is not None
        assert returned_at >= u2.finished_at
        assert all(w.state.terminal for w in m.workers)
        assert [r.name for r in m.failed()] == ["u2"]

    def test_siblings_not_cancelled_after_permanent_failure(self):
        fast_fail = TimedWork("bad", ok=False, duration=0.0, max_attempts=1)
        slow_ok = TimedWork("slow", ok=True, duration=0.1)
        m = Manager(cooldown_s=0)
        m.submit(fast_fail)
        m.submit(slow_ok)
        assert m.await_all() is False
        by_name = {w.name: w for w in m.workers}
        assert by_name["slow"].state is WorkState.SUCCEEDED
        assert by_name["bad"].state is WorkState.EXHAUSTED

    def test_single_use(self):
        m = Manager(cooldown_s=0)
        m.submit(TimedWork("a"))
        m.await_all()
        with pytest.raises(RuntimeError):
            m.submit(TimedWork("b"))

    def test_empty_batch_succeeds(self):
        assert Manager().await_all() is True

    def test_on_done_sees_every_unit_once(self):
        seen = []
        lock = threading.Lock()

        def record(result):
            with lock:
                seen.append(result.name)

        m = Manager(cooldown_s=0, on_done=record)
        for i in range(8):
            m.submit(TimedWork(f"w{i}", ok=i % 2 == 0, max_attempts=2))
        m.await_all()
        assert sorted(seen) == sorted(f"w{i}" for i in range(8))

    def test_max_concurrency_bounds_parallel_executions(self):
        tracker = Tracker()
        m = Manager(cooldown_s=0, max_concurrency=2)
        for i in range(8):
            m.submit(ConcurrencyProbe(f"p{i}", tracker))
        assert m.await_all() is True
        assert 1 <= tracker.peak <= 2

    def test_units_run_concurrently_without_bound(self):
        tracker = Tracker()
        m = Manager(cooldown_s=0)
        for i in range(6):
            m.submit(ConcurrencyProbe(f"p{i}", tracker))
        m.await_all()
        assert tracker.peak > 1
