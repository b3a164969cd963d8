"""
StoryScheduler Tests.

- run_once() never raises and keeps stats
- The background loop ticks until stopped
- Lifecycle guards (double start, idempotent stop)
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from src.scheduler.poll_cycle import CycleOutcome, CycleResult
from src.scheduler.scheduler import SchedulerState, StoryScheduler, run_cycle


def _mock_cycle(*outcomes):
    cycle = MagicMock()
    cycle.is_running = False
    cycle.run.side_effect = [CycleResult(outcome=o) for o in outcomes]
    return cycle


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestRunOnce:
    """Manual single-cycle invocation."""

    def test_returns_cycle_result(self, scheduler, memory_store):
        result = scheduler.run_once()

        assert result.outcome == CycleOutcome.BOOTSTRAPPED
        assert memory_store.chapter_count() == 1

    def test_exception_becomes_failed_result(self):
        cycle = MagicMock()
        cycle.is_running = False
        cycle.run.side_effect = RuntimeError("generator exploded")
        scheduler = StoryScheduler(cycle, interval_seconds=1)

        result = scheduler.run_once()

        assert result.outcome == CycleOutcome.FAILED
        assert "generator exploded" in result.error
        assert scheduler.get_status()["failed"] == 1

    def test_stats(self):
        cycle = _mock_cycle(
            CycleOutcome.ADVANCED,
            CycleOutcome.POLL_OPEN,
            CycleOutcome.SKIPPED,
            CycleOutcome.FAILED,
        )
        scheduler = StoryScheduler(cycle, interval_seconds=1)

        for _ in range(4):
            scheduler.run_once()

        status = scheduler.get_status()
        assert status["total_runs"] == 4
        assert status["succeeded"] == 2
        assert status["skipped"] == 1
        assert status["failed"] == 1
        assert status["last_outcome"] == "FAILED"
        assert status["last_run_at"] is not None

    def test_initial_status(self, scheduler):
        status = scheduler.get_status()

        assert status["state"] == "STOPPED"
        assert status["interval_seconds"] == 0.05
        assert status["cycle_running"] is False
        assert status["total_runs"] == 0
        assert status["last_outcome"] is None


class TestRunCycle:
    """run_cycle() outside any scheduler."""

    def test_exception_becomes_failed_result(self):
        cycle = MagicMock()
        cycle.run.side_effect = RuntimeError("provider vanished")

        result = run_cycle(cycle)

        assert result.outcome == CycleOutcome.FAILED
        assert "provider vanished" in result.error

    def test_returns_cycle_result(self, cycle, memory_store):
        assert run_cycle(cycle).outcome == CycleOutcome.BOOTSTRAPPED
        assert memory_store.chapter_count() == 1


class TestLoop:
    """Background tick loop."""

    def test_loop_runs_cycles_until_stopped(self, scheduler, memory_store):
        scheduler.start()
        assert scheduler.is_running()

        assert _wait_for(lambda: scheduler.get_status()["total_runs"] >= 3)
        scheduler.stop(timeout=5)

        assert scheduler.state == SchedulerState.STOPPED
        # Bootstrapped once, then the first poll stayed open
        assert memory_store.chapter_count() == 1
        assert scheduler.get_status()["last_outcome"] == "POLL_OPEN"

        runs = scheduler.get_status()["total_runs"]
        time.sleep(0.2)
        assert scheduler.get_status()["total_runs"] == runs

    def test_loop_survives_exceptions(self):
        cycle = MagicMock()
        cycle.is_running = False
        cycle.run.side_effect = RuntimeError("boom")
        scheduler = StoryScheduler(cycle, interval_seconds=0.02)

        scheduler.start()
        try:
            assert _wait_for(lambda: scheduler.get_status()["failed"] >= 2)
            assert scheduler.is_running()
        finally:
            scheduler.stop(timeout=5)

    def test_blocking_start_returns_after_stop(self, scheduler):
        runner = threading.Thread(target=scheduler.start, kwargs={"blocking": True})
        runner.start()

        assert _wait_for(lambda: scheduler.get_status()["total_runs"] >= 1)
        scheduler.stop(timeout=5)
        runner.join(timeout=5)

        assert not runner.is_alive()
        assert scheduler.state == SchedulerState.STOPPED


class TestLifecycle:
    """Start / stop guards."""

    @pytest.mark.parametrize("interval", [0, -1])
    def test_interval_must_be_positive(self, cycle, interval):
        with pytest.raises(ValueError):
            StoryScheduler(cycle, interval_seconds=interval)

    def test_double_start_rejected(self, scheduler):
        scheduler.start()

        with pytest.raises(RuntimeError):
            scheduler.start()

    def test_stop_when_stopped_is_noop(self, scheduler):
        scheduler.stop()
        assert scheduler.state == SchedulerState.STOPPED

    def test_restart_after_stop(self, scheduler):
        scheduler.start()
        scheduler.stop(timeout=5)
        scheduler.start()

        assert scheduler.is_running()
