"""
Story Scheduler - fixed-interval driver for PollCycle.

- Fires PollCycle.run() every interval_seconds, aligned to the start time
- A tick that falls while a cycle is still running is dropped, not queued
- Never lets a cycle exception escape; failures are logged and counted
- run_once() is the manual/operational path (and what the API calls)

What the scheduler MUST NOT do:
- Decide story state (PollCycle does)
- Retry a failed cycle early (the next tick is the retry)
"""

import logging
import threading
import time
from enum import Enum
from typing import Optional

from src.story.entities import format_timestamp, utcnow

from .poll_cycle import CycleOutcome, CycleResult, PollCycle


logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Scheduler lifecycle states."""

    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


def run_cycle(cycle: PollCycle) -> CycleResult:
    """
    Run one cycle, turning any unexpected exception into a FAILED result.

    Needs no interval, so a manual run works without a configured loop.
    """
    started = time.monotonic()
    try:
        result = cycle.run()
    except Exception as e:
        logger.error(f"[Scheduler] Unhandled error in poll cycle: {e}", exc_info=True)
        result = CycleResult(outcome=CycleOutcome.FAILED, error=str(e))

    elapsed_ms = int((time.monotonic() - started) * 1000)
    if result.outcome == CycleOutcome.FAILED:
        logger.error(f"[Scheduler] Cycle failed after {elapsed_ms}ms: {result.error}")
    elif result.outcome != CycleOutcome.POLL_OPEN:
        logger.info(f"[Scheduler] Cycle {result.outcome.value} in {elapsed_ms}ms")

    return result


class StoryScheduler:
    """Runs a PollCycle on a fixed interval in a background thread."""

    def __init__(self, cycle: PollCycle, interval_seconds: float = 10.0):
        """
        Args:
            cycle: PollCycle to drive
            interval_seconds: Seconds between tick starts
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.cycle = cycle
        self.interval_seconds = interval_seconds

        self._state = SchedulerState.STOPPED
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._stats_lock = threading.Lock()

        self._total_runs = 0
        self._succeeded = 0
        self._failed = 0
        self._skipped = 0
        self._last_result: Optional[CycleResult] = None
        self._last_run_at: Optional[str] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    # =========================================================================
    # Single run
    # =========================================================================

    def run_once(self) -> CycleResult:
        """
        Run one cycle now.

        Returns:
            CycleResult; an unexpected exception becomes a FAILED result
        """
        result = run_cycle(self.cycle)
        self._record(result)
        return result

    def _record(self, result: CycleResult) -> None:
        with self._stats_lock:
            self._total_runs += 1
            if result.outcome == CycleOutcome.FAILED:
                self._failed += 1
            elif result.outcome == CycleOutcome.SKIPPED:
                self._skipped += 1
            else:
                self._succeeded += 1
            self._last_result = result
            self._last_run_at = format_timestamp(utcnow())

    # =========================================================================
    # Loop
    # =========================================================================

    def start(self, blocking: bool = False) -> None:
        """
        Start the tick loop.

        Args:
            blocking: If True, run in current thread. If False, run in background.
        """
        if self._state != SchedulerState.STOPPED:
            raise RuntimeError(f"Cannot start scheduler in {self._state.value} state")

        self._stop_event.clear()
        self._state = SchedulerState.RUNNING
        logger.info(
            f"[Scheduler] Started, closing polls every {self.interval_seconds}s"
        )

        if blocking:
            self._loop()
        else:
            self._thread = threading.Thread(
                target=self._loop, name="story-scheduler", daemon=True
            )
            self._thread.start()

    def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the tick loop gracefully.

        Waits for the current cycle to finish (no preemption).

        Args:
            timeout: Maximum seconds to wait for the loop thread
        """
        if self._state == SchedulerState.STOPPED:
            return

        logger.info("[Scheduler] Stopping...")
        self._state = SchedulerState.STOPPING
        self._stop_event.set()

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("[Scheduler] Loop thread did not stop within timeout")
            self._thread = None

        self._state = SchedulerState.STOPPED
        logger.info("[Scheduler] Stopped")

    def _loop(self) -> None:
        """Tick loop. Deadlines stay on the original grid; overrun ticks are dropped."""
        logger.info("[Scheduler] Loop started")
        next_tick = time.monotonic()

        while not self._stop_event.is_set():
            self.run_once()

            next_tick += self.interval_seconds
            now = time.monotonic()
            if next_tick < now:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                logger.info(f"[Scheduler] Cycle overran, dropping {missed} tick(s)")
                next_tick += missed * self.interval_seconds

            self._stop_event.wait(max(0.0, next_tick - now))

        self._state = SchedulerState.STOPPED
        logger.info("[Scheduler] Loop ended")

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> dict:
        """
        Get scheduler status.

        Returns:
            Dict with state, interval, cycle_running and cumulative stats
        """
        with self._stats_lock:
            return {
                "state": self._state.value,
                "interval_seconds": self.interval_seconds,
                "cycle_running": self.cycle.is_running,
                "total_runs": self._total_runs,
                "succeeded": self._succeeded,
                "failed": self._failed,
                "skipped": self._skipped,
                "last_outcome": self._last_result.outcome.value if self._last_result else None,
                "last_error": self._last_result.error if self._last_result else None,
                "last_run_at": self._last_run_at,
            }
