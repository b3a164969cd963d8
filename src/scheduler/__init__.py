"""
Story Loop Core Module.

- PollCycle: close-tally-generate-advance state machine
- RecoveryManager: degraded-state detection
- StoryScheduler: fixed-interval driver
- StoryEngine: wiring and host entry points
"""

from .poll_cycle import CycleOutcome, CycleResult, PollCycle, pick_winner
from .recovery import RecoveryManager
from .scheduler import SchedulerState, StoryScheduler, run_cycle
from .service import StoryEngine

__all__ = [
    # Cycle
    "CycleOutcome",
    "CycleResult",
    "PollCycle",
    "pick_winner",
    # Recovery
    "RecoveryManager",
    # Scheduler
    "SchedulerState",
    "StoryScheduler",
    "run_cycle",
    # Service
    "StoryEngine",
]
