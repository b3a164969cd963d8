"""
Story Engine Service - main entry point for the story loop.

Wires all components:
- StoryStore (storage)
- ChapterGenerator (model calls with fallback)
- RecoveryManager (degraded-state detection)
- PollCycle (state machine + reentrancy guard)
- StoryScheduler (fixed-interval driver)

Usage:
    engine = StoryEngine.create(EngineConfig.from_env())
    engine.run_cycle_once()          # manual / operational
    engine.start_scheduler()         # background loop
    engine.stop()
"""

import logging
from typing import Optional

from src.infra.config import EngineConfig
from src.story.generator import ChapterGenerator
from src.story.model_provider import get_model_info, get_provider
from src.story.persistence import SQLiteStoryStore
from src.story.store import StoryStore

from .poll_cycle import CycleResult, PollCycle
from .recovery import RecoveryManager
from .scheduler import StoryScheduler, run_cycle


logger = logging.getLogger(__name__)


class StoryEngine:
    """
    Coordinates the story loop components.

    Exposes the two host entry points: run_cycle_once() and
    start_scheduler(interval_seconds).
    """

    def __init__(
        self,
        store: StoryStore,
        generator: ChapterGenerator,
        cycle: PollCycle,
        recovery: RecoveryManager,
        interval_seconds: float = 10.0,
    ):
        """
        Initialize StoryEngine with all components.

        Use StoryEngine.create() for construction from configuration.
        """
        self.store = store
        self.generator = generator
        self.cycle = cycle
        self.recovery = recovery
        self.interval_seconds = interval_seconds

        self._scheduler: Optional[StoryScheduler] = None

    @classmethod
    def create(
        cls,
        config: EngineConfig,
        store: Optional[StoryStore] = None,
        generator: Optional[ChapterGenerator] = None,
    ) -> "StoryEngine":
        """
        Create a StoryEngine with all components wired together.

        Args:
            config: Engine configuration
            store: Store override (default: SQLiteStoryStore at config.db_path)
            generator: Generator override (default: provider from config.model_spec)

        Returns:
            Configured StoryEngine
        """
        if store is None:
            store = SQLiteStoryStore(config.db_path)

        if generator is None:
            model_info = get_model_info(config.model_spec)
            logger.info(
                f"[Engine] Using provider={model_info.provider}, model={model_info.model_name}"
            )
            generator = ChapterGenerator(
                provider=get_provider(config.model_spec),
                config=config.generation_config(),
            )

        recovery = RecoveryManager(store)

        cycle = PollCycle(
            store=store,
            generator=generator,
            arc_id=config.arc_id,
            poll_duration_seconds=config.poll_duration_seconds,
            bootstrap_poll_seconds=config.bootstrap_poll_seconds,
            recovery=recovery if config.repair_orphaned_polls else None,
        )

        return cls(
            store=store,
            generator=generator,
            cycle=cycle,
            recovery=recovery,
            interval_seconds=config.scheduler_interval_seconds,
        )

    # =========================================================================
    # Entry points
    # =========================================================================

    def run_cycle_once(self) -> CycleResult:
        """
        Run a single cycle immediately.

        Goes through the scheduler when one exists so the run is counted in
        its stats; the reentrancy guard is shared either way. Never raises.
        """
        if self._scheduler is not None:
            return self._scheduler.run_once()
        return run_cycle(self.cycle)

    def start_scheduler(
        self,
        interval_seconds: Optional[float] = None,
        blocking: bool = False,
        run_recovery: bool = True,
    ) -> dict:
        """
        Start the fixed-interval loop.

        Args:
            interval_seconds: Tick interval override
            blocking: Whether to block on the loop
            run_recovery: Whether to inspect story state first

        Returns:
            Recovery statistics if inspection was run

        Raises:
            RuntimeError: If the loop is already running
            ValueError: If the interval is not positive
        """
        if self.is_running:
            raise RuntimeError("Scheduler already started")

        interval = self.interval_seconds if interval_seconds is None else interval_seconds
        if not interval > 0:
            raise ValueError(f"interval_seconds must be positive, got {interval}")

        recovery_stats = {}
        if run_recovery:
            recovery_stats = self.recovery.inspect()

        self.interval_seconds = interval
        self._scheduler = StoryScheduler(self.cycle, self.interval_seconds)
        self._scheduler.start(blocking=blocking)
        return recovery_stats

    def stop(self, timeout: float = 30.0) -> None:
        """Stop the loop gracefully, waiting for the current cycle."""
        if self._scheduler is None:
            return
        self._scheduler.stop(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.is_running()

    def get_status(self) -> dict:
        """Scheduler stats plus a snapshot of story state."""
        if self._scheduler is not None:
            status = self._scheduler.get_status()
        else:
            status = {
                "state": "STOPPED",
                "interval_seconds": self.interval_seconds,
                "cycle_running": self.cycle.is_running,
                "total_runs": 0,
                "succeeded": 0,
                "failed": 0,
                "skipped": 0,
                "last_outcome": None,
                "last_error": None,
                "last_run_at": None,
            }
        status["scheduler_running"] = self.is_running
        return status
