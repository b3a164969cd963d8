"""
Engine state management for API integration.

Provides singleton access to the StoryEngine instance.
Initialized during FastAPI lifespan; the loop only starts on boot when
SCHEDULER_AUTOSTART is set.

Usage:
    from ._engine_state import get_engine, init_engine

    # In lifespan:
    init_engine(EngineConfig.from_env())

    # In routers:
    engine = get_engine()
"""

from typing import Optional

from src.infra.config import EngineConfig
from src.scheduler.service import StoryEngine


# Global engine instance
_engine: Optional[StoryEngine] = None


def init_engine(config: EngineConfig) -> StoryEngine:
    """
    Initialize the engine singleton.

    Called during FastAPI lifespan startup.

    Args:
        config: Engine configuration

    Returns:
        Initialized StoryEngine
    """
    global _engine

    if _engine is not None:
        return _engine

    _engine = StoryEngine.create(config)
    return _engine


def get_engine() -> StoryEngine:
    """
    Get the engine singleton.

    Raises:
        RuntimeError: If the engine is not initialized
    """
    if _engine is None:
        raise RuntimeError(
            "Story engine not initialized. "
            "Ensure init_engine() is called during startup."
        )

    return _engine


def shutdown_engine() -> None:
    """
    Shutdown the engine.

    Called during FastAPI lifespan shutdown.
    Gracefully stops the scheduler if running.
    """
    global _engine

    if _engine is not None:
        if _engine.is_running:
            _engine.stop()

        _engine = None
