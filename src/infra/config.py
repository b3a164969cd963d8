"""
Engine configuration.

All settings come from environment variables. Entry points call
load_dotenv() first, so a local .env file works the same way.

Environment Variables:
- STORY_ENV: "production" switches the default poll duration to 24h
- STORY_DB_PATH: SQLite database path (default: ./data/story_engine.db)
- STORY_ARC_ID: Arc id written on new chapters (default: 1)
- POLL_DURATION_SECONDS: Lifetime of each generated poll
- BOOTSTRAP_POLL_SECONDS: Lifetime of the first poll (default: 120)
- SCHEDULER_INTERVAL_SECONDS: Tick interval (default: 10)
- SCHEDULER_AUTOSTART: Start the loop when the API boots (default: false)
- REPAIR_ORPHANED_POLLS: Regenerate a missing chapter after a crash (default: true)
- STORY_MODEL: Model spec, "ollama:<name>" or a Claude model name
- ANTHROPIC_API_KEY: Claude API key
- STORY_MAX_TOKENS / STORY_TEMPERATURE: Generation parameters
- GENERATION_TIMEOUT_SECONDS: Provider request timeout (default: 60)
- LOG_LEVEL / LOG_DIR: Logging level and file directory
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.story.canon import DEFAULT_ARC_ID

logger = logging.getLogger("story_engine")

DEFAULT_DB_PATH = "./data/story_engine.db"
DEV_POLL_DURATION_SECONDS = 30
PROD_POLL_DURATION_SECONDS = 24 * 60 * 60


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    val = os.getenv(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    elif val in ("false", "0", "no", "off"):
        return False
    return default


def _get_env_int(key: str, default: int, minimum: Optional[int] = None) -> int:
    """Get integer value from environment variable, rejecting values below minimum."""
    val = os.getenv(key)
    if val is None:
        return default
    try:
        parsed = int(val)
    except ValueError:
        logger.warning(f"[Config] Invalid integer for {key}: {val}, using default: {default}")
        return default
    if minimum is not None and parsed < minimum:
        logger.warning(f"[Config] {key} must be at least {minimum}, got {parsed}, using default: {default}")
        return default
    return parsed


def _get_env_float(key: str, default: float, positive: bool = False) -> float:
    """Get float value from environment variable; positive=True rejects values <= 0."""
    val = os.getenv(key)
    if val is None:
        return default
    try:
        parsed = float(val)
    except ValueError:
        logger.warning(f"[Config] Invalid number for {key}: {val}, using default: {default}")
        return default
    if positive and not parsed > 0:
        logger.warning(f"[Config] {key} must be positive, got {parsed}, using default: {default}")
        return default
    return parsed


@dataclass
class EngineConfig:
    """Resolved engine settings."""

    environment: str = "development"
    db_path: str = DEFAULT_DB_PATH
    arc_id: str = DEFAULT_ARC_ID
    poll_duration_seconds: int = DEV_POLL_DURATION_SECONDS
    bootstrap_poll_seconds: int = 120
    scheduler_interval_seconds: float = 10.0
    scheduler_autostart: bool = False
    repair_orphaned_polls: bool = True
    model_spec: Optional[str] = None
    api_key: str = ""
    max_tokens: int = 1024
    temperature: float = 0.8
    generation_timeout_seconds: float = 60.0
    log_level: str = "INFO"
    log_dir: str = "logs"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from the current environment."""
        environment = os.getenv("STORY_ENV", "development").lower()
        default_duration = (
            PROD_POLL_DURATION_SECONDS if environment == "production"
            else DEV_POLL_DURATION_SECONDS
        )

        return cls(
            environment=environment,
            db_path=os.getenv("STORY_DB_PATH", DEFAULT_DB_PATH),
            arc_id=os.getenv("STORY_ARC_ID", DEFAULT_ARC_ID),
            poll_duration_seconds=_get_env_int("POLL_DURATION_SECONDS", default_duration, minimum=0),
            bootstrap_poll_seconds=_get_env_int("BOOTSTRAP_POLL_SECONDS", 120, minimum=0),
            scheduler_interval_seconds=_get_env_float("SCHEDULER_INTERVAL_SECONDS", 10.0, positive=True),
            scheduler_autostart=_get_env_bool("SCHEDULER_AUTOSTART", False),
            repair_orphaned_polls=_get_env_bool("REPAIR_ORPHANED_POLLS", True),
            model_spec=os.getenv("STORY_MODEL") or None,
            api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            max_tokens=_get_env_int("STORY_MAX_TOKENS", 1024, minimum=1),
            temperature=_get_env_float("STORY_TEMPERATURE", 0.8),
            generation_timeout_seconds=_get_env_float("GENERATION_TIMEOUT_SECONDS", 60.0, positive=True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=os.getenv("LOG_DIR", "logs"),
        )

    def generation_config(self) -> Dict[str, Any]:
        """Provider config dict consumed by ModelProvider.generate()."""
        return {
            "api_key": self.api_key,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "timeout": self.generation_timeout_seconds,
        }
