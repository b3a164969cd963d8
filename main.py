"""
Bald Brothers Story Engine - command line entry point.

Runs the poll-close-and-advance loop without the HTTP server:
- `python main.py --once` runs a single cycle and exits (0 on success, 1 on failure)
- `python main.py` runs the scheduler in the foreground until SIGINT/SIGTERM

The HTTP API is served separately:
    uvicorn src.api.main:app --host 127.0.0.1 --port 8000
"""

import argparse
import logging
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from src.infra.config import EngineConfig
from src.infra.logging_config import setup_logging
from src.scheduler.service import StoryEngine


# Load .env before any configuration is read
load_dotenv()

logger = logging.getLogger("story_engine")

engine: Optional[StoryEngine] = None


def signal_handler(signum, frame):
    """
    SIGINT / SIGTERM handler - stop after the current cycle completes.
    """
    signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
    logger.info(f"{signal_name} received - stopping after the current cycle")
    if engine is not None:
        engine.stop()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Bald Brothers Story Engine - poll-driven serialized fiction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run one cycle (bootstrap, advance, or no-op) and exit
  python main.py --once

  # Run the scheduler, checking for closed polls every 10 seconds
  python main.py

  # Custom interval and a local model
  python main.py --interval 5 --model ollama:llama3
        """
    )
    parser.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single poll cycle and exit"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Scheduler tick interval in seconds (default: SCHEDULER_INTERVAL_SECONDS or 10)"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="SQLite database path (default: STORY_DB_PATH or ./data/story_engine.db)"
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model spec. Default=Claude Sonnet. Format: 'ollama:llama3' or a Claude model name"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Process exit code
    """
    global engine

    args = parse_args(argv)

    config = EngineConfig.from_env()
    if args.db_path:
        config.db_path = args.db_path
    if args.model:
        config.model_spec = args.model
    if args.interval is not None:
        if args.interval <= 0:
            print("--interval must be positive", file=sys.stderr)
            return 2
        config.scheduler_interval_seconds = args.interval

    setup_logging(config.log_level, config.log_dir)
    logger.info("=" * 80)
    logger.info("Bald Brothers Story Engine starting")
    logger.info("=" * 80)
    logger.info(f"  - Environment: {config.environment}")
    logger.info(f"  - Database: {config.db_path}")
    logger.info(f"  - Poll duration: {config.poll_duration_seconds}s")
    logger.info(f"  - Model: {config.model_spec or 'default Claude'}")

    engine = StoryEngine.create(config)

    if args.once:
        result = engine.run_cycle_once()
        logger.info(f"Cycle finished: {result.to_dict()}")
        return 0 if result.succeeded else 1

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"  - Interval: {config.scheduler_interval_seconds}s")
    try:
        engine.start_scheduler(blocking=True)
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received - shutting down")
        engine.stop()

    status = engine.get_status()
    logger.info("=" * 80)
    logger.info("Story engine stopped - final statistics")
    logger.info(
        f"Cycles: {status['total_runs']} "
        f"(succeeded={status['succeeded']}, failed={status['failed']}, skipped={status['skipped']})"
    )
    logger.info("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main())
