"""
Logging configuration module.

Daily log rotation with process start time tracking.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

# Story modules log to "story_engine"; scheduler and API modules log under "src.*"
ENGINE_LOGGER_NAMES = ("story_engine", "src")

# Process start time is captured once and reused for all daily logs
_PROCESS_START_TIME: Optional[str] = None


class DailyRotatingFileHandler(logging.FileHandler):
    """
    Daily rotating file handler.

    Creates one log file per calendar day with format:
    logs/story_engine_YYYYMMDD_<START_HHMMSS>.log

    START_HHMMSS is fixed at process start, only YYYYMMDD changes.
    """

    def __init__(self, log_dir: str = "logs", encoding: str = "utf-8"):
        global _PROCESS_START_TIME

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        if _PROCESS_START_TIME is None:
            _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")

        self._start_hhmmss = _PROCESS_START_TIME
        self._current_date: Optional[str] = None

        initial_path = self._get_current_log_path()
        super().__init__(initial_path, mode='a', encoding=encoding)
        self._current_date = datetime.now().strftime("%Y%m%d")

    def _get_current_log_path(self) -> str:
        """Get log file path for current date."""
        date_str = datetime.now().strftime("%Y%m%d")
        return str(self.log_dir / f"story_engine_{date_str}_{self._start_hhmmss}.log")

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record, rotating to new file if date changed."""
        current_date = datetime.now().strftime("%Y%m%d")

        if self._current_date != current_date:
            self.close()
            self.baseFilename = self._get_current_log_path()
            self._current_date = current_date
            self.stream = self._open()

        super().emit(record)


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> logging.Logger:
    """
    Configure engine logging and return the "story_engine" logger.

    Console plus a daily rotating file, shared by every engine logger.

    Args:
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir (str): Directory for daily log files

    Returns:
        logging.Logger: Configured "story_engine" logger
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)

    file_handler = DailyRotatingFileHandler(log_dir=log_dir, encoding='utf-8')
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)

    for name in ENGINE_LOGGER_NAMES:
        engine_logger = logging.getLogger(name)
        engine_logger.setLevel(numeric_level)
        # Prevent propagation to root logger (avoid duplicate logs)
        engine_logger.propagate = False
        if engine_logger.handlers:
            engine_logger.handlers.clear()
        engine_logger.addHandler(console_handler)
        engine_logger.addHandler(file_handler)

    logger = logging.getLogger("story_engine")
    logger.info(f"Logging started - level: {log_level}, log file: {file_handler.baseFilename}")

    return logger
