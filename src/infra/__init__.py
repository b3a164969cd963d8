"""
Infrastructure module - configuration and logging.
"""

from .config import EngineConfig
from .logging_config import setup_logging

__all__ = [
    # config
    "EngineConfig",
    # logging
    "setup_logging",
]
