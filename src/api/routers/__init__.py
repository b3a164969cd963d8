"""
API Routers package.
"""

from . import polls, chapters, scheduler

__all__ = ["polls", "chapters", "scheduler"]
