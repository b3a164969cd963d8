"""
Recovery Manager for the story loop.

Crash scenarios and how they resolve:
1. Crash after mark_processed, before the chapter is saved
   -> processed poll with no successor chapter ("orphaned poll").
      Detected here; PollCycle regenerates the chapter from the poll's
      tally winner on its next idle cycle.
2. Crash after the chapter is saved, before the next poll is created
   -> plain IDLE state; PollCycle opens a poll from the latest chapter.
3. Crash during bootstrap -> EMPTY or IDLE; handled by the normal cycle.

Detection is read-only and idempotent.
"""

import logging
from typing import Optional

from src.story.entities import Poll
from src.story.store import StoryStore


logger = logging.getLogger(__name__)


class RecoveryManager:
    """Detects and reports degraded story states."""

    def __init__(self, store: StoryStore):
        self.store = store

    def find_orphaned_poll(self) -> Optional[Poll]:
        """
        Find a processed poll whose chapter was never written.

        The most recently processed poll is orphaned when it was processed
        after the latest chapter was authored. With no chapters at all the
        cycle bootstraps instead, so that case is not reported here.

        Returns:
            The orphaned Poll, or None
        """
        poll = self.store.latest_processed_poll()
        if poll is None:
            return None

        chapter = self.store.latest_chapter()
        if chapter is None:
            return None

        if poll.processed_at > chapter.authored_at:
            return poll
        return None

    def inspect(self) -> dict:
        """
        Report the story state on startup.

        Returns:
            Recovery statistics
        """
        stats = {
            "chapter_count": 0,
            "open_poll": False,
            "processable_poll_id": None,
            "orphaned_poll_id": None,
            "errors": [],
        }

        logger.info("[Recovery] Inspecting story state...")

        try:
            stats["chapter_count"] = self.store.chapter_count()
            stats["open_poll"] = self.store.open_poll_exists()

            processable = self.store.find_processable_poll()
            if processable is not None:
                stats["processable_poll_id"] = processable.id

            orphan = self.find_orphaned_poll()
            if orphan is not None:
                stats["orphaned_poll_id"] = orphan.id
                logger.warning(
                    f"[Recovery] Poll {orphan.id} was processed without a successor chapter"
                )
        except Exception as e:
            logger.error(f"[Recovery] Inspection failed: {e}")
            stats["errors"].append(str(e))

        logger.info(
            f"[Recovery] {stats['chapter_count']} chapters, "
            f"open poll: {stats['open_poll']}, "
            f"processable poll: {stats['processable_poll_id']}, "
            f"orphaned poll: {stats['orphaned_poll_id']}"
        )

        return stats
