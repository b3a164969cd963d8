"""
Poll Cycle - the close-tally-generate-advance state machine.

States observed at the start of a cycle (derived from store queries, never
stored):
- EMPTY: no chapters (and nothing open or processable)
- POLL_OPEN: a poll with closes_at > now exists
- POLL_CLOSED_UNPROCESSED: a poll with closes_at <= now and processed_at unset
- IDLE: nothing open, nothing processable, at least one chapter

Transitions (one run() call each):
- EMPTY -> POLL_OPEN: genesis chapter + canonical first poll
- POLL_CLOSED_UNPROCESSED -> POLL_OPEN: mark processed, tally and record the
  result, generate a chapter from the winner and the recent chapters,
  persist it, open the next poll
- IDLE -> POLL_OPEN: new poll from the latest chapter (or, if the last
  processed poll never got its chapter, regenerate that chapter first)
- POLL_OPEN: no-op

Only StoreError aborts a cycle. Everything written before the failing step
stays written; the next cycle resumes from whatever state that leaves.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.story.canon import (
    DEFAULT_ARC_ID,
    FIRST_POLL_OPTIONS,
    FIRST_POLL_QUESTION,
    GENESIS_CHAPTER_BODY,
)
from src.story.entities import Chapter, OptionTally, Poll
from src.story.errors import StoreError
from src.story.generator import ChapterGenerator
from src.story.prompt_builder import RECENT_CHAPTER_COUNT, build_chapter_prompt
from src.story.store import StoryStore

from .recovery import RecoveryManager


logger = logging.getLogger(__name__)


class CycleOutcome(str, Enum):
    """What a single run() did."""

    BOOTSTRAPPED = "BOOTSTRAPPED"
    ADVANCED = "ADVANCED"
    POLL_CREATED = "POLL_CREATED"
    REPAIRED = "REPAIRED"
    POLL_OPEN = "POLL_OPEN"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass
class CycleResult:
    """Summary of one cycle, for logs, stats and the manual run path."""

    outcome: CycleOutcome
    processed_poll_id: Optional[str] = None
    chapter_id: Optional[str] = None
    next_poll_id: Optional[str] = None
    winner: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome != CycleOutcome.FAILED

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "processed_poll_id": self.processed_poll_id,
            "chapter_id": self.chapter_id,
            "next_poll_id": self.next_poll_id,
            "winner": self.winner,
            "error": self.error,
        }


def pick_winner(tally: list[OptionTally]) -> OptionTally:
    """
    Pick the winning option.

    Highest count wins. Ties go to the option that comes first in the
    poll's stored option order, so the result depends only on the vote rows
    and the option array. A poll with no votes at all resolves to its first
    option.

    Raises:
        ValueError: If the tally is empty
    """
    if not tally:
        raise ValueError("Cannot pick a winner from an empty tally")

    winner = tally[0]
    for entry in tally[1:]:
        if entry.count > winner.count:
            winner = entry
    return winner


class PollCycle:
    """
    One iteration of the story loop.

    Owns the reentrancy guard: a call made while another call on the same
    instance is still running returns SKIPPED without touching the store.
    """

    def __init__(
        self,
        store: StoryStore,
        generator: ChapterGenerator,
        arc_id: str = DEFAULT_ARC_ID,
        poll_duration_seconds: float = 30,
        bootstrap_poll_seconds: float = 120,
        recovery: Optional[RecoveryManager] = None,
    ):
        """
        Args:
            store: StoryStore for all reads and writes
            generator: ChapterGenerator for prose and poll options
            arc_id: Arc id written on new chapters
            poll_duration_seconds: Lifetime of each generated poll
            bootstrap_poll_seconds: Lifetime of the canonical first poll
            recovery: RecoveryManager; None disables degraded-state repair
        """
        self.store = store
        self.generator = generator
        self.arc_id = arc_id
        self.poll_duration_seconds = poll_duration_seconds
        self.bootstrap_poll_seconds = bootstrap_poll_seconds
        self.recovery = recovery

        self._guard = threading.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if a cycle is in progress."""
        return self._running

    # =========================================================================
    # Entry point
    # =========================================================================

    def run(self) -> CycleResult:
        """
        Run one cycle.

        Returns:
            CycleResult. StoreError is logged and reported as FAILED.

        Raises:
            Exception: Anything other than StoreError propagates to the caller
        """
        with self._guard:
            if self._running:
                logger.info("[PollCycle] Previous cycle still running, skipping")
                return CycleResult(outcome=CycleOutcome.SKIPPED)
            self._running = True

        try:
            return self._run()
        except StoreError as e:
            logger.error(f"[PollCycle] Store error, cycle aborted: {e}", exc_info=True)
            return CycleResult(outcome=CycleOutcome.FAILED, error=str(e))
        finally:
            self._running = False

    def _run(self) -> CycleResult:
        if self.store.open_poll_exists():
            logger.debug("[PollCycle] Poll still open, nothing to do")
            return CycleResult(outcome=CycleOutcome.POLL_OPEN)

        poll = self.store.find_processable_poll()
        if poll is not None:
            return self._advance(poll)

        latest = self.store.latest_chapter()
        if latest is None:
            return self._bootstrap()

        if self.recovery is not None:
            orphan = self.recovery.find_orphaned_poll()
            if orphan is not None:
                return self._repair(orphan, latest)

        return self._open_poll_from(latest)

    # =========================================================================
    # Transitions
    # =========================================================================

    def _bootstrap(self) -> CycleResult:
        """EMPTY -> POLL_OPEN."""
        logger.info("[PollCycle] No chapters found, writing genesis chapter")

        chapter = self.store.insert_chapter(GENESIS_CHAPTER_BODY, self.arc_id)
        poll = self.store.insert_poll(
            FIRST_POLL_QUESTION,
            list(FIRST_POLL_OPTIONS),
            self.bootstrap_poll_seconds,
        )

        logger.info(
            f"[PollCycle] Bootstrapped: chapter {chapter.id}, first poll {poll.id} "
            f"closing at {poll.closes_at}"
        )
        return CycleResult(
            outcome=CycleOutcome.BOOTSTRAPPED,
            chapter_id=chapter.id,
            next_poll_id=poll.id,
        )

    def _advance(self, poll: Poll) -> CycleResult:
        """POLL_CLOSED_UNPROCESSED -> POLL_OPEN."""
        logger.info(f"[PollCycle] Closing poll {poll.id}: {poll.question}")

        # Marked before generation; a poll is never advanced twice.
        self.store.mark_processed(poll.id)

        winner = self._tally(poll)
        chapter, next_poll = self._write_chapter_and_next_poll(winner)

        return CycleResult(
            outcome=CycleOutcome.ADVANCED,
            processed_poll_id=poll.id,
            chapter_id=chapter.id,
            next_poll_id=next_poll.id,
            winner=winner.option,
        )

    def _repair(self, orphan: Poll, latest: Chapter) -> CycleResult:
        """IDLE (degraded) -> POLL_OPEN: write the chapter a crashed cycle lost."""
        logger.warning(
            f"[PollCycle] Poll {orphan.id} was processed at {orphan.processed_at} "
            f"but the latest chapter is from {latest.authored_at}; regenerating"
        )

        winner = self._tally(orphan)
        chapter, next_poll = self._write_chapter_and_next_poll(winner)

        return CycleResult(
            outcome=CycleOutcome.REPAIRED,
            processed_poll_id=orphan.id,
            chapter_id=chapter.id,
            next_poll_id=next_poll.id,
            winner=winner.option,
        )

    def _open_poll_from(self, chapter: Chapter) -> CycleResult:
        """IDLE -> POLL_OPEN without a new chapter."""
        logger.info(f"[PollCycle] No open poll, creating one from chapter {chapter.id}")

        next_poll = self._insert_next_poll(chapter)
        return CycleResult(
            outcome=CycleOutcome.POLL_CREATED,
            next_poll_id=next_poll.id,
        )

    # =========================================================================
    # Steps
    # =========================================================================

    def _tally(self, poll: Poll) -> OptionTally:
        """Tally and record the poll. An earlier record of the same poll wins."""
        tally = self.store.tally_votes(poll.id)
        recorded = self.store.record_poll_result(poll, tally, pick_winner(tally))
        winner = recorded.results[recorded.winner_index]
        results = {entry.option: entry.count for entry in recorded.results}
        logger.info(
            f"[PollCycle] Poll {poll.id} results: {results} | Winner: {winner.option}"
        )
        return winner

    def _write_chapter_and_next_poll(self, winner: OptionTally) -> tuple[Chapter, Poll]:
        recent = self.store.list_chapters(limit=RECENT_CHAPTER_COUNT)
        previous_body = recent[0].body if recent else GENESIS_CHAPTER_BODY
        earlier = [chapter.body for chapter in reversed(recent[1:])]
        prompt = build_chapter_prompt(previous_body, winner.option, earlier)

        body = self.generator.generate(prompt)
        chapter = self.store.insert_chapter(body, self.arc_id)
        logger.info(f"[PollCycle] Chapter saved: {chapter.id} ({len(body)} chars)")

        next_poll = self._insert_next_poll(chapter)
        return chapter, next_poll

    def _insert_next_poll(self, chapter: Chapter) -> Poll:
        options = self.generator.generate_poll_options(chapter.body)
        poll = self.store.insert_poll(
            options.question,
            options.choices,
            self.poll_duration_seconds,
        )
        logger.info(
            f"[PollCycle] Next poll created with ID {poll.id} and options {poll.options}"
        )
        return poll
