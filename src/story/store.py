"""
StoryStore interface.

Typed accessor over the datastore for chapters, polls, votes and recorded
poll results. Contains
no story logic; the poll cycle decides what to write and when.

Every operation may raise StoreError. Implementations must never swallow a
datastore failure.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional

from .entities import (
    Chapter,
    OptionTally,
    Poll,
    PollResult,
    Vote,
    format_timestamp,
    utcnow,
)
from .errors import InvalidPollError


Clock = Callable[[], datetime]


class StoryStore(ABC):
    """Abstract base class for story stores."""

    def __init__(self, clock: Optional[Clock] = None):
        """
        Args:
            clock: Callable returning the current naive UTC datetime.
                Defaults to the system clock; tests inject a MockClock.
        """
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    def now_iso(self) -> str:
        return format_timestamp(self._clock())

    # =========================================================================
    # Chapters
    # =========================================================================

    @abstractmethod
    def latest_chapter(self) -> Optional[Chapter]:
        """Return the chapter with the greatest authored_at, or None."""
        pass

    @abstractmethod
    def chapter_count(self) -> int:
        """Count all chapters."""
        pass

    @abstractmethod
    def insert_chapter(self, body: str, arc_id: str) -> Chapter:
        """Persist a chapter with authored_at = now and return it."""
        pass

    @abstractmethod
    def list_chapters(self, limit: int = 50, offset: int = 0) -> list[Chapter]:
        """List chapters, newest first."""
        pass

    # =========================================================================
    # Polls
    # =========================================================================

    @abstractmethod
    def find_processable_poll(self) -> Optional[Poll]:
        """
        Return the poll with closes_at <= now and processed_at unset.

        If several qualify, the most recently closed one wins. That state
        should not arise under correct operation.
        """
        pass

    @abstractmethod
    def open_poll_exists(self) -> bool:
        """True iff a poll with closes_at > now exists."""
        pass

    @abstractmethod
    def get_open_poll(self) -> Optional[Poll]:
        """Return the open poll closing soonest, or None."""
        pass

    @abstractmethod
    def get_poll(self, poll_id: str) -> Optional[Poll]:
        pass

    @abstractmethod
    def latest_processed_poll(self) -> Optional[Poll]:
        """Return the poll with the greatest processed_at, or None."""
        pass

    @abstractmethod
    def mark_processed(self, poll_id: str) -> None:
        """
        Set processed_at = now.

        Idempotent: a second call keeps the original timestamp.

        Raises:
            PollNotFoundError: If the poll does not exist
        """
        pass

    @abstractmethod
    def insert_poll(
        self,
        question: str,
        options: list[str],
        closes_at_offset_seconds: float,
    ) -> Poll:
        """
        Persist a new poll closing at now + offset.

        Raises:
            InvalidPollError: If fewer than two options or empty question
        """
        pass

    # =========================================================================
    # Votes
    # =========================================================================

    @abstractmethod
    def tally_votes(self, poll_id: str) -> list[OptionTally]:
        """
        Count votes per option, in option order.

        Options with no votes are included with count 0.

        Raises:
            PollNotFoundError: If the poll does not exist
        """
        pass

    @abstractmethod
    def upsert_vote(self, poll_id: str, client_id: str, choice: int) -> Vote:
        """
        Record or overwrite a client's vote.

        Raises:
            PollNotFoundError: If the poll does not exist
            InvalidVoteError: If choice is outside the option range
        """
        pass

    # =========================================================================
    # Poll results
    # =========================================================================

    @abstractmethod
    def record_poll_result(self, poll: Poll, tally: list[OptionTally], winner: OptionTally) -> PollResult:
        """
        Record a processed poll's outcome with recorded_at = now.

        Keeps the first record if one already exists and returns it.

        Raises:
            PollNotFoundError: If the poll does not exist
        """
        pass

    @abstractmethod
    def get_poll_result(self, poll_id: str) -> Optional[PollResult]:
        pass

    @abstractmethod
    def list_poll_results(self, limit: int = 20) -> list[PollResult]:
        """List recorded results, most recent first."""
        pass

    # =========================================================================
    # Shared validation
    # =========================================================================

    @staticmethod
    def validate_poll(
        question: str,
        options: list[str],
        closes_at_offset_seconds: float,
    ) -> None:
        if not question or not question.strip():
            raise InvalidPollError("Poll question must not be empty")
        if options is None or len(options) < 2:
            count = 0 if options is None else len(options)
            raise InvalidPollError(f"Poll needs at least 2 options, got {count}")
        if closes_at_offset_seconds < 0:
            raise InvalidPollError(
                f"Closing offset must not be negative: {closes_at_offset_seconds}"
            )
