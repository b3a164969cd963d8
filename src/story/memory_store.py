"""
In-memory StoryStore.

Same contract and ordering rules as SQLiteStoryStore, backed by plain
lists and dicts. Used by tests and dry runs. Not durable and not shared
between processes.

set_failure() makes the next matching operation raise StoreError, which
lets tests reproduce a datastore outage at any step of a cycle.
"""

import copy
from typing import Optional

from .entities import (
    Chapter,
    OptionTally,
    Poll,
    PollResult,
    Vote,
    format_timestamp,
    generate_uuid,
    offset_timestamp,
)
from .errors import InvalidVoteError, PollNotFoundError, StoreError
from .store import Clock, StoryStore


class InMemoryStoryStore(StoryStore):
    """Dict-backed story store. Returned records are copies."""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        # Insertion order doubles as the rowid tie-break
        self._chapters: list[Chapter] = []
        self._polls: list[Poll] = []
        self._votes: dict[tuple[str, str], Vote] = {}
        self._results: dict[str, PollResult] = {}
        self._failures: dict[str, StoreError] = {}
        self.write_count = 0

    def set_failure(self, operation: str, error: Optional[StoreError] = None) -> None:
        """Make the next call to `operation` raise StoreError."""
        self._failures[operation] = error or StoreError(f"Simulated failure in {operation}")

    def _check_failure(self, operation: str) -> None:
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    def _find_poll(self, poll_id: str) -> Optional[Poll]:
        for poll in self._polls:
            if poll.id == poll_id:
                return poll
        return None

    # =========================================================================
    # Chapters
    # =========================================================================

    def latest_chapter(self) -> Optional[Chapter]:
        self._check_failure("latest_chapter")
        if not self._chapters:
            return None
        indexed = list(enumerate(self._chapters))
        _, chapter = max(indexed, key=lambda item: (item[1].authored_at, item[0]))
        return copy.copy(chapter)

    def chapter_count(self) -> int:
        self._check_failure("chapter_count")
        return len(self._chapters)

    def insert_chapter(self, body: str, arc_id: str) -> Chapter:
        self._check_failure("insert_chapter")
        if not body:
            raise StoreError("Chapter body must not be empty")

        chapter = Chapter(
            id=generate_uuid(),
            arc_id=arc_id,
            body=body,
            authored_at=self.now_iso(),
        )
        self._chapters.append(chapter)
        self.write_count += 1
        return copy.copy(chapter)

    def list_chapters(self, limit: int = 50, offset: int = 0) -> list[Chapter]:
        self._check_failure("list_chapters")
        indexed = list(enumerate(self._chapters))
        indexed.sort(key=lambda item: (item[1].authored_at, item[0]), reverse=True)
        return [copy.copy(chapter) for _, chapter in indexed[offset:offset + limit]]

    # =========================================================================
    # Polls
    # =========================================================================

    def find_processable_poll(self) -> Optional[Poll]:
        self._check_failure("find_processable_poll")
        now = self.now_iso()
        candidates = [
            (i, poll) for i, poll in enumerate(self._polls)
            if poll.processed_at is None and poll.closes_at <= now
        ]
        if not candidates:
            return None
        _, poll = max(candidates, key=lambda item: (item[1].closes_at, item[0]))
        return copy.deepcopy(poll)

    def open_poll_exists(self) -> bool:
        self._check_failure("open_poll_exists")
        now = self.now_iso()
        return any(poll.closes_at > now for poll in self._polls)

    def get_open_poll(self) -> Optional[Poll]:
        self._check_failure("get_open_poll")
        now = self.now_iso()
        open_polls = [poll for poll in self._polls if poll.closes_at > now]
        if not open_polls:
            return None
        return copy.deepcopy(min(open_polls, key=lambda poll: poll.closes_at))

    def get_poll(self, poll_id: str) -> Optional[Poll]:
        self._check_failure("get_poll")
        poll = self._find_poll(poll_id)
        return copy.deepcopy(poll) if poll else None

    def latest_processed_poll(self) -> Optional[Poll]:
        self._check_failure("latest_processed_poll")
        processed = [
            (i, poll) for i, poll in enumerate(self._polls)
            if poll.processed_at is not None
        ]
        if not processed:
            return None
        _, poll = max(processed, key=lambda item: (item[1].processed_at, item[0]))
        return copy.deepcopy(poll)

    def mark_processed(self, poll_id: str) -> None:
        self._check_failure("mark_processed")
        poll = self._find_poll(poll_id)
        if poll is None:
            raise PollNotFoundError(poll_id)
        if poll.processed_at is None:
            poll.processed_at = self.now_iso()
            self.write_count += 1

    def insert_poll(
        self,
        question: str,
        options: list[str],
        closes_at_offset_seconds: float,
    ) -> Poll:
        self._check_failure("insert_poll")
        self.validate_poll(question, options, closes_at_offset_seconds)

        now = self.now()
        poll = Poll(
            id=generate_uuid(),
            question=question,
            options=list(options),
            closes_at=offset_timestamp(now, closes_at_offset_seconds),
            processed_at=None,
            created_at=format_timestamp(now),
        )
        self._polls.append(poll)
        self.write_count += 1
        return copy.deepcopy(poll)

    # =========================================================================
    # Votes
    # =========================================================================

    def tally_votes(self, poll_id: str) -> list[OptionTally]:
        self._check_failure("tally_votes")
        poll = self._find_poll(poll_id)
        if poll is None:
            raise PollNotFoundError(poll_id)

        tally = [
            OptionTally(index=i, option=option, count=0)
            for i, option in enumerate(poll.options)
        ]
        for (vote_poll_id, _), vote in self._votes.items():
            if vote_poll_id == poll_id and 0 <= vote.choice < len(tally):
                tally[vote.choice].count += 1
        return tally

    def upsert_vote(self, poll_id: str, client_id: str, choice: int) -> Vote:
        self._check_failure("upsert_vote")
        poll = self._find_poll(poll_id)
        if poll is None:
            raise PollNotFoundError(poll_id)
        if not 0 <= choice < len(poll.options):
            raise InvalidVoteError(poll_id, choice, len(poll.options))

        vote = Vote(
            poll_id=poll_id,
            client_id=client_id,
            choice=choice,
            voted_at=self.now_iso(),
        )
        self._votes[(poll_id, client_id)] = vote
        return copy.copy(vote)

    # =========================================================================
    # Poll results
    # =========================================================================

    def record_poll_result(self, poll: Poll, tally: list[OptionTally], winner: OptionTally) -> PollResult:
        self._check_failure("record_poll_result")
        if self._find_poll(poll.id) is None:
            raise PollNotFoundError(poll.id)

        existing = self._results.get(poll.id)
        if existing is None:
            existing = PollResult(
                poll_id=poll.id,
                question=poll.question,
                results=copy.deepcopy(tally),
                winner_index=winner.index,
                winner=winner.option,
                recorded_at=self.now_iso(),
            )
            self._results[poll.id] = existing
            self.write_count += 1
        return copy.deepcopy(existing)

    def get_poll_result(self, poll_id: str) -> Optional[PollResult]:
        self._check_failure("get_poll_result")
        result = self._results.get(poll_id)
        return copy.deepcopy(result) if result else None

    def list_poll_results(self, limit: int = 20) -> list[PollResult]:
        self._check_failure("list_poll_results")
        indexed = list(enumerate(self._results.values()))
        indexed.sort(key=lambda item: (item[1].recorded_at, item[0]), reverse=True)
        return [copy.deepcopy(result) for _, result in indexed[:limit]]
