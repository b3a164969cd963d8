"""
Story Domain Entities.

- Chapter: One persisted unit of story prose (a "beat")
- Poll: A reader decision with ordered options and a closing time
- Vote: One client's choice on one poll
- OptionTally: Per-option vote count
- PollResult: Recorded outcome of a processed poll

Timestamps are UTC ISO-8601 strings with a fixed width
(YYYY-MM-DDTHH:MM:SS.ffffffZ) so lexical order equals chronological order,
both in SQLite and in memory.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Get current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp(value: datetime) -> str:
    """Format a naive UTC datetime as a fixed-width ISO string."""
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp produced by format_timestamp()."""
    return datetime.strptime(value, TIMESTAMP_FORMAT)


def offset_timestamp(now: datetime, seconds: float) -> str:
    """Format now + seconds."""
    return format_timestamp(now + timedelta(seconds=seconds))


@dataclass
class Chapter:
    """
    One persisted unit of story prose.

    Created exactly once per advancing cycle (or at bootstrap), immutable
    afterwards. "Latest" means greatest authored_at.
    """

    id: str
    arc_id: str
    body: str
    authored_at: str


@dataclass
class Poll:
    """
    A reader decision.

    Option index is the canonical choice identifier; labels may repeat.

    Lifecycle:
    - open while now < closes_at
    - closed once now >= closes_at
    - processed once processed_at is set (terminal)
    """

    id: str
    question: str
    options: list[str]
    closes_at: str
    processed_at: Optional[str] = None
    created_at: Optional[str] = None

    def is_open(self, now: str) -> bool:
        """Check if the poll still accepts votes at the given timestamp."""
        return now < self.closes_at

    def is_processed(self) -> bool:
        return self.processed_at is not None


@dataclass
class Vote:
    """One client's vote. (poll_id, client_id) is unique; last write wins."""

    poll_id: str
    client_id: str
    choice: int
    voted_at: Optional[str] = None


@dataclass
class OptionTally:
    """Vote count for one poll option."""

    index: int
    option: str
    count: int = 0


@dataclass
class PollResult:
    """
    Recorded outcome of a processed poll.

    Written when the cycle tallies a closed poll. The first record for a
    poll is kept; a repaired cycle re-recording it changes nothing.
    """

    poll_id: str
    question: str
    results: list[OptionTally]
    winner_index: int
    winner: str
    recorded_at: str

    @property
    def total_votes(self) -> int:
        return sum(entry.count for entry in self.results)


@dataclass
class PollOptions:
    """Question and choices proposed for the next poll."""

    question: str
    choices: list[str] = field(default_factory=list)
