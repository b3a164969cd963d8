"""
SQLite StoryStore.

- WAL mode, one connection per operation
- Poll options stored as a JSON array
- Votes keyed by (poll_id, client_id), upserted with ON CONFLICT
- Poll results written once per poll (ON CONFLICT DO NOTHING)
- Every sqlite3.Error is re-raised as StoreError

Transaction management is per operation; the poll cycle is the single writer.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

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


logger = logging.getLogger("story_engine")


class SQLiteStoryStore(StoryStore):
    """
    SQLite-based persistence for chapters, polls and votes.

    Ordering rules:
    - latest chapter: authored_at DESC, rowid DESC
    - processable poll: closes_at DESC (most recently closed)
    - open poll: closes_at ASC (closing soonest)
    """

    def __init__(self, db_path: str | Path, clock: Optional[Clock] = None):
        """
        Initialize the store and create the schema if missing.

        Args:
            db_path: Path to SQLite database file
            clock: Optional clock override for deterministic tests
        """
        super().__init__(clock)
        self.db_path = str(db_path)
        self._ensure_directory()
        self._init_db()

    def _ensure_directory(self) -> None:
        """Create parent directory if it doesn't exist."""
        db_dir = Path(self.db_path).parent
        if not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"[Store] Created directory: {db_dir}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with WAL mode enabled."""
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open story database {self.db_path}: {e}") from e
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for read-only database access."""
        conn = self._get_connection()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Story database read failed: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Story database write failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chapters (
                    id TEXT PRIMARY KEY,
                    arc_id TEXT NOT NULL,
                    body TEXT NOT NULL CHECK (length(body) > 0),
                    authored_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_chapters_authored_at
                ON chapters (authored_at DESC)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS polls (
                    id TEXT PRIMARY KEY,
                    question TEXT NOT NULL,
                    options TEXT NOT NULL,
                    closes_at TEXT NOT NULL,
                    processed_at TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            # Processable / open poll lookups
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_polls_closes_at
                ON polls (processed_at, closes_at)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS votes (
                    poll_id TEXT NOT NULL,
                    client_id TEXT NOT NULL,
                    choice INTEGER NOT NULL CHECK (choice >= 0),
                    voted_at TEXT NOT NULL,
                    PRIMARY KEY (poll_id, client_id),
                    FOREIGN KEY (poll_id) REFERENCES polls(id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS poll_results (
                    poll_id TEXT PRIMARY KEY,
                    question TEXT NOT NULL,
                    results TEXT NOT NULL,
                    winner_index INTEGER NOT NULL,
                    winner TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    FOREIGN KEY (poll_id) REFERENCES polls(id)
                )
            """)

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _row_to_chapter(row: sqlite3.Row) -> Chapter:
        return Chapter(
            id=row["id"],
            arc_id=row["arc_id"],
            body=row["body"],
            authored_at=row["authored_at"],
        )

    @staticmethod
    def _row_to_poll(row: sqlite3.Row) -> Poll:
        try:
            options = json.loads(row["options"])
        except (TypeError, ValueError) as e:
            raise StoreError(f"Poll {row['id']} has unreadable options: {e}") from e
        if not isinstance(options, list):
            raise StoreError(f"Poll {row['id']} options are not a list")

        return Poll(
            id=row["id"],
            question=row["question"],
            options=options,
            closes_at=row["closes_at"],
            processed_at=row["processed_at"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_result(row: sqlite3.Row) -> PollResult:
        try:
            entries = json.loads(row["results"])
            results = [
                OptionTally(index=e["index"], option=e["option"], count=e["count"])
                for e in entries
            ]
        except (TypeError, ValueError, KeyError) as e:
            raise StoreError(f"Poll result {row['poll_id']} is unreadable: {e}") from e

        return PollResult(
            poll_id=row["poll_id"],
            question=row["question"],
            results=results,
            winner_index=row["winner_index"],
            winner=row["winner"],
            recorded_at=row["recorded_at"],
        )

    # =========================================================================
    # Chapter Operations
    # =========================================================================

    def latest_chapter(self) -> Optional[Chapter]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM chapters ORDER BY authored_at DESC, rowid DESC LIMIT 1"
            ).fetchone()

        return self._row_to_chapter(row) if row else None

    def chapter_count(self) -> int:
        with self._connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM chapters").fetchone()
        return int(row["n"])

    def insert_chapter(self, body: str, arc_id: str) -> Chapter:
        chapter = Chapter(
            id=generate_uuid(),
            arc_id=arc_id,
            body=body,
            authored_at=self.now_iso(),
        )

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO chapters (id, arc_id, body, authored_at)
                VALUES (?, ?, ?, ?)
                """,
                (chapter.id, chapter.arc_id, chapter.body, chapter.authored_at),
            )

        logger.debug(f"[Store] Inserted chapter {chapter.id} ({len(body)} chars)")
        return chapter

    def list_chapters(self, limit: int = 50, offset: int = 0) -> list[Chapter]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM chapters
                ORDER BY authored_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()

        return [self._row_to_chapter(row) for row in rows]

    # =========================================================================
    # Poll Operations
    # =========================================================================

    def find_processable_poll(self) -> Optional[Poll]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM polls
                WHERE processed_at IS NULL AND closes_at <= ?
                ORDER BY closes_at DESC, rowid DESC
                LIMIT 1
                """,
                (self.now_iso(),),
            ).fetchone()

        return self._row_to_poll(row) if row else None

    def open_poll_exists(self) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM polls WHERE closes_at > ? LIMIT 1",
                (self.now_iso(),),
            ).fetchone()
        return row is not None

    def get_open_poll(self) -> Optional[Poll]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM polls
                WHERE closes_at > ?
                ORDER BY closes_at ASC
                LIMIT 1
                """,
                (self.now_iso(),),
            ).fetchone()

        return self._row_to_poll(row) if row else None

    def get_poll(self, poll_id: str) -> Optional[Poll]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM polls WHERE id = ?",
                (poll_id,),
            ).fetchone()

        return self._row_to_poll(row) if row else None

    def latest_processed_poll(self) -> Optional[Poll]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM polls
                WHERE processed_at IS NOT NULL
                ORDER BY processed_at DESC, rowid DESC
                LIMIT 1
                """
            ).fetchone()

        return self._row_to_poll(row) if row else None

    def mark_processed(self, poll_id: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE polls SET processed_at = COALESCE(processed_at, ?)
                WHERE id = ?
                """,
                (self.now_iso(), poll_id),
            )
            if cursor.rowcount == 0:
                raise PollNotFoundError(poll_id)

    def insert_poll(
        self,
        question: str,
        options: list[str],
        closes_at_offset_seconds: float,
    ) -> Poll:
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

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO polls (id, question, options, closes_at, processed_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    poll.id,
                    poll.question,
                    json.dumps(poll.options),
                    poll.closes_at,
                    poll.processed_at,
                    poll.created_at,
                ),
            )

        logger.debug(f"[Store] Inserted poll {poll.id} closing at {poll.closes_at}")
        return poll

    # =========================================================================
    # Vote Operations
    # =========================================================================

    def tally_votes(self, poll_id: str) -> list[OptionTally]:
        poll = self.get_poll(poll_id)
        if poll is None:
            raise PollNotFoundError(poll_id)

        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT choice, COUNT(*) AS n FROM votes
                WHERE poll_id = ?
                GROUP BY choice
                """,
                (poll_id,),
            ).fetchall()

        counts = {row["choice"]: int(row["n"]) for row in rows}
        return [
            OptionTally(index=i, option=option, count=counts.get(i, 0))
            for i, option in enumerate(poll.options)
        ]

    def upsert_vote(self, poll_id: str, client_id: str, choice: int) -> Vote:
        poll = self.get_poll(poll_id)
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

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO votes (poll_id, client_id, choice, voted_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (poll_id, client_id)
                DO UPDATE SET choice = excluded.choice, voted_at = excluded.voted_at
                """,
                (vote.poll_id, vote.client_id, vote.choice, vote.voted_at),
            )

        return vote

    # =========================================================================
    # Poll Result Operations
    # =========================================================================

    def record_poll_result(self, poll: Poll, tally: list[OptionTally], winner: OptionTally) -> PollResult:
        if self.get_poll(poll.id) is None:
            raise PollNotFoundError(poll.id)

        results = json.dumps(
            [{"index": t.index, "option": t.option, "count": t.count} for t in tally]
        )
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO poll_results
                    (poll_id, question, results, winner_index, winner, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (poll_id) DO NOTHING
                """,
                (poll.id, poll.question, results, winner.index, winner.option, self.now_iso()),
            )
            if cursor.rowcount == 0:
                logger.debug(f"[Store] Result for poll {poll.id} already recorded")

        return self.get_poll_result(poll.id)

    def get_poll_result(self, poll_id: str) -> Optional[PollResult]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM poll_results WHERE poll_id = ?",
                (poll_id,),
            ).fetchone()
        return self._row_to_result(row) if row else None

    def list_poll_results(self, limit: int = 20) -> list[PollResult]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM poll_results
                ORDER BY recorded_at DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._row_to_result(row) for row in rows]
