"""
SQLite Progress Repository: infrastructure adapter for a local database file.

Schema:
- items: content catalog (word/translation pairs)
- user_item_progress: SM-2 state per (user, item)
- review_sessions: one row per session
- item_reviews: append-only review log

Timestamps are stored as ISO-8601 UTC strings so they sort lexically.
"""

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from cadence.domain.errors import PersistenceError
from cadence.domain.models import (
    DueItem,
    Item,
    ProgressRecord,
    QualityRating,
    ReviewRecord,
    Session,
    SessionState,
)
from cadence.domain.ports import ProgressRepository

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    word TEXT NOT NULL,
    translation TEXT NOT NULL,
    phonetic TEXT,
    example_sentence TEXT,
    example_translation TEXT,
    category TEXT,
    difficulty TEXT,
    target_language TEXT,
    native_language TEXT
);

CREATE TABLE IF NOT EXISTS user_item_progress (
    user_id TEXT NOT NULL,
    item_id TEXT NOT NULL,
    ease_factor REAL NOT NULL DEFAULT 2.5,
    interval INTEGER NOT NULL DEFAULT 0,
    repetitions INTEGER NOT NULL DEFAULT 0,
    next_review_at TEXT NOT NULL,
    total_reviews INTEGER NOT NULL DEFAULT 0,
    correct_count INTEGER NOT NULL DEFAULT 0,
    incorrect_count INTEGER NOT NULL DEFAULT 0,
    last_reviewed_at TEXT,
    created_at TEXT,
    PRIMARY KEY (user_id, item_id),
    FOREIGN KEY (item_id) REFERENCES items(id)
);

CREATE TABLE IF NOT EXISTS review_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    items_reviewed INTEGER NOT NULL DEFAULT 0,
    points_earned INTEGER NOT NULL DEFAULT 0,
    total_time_seconds INTEGER,
    status TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS item_reviews (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    item_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    quality INTEGER NOT NULL,
    time_spent_seconds INTEGER NOT NULL,
    card_type TEXT NOT NULL,
    reviewed_at TEXT NOT NULL,
    FOREIGN KEY (session_id) REFERENCES review_sessions(id)
);

CREATE INDEX IF NOT EXISTS idx_progress_next_review ON user_item_progress(user_id, next_review_at);
CREATE INDEX IF NOT EXISTS idx_reviews_session ON item_reviews(session_id);
"""

ITEM_COLUMNS = (
    "id",
    "word",
    "translation",
    "phonetic",
    "example_sentence",
    "example_translation",
    "category",
    "difficulty",
    "target_language",
    "native_language",
)

UPSERT_PROGRESS = """
INSERT INTO user_item_progress (
    user_id, item_id, ease_factor, interval, repetitions, next_review_at,
    total_reviews, correct_count, incorrect_count, last_reviewed_at, created_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(user_id, item_id) DO UPDATE SET
    ease_factor = excluded.ease_factor,
    interval = excluded.interval,
    repetitions = excluded.repetitions,
    next_review_at = excluded.next_review_at,
    total_reviews = excluded.total_reviews,
    correct_count = excluded.correct_count,
    incorrect_count = excluded.incorrect_count,
    last_reviewed_at = excluded.last_reviewed_at
"""

UPSERT_SESSION = """
INSERT INTO review_sessions (
    id, user_id, started_at, ended_at, items_reviewed, points_earned,
    total_time_seconds, status
) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    ended_at = excluded.ended_at,
    items_reviewed = excluded.items_reviewed,
    points_earned = excluded.points_earned,
    total_time_seconds = excluded.total_time_seconds,
    status = excluded.status
"""

INSERT_REVIEW = """
INSERT INTO item_reviews (
    id, session_id, item_id, user_id, quality, time_spent_seconds, card_type, reviewed_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""


def to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SqliteProgressRepository(ProgressRepository):
    """
    Stores scheduling state in a SQLite file.

    The caller owns the lifecycle: call `open()`/`close()` or use the
    repository as a context manager.
    """

    def __init__(self, db_path: Path | str, timeout: float = 5.0):
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        self.timeout = timeout
        self._conn: sqlite3.Connection | None = None

    # --- lifecycle ---

    def open(self) -> "SqliteProgressRepository":
        if self._conn is not None:
            return self
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open database {self.db_path}: {e}") from e
        self._conn = conn
        logger.debug(f"Opened database {self.db_path}")
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SqliteProgressRepository":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Repository is not open; call open() first")
        return self._conn

    # --- row mapping ---

    @staticmethod
    def _progress_from_row(row: sqlite3.Row, user_id: str, item_id: str) -> ProgressRecord:
        return ProgressRecord(
            user_id=user_id,
            item_id=item_id,
            ease_factor=row["ease_factor"],
            interval=row["interval"],
            repetitions=row["repetitions"],
            next_review_at=from_db_time(row["next_review_at"]),
            total_reviews=row["total_reviews"],
            correct_count=row["correct_count"],
            incorrect_count=row["incorrect_count"],
            last_reviewed_at=from_db_time(row["last_reviewed_at"]),
            created_at=from_db_time(row["created_at"]),
        )

    @staticmethod
    def _item_from_row(row: sqlite3.Row) -> Item:
        return Item(**{col: row[col] for col in ITEM_COLUMNS})

    @staticmethod
    def _review_from_row(row: sqlite3.Row) -> ReviewRecord:
        return ReviewRecord(
            id=row["id"],
            session_id=row["session_id"],
            item_id=row["item_id"],
            user_id=row["user_id"],
            rating=QualityRating(row["quality"]),
            time_spent_seconds=row["time_spent_seconds"],
            card_type=row["card_type"],
            reviewed_at=from_db_time(row["reviewed_at"]),
        )

    @staticmethod
    def _progress_params(record: ProgressRecord) -> tuple:
        return (
            record.user_id,
            record.item_id,
            record.ease_factor,
            record.interval,
            record.repetitions,
            to_db_time(record.next_review_at),
            record.total_reviews,
            record.correct_count,
            record.incorrect_count,
            to_db_time(record.last_reviewed_at),
            to_db_time(record.created_at),
        )

    @staticmethod
    def _session_params(session: Session) -> tuple:
        return (
            session.id,
            session.user_id,
            to_db_time(session.started_at),
            to_db_time(session.ended_at),
            session.items_reviewed,
            session.points_earned,
            session.total_time_seconds,
            session.status.value,
        )

    @staticmethod
    def _review_params(review: ReviewRecord) -> tuple:
        return (
            review.id,
            review.session_id,
            review.item_id,
            review.user_id,
            int(review.rating),
            review.time_spent_seconds,
            review.card_type,
            to_db_time(review.reviewed_at),
        )

    def _read(self, sql: str, params: tuple, what: str) -> list[sqlite3.Row]:
        """Run a query, wrapping sqlite errors (locked or busy database)."""
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Failed to load {what}: {e}")
            raise PersistenceError(f"Failed to load {what}: {e}") from e

    def _write(self, statements: list[tuple[str, tuple]], what: str) -> None:
        """Run statements in one transaction, wrapping sqlite errors."""
        try:
            with self.conn:
                for sql, params in statements:
                    self.conn.execute(sql, params)
        except sqlite3.Error as e:
            logger.warning(f"Failed to save {what}: {e}")
            raise PersistenceError(f"Failed to save {what}: {e}") from e

    # --- ProgressRepository ---

    async def load_progress(self, user_id: str, item_id: str) -> ProgressRecord | None:
        rows = self._read(
            "SELECT * FROM user_item_progress WHERE user_id = ? AND item_id = ?",
            (user_id, item_id),
            f"progress for {item_id}",
        )
        if not rows:
            return None
        return self._progress_from_row(rows[0], user_id, item_id)

    async def save_progress(self, record: ProgressRecord) -> None:
        self._write([(UPSERT_PROGRESS, self._progress_params(record))], "progress")

    async def append_review(self, review: ReviewRecord) -> None:
        self._write(
            [(INSERT_REVIEW.replace("INSERT", "INSERT OR IGNORE", 1), self._review_params(review))],
            "review",
        )

    async def save_session(self, session: Session) -> None:
        self._write([(UPSERT_SESSION, self._session_params(session))], "session")

    async def record_review(
        self, progress: ProgressRecord, review: ReviewRecord, session: Session
    ) -> None:
        exists = self._read(
            "SELECT 1 FROM item_reviews WHERE id = ?", (review.id,), f"review {review.id}"
        )
        if exists:
            logger.debug(f"Review {review.id} already recorded; skipping")
            return

        self._write(
            [
                (UPSERT_PROGRESS, self._progress_params(progress)),
                (UPSERT_SESSION, self._session_params(session)),
                (INSERT_REVIEW, self._review_params(review)),
            ],
            f"review {review.id}",
        )

    async def list_due_items(self, user_id: str, now: datetime, limit: int) -> list[DueItem]:
        query = """
            SELECT i.*, p.ease_factor, p.interval, p.repetitions, p.next_review_at,
                   p.total_reviews, p.correct_count, p.incorrect_count,
                   p.last_reviewed_at, p.created_at
            FROM items i
            LEFT JOIN user_item_progress p ON p.item_id = i.id AND p.user_id = ?
            WHERE p.next_review_at IS NULL OR p.next_review_at <= ?
            ORDER BY p.next_review_at IS NOT NULL, p.next_review_at ASC, i.rowid ASC
            LIMIT ?
        """
        rows = self._read(query, (user_id, to_db_time(now), limit), "due items")

        entries: list[DueItem] = []
        for row in rows:
            progress = None
            if row["next_review_at"] is not None:
                progress = self._progress_from_row(row, user_id, row["id"])
            entries.append(
                DueItem(item_id=row["id"], progress=progress, item=self._item_from_row(row))
            )
        return entries

    async def get_item(self, item_id: str) -> Item | None:
        rows = self._read("SELECT * FROM items WHERE id = ?", (item_id,), f"item {item_id}")
        return self._item_from_row(rows[0]) if rows else None

    async def add_items(self, items: Iterable[Item]) -> int:
        placeholders = ", ".join("?" for _ in ITEM_COLUMNS)
        sql = f"INSERT OR IGNORE INTO items ({', '.join(ITEM_COLUMNS)}) VALUES ({placeholders})"
        try:
            with self.conn:
                before = self.conn.total_changes
                self.conn.executemany(
                    sql, [tuple(getattr(item, col) for col in ITEM_COLUMNS) for item in items]
                )
                return self.conn.total_changes - before
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to add items: {e}") from e

    async def load_session(self, session_id: str) -> Session | None:
        rows = self._read(
            "SELECT * FROM review_sessions WHERE id = ?", (session_id,), f"session {session_id}"
        )
        if not rows:
            return None
        row = rows[0]
        return Session(
            id=row["id"],
            user_id=row["user_id"],
            started_at=from_db_time(row["started_at"]),
            ended_at=from_db_time(row["ended_at"]),
            items_reviewed=row["items_reviewed"],
            points_earned=row["points_earned"],
            total_time_seconds=row["total_time_seconds"],
            status=SessionState(row["status"]),
        )

    async def list_session_reviews(self, session_id: str) -> list[ReviewRecord]:
        rows = self._read(
            "SELECT * FROM item_reviews WHERE session_id = ? ORDER BY reviewed_at, rowid",
            (session_id,),
            f"reviews for {session_id}",
        )
        return [self._review_from_row(row) for row in rows]
