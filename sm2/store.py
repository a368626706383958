"""
sm2.store
---------

This module defines where review states and review logs are persisted.

Classes:
    ReviewStore: The abstract, asynchronous persistence interface.
    InMemoryReviewStore: A process-local store, mainly for tests and prototypes.
    SQLiteReviewStore: A store backed by an SQLite database file.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from copy import copy
from datetime import datetime, timezone
import logging
from pathlib import Path

import aiosqlite

from sm2.errors import ConcurrentUpdateError, PersistenceError
from sm2.review_log import ReviewLog
from sm2.review_state import ReviewState

logger = logging.getLogger(__name__)


class ReviewStore(ABC):
    """
    Persists one ReviewState per (user, card) pair, plus each user's review logs.

    Writes are last-writer-wins unless an `expected_version` is given, in which case the
    write only succeeds if the stored state is still at that version (0 when absent).
    Backend failures are raised as PersistenceError.
    """

    @abstractmethod
    async def get(self, user_id: str, card_id: str) -> ReviewState | None:
        """
        Returns the stored state of a card for a user, or None if it was never reviewed.
        """

    @abstractmethod
    async def put(
        self,
        user_id: str,
        card_id: str,
        state: ReviewState,
        *,
        expected_version: int | None = None,
        review_log: ReviewLog | None = None,
    ) -> ReviewState:
        """
        Stores a card's state for a user.

        When a review log is given it is appended in the same write: either both the
        state and the log are stored, or neither is.

        Args:
            user_id: The owner of the state.
            card_id: The card the state belongs to.
            state: The state to store.
            expected_version: If given, the version the stored state must currently have.
            review_log: The log entry of the review that produced the state, if any.

        Returns:
            ReviewState: A copy of the stored state carrying its new version.

        Raises:
            ValueError: If `state.card_id` differs from `card_id`.
            ConcurrentUpdateError: If the stored version differs from `expected_version`.
            PersistenceError: If the backend fails.
        """

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[ReviewState]:
        """
        Returns every stored state of a user.
        """

    @abstractmethod
    async def reset_user(self, user_id: str) -> int:
        """
        Deletes a user's states and review logs and returns the number of states removed.
        """

    @abstractmethod
    async def add_review_log(self, user_id: str, review_log: ReviewLog) -> None:
        """
        Appends a review log entry to a user's history.
        """

    @abstractmethod
    async def list_review_logs(
        self, user_id: str, card_id: str | None = None
    ) -> list[ReviewLog]:
        """
        Returns a user's review logs, oldest first, optionally for a single card.
        """


def _check_card_id(
    card_id: str, state: ReviewState, review_log: ReviewLog | None = None
) -> None:
    if state.card_id != card_id:
        raise ValueError(
            f"ReviewState card_id {state.card_id} does not match card_id {card_id}"
        )
    if review_log is not None and review_log.card_id != card_id:
        raise ValueError(
            f"ReviewLog card_id {review_log.card_id} does not match card_id {card_id}"
        )


class _LoopLock:
    """
    An asyncio.Lock bound to the running event loop, recreated when the loop changes.
    """

    def __init__(self) -> None:
        self._lock: asyncio.Lock | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def get(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock


class InMemoryReviewStore(ReviewStore):
    """
    Keeps review states and logs in process memory.

    States are copied on the way in and out, so callers can not mutate stored data.
    """

    def __init__(self) -> None:
        self._states: dict[tuple[str, str], ReviewState] = {}
        self._logs: dict[str, list[ReviewLog]] = {}
        self._lock = _LoopLock()

    async def get(self, user_id: str, card_id: str) -> ReviewState | None:
        state = self._states.get((user_id, card_id))
        return copy(state) if state is not None else None

    def _append_log(self, user_id: str, review_log: ReviewLog) -> None:
        self._logs.setdefault(user_id, []).append(copy(review_log))

    async def put(
        self,
        user_id: str,
        card_id: str,
        state: ReviewState,
        *,
        expected_version: int | None = None,
        review_log: ReviewLog | None = None,
    ) -> ReviewState:
        _check_card_id(card_id, state, review_log)

        async with self._lock.get():
            stored = self._states.get((user_id, card_id))
            current_version = stored.version if stored is not None else 0

            if expected_version is not None and expected_version != current_version:
                raise ConcurrentUpdateError(
                    user_id, card_id, expected_version, current_version
                )

            # the log goes first so a failing append leaves the state untouched
            if review_log is not None:
                self._append_log(user_id, review_log)

            new_state = copy(state)
            new_state.version = current_version + 1
            self._states[(user_id, card_id)] = new_state

        return copy(new_state)

    async def list_for_user(self, user_id: str) -> list[ReviewState]:
        return [
            copy(state)
            for (owner, _), state in sorted(self._states.items())
            if owner == user_id
        ]

    async def reset_user(self, user_id: str) -> int:
        async with self._lock.get():
            keys = [key for key in self._states if key[0] == user_id]
            for key in keys:
                del self._states[key]
            self._logs.pop(user_id, None)

        return len(keys)

    async def add_review_log(self, user_id: str, review_log: ReviewLog) -> None:
        async with self._lock.get():
            self._append_log(user_id, review_log)

    async def list_review_logs(
        self, user_id: str, card_id: str | None = None
    ) -> list[ReviewLog]:
        logs = [
            copy(log)
            for log in self._logs.get(user_id, [])
            if card_id is None or log.card_id == card_id
        ]
        return sorted(logs, key=lambda log: log.reviewed_at)


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS review_states (
    user_id       TEXT NOT NULL,
    card_id       TEXT NOT NULL,
    interval_days REAL NOT NULL,
    ease_factor   REAL NOT NULL,
    due_at        TEXT NOT NULL,
    repetitions   INTEGER NOT NULL DEFAULT 0,
    lapses        INTEGER NOT NULL DEFAULT 0,
    last_review   TEXT,
    last_grade    INTEGER,
    version       INTEGER NOT NULL DEFAULT 1,
    updated_at    TEXT NOT NULL,
    PRIMARY KEY (user_id, card_id)
);
CREATE INDEX IF NOT EXISTS idx_review_states_due ON review_states(user_id, due_at);

CREATE TABLE IF NOT EXISTS review_logs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT NOT NULL,
    card_id         TEXT NOT NULL,
    grade           INTEGER NOT NULL,
    reviewed_at     TEXT NOT NULL,
    review_duration INTEGER
);
CREATE INDEX IF NOT EXISTS idx_review_logs_user ON review_logs(user_id, reviewed_at);
"""

_STATE_COLUMNS = (
    "card_id",
    "interval_days",
    "ease_factor",
    "due_at",
    "repetitions",
    "lapses",
    "last_review",
    "last_grade",
    "version",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_state(row: aiosqlite.Row) -> ReviewState:
    return ReviewState.from_dict({column: row[column] for column in _STATE_COLUMNS})


def _row_to_log(row: aiosqlite.Row) -> ReviewLog:
    return ReviewLog.from_dict(
        {
            "card_id": row["card_id"],
            "grade": row["grade"],
            "reviewed_at": row["reviewed_at"],
            "review_duration": row["review_duration"],
        }
    )


class SQLiteReviewStore(ReviewStore):
    """
    Persists review states and logs in an SQLite database file.

    A connection is opened per operation. The schema is created on first use, or
    explicitly with init(). Conditional writes compare the stored version in the
    UPDATE statement itself.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._initialized = False
        self._init_lock = _LoopLock()

    def __repr__(self) -> str:
        return f"SQLiteReviewStore(path={str(self.path)!r})"

    async def init(self) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA_SQL)
            await db.commit()
        self._initialized = True
        logger.info("Initialized review store schema at %s", self.path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            if not self._initialized:
                async with self._init_lock.get():
                    if not self._initialized:
                        await self.init()
            async with aiosqlite.connect(self.path) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as e:
            logger.error("Review store at %s failed: %s", self.path, e)
            raise PersistenceError(f"review store operation failed: {e}") from e

    async def get(self, user_id: str, card_id: str) -> ReviewState | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM review_states WHERE user_id = ? AND card_id = ?",
                (user_id, card_id),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_state(row)

    async def _get_version(
        self, db: aiosqlite.Connection, user_id: str, card_id: str
    ) -> int:
        cursor = await db.execute(
            "SELECT version FROM review_states WHERE user_id = ? AND card_id = ?",
            (user_id, card_id),
        )
        row = await cursor.fetchone()
        return row["version"] if row is not None else 0

    async def _insert_log(
        self, db: aiosqlite.Connection, user_id: str, review_log: ReviewLog
    ) -> None:
        values = review_log.to_dict()
        await db.execute(
            """INSERT INTO review_logs
               (user_id, card_id, grade, reviewed_at, review_duration)
               VALUES (?, ?, ?, ?, ?)""",
            (
                user_id,
                values["card_id"],
                values["grade"],
                values["reviewed_at"],
                values["review_duration"],
            ),
        )

    async def put(
        self,
        user_id: str,
        card_id: str,
        state: ReviewState,
        *,
        expected_version: int | None = None,
        review_log: ReviewLog | None = None,
    ) -> ReviewState:
        _check_card_id(card_id, state, review_log)

        values = state.to_dict()
        fields = (
            values["interval_days"],
            values["ease_factor"],
            values["due_at"],
            values["repetitions"],
            values["lapses"],
            values["last_review"],
            values["last_grade"],
            _now(),
        )

        async with self._connect() as db:
            if expected_version is None:
                await db.execute(
                    """INSERT INTO review_states
                       (user_id, card_id, interval_days, ease_factor, due_at,
                        repetitions, lapses, last_review, last_grade, updated_at, version)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                       ON CONFLICT(user_id, card_id) DO UPDATE SET
                        interval_days = excluded.interval_days,
                        ease_factor = excluded.ease_factor,
                        due_at = excluded.due_at,
                        repetitions = excluded.repetitions,
                        lapses = excluded.lapses,
                        last_review = excluded.last_review,
                        last_grade = excluded.last_grade,
                        updated_at = excluded.updated_at,
                        version = review_states.version + 1""",
                    (user_id, card_id, *fields),
                )

            elif expected_version == 0:
                try:
                    await db.execute(
                        """INSERT INTO review_states
                           (user_id, card_id, interval_days, ease_factor, due_at,
                            repetitions, lapses, last_review, last_grade, updated_at, version)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)""",
                        (user_id, card_id, *fields),
                    )
                except aiosqlite.IntegrityError:
                    actual = await self._get_version(db, user_id, card_id)
                    raise ConcurrentUpdateError(
                        user_id, card_id, expected_version, actual
                    ) from None

            else:
                cursor = await db.execute(
                    """UPDATE review_states SET
                        interval_days = ?, ease_factor = ?, due_at = ?,
                        repetitions = ?, lapses = ?, last_review = ?,
                        last_grade = ?, updated_at = ?, version = version + 1
                       WHERE user_id = ? AND card_id = ? AND version = ?""",
                    (*fields, user_id, card_id, expected_version),
                )
                if cursor.rowcount == 0:
                    actual = await self._get_version(db, user_id, card_id)
                    raise ConcurrentUpdateError(
                        user_id, card_id, expected_version, actual
                    )

            if review_log is not None:
                await self._insert_log(db, user_id, review_log)

            version = await self._get_version(db, user_id, card_id)
            await db.commit()

        stored = copy(state)
        stored.version = version
        return stored

    async def list_for_user(self, user_id: str) -> list[ReviewState]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM review_states WHERE user_id = ? ORDER BY card_id",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_state(row) for row in rows]

    async def reset_user(self, user_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM review_states WHERE user_id = ?", (user_id,)
            )
            removed = cursor.rowcount
            await db.execute("DELETE FROM review_logs WHERE user_id = ?", (user_id,))
            await db.commit()
        logger.info("Reset %d review states for user %s", removed, user_id)
        return removed

    async def add_review_log(self, user_id: str, review_log: ReviewLog) -> None:
        async with self._connect() as db:
            await self._insert_log(db, user_id, review_log)
            await db.commit()

    async def list_review_logs(
        self, user_id: str, card_id: str | None = None
    ) -> list[ReviewLog]:
        query = "SELECT * FROM review_logs WHERE user_id = ?"
        params: tuple[str, ...] = (user_id,)
        if card_id is not None:
            query += " AND card_id = ?"
            params += (card_id,)

        async with self._connect() as db:
            cursor = await db.execute(query + " ORDER BY reviewed_at, id", params)
            rows = await cursor.fetchall()
        return [_row_to_log(row) for row in rows]


__all__ = ["ReviewStore", "InMemoryReviewStore", "SQLiteReviewStore"]
