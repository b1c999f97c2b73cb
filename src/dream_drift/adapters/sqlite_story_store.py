"""SQLite-backed persistence for the story state singleton and paragraph chain."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import uuid4

from dream_drift.domain.errors import StoryStoreError
from dream_drift.domain.models import Paragraph, StoryState


class SQLiteStoryStore:
    """Persist the singleton story state and the append-only paragraph sequence."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with _store_errors("initialize schema"):
            self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        return connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE")
            yield connection
            connection.commit()
        except BaseException:
            connection.rollback()
            raise
        finally:
            connection.close()

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS paragraphs (
                    paragraph_id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    created_at_utc TEXT NOT NULL,
                    drift_level REAL NOT NULL CHECK (drift_level >= 0),
                    sequence INTEGER NOT NULL UNIQUE
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS story_state (
                    state_id TEXT PRIMARY KEY,
                    singleton_key INTEGER NOT NULL UNIQUE CHECK (singleton_key = 1),
                    current_drift REAL NOT NULL CHECK (current_drift >= 0),
                    motifs_json TEXT NOT NULL,
                    last_update_utc TEXT,
                    last_paragraph_id TEXT,
                    lease_holder TEXT,
                    lease_expires_utc TEXT
                )
                """
            )

    def load_state(self) -> StoryState | None:
        """Load the singleton state row, if it exists."""
        with _store_errors("load story state"):
            with self._connect() as connection:
                row = connection.execute(
                    """
                    SELECT state_id, current_drift, motifs_json, last_update_utc, last_paragraph_id
                    FROM story_state
                    WHERE singleton_key = 1
                    """
                ).fetchone()
        if row is None:
            return None
        return self._state_from_row(row)

    def create_state(self, *, motifs: tuple[str, ...]) -> StoryState:
        """Create the singleton state; an existing row wins over a concurrent creator."""
        with _store_errors("create story state"):
            with self._connect() as connection:
                connection.execute(
                    """
                    INSERT OR IGNORE INTO story_state (
                        state_id, singleton_key, current_drift, motifs_json,
                        last_update_utc, last_paragraph_id
                    )
                    VALUES (?, 1, 0.0, ?, NULL, NULL)
                    """,
                    (uuid4().hex, json.dumps(list(motifs), ensure_ascii=False)),
                )
        state = self.load_state()
        if state is None:
            raise StoryStoreError("Created story state could not be loaded.")
        return state

    def list_paragraphs(self) -> list[Paragraph]:
        """Return every paragraph in reading order."""
        with _store_errors("list paragraphs"):
            with self._connect() as connection:
                rows = connection.execute(
                    """
                    SELECT paragraph_id, content, created_at_utc, drift_level, sequence
                    FROM paragraphs
                    ORDER BY sequence ASC
                    """
                ).fetchall()
        return [self._paragraph_from_row(row) for row in rows]

    def latest_paragraph(self) -> Paragraph | None:
        with _store_errors("load latest paragraph"):
            with self._connect() as connection:
                row = connection.execute(
                    """
                    SELECT paragraph_id, content, created_at_utc, drift_level, sequence
                    FROM paragraphs
                    ORDER BY sequence DESC
                    LIMIT 1
                    """
                ).fetchone()
        if row is None:
            return None
        return self._paragraph_from_row(row)

    def commit_paragraph(
        self,
        *,
        content: str,
        drift_level: float,
        committed_at: datetime,
        lease_holder: str | None = None,
    ) -> Paragraph:
        """Append a paragraph and advance the story state in one transaction.

        With ``lease_holder`` set the state update only applies while that holder
        still owns the cycle lease; otherwise nothing is written.
        """
        paragraph_id = uuid4().hex
        created_at_utc = committed_at.astimezone(UTC).isoformat(timespec="microseconds")
        with _store_errors("commit paragraph"):
            with self._transaction() as connection:
                row = connection.execute(
                    "SELECT COALESCE(MAX(sequence), 0) AS last_sequence FROM paragraphs"
                ).fetchone()
                sequence = int(row["last_sequence"]) + 1
                connection.execute(
                    """
                    INSERT INTO paragraphs (
                        paragraph_id, content, created_at_utc, drift_level, sequence
                    )
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (paragraph_id, content, created_at_utc, drift_level, sequence),
                )
                cursor = connection.execute(
                    """
                    UPDATE story_state
                    SET current_drift = ?, last_update_utc = ?, last_paragraph_id = ?
                    WHERE singleton_key = 1 AND (? IS NULL OR lease_holder = ?)
                    """,
                    (drift_level, created_at_utc, paragraph_id, lease_holder, lease_holder),
                )
                if cursor.rowcount == 0 and lease_holder is not None:
                    raise StoryStoreError("Cycle lease was lost; paragraph was not committed.")
                if cursor.rowcount == 0:
                    raise StoryStoreError("Story state is missing; paragraph was not committed.")
        return Paragraph(
            paragraph_id=paragraph_id,
            content=content,
            drift_level=drift_level,
            sequence=sequence,
            created_at_utc=datetime.fromisoformat(created_at_utc),
        )

    def acquire_cycle_lease(self, *, holder: str, now: datetime, ttl_seconds: int) -> bool:
        """Claim the single-row generation lease unless a live one is held elsewhere."""
        now_utc = now.astimezone(UTC)
        expires_at = now_utc + timedelta(seconds=ttl_seconds)
        with _store_errors("acquire cycle lease"):
            with self._connect() as connection:
                cursor = connection.execute(
                    """
                    UPDATE story_state
                    SET lease_holder = ?, lease_expires_utc = ?
                    WHERE singleton_key = 1
                      AND (lease_holder IS NULL OR lease_holder = ? OR lease_expires_utc <= ?)
                    """,
                    (
                        holder,
                        expires_at.isoformat(timespec="microseconds"),
                        holder,
                        now_utc.isoformat(timespec="microseconds"),
                    ),
                )
                acquired = cursor.rowcount == 1
        return acquired

    def release_cycle_lease(self, *, holder: str) -> None:
        with _store_errors("release cycle lease"):
            with self._connect() as connection:
                connection.execute(
                    """
                    UPDATE story_state
                    SET lease_holder = NULL, lease_expires_utc = NULL
                    WHERE singleton_key = 1 AND lease_holder = ?
                    """,
                    (holder,),
                )

    @staticmethod
    def _state_from_row(row: sqlite3.Row) -> StoryState:
        last_update = row["last_update_utc"]
        last_paragraph_id = row["last_paragraph_id"]
        return StoryState(
            state_id=str(row["state_id"]),
            drift_level=float(row["current_drift"]),
            motifs=tuple(str(motif) for motif in json.loads(row["motifs_json"])),
            last_update_utc=datetime.fromisoformat(str(last_update)) if last_update else None,
            last_paragraph_id=str(last_paragraph_id) if last_paragraph_id else None,
        )

    @staticmethod
    def _paragraph_from_row(row: sqlite3.Row) -> Paragraph:
        return Paragraph(
            paragraph_id=str(row["paragraph_id"]),
            content=str(row["content"]),
            drift_level=float(row["drift_level"]),
            sequence=int(row["sequence"]),
            created_at_utc=datetime.fromisoformat(str(row["created_at_utc"])),
        )


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise StoryStoreError(f"Story store failed to {operation}: {exc}") from exc
