"""SQLite breadcrumbs for rejected drafts, provider failures, and continuity warnings."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import uuid4

from dream_drift.domain.models import Severity


@dataclass(frozen=True)
class StoredAnomaly:
    """One persisted generation anomaly."""

    anomaly_id: str
    created_at_utc: str
    scope: str
    code: str
    severity: str
    message: str
    metadata_json: str

    def metadata(self) -> dict[str, object]:
        payload = json.loads(self.metadata_json)
        return payload if isinstance(payload, dict) else {}


class SQLiteAnomalyStore:
    """Append-only anomaly log with retention and row-cap pruning."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        return connection

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS generation_anomalies (
                    anomaly_id TEXT PRIMARY KEY,
                    created_at_utc TEXT NOT NULL,
                    scope TEXT NOT NULL,
                    code TEXT NOT NULL,
                    severity TEXT NOT NULL,
                    message TEXT NOT NULL,
                    metadata_json TEXT NOT NULL
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_generation_anomalies_created
                ON generation_anomalies(created_at_utc DESC)
                """
            )

    def write_anomaly(
        self,
        *,
        scope: str,
        code: str,
        severity: Severity,
        message: str,
        metadata: dict[str, object] | None = None,
    ) -> StoredAnomaly:
        """Persist one anomaly event."""
        anomaly = StoredAnomaly(
            anomaly_id=uuid4().hex,
            created_at_utc=datetime.now(UTC).isoformat(timespec="microseconds"),
            scope=scope,
            code=code,
            severity=severity,
            message=message,
            metadata_json=json.dumps(metadata or {}, ensure_ascii=False, sort_keys=True),
        )
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO generation_anomalies (
                    anomaly_id, created_at_utc, scope, code, severity, message, metadata_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    anomaly.anomaly_id,
                    anomaly.created_at_utc,
                    anomaly.scope,
                    anomaly.code,
                    anomaly.severity,
                    anomaly.message,
                    anomaly.metadata_json,
                ),
            )
        return anomaly

    def prune_anomalies(self, *, retention_days: int, max_rows: int) -> int:
        """Drop rows older than the retention window, then the oldest beyond max_rows."""
        if retention_days <= 0:
            raise ValueError("retention_days must be positive.")
        if max_rows <= 0:
            raise ValueError("max_rows must be positive.")

        cutoff = datetime.now(UTC) - timedelta(days=retention_days)
        with self._connect() as connection:
            expired = connection.execute(
                "DELETE FROM generation_anomalies WHERE created_at_utc < ?",
                (cutoff.isoformat(timespec="microseconds"),),
            )
            overflow = connection.execute(
                """
                DELETE FROM generation_anomalies
                WHERE anomaly_id NOT IN (
                    SELECT anomaly_id
                    FROM generation_anomalies
                    ORDER BY created_at_utc DESC
                    LIMIT ?
                )
                """,
                (max_rows,),
            )
            return int(expired.rowcount) + int(overflow.rowcount)

    def list_recent(self, *, limit: int = 100, code: str | None = None) -> list[StoredAnomaly]:
        """Fetch recent anomalies, newest first, optionally for one code."""
        if limit <= 0:
            raise ValueError("limit must be positive.")
        query = """
            SELECT anomaly_id, created_at_utc, scope, code, severity, message, metadata_json
            FROM generation_anomalies
        """
        params: tuple[object, ...] = (limit,)
        if code is not None:
            query += " WHERE code = ?"
            params = (code, limit)
        query += " ORDER BY created_at_utc DESC LIMIT ?"
        with self._connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [
            StoredAnomaly(
                anomaly_id=str(row["anomaly_id"]),
                created_at_utc=str(row["created_at_utc"]),
                scope=str(row["scope"]),
                code=str(row["code"]),
                severity=str(row["severity"]),
                message=str(row["message"]),
                metadata_json=str(row["metadata_json"]),
            )
            for row in rows
        ]
