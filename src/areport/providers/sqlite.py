"""SQLite persistence for run and per-test result rows."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Optional

from ..errors import ErrorKind, ProviderError
from .base import TestResultRow, TestRunRow

DEFAULT_DB_PATH = Path("data/test-results.sqlite")
LOGGER = logging.getLogger(__name__)


def _as_iso(timestamp: datetime) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat()


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _dump_json(data: Any) -> str:
    return json.dumps(data or {}, default=str, sort_keys=True)


def _load_json(value: Optional[str]) -> dict:
    if not value:
        return {}
    data = json.loads(value)
    return data if isinstance(data, dict) else {}


@dataclass(slots=True)
class StoredTestRun:
    """Run row read back from the database together with its id."""

    __test__ = False

    id: str
    run: TestRunRow


@dataclass(slots=True)
class FailureTrend:
    """Recent pass/fail history for one test id."""

    total_runs: int
    failures: int

    @property
    def success_rate(self) -> float:
        if self.total_runs == 0:
            return 0.0
        return (self.total_runs - self.failures) / self.total_runs * 100


class SQLiteDatabaseProvider:
    """Stores ``test_runs`` and linked ``test_results`` rows in a local SQLite file."""

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn: Optional[sqlite3.Connection] = self._open_connection()
            self._bootstrap()
        except (OSError, sqlite3.Error) as error:
            raise ProviderError(f"Unable to open database {self.db_path}: {error}", kind=ErrorKind.IO) from error

    def close(self) -> None:
        if getattr(self, "_conn", None) is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def __enter__(self) -> "SQLiteDatabaseProvider":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self.db_path))
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _bootstrap(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS test_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                environment TEXT,
                branch TEXT,
                commit_hash TEXT,
                total_tests INTEGER NOT NULL,
                passed_tests INTEGER NOT NULL,
                failed_tests INTEGER NOT NULL,
                skipped_tests INTEGER NOT NULL,
                duration REAL NOT NULL,
                metadata TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_test_runs_timestamp
                ON test_runs(timestamp);

            CREATE TABLE IF NOT EXISTS test_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                test_run_id INTEGER NOT NULL,
                test_id TEXT NOT NULL,
                test_title TEXT NOT NULL,
                suite_title TEXT NOT NULL,
                status TEXT NOT NULL,
                duration REAL NOT NULL,
                error_message TEXT,
                error_stack TEXT,
                retries INTEGER NOT NULL DEFAULT 0,
                timestamp TEXT NOT NULL,
                metadata TEXT NOT NULL,
                FOREIGN KEY(test_run_id) REFERENCES test_runs(id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_test_results_run_id
                ON test_results(test_run_id);
            CREATE INDEX IF NOT EXISTS idx_test_results_test_id
                ON test_results(test_id);
            CREATE INDEX IF NOT EXISTS idx_test_results_status
                ON test_results(status);
            """
        )
        self._conn.commit()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        if self._conn is None:
            raise ProviderError("Database connection is closed.", kind=ErrorKind.IO)
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as error:
            self._conn.rollback()
            raise ProviderError(f"SQLite write failed: {error}", kind=ErrorKind.IO) from error
        except Exception:
            self._conn.rollback()
            raise

    # Writes --------------------------------------------------------------------------
    def save_test_run(self, run: TestRunRow) -> str:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO test_runs (
                    name, timestamp, environment, branch, commit_hash, total_tests,
                    passed_tests, failed_tests, skipped_tests, duration, metadata
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run.name,
                    _as_iso(run.timestamp),
                    run.environment,
                    run.branch,
                    run.commit_hash,
                    run.total_tests,
                    run.passed_tests,
                    run.failed_tests,
                    run.skipped_tests,
                    run.duration,
                    _dump_json(run.metadata),
                ),
            )
        run_id = str(cursor.lastrowid)
        LOGGER.debug("Saved test run %s to %s", run_id, self.db_path)
        return run_id

    def save_test_result(self, result: TestResultRow) -> str:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO test_results (
                    test_run_id, test_id, test_title, suite_title, status, duration,
                    error_message, error_stack, retries, timestamp, metadata
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(result.test_run_id),
                    result.test_id,
                    result.test_title,
                    result.suite_title,
                    result.status,
                    result.duration,
                    result.error_message,
                    result.error_stack,
                    result.retries,
                    _as_iso(result.timestamp),
                    _dump_json(result.metadata),
                ),
            )
        return str(cursor.lastrowid)

    # Queries -------------------------------------------------------------------------
    def get_test_run(self, run_id: str) -> Optional[StoredTestRun]:
        row = self._conn.execute("SELECT * FROM test_runs WHERE id = ?", (int(run_id),)).fetchone()
        return self._row_to_run(row) if row else None

    def get_test_results(self, run_id: str) -> List[TestResultRow]:
        cursor = self._conn.execute(
            "SELECT * FROM test_results WHERE test_run_id = ? ORDER BY id",
            (int(run_id),),
        )
        return [self._row_to_result(row) for row in cursor.fetchall()]

    def get_test_run_history(self, limit: int = 10, offset: int = 0) -> List[StoredTestRun]:
        cursor = self._conn.execute(
            "SELECT * FROM test_runs ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [self._row_to_run(row) for row in cursor.fetchall()]

    def get_test_failure_trends(self, test_id: str, limit: int = 10) -> FailureTrend:
        cursor = self._conn.execute(
            "SELECT status FROM test_results WHERE test_id = ? ORDER BY timestamp DESC, id DESC LIMIT ?",
            (test_id, limit),
        )
        statuses = [row["status"] for row in cursor.fetchall()]
        failures = sum(1 for status in statuses if status in {"failed", "timedOut"})
        return FailureTrend(total_runs=len(statuses), failures=failures)

    def _row_to_run(self, row: sqlite3.Row) -> StoredTestRun:
        return StoredTestRun(
            id=str(row["id"]),
            run=TestRunRow(
                name=row["name"],
                timestamp=_from_iso(row["timestamp"]),
                total_tests=row["total_tests"],
                passed_tests=row["passed_tests"],
                failed_tests=row["failed_tests"],
                skipped_tests=row["skipped_tests"],
                duration=row["duration"],
                environment=row["environment"],
                branch=row["branch"],
                commit_hash=row["commit_hash"],
                metadata=_load_json(row["metadata"]),
            ),
        )

    def _row_to_result(self, row: sqlite3.Row) -> TestResultRow:
        return TestResultRow(
            test_run_id=str(row["test_run_id"]),
            test_id=row["test_id"],
            test_title=row["test_title"],
            suite_title=row["suite_title"],
            status=row["status"],
            duration=row["duration"],
            timestamp=_from_iso(row["timestamp"]),
            error_message=row["error_message"],
            error_stack=row["error_stack"],
            retries=row["retries"],
            metadata=_load_json(row["metadata"]),
        )


__all__ = ["DEFAULT_DB_PATH", "FailureTrend", "SQLiteDatabaseProvider", "StoredTestRun"]
