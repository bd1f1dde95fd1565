from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from areport.errors import ErrorKind, ProviderError
from areport.providers.base import TestResultRow, TestRunRow
from areport.providers.sqlite import SQLiteDatabaseProvider

STARTED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _run_row(offset_minutes: int = 0, **overrides) -> TestRunRow:
    values = {
        "name": f"Test Run {offset_minutes}",
        "timestamp": STARTED + timedelta(minutes=offset_minutes),
        "total_tests": 2,
        "passed_tests": 1,
        "failed_tests": 1,
        "skipped_tests": 0,
        "duration": 12.5,
        "environment": "ci",
        "branch": "main",
        "commit_hash": "abc123",
        "metadata": {"buildInfo": {"build_id": "42"}},
    }
    values.update(overrides)
    return TestRunRow(**values)


def _result_row(run_id: str, test_id: str, status: str, offset_minutes: int = 0) -> TestResultRow:
    return TestResultRow(
        test_run_id=run_id,
        test_id=test_id,
        test_title=test_id.title(),
        suite_title="Checkout",
        status=status,
        duration=1.5,
        timestamp=STARTED + timedelta(minutes=offset_minutes),
        error_message="expected 1" if status == "failed" else None,
        retries=1 if status == "failed" else 0,
        metadata={"owningTeam": "payments"},
    )


def test_run_and_results_roundtrip(tmp_path) -> None:
    with SQLiteDatabaseProvider(tmp_path / "db" / "results.sqlite") as database:
        run_id = database.save_test_run(_run_row())
        first = database.save_test_result(_result_row(run_id, "checkout", "failed"))
        second = database.save_test_result(_result_row(run_id, "login", "passed"))

        stored = database.get_test_run(run_id)
        results = database.get_test_results(run_id)

    assert first != second
    assert stored is not None
    assert stored.id == run_id
    assert stored.run.name == "Test Run 0"
    assert stored.run.timestamp == STARTED
    assert stored.run.metadata == {"buildInfo": {"build_id": "42"}}
    assert [row.test_id for row in results] == ["checkout", "login"]
    assert results[0].test_run_id == run_id
    assert results[0].error_message == "expected 1"
    assert results[1].metadata == {"owningTeam": "payments"}


def test_unknown_run_returns_none(tmp_path) -> None:
    with SQLiteDatabaseProvider(tmp_path / "results.sqlite") as database:
        assert database.get_test_run("999") is None
        assert database.get_test_results("999") == []


def test_history_is_newest_first(tmp_path) -> None:
    with SQLiteDatabaseProvider(tmp_path / "results.sqlite") as database:
        for minutes in (0, 10, 5):
            database.save_test_run(_run_row(minutes))

        history = database.get_test_run_history(limit=2)

    assert [entry.run.name for entry in history] == ["Test Run 10", "Test Run 5"]


def test_failure_trends_count_failed_and_timed_out(tmp_path) -> None:
    with SQLiteDatabaseProvider(tmp_path / "results.sqlite") as database:
        run_id = database.save_test_run(_run_row())
        for minutes, status in enumerate(["passed", "failed", "timedOut", "passed"]):
            database.save_test_result(_result_row(run_id, "checkout", status, minutes))

        trend = database.get_test_failure_trends("checkout")
        empty = database.get_test_failure_trends("unknown")

    assert (trend.total_runs, trend.failures) == (4, 2)
    assert trend.success_rate == 50.0
    assert empty.success_rate == 0.0


def test_result_for_missing_run_is_an_io_error(tmp_path) -> None:
    with SQLiteDatabaseProvider(tmp_path / "results.sqlite") as database:
        with pytest.raises(ProviderError) as excinfo:
            database.save_test_result(_result_row("12345", "checkout", "passed"))

    assert excinfo.value.kind is ErrorKind.IO


def test_closed_database_rejects_writes(tmp_path) -> None:
    database = SQLiteDatabaseProvider(tmp_path / "results.sqlite")
    database.close()

    with pytest.raises(ProviderError) as excinfo:
        database.save_test_run(_run_row())

    assert excinfo.value.kind is ErrorKind.IO
