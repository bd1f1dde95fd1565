"""Run-level metrics derived from a frozen test record store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from .records import AttemptStatus, TestRecord


class SlowTest(BaseModel):
    """Entry in the ranked list of slowest passing tests."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    test_id: str
    title: str
    suite_title: str
    duration_seconds: float
    exceeds_threshold: bool = False


@dataclass(frozen=True, slots=True)
class RunMetrics:
    """Counts, averages, and rankings computed once per run."""

    test_count: int
    passed_count: int
    failed_count: int
    skipped_count: int
    average_passed_duration: float
    slowest_tests: tuple[SlowTest, ...]
    total_wall_clock_duration: float


def count_by_final_status(records: Sequence[TestRecord]) -> tuple[int, int, int, int]:
    """Return ``(test_count, passed, failed, skipped)`` keyed on final status.

    Anything that is neither passed nor skipped counts as failed, so the three
    buckets always add up to the test count.
    """
    test_count = len(records)
    passed = sum(1 for record in records if record.final_status is AttemptStatus.PASSED)
    skipped = sum(1 for record in records if record.final_status is AttemptStatus.SKIPPED)
    return test_count, passed, test_count - passed - skipped, skipped


def average_passed_duration(records: Iterable[TestRecord]) -> float:
    """Mean duration of every passed attempt; failed and timed-out attempts are ignored."""
    durations = [
        attempt.duration_seconds
        for record in records
        for attempt in record.attempts
        if attempt.status is AttemptStatus.PASSED
    ]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def find_slowest_tests(
    records: Sequence[TestRecord],
    limit: int,
    *,
    slow_test_threshold: float | None = None,
) -> tuple[SlowTest, ...]:
    """Return up to ``limit`` passed tests ordered by duration, slowest first.

    ``sorted`` is stable, so equal durations keep first-seen order.
    """
    if limit <= 0:
        return ()
    passed = [record for record in records if record.final_status is AttemptStatus.PASSED]
    ranked = sorted(passed, key=lambda record: record.final_attempt.duration_seconds, reverse=True)
    entries: list[SlowTest] = []
    for record in ranked[:limit]:
        duration = record.final_attempt.duration_seconds
        entries.append(
            SlowTest(
                test_id=record.case.test_id,
                title=record.identity.title,
                suite_title=record.identity.suite_title,
                duration_seconds=duration,
                exceeds_threshold=slow_test_threshold is not None and duration > slow_test_threshold,
            )
        )
    return tuple(entries)


def compute_metrics(
    records: Sequence[TestRecord],
    *,
    max_slow_tests: int,
    slow_test_threshold: float | None,
    started_at: float,
    finished_at: float,
) -> RunMetrics:
    """Derive every run metric from ``records`` without mutating them.

    The wall-clock duration comes from the run timestamps rather than the sum
    of test durations because tests execute concurrently across workers.
    """
    test_count, passed, failed, skipped = count_by_final_status(records)
    return RunMetrics(
        test_count=test_count,
        passed_count=passed,
        failed_count=failed,
        skipped_count=skipped,
        average_passed_duration=average_passed_duration(records),
        slowest_tests=find_slowest_tests(records, max_slow_tests, slow_test_threshold=slow_test_threshold),
        total_wall_clock_duration=max(finished_at - started_at, 0.0),
    )


__all__ = [
    "RunMetrics",
    "SlowTest",
    "average_passed_duration",
    "compute_metrics",
    "count_by_final_status",
    "find_slowest_tests",
]
