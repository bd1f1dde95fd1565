"""Immutable aggregate results built once at the end of a run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from .classifier import FailureCategory, classify
from .metrics import RunMetrics, SlowTest
from .records import FAILING_STATUSES, AttemptStatus, Location, TestRecord


class FrozenModel(BaseModel):
    """Base model for aggregates that must not change once built."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class BuildInfo(FrozenModel):
    """CI metadata attached to a run summary."""

    build_id: Optional[str] = None
    build_url: Optional[str] = None
    branch: Optional[str] = None
    commit_id: Optional[str] = None
    environment: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


class Failure(FrozenModel):
    """A failing test surfaced from its final attempt."""

    test_id: str
    test_title: str
    suite_title: str
    error_message: str
    error_stack: str = ""
    category: FailureCategory = FailureCategory.UNKNOWN
    duration_seconds: float = 0.0
    is_timeout: bool = False
    test_file: Optional[str] = None
    location: Optional[Location] = None
    owning_team: str = "Unknown"


class RunSummary(FrozenModel):
    """Aggregate produced exactly once per run and consumed by the pipeline."""

    test_count: int
    passed_count: int
    failed_count: int
    skipped_count: int
    average_passed_duration: float
    slowest_tests: List[SlowTest] = Field(default_factory=list)
    failures: List[Failure] = Field(default_factory=list)
    total_wall_clock_duration: float = 0.0
    build_info: BuildInfo = Field(default_factory=BuildInfo)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def skipped_fraction(self) -> float:
        if self.test_count <= 0:
            return 0.0
        return self.skipped_count / self.test_count

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


@dataclass(frozen=True, slots=True)
class NoTestsDiscovered:
    """Terminal marker returned instead of a summary when the run had no tests."""

    reason: str = "No tests found"


NO_TESTS_DISCOVERED = NoTestsDiscovered()

SummaryResult = Union[RunSummary, NoTestsDiscovered]


def build_failure(record: TestRecord) -> Failure:
    """Build the failure for ``record`` from the error of its final attempt."""
    final = record.final_attempt
    first_error = final.errors[0] if final.errors else None
    message = (first_error.message if first_error else "") or "Unknown error"
    case = record.case
    return Failure(
        test_id=case.test_id,
        test_title=record.identity.title,
        suite_title=record.identity.suite_title,
        error_message=message,
        error_stack=(first_error.stack if first_error else "") or "",
        category=classify(message),
        duration_seconds=final.duration_seconds,
        is_timeout=final.status is AttemptStatus.TIMED_OUT,
        test_file=case.test_file,
        location=case.location,
        owning_team=case.owning_team,
    )


def build_failures(records: Sequence[TestRecord]) -> list[Failure]:
    """Return one failure per record whose final attempt failed or timed out."""
    return [build_failure(record) for record in records if record.final_status in FAILING_STATUSES]


def build_run_summary(
    records: Sequence[TestRecord],
    metrics: RunMetrics,
    build_info: BuildInfo | None = None,
) -> SummaryResult:
    """Assemble the run summary, or signal that no tests were discovered."""
    if metrics.test_count == 0:
        return NO_TESTS_DISCOVERED
    return RunSummary(
        test_count=metrics.test_count,
        passed_count=metrics.passed_count,
        failed_count=metrics.failed_count,
        skipped_count=metrics.skipped_count,
        average_passed_duration=metrics.average_passed_duration,
        slowest_tests=list(metrics.slowest_tests),
        failures=build_failures(records),
        total_wall_clock_duration=metrics.total_wall_clock_duration,
        build_info=build_info or BuildInfo(),
    )


__all__ = [
    "NO_TESTS_DISCOVERED",
    "BuildInfo",
    "Failure",
    "NoTestsDiscovered",
    "RunSummary",
    "SummaryResult",
    "build_failure",
    "build_failures",
    "build_run_summary",
]
