"""Keyed per-test attempt state accumulated while the runner executes tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from .errors import StoreFrozenError


class AttemptStatus(str, Enum):
    """Outcome of a single test attempt, using the runner's vocabulary."""

    PASSED = "passed"
    FAILED = "failed"
    TIMED_OUT = "timedOut"
    SKIPPED = "skipped"
    INTERRUPTED = "interrupted"


FAILING_STATUSES: frozenset[AttemptStatus] = frozenset({AttemptStatus.FAILED, AttemptStatus.TIMED_OUT})


@dataclass(frozen=True, slots=True)
class TestIdentity:
    """Stable key of a test: the suite path plus the test title."""

    __test__ = False

    suite: tuple[str, ...]
    title: str

    @property
    def suite_title(self) -> str:
        """Return the innermost suite name, as shown in reports."""
        return self.suite[-1] if self.suite else "Unknown Suite"

    @property
    def key(self) -> str:
        return " > ".join((*self.suite, self.title))


@dataclass(frozen=True, slots=True)
class Location:
    """Source position of a test declaration."""

    file: str
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass(frozen=True, slots=True)
class TestCase:
    """Runner-supplied description of a test, carrying its identity."""

    __test__ = False

    identity: TestIdentity
    test_id: str = ""
    location: Optional[Location] = None
    owning_team: str = "Unknown"

    @property
    def title(self) -> str:
        return self.identity.title

    @property
    def test_file(self) -> Optional[str]:
        return self.location.file if self.location else None


@dataclass(frozen=True, slots=True)
class TestError:
    """Error reported for an attempt or outside of any test."""

    __test__ = False

    message: str
    stack: str = ""


@dataclass(frozen=True, slots=True)
class Attempt:
    """One execution of a test. Immutable once appended to a record."""

    status: AttemptStatus
    duration_seconds: float
    errors: tuple[TestError, ...] = ()


@dataclass(slots=True)
class TestRecord:
    """All attempts observed for one test identity, in arrival order."""

    __test__ = False

    case: TestCase
    attempts: List[Attempt] = field(default_factory=list)

    @property
    def identity(self) -> TestIdentity:
        return self.case.identity

    @property
    def final_attempt(self) -> Attempt:
        return self.attempts[-1]

    @property
    def final_status(self) -> AttemptStatus:
        return self.final_attempt.status

    @property
    def retry_count(self) -> int:
        return len(self.attempts) - 1


class TestRecordStore:
    """Map of test identity to record, frozen once the run ends.

    Mutation is keyed strictly by identity. The runner never delivers
    overlapping events for the same test, so appends for one key are ordered
    and no locking is needed.
    """

    __test__ = False

    def __init__(self) -> None:
        self._records: dict[TestIdentity, TestRecord] = {}
        self._non_test_errors: list[TestError] = []
        self._has_interrupted_tests = False
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def has_interrupted_tests(self) -> bool:
        return self._has_interrupted_tests

    @property
    def non_test_errors(self) -> tuple[TestError, ...]:
        return tuple(self._non_test_errors)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TestRecord]:
        return iter(self._records.values())

    def get(self, identity: TestIdentity) -> Optional[TestRecord]:
        return self._records.get(identity)

    def records(self) -> tuple[TestRecord, ...]:
        """Return records in first-seen order."""
        return tuple(self._records.values())

    def record_attempt(self, case: TestCase, attempt: Attempt) -> TestRecord:
        """Append ``attempt`` to the record for ``case``, creating it on first sight."""
        self._ensure_mutable()
        record = self._records.get(case.identity)
        if record is None:
            record = TestRecord(case=case)
            self._records[case.identity] = record
        record.attempts.append(attempt)
        if attempt.status is AttemptStatus.INTERRUPTED:
            self._has_interrupted_tests = True
        return record

    def add_non_test_error(self, error: TestError) -> None:
        """Track a setup/teardown error that is not attached to any test."""
        self._ensure_mutable()
        self._non_test_errors.append(error)

    def freeze(self) -> None:
        self._frozen = True

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise StoreFrozenError("Test record store is frozen; the run has already ended.")


__all__ = [
    "FAILING_STATUSES",
    "Attempt",
    "AttemptStatus",
    "Location",
    "TestCase",
    "TestError",
    "TestIdentity",
    "TestRecord",
    "TestRecordStore",
]
