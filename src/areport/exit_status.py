"""Terminal success/failure decision for a run."""

from __future__ import annotations

from enum import Enum
from typing import Sized


class ExitStatus(str, Enum):
    """Process exit signal decided once per run."""

    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def code(self) -> int:
        return 0 if self is ExitStatus.SUCCESS else 1


def has_errors(failures: Sized, non_test_errors: Sized, has_interrupted_tests: bool) -> bool:
    return bool(len(failures)) or bool(len(non_test_errors)) or has_interrupted_tests


def decide_exit_status(
    *,
    test_count: int,
    failures: Sized,
    non_test_errors: Sized,
    has_interrupted_tests: bool,
) -> ExitStatus:
    """Return ``SUCCESS`` only when tests ran and nothing errored.

    Only test, attempt, and setup/teardown state feed this decision; pipeline
    channel outcomes are not an input.
    """
    if test_count > 0 and not has_errors(failures, non_test_errors, has_interrupted_tests):
        return ExitStatus.SUCCESS
    return ExitStatus.FAILURE


__all__ = ["ExitStatus", "decide_exit_status", "has_errors"]
