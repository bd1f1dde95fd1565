from __future__ import annotations

from areport.classifier import FailureCategory
from areport.metrics import compute_metrics
from areport.records import AttemptStatus
from areport.summary import NO_TESTS_DISCOVERED, BuildInfo, build_failures, build_run_summary

from conftest import make_attempt, make_case, make_records, make_summary


def test_failing_timeout_test_is_categorised() -> None:
    records = make_records(
        (make_case("passes"), [make_attempt(AttemptStatus.PASSED, 1.0)]),
        (make_case("slow page"), [make_attempt(AttemptStatus.FAILED, 5.0, "Navigation timeout of 5000ms exceeded")]),
    )

    summary = make_summary(records)

    assert summary.failed_count == 1
    [failure] = summary.failures
    assert failure.category is FailureCategory.TIMEOUT
    assert failure.test_title == "slow page"
    assert failure.suite_title == "Checkout"
    assert failure.is_timeout is False


def test_failure_uses_final_attempt_error() -> None:
    records = make_records(
        (
            make_case("retried"),
            [
                make_attempt(AttemptStatus.FAILED, 1.0, "net::ERR_CONNECTION_RESET"),
                make_attempt(AttemptStatus.TIMED_OUT, 2.0, "Test timeout of 2000ms exceeded"),
            ],
        ),
    )

    [failure] = build_failures(records)

    assert failure.error_message == "Test timeout of 2000ms exceeded"
    assert failure.is_timeout is True
    assert failure.duration_seconds == 2.0


def test_failure_without_error_gets_placeholder_message() -> None:
    records = make_records((make_case("silent"), [make_attempt(AttemptStatus.FAILED, 1.0)]))

    [failure] = build_failures(records)

    assert failure.error_message == "Unknown error"
    assert failure.category is FailureCategory.UNKNOWN


def test_passed_after_retry_and_interrupted_tests_produce_no_failure() -> None:
    records = make_records(
        (make_case("flaky"), [make_attempt(AttemptStatus.FAILED, 1.0, "x"), make_attempt(AttemptStatus.PASSED)]),
        (make_case("stopped"), [make_attempt(AttemptStatus.INTERRUPTED)]),
    )

    summary = make_summary(records)

    assert summary.failures == []
    assert summary.failed_count == 1


def test_zero_tests_yields_sentinel() -> None:
    metrics = compute_metrics((), max_slow_tests=3, slow_test_threshold=None, started_at=0.0, finished_at=1.0)

    assert build_run_summary((), metrics) is NO_TESTS_DISCOVERED


def test_summary_serialises_to_json_ready_dict() -> None:
    records = make_records((make_case("a"), [make_attempt(AttemptStatus.SKIPPED, 0.0)]))

    summary = make_summary(records, BuildInfo(branch="main", commit_id="abc"))
    data = summary.to_json_dict()

    assert data["skipped_count"] == 1
    assert data["build_info"]["branch"] == "main"
    assert summary.skipped_fraction == 1.0
