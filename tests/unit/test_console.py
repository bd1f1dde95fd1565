from __future__ import annotations

from areport.channels import ChannelError, ChannelName
from areport.console import ConsoleRenderer, format_duration
from areport.errors import ErrorKind
from areport.exit_status import ExitStatus
from areport.records import AttemptStatus

from conftest import make_attempt, make_case, make_records, make_summary


def test_format_duration() -> None:
    assert format_duration(1.234) == "1.23s"
    assert format_duration(75.5) == "1m 15.50s"


def test_summary_and_failures_are_rendered(capsys) -> None:
    records = make_records(
        (make_case("ok"), [make_attempt(AttemptStatus.PASSED, 6.0)]),
        (make_case("broken"), [make_attempt(AttemptStatus.FAILED, 1.0, "expected 2")]),
    )
    summary = make_summary(records)
    console = ConsoleRenderer(show_stack_trace=False, color=False)

    console.summary(summary)
    console.failures(summary.failures)
    console.exit_status(ExitStatus.FAILURE)

    out = capsys.readouterr().out
    assert "Total tests:    2" in out
    assert "1. ok (6.00s)" in out
    assert "- Checkout > broken" in out
    assert "AssertionError: expected 2" in out
    assert "Error: expected 2\n    at spec:1" not in out
    assert "Run failure (exit code 1)" in out


def test_pipeline_warning_includes_hint(capsys) -> None:
    console = ConsoleRenderer(color=False)

    console.pipeline_warning(ChannelError(ChannelName.DB_PUBLISH, ErrorKind.CONFIGURATION, "missing"))

    out = capsys.readouterr().out
    assert "Warning: db_publish configuration: missing" in out
    assert "Hint: Configure providers.database (kind: sqlite)." in out


def test_quiet_renderer_prints_nothing(capsys) -> None:
    console = ConsoleRenderer(quiet=True)

    console.no_tests()
    console.attempt_finished(make_case("a"), make_attempt(AttemptStatus.PASSED))

    assert capsys.readouterr().out == ""
