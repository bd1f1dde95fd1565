"""Human-readable console output for a run and its pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

import typer

from .records import AttemptStatus, TestError
from .summary import Failure, RunSummary

if TYPE_CHECKING:
    from .channels.base import ChannelError, ChannelReport
    from .exit_status import ExitStatus
    from .records import Attempt, TestCase

RULE = "=" * 47

_STATUS_STYLE = {
    AttemptStatus.PASSED: ("PASS", typer.colors.GREEN),
    AttemptStatus.FAILED: ("FAIL", typer.colors.RED),
    AttemptStatus.TIMED_OUT: ("TIMEOUT", typer.colors.RED),
    AttemptStatus.SKIPPED: ("SKIP", typer.colors.YELLOW),
    AttemptStatus.INTERRUPTED: ("INTERRUPTED", typer.colors.RED),
}


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, remainder = divmod(seconds, 60)
    return f"{int(minutes)}m {remainder:.2f}s"


class ConsoleRenderer:
    """Writes run progress with ``typer.secho``; ``quiet`` silences everything."""

    def __init__(
        self,
        *,
        show_stack_trace: bool = True,
        slow_test_threshold: float = 5.0,
        timeout_warning_threshold: float = 30.0,
        color: Optional[bool] = None,
        quiet: bool = False,
    ) -> None:
        self.show_stack_trace = show_stack_trace
        self.slow_test_threshold = slow_test_threshold
        self.timeout_warning_threshold = timeout_warning_threshold
        self.color = color
        self.quiet = quiet

    def _line(self, message: str = "", fg: Optional[str] = None, *, bold: bool = False, err: bool = False) -> None:
        if self.quiet:
            return
        typer.secho(message, fg=fg, bold=bold, err=err, color=self.color)

    def run_started(self, worker_count: Optional[int], toggles: dict[str, bool]) -> None:
        self._line(RULE, typer.colors.CYAN)
        self._line("Starting test run", typer.colors.CYAN, bold=True)
        if worker_count:
            self._line(f"Workers: {worker_count}", typer.colors.CYAN)
        enabled = [name for name, value in toggles.items() if value]
        self._line(f"Post-run channels: {', '.join(enabled) if enabled else 'none'}", typer.colors.CYAN)
        self._line(RULE, typer.colors.CYAN)

    def retry_started(self, case: "TestCase", attempt_index: int) -> None:
        self._line(f"Retrying {case.title} (retry #{attempt_index})", typer.colors.YELLOW)

    def attempt_finished(self, case: "TestCase", attempt: "Attempt") -> None:
        label, color = _STATUS_STYLE[attempt.status]
        message = f"{label} {case.identity.key} ({format_duration(attempt.duration_seconds)})"
        self._line(message, color)
        if attempt.status is AttemptStatus.PASSED and attempt.duration_seconds > self.slow_test_threshold:
            self._line(f"  slow: exceeded {self.slow_test_threshold:.2f}s threshold", typer.colors.YELLOW)
        if attempt.status is AttemptStatus.TIMED_OUT and attempt.duration_seconds >= self.timeout_warning_threshold:
            self._line(f"  timed out after {format_duration(attempt.duration_seconds)}", typer.colors.RED)

    def no_tests(self) -> None:
        self._line("No tests found", typer.colors.RED, bold=True)

    def summary(self, summary: RunSummary) -> None:
        self._line()
        self._line(RULE, typer.colors.CYAN)
        self._line("Test run summary", typer.colors.CYAN, bold=True)
        self._line(RULE, typer.colors.CYAN)
        self._line(f"Total tests:    {summary.test_count}")
        self._line(f"Passed:         {summary.passed_count}", typer.colors.GREEN)
        self._line(f"Failed:         {summary.failed_count}", typer.colors.RED if summary.failed_count else None)
        self._line(f"Skipped:        {summary.skipped_count}", typer.colors.YELLOW if summary.skipped_count else None)
        self._line(f"Average (pass): {format_duration(summary.average_passed_duration)}")
        self._line(f"Wall clock:     {format_duration(summary.total_wall_clock_duration)}")
        if summary.slowest_tests:
            self._line()
            self._line("Slowest tests:", typer.colors.CYAN)
            for index, slow in enumerate(summary.slowest_tests, start=1):
                color = typer.colors.YELLOW if slow.exceeds_threshold else None
                self._line(f"  {index}. {slow.title} ({format_duration(slow.duration_seconds)})", color)

    def failures(self, failures: Sequence[Failure]) -> None:
        if not failures:
            return
        self._line()
        self._line("Failing tests:", typer.colors.RED, bold=True)
        for failure in failures:
            where = f" [{failure.test_file}]" if failure.test_file else ""
            self._line(f"- {failure.suite_title} > {failure.test_title}{where}", typer.colors.RED)
            self._line(f"  {failure.category.value}: {failure.error_message}", typer.colors.RED)
            self._line(f"  Owner: {failure.owning_team}")
            if self.show_stack_trace and failure.error_stack:
                self._line(failure.error_stack, typer.colors.RED)

    def non_test_errors(self, errors: Sequence[TestError]) -> None:
        if not errors:
            return
        self._line()
        self._line("Setup or teardown errors:", typer.colors.RED, bold=True)
        for index, error in enumerate(errors, start=1):
            self._line(f"Error #{index}: {error.message}", typer.colors.RED)
            if self.show_stack_trace and error.stack:
                self._line(error.stack, typer.colors.RED)

    def interrupted(self) -> None:
        self._line()
        self._line("Some tests were interrupted. This may indicate a hang or timeout.", typer.colors.RED)

    def channel_started(self, report: "ChannelReport") -> None:
        self._line()
        self._line(f"Running {report.name.value}...", typer.colors.CYAN)

    def channel_finished(self, report: "ChannelReport") -> None:
        succeeded = len(report.succeeded_items)
        failed = len(report.failed_items)
        color = typer.colors.GREEN if report.error is None and not failed else typer.colors.YELLOW
        self._line(f"{report.name.value}: {report.state.value} ({succeeded} ok, {failed} failed)", color)

    def pipeline_warning(self, error: "ChannelError") -> None:
        self._line(f"Warning: {error.describe()}", typer.colors.YELLOW)
        if error.hint:
            self._line(f"  Hint: {error.hint}", typer.colors.YELLOW)

    def exit_status(self, status: "ExitStatus") -> None:
        color = typer.colors.GREEN if status.code == 0 else typer.colors.RED
        self._line(f"Run {status.value} (exit code {status.code})", color, bold=True)


__all__ = ["ConsoleRenderer", "format_duration"]
