"""pytest plugin feeding runner events into ``RunReporter``.

Inert unless ``--areport`` is passed. One attempt spans the setup, call and
teardown reports of a test; a ``rerun`` report (pytest-rerunfailures) closes
the current attempt as failed and the next report opens a new one.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from .config import DEFAULT_CONFIG_NAME, ReporterConfig, load_config
from .errors import ConfigurationError
from .records import AttemptStatus, Location, TestCase, TestError, TestIdentity
from .reporter import AttemptResult, RunInfo, RunReporter

LOGGER = logging.getLogger(__name__)

PLUGIN_NAME = "areport-reporter"
WORKER_PLUGIN_NAME = "areport-worker"
OWNER_MARKER = "owner"
OWNER_PROPERTY = "areport_owner"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("areport", "areport test-run reporting")
    group.addoption(
        "--areport",
        action="store_true",
        default=False,
        help="Report the run with areport and run its post-run pipeline.",
    )
    group.addoption(
        "--areport-config",
        default=None,
        help=f"Path to the areport YAML config (default: {DEFAULT_CONFIG_NAME} in the rootdir, if present).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", f"{OWNER_MARKER}(team): team that owns the test, used in bug reports")
    if not config.getoption("areport"):
        return
    if hasattr(config, "workerinput"):
        # xdist worker: reports are forwarded to the controller, which aggregates the run.
        config.pluginmanager.register(OwnerPropagation(), WORKER_PLUGIN_NAME)
        return
    reporter = RunReporter(_load_reporter_config(config), repo_root=Path(config.rootpath))
    config.pluginmanager.register(AReportPlugin(reporter, Path(config.rootpath)), PLUGIN_NAME)
    LOGGER.debug("areport plugin registered (output_dir=%s)", reporter.config.output_dir)


def _load_reporter_config(config: pytest.Config) -> ReporterConfig:
    explicit = config.getoption("areport_config")
    path = Path(explicit) if explicit else Path(config.rootpath) / DEFAULT_CONFIG_NAME
    if not explicit and not path.exists():
        return ReporterConfig()
    try:
        return load_config(path)
    except ConfigurationError as error:
        raise pytest.UsageError(str(error)) from error


def split_nodeid(nodeid: str) -> tuple[tuple[str, ...], str]:
    """``tests/test_a.py::TestX::test_y`` -> ``(("tests/test_a.py", "TestX"), "test_y")``."""
    parts = nodeid.split("::")
    if len(parts) == 1:
        return (), parts[0]
    return tuple(parts[:-1]), parts[-1]


def case_from_location(
    nodeid: str,
    location: tuple[str, Optional[int], str],
    rootpath: Path,
    owning_team: str = "Unknown",
) -> TestCase:
    suite, title = split_nodeid(nodeid)
    relpath, lineno, _domain = location
    return TestCase(
        identity=TestIdentity(suite=suite, title=title),
        test_id=nodeid,
        location=Location(
            file=(rootpath / relpath).as_posix(),
            line=lineno + 1 if lineno is not None else None,
        ),
        owning_team=owning_team,
    )


def _error_from_report(report: pytest.TestReport) -> TestError:
    longrepr = report.longrepr
    crash = getattr(longrepr, "reprcrash", None)
    text = report.longreprtext or ""
    if crash is not None and getattr(crash, "message", None):
        message = crash.message
    elif isinstance(longrepr, tuple) and len(longrepr) == 3:
        message = str(longrepr[2])
    else:
        lines = [line for line in text.splitlines() if line.strip()]
        message = lines[-1] if lines else f"{report.when} failed"
    return TestError(message=message, stack=text)


def _is_timeout(report: pytest.TestReport) -> bool:
    # pytest-timeout fails the test with "Failed: Timeout (>N.Ns) from pytest-timeout."
    return "Timeout" in (report.longreprtext or "") and "pytest-timeout" in (report.longreprtext or "")


def attempt_from_reports(reports: List[pytest.TestReport]) -> AttemptResult:
    """Fold the phase reports of one attempt into a single result."""
    duration = sum(report.duration for report in reports)
    errors = [_error_from_report(report) for report in reports if report.failed or report.outcome == "rerun"]
    if any(report.outcome == "rerun" for report in reports) or any(report.failed for report in reports):
        status = AttemptStatus.TIMED_OUT if any(_is_timeout(report) for report in reports) else AttemptStatus.FAILED
    elif any(report.skipped for report in reports):
        status = AttemptStatus.SKIPPED
    else:
        status = AttemptStatus.PASSED
    return AttemptResult(status=status, duration_seconds=duration, errors=errors)


def owner_of(item: pytest.Item) -> str:
    marker = item.get_closest_marker(OWNER_MARKER)
    return str(marker.args[0]) if marker is not None and marker.args else "Unknown"


def _owner_from_report(report: pytest.TestReport) -> str:
    for name, value in getattr(report, "user_properties", ()):
        if name == OWNER_PROPERTY:
            return str(value)
    return "Unknown"


class OwnerPropagation:
    """Worker-side hook carrying the owner marker to the controller in ``user_properties``."""

    def pytest_itemcollected(self, item: pytest.Item) -> None:
        item.user_properties.append((OWNER_PROPERTY, owner_of(item)))


class AReportPlugin:
    """Registered by ``pytest_configure`` when ``--areport`` is active."""

    def __init__(self, reporter: RunReporter, rootpath: Path) -> None:
        self.reporter = reporter
        self.rootpath = rootpath
        self._cases: Dict[str, TestCase] = {}
        self._attempts: Dict[str, int] = {}
        self._pending: Dict[str, List[pytest.TestReport]] = {}

    def _case(self, report: pytest.TestReport) -> TestCase:
        # Under xdist the controller never collects items; the case comes from the report.
        case = self._cases.get(report.nodeid)
        if case is None:
            case = case_from_location(report.nodeid, report.location, self.rootpath, _owner_from_report(report))
            self._cases[report.nodeid] = case
        return case

    @pytest.hookimpl(trylast=True)
    def pytest_sessionstart(self, session: pytest.Session) -> None:
        workers = getattr(session.config.option, "numprocesses", None)
        self.reporter.on_run_begin(RunInfo(worker_count=workers if isinstance(workers, int) else None))

    def pytest_itemcollected(self, item: pytest.Item) -> None:
        self._cases[item.nodeid] = case_from_location(item.nodeid, item.location, self.rootpath, owner_of(item))

    def pytest_collectreport(self, report: pytest.CollectReport) -> None:
        if report.failed:
            self.reporter.on_non_test_error(
                TestError(message=f"Collection failed: {report.nodeid or '<session>'}", stack=report.longreprtext)
            )

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        case = self._case(report)
        pending = self._pending.get(report.nodeid)
        if pending is None:
            pending = self._pending[report.nodeid] = []
            self.reporter.on_attempt_begin(case, self._attempts.get(report.nodeid, 0))
        pending.append(report)
        if report.when == "teardown" or report.outcome == "rerun":
            self._close_attempt(report.nodeid)

    def _close_attempt(self, nodeid: str) -> None:
        reports = self._pending.pop(nodeid)
        self._attempts[nodeid] = self._attempts.get(nodeid, 0) + 1
        self.reporter.on_attempt_end(self._cases[nodeid], attempt_from_reports(reports))

    def pytest_keyboard_interrupt(self, excinfo: pytest.ExceptionInfo[BaseException]) -> None:
        in_flight = list(self._pending)
        if not in_flight:
            self.reporter.on_non_test_error(TestError(message="Run interrupted", stack=str(excinfo.value)))
            return
        for nodeid in in_flight:
            reports = self._pending.pop(nodeid)
            self._attempts[nodeid] = self._attempts.get(nodeid, 0) + 1
            self.reporter.on_attempt_end(
                self._cases[nodeid],
                AttemptResult(
                    status=AttemptStatus.INTERRUPTED,
                    duration_seconds=sum(report.duration for report in reports),
                    errors=[TestError(message="Interrupted", stack=str(excinfo.value))],
                ),
            )

    def pytest_internalerror(self, excrepr: Any) -> None:
        self.reporter.on_non_test_error(TestError(message="pytest internal error", stack=str(excrepr)))

    @pytest.hookimpl(trylast=True)
    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        outcome = self.reporter.on_run_end()
        if outcome.exit_code and session.exitstatus == pytest.ExitCode.OK:
            session.exitstatus = pytest.ExitCode.TESTS_FAILED


__all__ = [
    "AReportPlugin",
    "OwnerPropagation",
    "attempt_from_reports",
    "case_from_location",
    "owner_of",
    "split_nodeid",
]
