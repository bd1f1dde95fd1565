from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from areport.errors import ErrorKind, ProviderError  # noqa: E402
from areport.metrics import compute_metrics  # noqa: E402
from areport.providers.base import (  # noqa: E402
    BugDetails,
    BugInfo,
    FileChange,
    NotificationOptions,
    NotificationResult,
    PullRequestInfo,
    PullRequestOptions,
    TestResultRow,
    TestRunRow,
)
from areport.records import (  # noqa: E402
    Attempt,
    AttemptStatus,
    Location,
    TestCase,
    TestError,
    TestIdentity,
    TestRecord,
    TestRecordStore,
)
from areport.summary import BuildInfo, Failure, RunSummary, build_run_summary  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 45, tzinfo=timezone.utc)

FIX_WITH_CODE = (
    "## Analysis\n\nThe locator changed.\n\n"
    "```python\n"
    "def test_checkout():\n"
    "    assert cart.total() == 10\n"
    "```\n"
)


def fixed_now() -> datetime:
    return FIXED_NOW


def make_case(
    title: str,
    *,
    suite: Sequence[str] = ("checkout", "Checkout"),
    test_id: Optional[str] = None,
    file: Optional[str] = None,
    line: Optional[int] = 3,
    owner: str = "Unknown",
) -> TestCase:
    return TestCase(
        identity=TestIdentity(suite=tuple(suite), title=title),
        test_id=test_id if test_id is not None else f"id-{title.replace(' ', '-')}",
        location=Location(file=file, line=line, column=1) if file else None,
        owning_team=owner,
    )


def make_attempt(status: AttemptStatus, duration: float = 1.0, message: Optional[str] = None) -> Attempt:
    errors = (TestError(message=message, stack=f"Error: {message}\n    at spec:1"),) if message else ()
    return Attempt(status=status, duration_seconds=duration, errors=errors)


def make_records(*entries: tuple[TestCase, Sequence[Attempt]]) -> tuple[TestRecord, ...]:
    store = TestRecordStore()
    for case, attempts in entries:
        for attempt in attempts:
            store.record_attempt(case, attempt)
    store.freeze()
    return store.records()


def make_summary(records: Sequence[TestRecord], build_info: Optional[BuildInfo] = None) -> RunSummary:
    metrics = compute_metrics(
        records,
        max_slow_tests=3,
        slow_test_threshold=5.0,
        started_at=100.0,
        finished_at=112.5,
    )
    summary = build_run_summary(records, metrics, build_info)
    assert isinstance(summary, RunSummary)
    return summary


@dataclass
class FakeAI:
    """Fix-suggestion collaborator answering with a canned suggestion."""

    journal: List[tuple] = field(default_factory=list)
    response: str = FIX_WITH_CODE
    fail_when: Iterable[str] = ()
    prompts: List[str] = field(default_factory=list)

    def generate_completion(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.journal.append(("ai", len(self.prompts)))
        for marker in self.fail_when:
            if marker in prompt:
                raise ProviderError("model unavailable", kind=ErrorKind.TRANSPORT)
        return self.response


@dataclass
class FakeBugTracker:
    journal: List[tuple] = field(default_factory=list)
    fail_titles: Iterable[str] = ()
    filed: List[BugDetails] = field(default_factory=list)

    def create_bug(self, details: BugDetails) -> Optional[BugInfo]:
        self.journal.append(("bug", details.failure.test_title))
        if details.failure.test_title in self.fail_titles:
            raise ProviderError("issue tracker rejected the request", kind=ErrorKind.REJECTED)
        self.filed.append(details)
        number = len(self.filed)
        return BugInfo(id=str(number), url=f"https://tracker.example/issues/{number}", title=details.title)


@dataclass
class FakePR:
    journal: List[tuple] = field(default_factory=list)
    branch_ok: bool = True
    fail_branch_for: Iterable[str] = ()
    branches: List[tuple[str, str]] = field(default_factory=list)
    commits: List[tuple[str, List[FileChange], str]] = field(default_factory=list)
    pull_requests: List[PullRequestOptions] = field(default_factory=list)

    def create_branch(self, name: str, base: str) -> bool:
        self.journal.append(("pr_branch", name))
        if any(marker in name for marker in self.fail_branch_for):
            raise ProviderError("branch exists", kind=ErrorKind.REJECTED)
        self.branches.append((name, base))
        return self.branch_ok

    def commit_changes(self, branch: str, files: Sequence[FileChange], message: str) -> Optional[str]:
        self.journal.append(("pr_commit", branch))
        self.commits.append((branch, list(files), message))
        return "abc1234def5678"

    def create_pull_request(self, options: PullRequestOptions) -> Optional[PullRequestInfo]:
        self.journal.append(("pr_open", options.source_branch))
        self.pull_requests.append(options)
        number = len(self.pull_requests)
        return PullRequestInfo(
            id=f"pr-{number}",
            number=number,
            url=f"https://git.example/pull/{number}",
            source_branch=options.source_branch,
            target_branch=options.target_branch,
        )


@dataclass
class FakeDatabase:
    journal: List[tuple] = field(default_factory=list)
    fail_run: bool = False
    fail_results_for: Iterable[str] = ()
    runs: List[TestRunRow] = field(default_factory=list)
    results: List[TestResultRow] = field(default_factory=list)

    def save_test_run(self, run: TestRunRow) -> str:
        self.journal.append(("db_run", run.name))
        if self.fail_run:
            raise ProviderError("database is locked", kind=ErrorKind.IO)
        self.runs.append(run)
        return f"run-{len(self.runs)}"

    def save_test_result(self, result: TestResultRow) -> str:
        self.journal.append(("db_result", result.test_id))
        if result.test_id in self.fail_results_for:
            raise ProviderError("constraint failed", kind=ErrorKind.IO)
        self.results.append(result)
        return f"result-{len(self.results)}"


@dataclass
class FakeNotifier:
    journal: List[tuple] = field(default_factory=list)
    succeed: bool = True
    summaries: List[tuple[RunSummary, NotificationOptions]] = field(default_factory=list)
    failure_reports: List[tuple[List[Failure], NotificationOptions]] = field(default_factory=list)

    def send_test_summary(self, summary: RunSummary, options: NotificationOptions) -> NotificationResult:
        self.journal.append(("notify_summary", options.severity.value))
        self.summaries.append((summary, options))
        return self._result()

    def send_test_failures(self, failures: Sequence[Failure], options: NotificationOptions) -> NotificationResult:
        self.journal.append(("notify_failures", len(failures)))
        self.failure_reports.append((list(failures), options))
        return self._result()

    def _result(self) -> NotificationResult:
        if self.succeed:
            return NotificationResult(success=True, message_id="<msg@example>")
        return NotificationResult(success=False, error="relay refused")


@dataclass
class Fakes:
    journal: List[tuple]
    ai: FakeAI
    bug_tracker: FakeBugTracker
    pr: FakePR
    database: FakeDatabase
    notifier: FakeNotifier

    def instances(self) -> dict[str, Any]:
        return {
            "ai": self.ai,
            "bug_tracker": self.bug_tracker,
            "pr": self.pr,
            "database": self.database,
            "notification": self.notifier,
        }


@pytest.fixture()
def fakes() -> Fakes:
    """Recording collaborators sharing one call journal."""
    journal: List[tuple] = []
    return Fakes(
        journal=journal,
        ai=FakeAI(journal=journal),
        bug_tracker=FakeBugTracker(journal=journal),
        pr=FakePR(journal=journal),
        database=FakeDatabase(journal=journal),
        notifier=FakeNotifier(journal=journal),
    )


@pytest.fixture()
def spec_file(tmp_path: Path) -> Callable[[str], Path]:
    """Write a throwaway test source file and return its path."""

    def _write(name: str = "test_checkout.py", content: str = "def test_checkout():\n    assert False\n") -> Path:
        path = tmp_path / "suite" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
