"""Narrow collaborator interfaces consumed by the post-run pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence, runtime_checkable

from ..summary import Failure, RunSummary


class BugPriority(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class BugStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class NotificationSeverity(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"


@dataclass(slots=True)
class BugDetails:
    """Payload describing a bug to file for a failing test."""

    title: str
    description: str
    priority: BugPriority
    failure: Failure
    labels: List[str] = field(default_factory=list)
    assignee: Optional[str] = None


@dataclass(slots=True)
class BugInfo:
    id: str
    url: str
    status: BugStatus = BugStatus.OPEN
    title: str = ""


@dataclass(slots=True)
class FileChange:
    path: str
    content: str
    action: Literal["add", "modify", "delete"] = "modify"


@dataclass(slots=True)
class PullRequestOptions:
    source_branch: str
    target_branch: str
    title: str
    description: str
    labels: List[str] = field(default_factory=list)
    reviewers: List[str] = field(default_factory=list)
    draft: bool = True


@dataclass(slots=True)
class PullRequestInfo:
    id: str
    number: int
    url: str
    status: Literal["open", "merged", "closed"] = "open"
    source_branch: str = ""
    target_branch: str = ""


@dataclass(slots=True)
class TestRunRow:
    """Run-level row persisted by the database channel."""

    __test__ = False

    name: str
    timestamp: datetime
    total_tests: int
    passed_tests: int
    failed_tests: int
    skipped_tests: int
    duration: float
    environment: Optional[str] = None
    branch: Optional[str] = None
    commit_hash: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TestResultRow:
    """Per-test row linked to a run row by ``test_run_id``."""

    __test__ = False

    test_run_id: str
    test_id: str
    test_title: str
    suite_title: str
    status: str
    duration: float
    timestamp: datetime
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    retries: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class NotificationOptions:
    recipients: List[str]
    subject: Optional[str] = None
    severity: NotificationSeverity = NotificationSeverity.INFO


@dataclass(slots=True)
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@runtime_checkable
class AIFixProvider(Protocol):
    def generate_completion(self, prompt: str) -> str:
        ...


@runtime_checkable
class BugTrackerProvider(Protocol):
    def create_bug(self, details: BugDetails) -> Optional[BugInfo]:
        ...


@runtime_checkable
class PRProvider(Protocol):
    def create_branch(self, name: str, base: str) -> bool:
        ...

    def commit_changes(self, branch: str, files: Sequence[FileChange], message: str) -> Optional[str]:
        ...

    def create_pull_request(self, options: PullRequestOptions) -> Optional[PullRequestInfo]:
        ...


@runtime_checkable
class DatabaseProvider(Protocol):
    def save_test_run(self, run: TestRunRow) -> str:
        ...

    def save_test_result(self, result: TestResultRow) -> str:
        ...


@runtime_checkable
class NotificationProvider(Protocol):
    def send_test_summary(self, summary: RunSummary, options: NotificationOptions) -> NotificationResult:
        ...

    def send_test_failures(self, failures: Sequence[Failure], options: NotificationOptions) -> NotificationResult:
        ...


__all__ = [
    "AIFixProvider",
    "BugDetails",
    "BugInfo",
    "BugPriority",
    "BugStatus",
    "BugTrackerProvider",
    "DatabaseProvider",
    "FileChange",
    "NotificationOptions",
    "NotificationProvider",
    "NotificationResult",
    "NotificationSeverity",
    "PRProvider",
    "PullRequestInfo",
    "PullRequestOptions",
    "TestResultRow",
    "TestRunRow",
]
