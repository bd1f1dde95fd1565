"""Shared channel vocabulary: names, states, per-item outcomes and errors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, TypeVar

from ..errors import ConfigurationError, ErrorKind, ProviderError, aborts_channel

if TYPE_CHECKING:
    from ..artifacts import ArtifactWriter
    from ..config import ReporterConfig
    from ..context import ProviderContext
    from ..records import TestRecord
    from ..summary import RunSummary

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class ChannelName(str, Enum):
    FIX_SUGGESTION = "fix_suggestion"
    PR_AUTOMATION = "pr_automation"
    BUG_FILING = "bug_filing"
    DB_PUBLISH = "db_publish"
    NOTIFICATION = "notification"


class ChannelState(str, Enum):
    DISABLED = "disabled"
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Top-level execution order; pr_automation runs inside fix_suggestion.
CHANNEL_SEQUENCE: tuple[ChannelName, ...] = (
    ChannelName.FIX_SUGGESTION,
    ChannelName.BUG_FILING,
    ChannelName.DB_PUBLISH,
    ChannelName.NOTIFICATION,
)

CONFIGURATION_HINTS = {
    ChannelName.FIX_SUGGESTION: "Configure providers.ai (kind: openai with OPENAI_API_KEY, or kind: offline).",
    ChannelName.PR_AUTOMATION: "Configure providers.pr (kind: github) and set GITHUB_TOKEN.",
    ChannelName.BUG_FILING: "Configure providers.bug_tracker (kind: github) and set GITHUB_TOKEN.",
    ChannelName.DB_PUBLISH: "Configure providers.database (kind: sqlite).",
    ChannelName.NOTIFICATION: (
        "Configure providers.notification (kind: email) and recipients, "
        "or set EMAIL_RECIPIENTS=dev@example.com,qa@example.com."
    ),
}

_KIND_HINTS = {
    ErrorKind.TRANSPORT: "Check network access to the collaborator and retry.",
    ErrorKind.REJECTED: "The collaborator refused the request; check credentials and permissions.",
    ErrorKind.IO: "Check that the file or database path is readable and writable.",
}


@dataclass(slots=True)
class ChannelError:
    """Classified failure of a channel or of one item inside it."""

    channel: ChannelName
    kind: ErrorKind
    message: str
    item: Optional[str] = None

    @property
    def hint(self) -> Optional[str]:
        if self.kind is ErrorKind.CONFIGURATION:
            return CONFIGURATION_HINTS[self.channel]
        return _KIND_HINTS.get(self.kind)

    def describe(self) -> str:
        target = f"{self.channel.value}[{self.item}]" if self.item else self.channel.value
        return f"{target} {self.kind.value}: {self.message}"


def classify_exception(channel: ChannelName, error: BaseException, item: Optional[str] = None) -> ChannelError:
    """Map an exception raised by a collaborator onto a ``ChannelError``."""
    if isinstance(error, ConfigurationError):
        kind = ErrorKind.CONFIGURATION
    elif isinstance(error, ProviderError):
        kind = error.kind
    elif isinstance(error, OSError):
        kind = ErrorKind.IO
    else:
        kind = ErrorKind.UNEXPECTED
    return ChannelError(channel=channel, kind=kind, message=str(error) or type(error).__name__, item=item)


class ChannelAborted(Exception):
    """Raised inside a channel to stop it; carries the classified cause."""

    def __init__(self, error: ChannelError) -> None:
        super().__init__(error.describe())
        self.error = error


@dataclass(slots=True)
class ItemOutcome:
    item: str
    succeeded: bool
    detail: str = ""
    error: Optional[ChannelError] = None


@dataclass(slots=True)
class ChannelReport:
    """State and per-item results of one channel for one run."""

    name: ChannelName
    state: ChannelState = ChannelState.PENDING
    items: List[ItemOutcome] = field(default_factory=list)
    error: Optional[ChannelError] = None

    @property
    def errors(self) -> list[ChannelError]:
        collected = [outcome.error for outcome in self.items if outcome.error is not None]
        if self.error is not None:
            collected.append(self.error)
        return collected

    @property
    def succeeded_items(self) -> list[ItemOutcome]:
        return [outcome for outcome in self.items if outcome.succeeded]

    @property
    def failed_items(self) -> list[ItemOutcome]:
        return [outcome for outcome in self.items if not outcome.succeeded]

    def start(self) -> None:
        self.state = ChannelState.RUNNING

    def succeed_item(self, item: str, detail: str = "") -> None:
        self.items.append(ItemOutcome(item=item, succeeded=True, detail=detail))

    def fail_item(self, error: ChannelError) -> None:
        self.items.append(ItemOutcome(item=error.item or "", succeeded=False, error=error))

    def abort(self, error: ChannelError) -> None:
        self.error = error
        self.state = ChannelState.FAILED

    def finish(self) -> None:
        """Settle the terminal state once every item has been processed."""
        if self.state is not ChannelState.RUNNING:
            return
        self.state = ChannelState.FAILED if self.failed_items else ChannelState.SUCCEEDED


class ItemRunner:
    """Collaborator access and per-item error isolation shared by channel stages."""

    name: ChannelName

    def __init__(
        self,
        config: "ReporterConfig",
        context: "ProviderContext",
        artifacts: "ArtifactWriter",
        *,
        now: Callable[[], datetime],
        reporter: Optional[Callable[[ChannelError], None]] = None,
    ) -> None:
        self.config = config
        self.context = context
        self.artifacts = artifacts
        self.now = now
        self._reporter = reporter

    def run_item(self, report: ChannelReport, item: str, action: Callable[[], T]) -> Optional[T]:
        """Run ``action`` for ``item``; item-scoped errors are recorded, channel-fatal ones abort."""
        try:
            return action()
        except ChannelAborted:
            raise
        except Exception as error:  # noqa: BLE001 - collaborator failures stop at the item boundary
            channel_error = classify_exception(report.name, error, item=item)
            if aborts_channel(channel_error.kind):
                raise ChannelAborted(channel_error) from error
            self.record_failure(report, channel_error)
            return None

    def record_failure(self, report: ChannelReport, error: ChannelError) -> None:
        LOGGER.warning("Channel %s failed for %s: %s", error.channel.value, error.item, error.message)
        report.fail_item(error)
        if self._reporter is not None:
            self._reporter(error)

    def reject(self, report: ChannelReport, item: str, message: str) -> None:
        self.record_failure(report, ChannelError(report.name, ErrorKind.REJECTED, message, item=item))


class Channel(ItemRunner):
    """One post-run side-effect stage driven by the pipeline."""

    def execute(self, summary: "RunSummary", records: Sequence["TestRecord"], report: ChannelReport) -> None:
        raise NotImplementedError


__all__ = [
    "CHANNEL_SEQUENCE",
    "CONFIGURATION_HINTS",
    "Channel",
    "ChannelAborted",
    "ChannelError",
    "ChannelName",
    "ChannelReport",
    "ChannelState",
    "ItemOutcome",
    "ItemRunner",
    "classify_exception",
]
