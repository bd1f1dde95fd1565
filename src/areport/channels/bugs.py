"""Bug-filing channel: one tracker entry per failure."""

from __future__ import annotations

import logging
from typing import Sequence

from ..errors import ErrorKind, ProviderError
from ..prompts import bug_labels, render_bug_description, render_bug_title
from ..providers.base import BugDetails, BugInfo, BugPriority, BugTrackerProvider
from ..records import TestRecord
from ..summary import Failure, RunSummary
from .base import Channel, ChannelName, ChannelReport
from .fix import failure_item

LOGGER = logging.getLogger(__name__)


def build_bug_details(failure: Failure) -> BugDetails:
    return BugDetails(
        title=render_bug_title(failure),
        description=render_bug_description(failure),
        priority=BugPriority.HIGH if failure.is_timeout else BugPriority.MEDIUM,
        failure=failure,
        labels=bug_labels(failure),
        assignee=failure.owning_team,
    )


class BugFilingChannel(Channel):
    name = ChannelName.BUG_FILING

    def execute(self, summary: RunSummary, records: Sequence[TestRecord], report: ChannelReport) -> None:
        if not summary.failures:
            return
        tracker = self.context.bug_tracker()
        for failure in summary.failures:
            item = failure_item(failure)
            info = self.run_item(report, item, lambda: self._file(tracker, failure))
            if info is not None:
                report.succeed_item(item, detail=info.url)

    def _file(self, tracker: BugTrackerProvider, failure: Failure) -> BugInfo:
        info = tracker.create_bug(build_bug_details(failure))
        if info is None:
            raise ProviderError("Bug tracker did not return a bug.", kind=ErrorKind.REJECTED)
        LOGGER.info("Filed bug %s for %s: %s", info.id, failure.test_title, info.url)
        return info


__all__ = ["BugFilingChannel", "build_bug_details"]
