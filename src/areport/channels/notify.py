"""Notification channel: a summary message and, when needed, a failures message."""

from __future__ import annotations

import logging
import os
from typing import Sequence

from ..errors import ConfigurationError, ErrorKind, ProviderError
from ..providers.base import NotificationOptions, NotificationResult, NotificationSeverity
from ..records import TestRecord
from ..summary import RunSummary
from .base import Channel, ChannelName, ChannelReport

LOGGER = logging.getLogger(__name__)

SKIPPED_WARNING_FRACTION = 0.2


def notification_severity(summary: RunSummary) -> NotificationSeverity:
    if summary.failures:
        return NotificationSeverity.ERROR
    if summary.skipped_fraction > SKIPPED_WARNING_FRACTION:
        return NotificationSeverity.WARNING
    return NotificationSeverity.INFO


def _checked(result: NotificationResult) -> NotificationResult:
    if not result.success:
        raise ProviderError(result.error or "Notification was not delivered.", kind=ErrorKind.REJECTED)
    return result


class NotificationChannel(Channel):
    name = ChannelName.NOTIFICATION

    def execute(self, summary: RunSummary, records: Sequence[TestRecord], report: ChannelReport) -> None:
        recipients = self.config.resolved_recipients(os.environ)
        if not recipients:
            raise ConfigurationError("No notification recipients configured.")
        notifier = self.context.notification()

        outcome = "Failed" if summary.failures else "Completed"
        summary_options = NotificationOptions(
            recipients=recipients,
            subject=f"Test Run {outcome}: {summary.passed_count}/{summary.test_count} passed",
            severity=notification_severity(summary),
        )
        sent = self.run_item(report, "summary", lambda: _checked(notifier.send_test_summary(summary, summary_options)))
        if sent is not None:
            report.succeed_item("summary", detail=sent.message_id or "")

        if not summary.failures:
            return
        failure_options = NotificationOptions(
            recipients=recipients,
            subject=f"Test Failures: {len(summary.failures)} test(s) failed",
            severity=NotificationSeverity.ERROR,
        )
        sent = self.run_item(
            report,
            "failures",
            lambda: _checked(notifier.send_test_failures(summary.failures, failure_options)),
        )
        if sent is not None:
            report.succeed_item("failures", detail=sent.message_id or "")
        LOGGER.info("Notified %d recipient(s)", len(recipients))


__all__ = ["NotificationChannel", "notification_severity"]
