"""SMTP notification collaborator sending plain-text run reports."""

from __future__ import annotations

import logging
import os
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Sequence

from ..summary import Failure, RunSummary
from .base import NotificationOptions, NotificationResult

LOGGER = logging.getLogger(__name__)


def summary_subject(summary: RunSummary) -> str:
    outcome = "Failed" if summary.failed_count > 0 else "Completed"
    return f"Test Run {outcome}: {summary.passed_count}/{summary.test_count} passed"


def render_summary_text(summary: RunSummary) -> str:
    lines = [
        "Test run summary",
        "",
        f"Total tests:     {summary.test_count}",
        f"Passed:          {summary.passed_count}",
        f"Failed:          {summary.failed_count}",
        f"Skipped:         {summary.skipped_count}",
        f"Average (pass):  {summary.average_passed_duration:.2f}s",
        f"Wall clock:      {summary.total_wall_clock_duration:.2f}s",
    ]
    info = summary.build_info
    if info.branch or info.commit_id or info.build_url:
        lines.append("")
        if info.branch:
            lines.append(f"Branch:  {info.branch}")
        if info.commit_id:
            lines.append(f"Commit:  {info.commit_id}")
        if info.build_url:
            lines.append(f"Build:   {info.build_url}")
    if summary.slowest_tests:
        lines.extend(["", "Slowest tests:"])
        for index, slow in enumerate(summary.slowest_tests, start=1):
            lines.append(f"  {index}. {slow.title} ({slow.duration_seconds:.2f}s)")
    if summary.failures:
        lines.extend(["", "Failures:"])
        lines.extend(f"  - {failure.test_title} [{failure.category.value}]" for failure in summary.failures)
    return "\n".join(lines) + "\n"


def render_failures_text(failures: Sequence[Failure]) -> str:
    blocks = [f"{len(failures)} test(s) failed", ""]
    for index, failure in enumerate(failures, start=1):
        blocks.append(f"{index}. {failure.test_title}")
        blocks.append(f"   Suite:    {failure.suite_title}")
        blocks.append(f"   File:     {failure.test_file or 'unknown'}")
        blocks.append(f"   Category: {failure.category.value}")
        blocks.append(f"   Owner:    {failure.owning_team}")
        blocks.append(f"   Error:    {failure.error_message}")
        blocks.append("")
    return "\n".join(blocks)


class EmailNotificationProvider:
    """Sends summary and failure reports through an SMTP relay."""

    def __init__(
        self,
        *,
        smtp_host: str,
        smtp_port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "areport@localhost",
        use_tls: bool = True,
        use_ssl: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self._host = smtp_host
        self._port = smtp_port
        self._username = username or os.getenv("SMTP_USERNAME")
        self._password = password or os.getenv("SMTP_PASSWORD")
        self._sender = sender
        self._use_tls = use_tls
        self._use_ssl = use_ssl
        self._timeout = timeout

    def send_test_summary(self, summary: RunSummary, options: NotificationOptions) -> NotificationResult:
        subject = options.subject or summary_subject(summary)
        return self._send(options, subject, render_summary_text(summary))

    def send_test_failures(self, failures: Sequence[Failure], options: NotificationOptions) -> NotificationResult:
        subject = options.subject or f"Test Failures: {len(failures)} test(s) failed"
        return self._send(options, subject, render_failures_text(failures))

    def _send(self, options: NotificationOptions, subject: str, body: str) -> NotificationResult:
        if not options.recipients:
            return NotificationResult(success=False, error="No recipients")

        message = EmailMessage()
        message["Subject"] = f"[{options.severity.value}] {subject}"
        message["From"] = self._sender
        message["To"] = ", ".join(options.recipients)
        message_id = make_msgid(domain=self._sender.rpartition("@")[2] or None)
        message["Message-ID"] = message_id
        message.set_content(body)

        try:
            self._deliver(message)
        except (smtplib.SMTPException, OSError) as error:
            LOGGER.warning("SMTP delivery to %s failed: %s", message["To"], error)
            return NotificationResult(success=False, error=str(error))
        LOGGER.info("Sent %r to %d recipient(s)", subject, len(options.recipients))
        return NotificationResult(success=True, message_id=message_id)

    def _deliver(self, message: EmailMessage) -> None:
        if self._use_ssl:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout, context=context) as server:
                self._login_and_send(server, message)
            return
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls(context=ssl.create_default_context())
            self._login_and_send(server, message)

    def _login_and_send(self, server: smtplib.SMTP, message: EmailMessage) -> None:
        if self._username and self._password:
            server.login(self._username, self._password)
        server.send_message(message)


__all__ = [
    "EmailNotificationProvider",
    "render_failures_text",
    "render_summary_text",
    "summary_subject",
]
