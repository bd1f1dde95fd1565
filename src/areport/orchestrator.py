"""Sequences the post-run side-effect channels and isolates their failures."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from .artifacts import ArtifactWriter
from .channels import (
    CHANNEL_SEQUENCE,
    BugFilingChannel,
    Channel,
    ChannelAborted,
    ChannelError,
    ChannelName,
    ChannelReport,
    ChannelState,
    DatabasePublishChannel,
    FixSuggestionChannel,
    NotificationChannel,
    PRAutomation,
    classify_exception,
)
from .config import ReporterConfig
from .console import ConsoleRenderer
from .context import ProviderContext
from .records import TestRecord
from .summary import RunSummary

LOGGER = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PipelineReport:
    """Per-channel reports for one run, in execution order."""

    channels: Dict[ChannelName, ChannelReport] = field(default_factory=dict)

    def __getitem__(self, name: ChannelName) -> ChannelReport:
        return self.channels[name]

    def state(self, name: ChannelName) -> ChannelState:
        return self.channels[name].state

    @property
    def errors(self) -> list[ChannelError]:
        return [error for report in self.channels.values() for error in report.errors]

    @property
    def executed(self) -> list[ChannelName]:
        return [name for name, report in self.channels.items() if report.state is not ChannelState.DISABLED]


class PostRunPipeline:
    """Runs ``fix_suggestion`` (with nested ``pr_automation``), ``bug_filing``,
    ``db_publish`` and ``notification`` in that order, one item at a time.

    No exception raised by a collaborator leaves ``run()``: channel-fatal
    errors end that channel, item errors end that item, and every later
    channel still runs.
    """

    def __init__(
        self,
        config: ReporterConfig,
        context: ProviderContext,
        artifacts: Optional[ArtifactWriter] = None,
        *,
        console: Optional[ConsoleRenderer] = None,
        now: Callable[[], datetime] = utc_now,
        repo_root: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.context = context
        self.artifacts = artifacts or ArtifactWriter(config.output_dir)
        self.console = console or ConsoleRenderer(quiet=True)
        self.now = now
        self.repo_root = repo_root

    def is_enabled(self, name: ChannelName) -> bool:
        toggles = {
            ChannelName.FIX_SUGGESTION: self.config.generate_fix,
            ChannelName.PR_AUTOMATION: self.config.generate_pr and self.config.generate_fix,
            ChannelName.BUG_FILING: self.config.create_bug,
            ChannelName.DB_PUBLISH: self.config.publish_to_db,
            ChannelName.NOTIFICATION: self.config.send_email,
        }
        return toggles[name]

    def run(self, summary: RunSummary, records: Sequence[TestRecord]) -> PipelineReport:
        report = PipelineReport()
        for name in CHANNEL_SEQUENCE:
            report.channels[name] = ChannelReport(name=name)
            if name is ChannelName.FIX_SUGGESTION:
                report.channels[ChannelName.PR_AUTOMATION] = ChannelReport(name=ChannelName.PR_AUTOMATION)

        for name in CHANNEL_SEQUENCE:
            channel_report = report.channels[name]
            if not self.is_enabled(name):
                self._skip(channel_report)
                if name is ChannelName.FIX_SUGGESTION:
                    self._skip(report.channels[ChannelName.PR_AUTOMATION])
                continue

            pr_automation: Optional[PRAutomation] = None
            if name is ChannelName.FIX_SUGGESTION:
                pr_report = report.channels[ChannelName.PR_AUTOMATION]
                if self.is_enabled(ChannelName.PR_AUTOMATION):
                    pr_automation = PRAutomation(**self._channel_kwargs(), report=pr_report, repo_root=self.repo_root)
                else:
                    self._skip(pr_report)

            channel = self._build_channel(name, pr_automation)
            self._run_channel(channel, channel_report, summary, records)
            if pr_automation is not None:
                pr_automation.finish()
                if pr_report.state is not ChannelState.PENDING:
                    self.console.channel_finished(pr_report)
        return report

    def _skip(self, report: ChannelReport) -> None:
        report.state = ChannelState.DISABLED
        LOGGER.info("Skipping %s: disabled", report.name.value)

    def _channel_kwargs(self) -> dict:
        return {
            "config": self.config,
            "context": self.context,
            "artifacts": self.artifacts,
            "now": self.now,
            "reporter": self.console.pipeline_warning,
        }

    def _build_channel(self, name: ChannelName, pr_automation: Optional[PRAutomation]) -> Channel:
        kwargs = self._channel_kwargs()
        if name is ChannelName.FIX_SUGGESTION:
            return FixSuggestionChannel(**kwargs, pr_automation=pr_automation)
        if name is ChannelName.BUG_FILING:
            return BugFilingChannel(**kwargs)
        if name is ChannelName.DB_PUBLISH:
            return DatabasePublishChannel(**kwargs)
        if name is ChannelName.NOTIFICATION:
            return NotificationChannel(**kwargs)
        raise ValueError(f"{name.value} is not a top-level channel")

    def _run_channel(
        self,
        channel: Channel,
        report: ChannelReport,
        summary: RunSummary,
        records: Sequence[TestRecord],
    ) -> None:
        report.start()
        self.console.channel_started(report)
        try:
            channel.execute(summary, records, report)
        except ChannelAborted as aborted:
            self._abort(report, aborted.error)
        except Exception as error:  # noqa: BLE001 - channel failures never reach the run
            self._abort(report, classify_exception(report.name, error))
        else:
            report.finish()
        self.console.channel_finished(report)

    def _abort(self, report: ChannelReport, error: ChannelError) -> None:
        LOGGER.warning("Channel %s aborted (%s): %s", report.name.value, error.kind.value, error.message)
        report.abort(error)
        self.console.pipeline_warning(error)


__all__ = ["PipelineReport", "PostRunPipeline"]
