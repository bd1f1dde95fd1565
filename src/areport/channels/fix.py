"""Fix-suggestion channel with per-failure pull-request automation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..artifacts import failure_stem, record_stem
from ..prompts import render_fix_prompt
from ..records import AttemptStatus, TestRecord
from ..summary import Failure, RunSummary
from .base import Channel, ChannelName, ChannelReport
from .pr import PRAutomation

LOGGER = logging.getLogger(__name__)


def failure_item(failure: Failure) -> str:
    return failure.test_id or failure.test_title


class FixSuggestionChannel(Channel):
    """Builds a prompt per failure, asks the AI collaborator, and stores both."""

    name = ChannelName.FIX_SUGGESTION

    def __init__(self, *args, pr_automation: Optional[PRAutomation] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.pr_automation = pr_automation
        self._sources: Dict[str, str] = {}

    def execute(self, summary: RunSummary, records: Sequence[TestRecord], report: ChannelReport) -> None:
        self.purge_stale_artifacts(records)

        candidates = [failure for failure in summary.failures if failure.test_file]
        for failure in summary.failures:
            if not failure.test_file:
                LOGGER.info("Skipping fix suggestion for %s: source file unknown", failure.test_title)
        if not candidates:
            return

        provider = self.context.ai()
        for failure in candidates:
            suggestion = self.run_item(report, failure_item(failure), lambda: self._suggest(provider, failure))
            if suggestion is None:
                continue
            report.succeed_item(failure_item(failure), detail=self.artifacts.fix_path(failure_stem(failure)).as_posix())
            if self.pr_automation is not None:
                self.pr_automation.run_for(failure, suggestion)

    def purge_stale_artifacts(self, records: Sequence[TestRecord]) -> None:
        """Drop prompt/fix files left behind by tests that now pass."""
        stems = [record_stem(record) for record in records if record.final_status is AttemptStatus.PASSED]
        self.artifacts.purge_fix_artifacts(stems)

    def _suggest(self, provider, failure: Failure) -> str:
        source = self._read_source(failure.test_file or "")
        prompt = render_fix_prompt(failure, source)
        self.artifacts.write_prompt(failure, prompt)
        suggestion = provider.generate_completion(prompt)
        self.artifacts.write_fix(failure, suggestion)
        LOGGER.info("Stored fix suggestion for %s", failure.test_title)
        return suggestion

    def _read_source(self, test_file: str) -> str:
        cached = self._sources.get(test_file)
        if cached is None:
            cached = Path(test_file).read_text(encoding="utf-8")
            self._sources[test_file] = cached
        return cached


__all__ = ["FixSuggestionChannel", "failure_item"]
