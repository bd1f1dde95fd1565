"""Pull-request automation for freshly generated fix suggestions."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from ..errors import ErrorKind, ProviderError
from ..prompts import (
    PR_LABELS,
    extract_code_block,
    render_branch_name,
    render_commit_message,
    render_pr_description,
    render_pr_title,
)
from ..providers.base import FileChange, PullRequestInfo, PullRequestOptions
from ..summary import Failure
from .base import ChannelAborted, ChannelName, ChannelReport, ChannelState, ItemRunner

LOGGER = logging.getLogger(__name__)


def repository_path(test_file: str, repo_root: Path) -> str:
    """Express ``test_file`` relative to ``repo_root`` with forward slashes."""
    path = Path(test_file)
    if path.is_absolute():
        try:
            path = path.resolve().relative_to(repo_root.resolve())
        except ValueError:
            pass
    return path.as_posix()


class PRAutomation(ItemRunner):
    """Runs inside the fix channel through ``run_for``, once per failure whose fix succeeded.

    Any failing step ends the pull request for that failure only; a missing
    PR collaborator ends pull-request automation for the rest of the run.
    """

    name = ChannelName.PR_AUTOMATION

    def __init__(self, *args, report: ChannelReport, repo_root: Optional[Path] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.report = report
        self.repo_root = repo_root or Path.cwd()

    def run_for(self, failure: Failure, suggestion: str) -> Optional[PullRequestInfo]:
        # FAILED before finish() only happens through abort().
        if self.report.state in (ChannelState.DISABLED, ChannelState.FAILED):
            return None
        if self.report.state is ChannelState.PENDING:
            self.report.start()

        item = failure.test_id or failure.test_title
        try:
            info = self.run_item(self.report, item, lambda: self._open_pull_request(failure, suggestion))
        except ChannelAborted as aborted:
            LOGGER.warning("Channel %s aborted: %s", self.name.value, aborted.error.message)
            self.report.abort(aborted.error)
            if self._reporter is not None:
                self._reporter(aborted.error)
            return None
        if info is not None:
            self.report.succeed_item(item, detail=info.url)
        return info

    def finish(self) -> None:
        self.report.finish()

    def _open_pull_request(self, failure: Failure, suggestion: str) -> PullRequestInfo:
        provider = self.context.pr()
        content = extract_code_block(suggestion)
        if content is None:
            raise ProviderError("Fix suggestion contains no code block to commit.", kind=ErrorKind.REJECTED)

        base = self.config.resolved_base_branch(os.environ)
        branch = render_branch_name(failure.test_title, self.now())
        LOGGER.info("Creating branch %s from %s", branch, base)
        if not provider.create_branch(branch, base):
            raise ProviderError(f"Failed to create branch {branch}.", kind=ErrorKind.REJECTED)

        change = FileChange(path=repository_path(failure.test_file or "", self.repo_root), content=content)
        commit_id = provider.commit_changes(branch, [change], render_commit_message(failure))
        if not commit_id:
            raise ProviderError(f"Failed to commit changes to {branch}.", kind=ErrorKind.REJECTED)

        info = provider.create_pull_request(
            PullRequestOptions(
                source_branch=branch,
                target_branch=base,
                title=render_pr_title(failure),
                description=render_pr_description(failure, suggestion, commit_id),
                labels=list(PR_LABELS),
                draft=self.config.pr_draft,
            )
        )
        if info is None:
            raise ProviderError("Pull request was not created.", kind=ErrorKind.REJECTED)
        LOGGER.info("Opened pull request #%s: %s", info.number, info.url)
        return info


__all__ = ["PRAutomation", "repository_path"]
