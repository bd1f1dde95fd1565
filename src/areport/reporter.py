"""Run engine: ingests runner events, aggregates at run end, publishes, decides the exit."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Collection, Dict, Optional, Sequence

from .artifacts import ArtifactWriter
from .buildinfo import collect_build_info
from .config import ReporterConfig
from .console import ConsoleRenderer
from .context import ProviderContext
from .errors import ReporterStateError
from .exit_status import ExitStatus, decide_exit_status
from .metrics import compute_metrics
from .orchestrator import PipelineReport, PostRunPipeline, utc_now
from .records import Attempt, AttemptStatus, TestCase, TestError, TestRecord, TestRecordStore
from .summary import BuildInfo, NoTestsDiscovered, RunSummary, SummaryResult, build_run_summary

LOGGER = logging.getLogger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COLLECTING = "collecting"
    AGGREGATING = "aggregating"
    PUBLISHING = "publishing"
    FINALIZED = "finalized"


_EVENT_PHASES = frozenset({RunPhase.RUNNING, RunPhase.COLLECTING})


@dataclass(slots=True)
class RunInfo:
    """Metadata supplied by the runner when the run begins."""

    worker_count: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AttemptResult:
    """Runner-reported outcome of one attempt."""

    status: AttemptStatus
    duration_seconds: float
    errors: Sequence[TestError] = ()

    def to_attempt(self) -> Attempt:
        return Attempt(status=self.status, duration_seconds=self.duration_seconds, errors=tuple(self.errors))


@dataclass(slots=True)
class RunOutcome:
    """Everything the run produced, returned from ``on_run_end``."""

    exit_status: ExitStatus
    summary: SummaryResult
    records: tuple[TestRecord, ...]
    non_test_errors: tuple[TestError, ...]
    has_interrupted_tests: bool
    pipeline: Optional[PipelineReport] = None

    @property
    def exit_code(self) -> int:
        return self.exit_status.code

    @property
    def tests_discovered(self) -> bool:
        return not isinstance(self.summary, NoTestsDiscovered)


class RunReporter:
    """Observer driven by the test runner's callbacks.

    Phases only move forward: ``IDLE -> RUNNING -> COLLECTING -> AGGREGATING
    -> PUBLISHING -> FINALIZED``; with no tests the run goes straight from
    ``AGGREGATING`` to ``FINALIZED``. Events in any other phase raise
    ``ReporterStateError``.
    """

    def __init__(
        self,
        config: Optional[ReporterConfig] = None,
        *,
        context: Optional[ProviderContext] = None,
        console: Optional[ConsoleRenderer] = None,
        artifacts: Optional[ArtifactWriter] = None,
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = utc_now,
        build_info: Callable[[], BuildInfo] = collect_build_info,
        repo_root: Optional[Path] = None,
    ) -> None:
        self.config = config or ReporterConfig()
        self._owns_context = context is None
        self.context = context or ProviderContext.from_config(self.config)
        self.console = console or ConsoleRenderer(
            show_stack_trace=self.config.show_stack_trace,
            slow_test_threshold=self.config.slow_test_threshold,
            timeout_warning_threshold=self.config.timeout_warning_threshold,
        )
        self.artifacts = artifacts or ArtifactWriter(self.config.output_dir)
        self.store = TestRecordStore()
        self.phase = RunPhase.IDLE
        self.run_info = RunInfo()
        self.outcome: Optional[RunOutcome] = None
        self._clock = clock
        self._now = now
        self._build_info = build_info
        self._repo_root = repo_root
        self._started_at = 0.0

    # Runner events -------------------------------------------------------------------
    def on_run_begin(self, run: Optional[RunInfo] = None) -> None:
        self._require({RunPhase.IDLE}, "on_run_begin")
        self.run_info = run or RunInfo()
        self._started_at = self._clock()
        self.phase = RunPhase.RUNNING
        LOGGER.info("Run started (workers=%s)", self.run_info.worker_count)
        self.console.run_started(
            self.run_info.worker_count,
            {
                "generate_fix": self.config.generate_fix,
                "create_bug": self.config.create_bug,
                "generate_pr": self.config.generate_pr,
                "publish_to_db": self.config.publish_to_db,
                "send_email": self.config.send_email,
            },
        )

    def on_attempt_begin(self, case: TestCase, attempt_index: int) -> None:
        self._require(_EVENT_PHASES, "on_attempt_begin")
        self.phase = RunPhase.COLLECTING
        if attempt_index > 0:
            LOGGER.info("Retrying %s (retry #%d)", case.identity.key, attempt_index)
            self.console.retry_started(case, attempt_index)
        else:
            LOGGER.debug("Attempt begin: %s", case.identity.key)

    def on_attempt_end(self, case: TestCase, result: AttemptResult) -> TestRecord:
        self._require(_EVENT_PHASES, "on_attempt_end")
        self.phase = RunPhase.COLLECTING
        attempt = result.to_attempt()
        record = self.store.record_attempt(case, attempt)
        LOGGER.debug("Attempt end: %s -> %s", case.identity.key, attempt.status.value)
        self.console.attempt_finished(case, attempt)
        return record

    def on_non_test_error(self, error: TestError) -> None:
        self._require(_EVENT_PHASES, "on_non_test_error")
        LOGGER.error("Error outside of any test: %s", error.message)
        self.store.add_non_test_error(error)

    def on_step_begin(self, case: TestCase, title: str) -> None:
        self._require(_EVENT_PHASES, "on_step_begin")
        LOGGER.debug("Step begin: %s :: %s", case.identity.key, title)

    def on_step_end(self, case: TestCase, title: str, error: Optional[TestError] = None) -> None:
        self._require(_EVENT_PHASES, "on_step_end")
        if error is not None:
            LOGGER.debug("Step failed: %s :: %s: %s", case.identity.key, title, error.message)
        else:
            LOGGER.debug("Step end: %s :: %s", case.identity.key, title)

    def on_run_end(self) -> RunOutcome:
        self._require(_EVENT_PHASES, "on_run_end")
        self.phase = RunPhase.AGGREGATING
        self.store.freeze()
        finished_at = self._clock()
        records = self.store.records()

        metrics = compute_metrics(
            records,
            max_slow_tests=self.config.max_slow_tests_to_show,
            slow_test_threshold=self.config.slow_test_threshold,
            started_at=self._started_at,
            finished_at=finished_at,
        )
        summary = build_run_summary(records, metrics, self._build_info() if metrics.test_count else None)

        pipeline: Optional[PipelineReport] = None
        if isinstance(summary, RunSummary):
            self._render_results(summary)
            self.phase = RunPhase.PUBLISHING
            pipeline = self._publish(summary, records)
        else:
            LOGGER.error("No tests found; skipping post-run pipeline")
            self.console.no_tests()
            self.console.non_test_errors(self.store.non_test_errors)

        exit_status = decide_exit_status(
            test_count=metrics.test_count,
            failures=summary.failures if isinstance(summary, RunSummary) else (),
            non_test_errors=self.store.non_test_errors,
            has_interrupted_tests=self.store.has_interrupted_tests,
        )
        self.phase = RunPhase.FINALIZED
        self.console.exit_status(exit_status)
        LOGGER.info("Run finished: %s", exit_status.value)

        self.outcome = RunOutcome(
            exit_status=exit_status,
            summary=summary,
            records=records,
            non_test_errors=self.store.non_test_errors,
            has_interrupted_tests=self.store.has_interrupted_tests,
            pipeline=pipeline,
        )
        return self.outcome

    # Helpers -------------------------------------------------------------------------
    def _require(self, allowed: Collection[RunPhase], event: str) -> None:
        if self.phase not in allowed:
            raise ReporterStateError(f"{event} is not accepted in phase {self.phase.value}.")

    def _render_results(self, summary: RunSummary) -> None:
        self.console.summary(summary)
        self.console.failures(summary.failures)
        self.console.non_test_errors(self.store.non_test_errors)
        if self.store.has_interrupted_tests:
            self.console.interrupted()

    def _publish(self, summary: RunSummary, records: Sequence[TestRecord]) -> PipelineReport:
        pipeline = PostRunPipeline(
            self.config,
            self.context,
            self.artifacts,
            console=self.console,
            now=self._now,
            repo_root=self._repo_root,
        )
        try:
            report = pipeline.run(summary, records)
        finally:
            if self._owns_context:
                self.context.close()

        try:
            self.artifacts.write_summary(summary, records)
            self.artifacts.write_last_run(summary.failures)
        except OSError as error:
            LOGGER.error("Failed to write run artifacts to %s: %s", self.artifacts.output_dir, error)
        return report


__all__ = ["AttemptResult", "RunInfo", "RunOutcome", "RunPhase", "RunReporter"]
