"""Result-publishing channel: one run row plus one row per test."""

from __future__ import annotations

import logging
import os
from typing import Sequence

from ..providers.base import DatabaseProvider, TestResultRow, TestRunRow
from ..records import FAILING_STATUSES, TestRecord
from ..summary import RunSummary
from .base import Channel, ChannelAborted, ChannelName, ChannelReport, classify_exception

LOGGER = logging.getLogger(__name__)


class DatabasePublishChannel(Channel):
    """Persists every ``TestRecord``, not only failures.

    The run row is saved first; if that fails there is nothing to link result
    rows to, so the channel stops without retrying.
    """

    name = ChannelName.DB_PUBLISH

    def execute(self, summary: RunSummary, records: Sequence[TestRecord], report: ChannelReport) -> None:
        database = self.context.database()
        run = self.build_run_row(summary)
        try:
            run_id = database.save_test_run(run)
        except Exception as error:  # noqa: BLE001 - any run-row failure ends the channel
            raise ChannelAborted(classify_exception(self.name, error, item="test_run")) from error
        LOGGER.info("Saved test run %s", run_id)

        for record in records:
            item = record.case.test_id or record.identity.key
            row_id = self.run_item(report, item, lambda: self._save_result(database, run_id, record))
            if row_id is not None:
                report.succeed_item(item, detail=row_id)

    def build_run_row(self, summary: RunSummary) -> TestRunRow:
        timestamp = self.now()
        info = summary.build_info
        return TestRunRow(
            name=f"Test Run {timestamp.isoformat()}",
            timestamp=timestamp,
            total_tests=summary.test_count,
            passed_tests=summary.passed_count,
            failed_tests=summary.failed_count,
            skipped_tests=summary.skipped_count,
            duration=summary.total_wall_clock_duration,
            environment=info.environment or os.getenv("TEST_ENV") or "test",
            branch=info.branch,
            commit_hash=info.commit_id,
            metadata={"buildInfo": info.model_dump(mode="json")},
        )

    def build_result_row(self, run_id: str, record: TestRecord) -> TestResultRow:
        final = record.final_attempt
        first_error = final.errors[0] if final.errors else None
        failing = final.status in FAILING_STATUSES
        return TestResultRow(
            test_run_id=run_id,
            test_id=record.case.test_id or record.identity.key,
            test_title=record.identity.title,
            suite_title=record.identity.suite_title,
            status=final.status.value,
            duration=final.duration_seconds,
            timestamp=self.now(),
            error_message=(first_error.message or "Unknown error") if failing and first_error else None,
            error_stack=first_error.stack if failing and first_error else None,
            retries=record.retry_count,
            metadata={"owningTeam": record.case.owning_team, "testFile": record.case.test_file},
        )

    def _save_result(self, database: DatabaseProvider, run_id: str, record: TestRecord) -> str:
        return database.save_test_result(self.build_result_row(run_id, record))


__all__ = ["DatabasePublishChannel"]
