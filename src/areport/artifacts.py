"""Files written under the reporter's output directory."""

from __future__ import annotations

import json
import logging
from pathlib import Path, PurePath
from typing import Any, Dict, Iterable, List, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .records import TestRecord
from .summary import Failure, RunSummary
from .utils.slug import sanitize_filename

LOGGER = logging.getLogger(__name__)

SUMMARY_FILENAME = "summary.json"
LAST_RUN_FILENAME = ".last-run.json"
PROMPTS_DIRNAME = "prompts"
FIXES_DIRNAME = "fixes"


class LastRunStatus(BaseModel):
    """Outcome of the previous run, read back by later runs."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    status: Literal["passed", "failed"]
    failed_tests: List[str] = Field(default_factory=list, alias="failedTests")


def artifact_stem(test_id: str, title: str, test_file: str | None = None) -> str:
    """Name shared by a test's prompt and fix files."""
    if test_id:
        return sanitize_filename(test_id)
    prefix = PurePath(test_file).stem if test_file else "test"
    return sanitize_filename(f"{prefix}-{title}")


def failure_stem(failure: Failure) -> str:
    return artifact_stem(failure.test_id, failure.test_title, failure.test_file)


def record_stem(record: TestRecord) -> str:
    return artifact_stem(record.case.test_id, record.identity.title, record.case.test_file)


def serialize_record(record: TestRecord) -> Dict[str, Any]:
    final = record.final_attempt
    location = record.case.location
    return {
        "testId": record.case.test_id,
        "testTitle": record.identity.title,
        "suite": list(record.identity.suite),
        "suiteTitle": record.identity.suite_title,
        "status": final.status.value,
        "duration": final.duration_seconds,
        "retries": record.retry_count,
        "owningTeam": record.case.owning_team,
        "testFile": record.case.test_file,
        "location": (
            {"file": location.file, "line": location.line, "column": location.column} if location else None
        ),
        "attempts": [
            {
                "status": attempt.status.value,
                "duration": attempt.duration_seconds,
                "errors": [{"message": error.message, "stack": error.stack} for error in attempt.errors],
            }
            for attempt in record.attempts
        ],
    }


class ArtifactWriter:
    """Single writer for prompt/fix markdown, the summary and the last-run status."""

    def __init__(self, output_dir: Path | str) -> None:
        self.output_dir = Path(output_dir)

    @property
    def prompts_dir(self) -> Path:
        return self.output_dir / PROMPTS_DIRNAME

    @property
    def fixes_dir(self) -> Path:
        return self.output_dir / FIXES_DIRNAME

    def prompt_path(self, stem: str) -> Path:
        return self.prompts_dir / f"{stem}.md"

    def fix_path(self, stem: str) -> Path:
        return self.fixes_dir / f"fix-{stem}.md"

    def write_prompt(self, failure: Failure, content: str) -> Path:
        return self._write_text(self.prompt_path(failure_stem(failure)), content)

    def write_fix(self, failure: Failure, content: str) -> Path:
        return self._write_text(self.fix_path(failure_stem(failure)), content)

    def purge_fix_artifacts(self, stems: Iterable[str]) -> list[Path]:
        """Delete prompt and fix files for ``stems``; returns the removed paths."""
        removed: list[Path] = []
        for stem in stems:
            for path in (self.prompt_path(stem), self.fix_path(stem)):
                if path.exists():
                    path.unlink()
                    removed.append(path)
        if removed:
            LOGGER.info("Removed %d stale fix artifact(s)", len(removed))
        return removed

    def write_summary(self, summary: RunSummary, records: Sequence[TestRecord]) -> Path:
        payload = {
            "summary": summary.to_json_dict(),
            "tests": [serialize_record(record) for record in records],
        }
        return self._write_json(self.output_dir / SUMMARY_FILENAME, payload)

    def write_last_run(self, failures: Sequence[Failure]) -> Path:
        status = LastRunStatus(
            status="failed" if failures else "passed",
            failed_tests=[failure.test_id for failure in failures],
        )
        return self._write_json(self.output_dir / LAST_RUN_FILENAME, status.model_dump(by_alias=True))

    def _write_text(self, path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def _write_json(self, path: Path, payload: Dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.write("\n")
        return path


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise ConfigurationError(f"No such file: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as error:
        raise ConfigurationError(f"Failed to parse {path}: {error}") from error


def load_last_run(output_dir: Path | str) -> LastRunStatus:
    path = Path(output_dir) / LAST_RUN_FILENAME
    try:
        return LastRunStatus.model_validate(_read_json(path))
    except ValidationError as error:
        raise ConfigurationError(f"Invalid last-run status in {path}: {error}") from error


def load_summary(output_dir: Path | str) -> RunSummary:
    path = Path(output_dir) / SUMMARY_FILENAME
    data = _read_json(path)
    try:
        return RunSummary.model_validate(data.get("summary") if isinstance(data, dict) else data)
    except ValidationError as error:
        raise ConfigurationError(f"Invalid run summary in {path}: {error}") from error


__all__ = [
    "FIXES_DIRNAME",
    "LAST_RUN_FILENAME",
    "PROMPTS_DIRNAME",
    "SUMMARY_FILENAME",
    "ArtifactWriter",
    "LastRunStatus",
    "artifact_stem",
    "failure_stem",
    "load_last_run",
    "load_summary",
    "record_stem",
    "serialize_record",
]
