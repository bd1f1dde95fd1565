"""Replay recorded runner events (JSON lines) through a ``RunReporter``."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Iterable, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import ConfigurationError
from .records import AttemptStatus, Location, TestCase, TestError, TestIdentity
from .reporter import AttemptResult, RunInfo, RunOutcome, RunPhase, RunReporter

LOGGER = logging.getLogger(__name__)


class EventModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ErrorPayload(EventModel):
    message: str = ""
    stack: str = ""

    def to_error(self) -> TestError:
        return TestError(message=self.message, stack=self.stack)


class TestPayload(EventModel):
    __test__ = False

    title: str
    suite: List[str] = Field(default_factory=list)
    id: str = ""
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    owner: str = "Unknown"

    def to_case(self) -> TestCase:
        return TestCase(
            identity=TestIdentity(suite=tuple(self.suite), title=self.title),
            test_id=self.id,
            location=Location(file=self.file, line=self.line, column=self.column) if self.file else None,
            owning_team=self.owner,
        )


class RunBeginEvent(EventModel):
    event: Literal["run_begin"]
    workers: Optional[int] = None
    metadata: dict = Field(default_factory=dict)


class AttemptBeginEvent(EventModel):
    event: Literal["attempt_begin"]
    test: TestPayload
    attempt: int = 0


class AttemptEndEvent(EventModel):
    event: Literal["attempt_end"]
    test: TestPayload
    status: AttemptStatus
    duration: float = 0.0
    errors: List[ErrorPayload] = Field(default_factory=list)


class NonTestErrorEvent(ErrorPayload):
    event: Literal["non_test_error"]


class StepBeginEvent(EventModel):
    event: Literal["step_begin"]
    test: TestPayload
    title: str


class StepEndEvent(EventModel):
    event: Literal["step_end"]
    test: TestPayload
    title: str
    error: Optional[ErrorPayload] = None


class RunEndEvent(EventModel):
    event: Literal["run_end"]


RunnerEvent = Annotated[
    Union[
        RunBeginEvent,
        AttemptBeginEvent,
        AttemptEndEvent,
        NonTestErrorEvent,
        StepBeginEvent,
        StepEndEvent,
        RunEndEvent,
    ],
    Field(discriminator="event"),
]

_EVENT_ADAPTER: TypeAdapter[RunnerEvent] = TypeAdapter(RunnerEvent)


def parse_events(lines: Iterable[str], *, source: str = "<events>") -> Iterator[RunnerEvent]:
    """Yield validated events; blank lines and ``#`` comments are ignored."""
    for number, line in enumerate(lines, start=1):
        text = line.strip()
        if not text or text.startswith("#"):
            continue
        try:
            yield _EVENT_ADAPTER.validate_python(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as error:
            raise ConfigurationError(f"{source}:{number}: invalid runner event: {error}") from error


def load_events(path: Path | str) -> list[RunnerEvent]:
    events_path = Path(path)
    if not events_path.exists():
        raise ConfigurationError(f"Events file not found: {events_path}")
    with events_path.open("r", encoding="utf-8") as handle:
        return list(parse_events(handle, source=events_path.as_posix()))


def dispatch(reporter: RunReporter, event: RunnerEvent) -> Optional[RunOutcome]:
    """Forward one event to the matching reporter callback."""
    if isinstance(event, RunBeginEvent):
        reporter.on_run_begin(RunInfo(worker_count=event.workers, metadata=dict(event.metadata)))
    elif isinstance(event, AttemptBeginEvent):
        reporter.on_attempt_begin(event.test.to_case(), event.attempt)
    elif isinstance(event, AttemptEndEvent):
        reporter.on_attempt_end(
            event.test.to_case(),
            AttemptResult(
                status=event.status,
                duration_seconds=event.duration,
                errors=[error.to_error() for error in event.errors],
            ),
        )
    elif isinstance(event, NonTestErrorEvent):
        reporter.on_non_test_error(event.to_error())
    elif isinstance(event, StepBeginEvent):
        reporter.on_step_begin(event.test.to_case(), event.title)
    elif isinstance(event, StepEndEvent):
        reporter.on_step_end(event.test.to_case(), event.title, event.error.to_error() if event.error else None)
    elif isinstance(event, RunEndEvent):
        return reporter.on_run_end()
    return None


def replay(reporter: RunReporter, events: Iterable[RunnerEvent]) -> RunOutcome:
    """Drive ``reporter`` through ``events``, opening and closing the run if the log omits it."""
    outcome: Optional[RunOutcome] = None
    for event in events:
        if reporter.phase is RunPhase.IDLE and not isinstance(event, RunBeginEvent):
            reporter.on_run_begin()
        outcome = dispatch(reporter, event) or outcome
    if outcome is None:
        LOGGER.info("Event log has no run_end; closing the run")
        if reporter.phase is RunPhase.IDLE:
            reporter.on_run_begin()
        outcome = reporter.on_run_end()
    return outcome


__all__ = ["RunnerEvent", "dispatch", "load_events", "parse_events", "replay"]
