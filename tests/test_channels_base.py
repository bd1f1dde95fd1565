from __future__ import annotations

import pytest

from areport.channels import (
    Channel,
    ChannelError,
    ChannelName,
    ChannelReport,
    ChannelState,
    ItemRunner,
    PRAutomation,
    classify_exception,
)
from areport.errors import ConfigurationError, ErrorKind, ProviderError, aborts_channel


@pytest.mark.parametrize(
    ("kind", "fatal"),
    [
        (ErrorKind.CONFIGURATION, True),
        (ErrorKind.TRANSPORT, False),
        (ErrorKind.REJECTED, False),
        (ErrorKind.IO, False),
        (ErrorKind.UNEXPECTED, False),
    ],
)
def test_only_configuration_errors_abort_a_channel(kind: ErrorKind, fatal: bool) -> None:
    assert aborts_channel(kind) is fatal


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (ConfigurationError("missing"), ErrorKind.CONFIGURATION),
        (ProviderError("503", kind=ErrorKind.TRANSPORT), ErrorKind.TRANSPORT),
        (FileNotFoundError("spec.ts"), ErrorKind.IO),
        (KeyError("x"), ErrorKind.UNEXPECTED),
    ],
)
def test_classify_exception(error: Exception, kind: ErrorKind) -> None:
    classified = classify_exception(ChannelName.BUG_FILING, error, item="t1")

    assert classified.kind is kind
    assert classified.item == "t1"


def test_error_description_and_hints() -> None:
    error = ChannelError(ChannelName.NOTIFICATION, ErrorKind.CONFIGURATION, "No recipients", item="summary")

    assert error.describe() == "notification[summary] configuration: No recipients"
    assert "EMAIL_RECIPIENTS" in error.hint
    assert ChannelError(ChannelName.DB_PUBLISH, ErrorKind.UNEXPECTED, "x").hint is None


def test_report_state_transitions() -> None:
    report = ChannelReport(name=ChannelName.BUG_FILING)
    report.finish()
    assert report.state is ChannelState.PENDING

    report.start()
    report.succeed_item("a")
    report.finish()
    assert report.state is ChannelState.SUCCEEDED

    failing = ChannelReport(name=ChannelName.BUG_FILING)
    failing.start()
    failing.fail_item(ChannelError(ChannelName.BUG_FILING, ErrorKind.REJECTED, "no", item="b"))
    failing.finish()
    assert failing.state is ChannelState.FAILED
    assert [outcome.item for outcome in failing.failed_items] == ["b"]


def test_pr_automation_is_driven_per_failure_not_by_the_pipeline() -> None:
    assert issubclass(PRAutomation, ItemRunner)
    assert not issubclass(PRAutomation, Channel)
    assert not hasattr(PRAutomation, "execute")
    assert callable(PRAutomation.run_for)
