"""Post-run side-effect channels."""

from .base import (
    CHANNEL_SEQUENCE,
    Channel,
    ChannelAborted,
    ChannelError,
    ChannelName,
    ChannelReport,
    ChannelState,
    ItemOutcome,
    ItemRunner,
    classify_exception,
)
from .bugs import BugFilingChannel
from .database import DatabasePublishChannel
from .fix import FixSuggestionChannel
from .notify import NotificationChannel, notification_severity
from .pr import PRAutomation

__all__ = [
    "BugFilingChannel",
    "CHANNEL_SEQUENCE",
    "Channel",
    "ChannelAborted",
    "ChannelError",
    "ChannelName",
    "ChannelReport",
    "ChannelState",
    "DatabasePublishChannel",
    "FixSuggestionChannel",
    "ItemOutcome",
    "ItemRunner",
    "NotificationChannel",
    "PRAutomation",
    "classify_exception",
    "notification_severity",
]
