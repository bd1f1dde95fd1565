"""Exception hierarchy shared by the reporter engine and its collaborators."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of collaborator failures used by the pipeline channels."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    REJECTED = "rejected"
    IO = "io"
    UNEXPECTED = "unexpected"


# Kinds that stop a whole channel. Every other kind is scoped to the item
# being processed and the channel moves on to the next one.
_CHANNEL_FATAL_KINDS: frozenset[ErrorKind] = frozenset({ErrorKind.CONFIGURATION})


def aborts_channel(kind: ErrorKind) -> bool:
    """Return ``True`` when an error of ``kind`` ends the current channel."""
    return kind in _CHANNEL_FATAL_KINDS


class AReportError(RuntimeError):
    """Base error raised by the areport runtime."""


class ConfigurationError(AReportError):
    """Raised when configuration is missing, malformed, or names unknown providers."""


class StoreFrozenError(AReportError):
    """Raised when a frozen test record store is mutated."""


class ReporterStateError(AReportError):
    """Raised when a runner event arrives in a phase that does not accept it."""


class ProviderError(AReportError):
    """Raised by collaborators; carries the kind used for channel branching."""

    def __init__(self, message: str, *, kind: ErrorKind = ErrorKind.UNEXPECTED) -> None:
        super().__init__(message)
        self.kind = kind


__all__ = [
    "AReportError",
    "ConfigurationError",
    "ErrorKind",
    "ProviderError",
    "ReporterStateError",
    "StoreFrozenError",
    "aborts_channel",
]
