"""Map raw error messages onto a fixed failure taxonomy."""

from __future__ import annotations

import re
from enum import Enum
from typing import Pattern, Sequence


class FailureCategory(str, Enum):
    """Fixed taxonomy used to label failures in reports, bugs, and PRs."""

    TIMEOUT = "TimeoutError"
    NETWORK = "NetworkError"
    SELECTOR = "SelectorError"
    ASSERTION = "AssertionError"
    UNKNOWN = "UnknownError"


def _compile(*keywords: str) -> Pattern[str]:
    return re.compile("|".join(re.escape(keyword) for keyword in keywords), re.IGNORECASE)


# Order matters: the first matching entry wins, so a message mentioning both a
# timeout and a selector is a timeout.
CATEGORY_PATTERNS: Sequence[tuple[FailureCategory, Pattern[str]]] = (
    (FailureCategory.TIMEOUT, _compile("timeout", "timed out", "exceeded")),
    (
        FailureCategory.NETWORK,
        _compile(
            "net::",
            "network",
            "econnrefused",
            "econnreset",
            "enotfound",
            "connection refused",
            "connection reset",
            "socket hang up",
            "fetch failed",
            "request failed",
        ),
    ),
    (
        FailureCategory.SELECTOR,
        _compile("selector", "locator", "element", "not visible", "not attached", "no node found"),
    ),
    (
        FailureCategory.ASSERTION,
        _compile("assert", "expect(", "expected", "tobe", "toequal", "tohave"),
    ),
)


def classify(error_message: str | None) -> FailureCategory:
    """Return the category of ``error_message`` using the ordered pattern table."""
    text = error_message or ""
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return FailureCategory.UNKNOWN


__all__ = ["CATEGORY_PATTERNS", "FailureCategory", "classify"]
