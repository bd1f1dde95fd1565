from __future__ import annotations

import pytest

from areport.classifier import FailureCategory, classify


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("TimeoutError: waiting for selector '#submit'", FailureCategory.TIMEOUT),
        ("Test timeout of 30000ms exceeded.", FailureCategory.TIMEOUT),
        ("page.goto: net::ERR_CONNECTION_REFUSED at http://localhost:3000", FailureCategory.NETWORK),
        ("connect ECONNREFUSED 127.0.0.1:5432", FailureCategory.NETWORK),
        ("locator.click: Element is not attached to the DOM", FailureCategory.SELECTOR),
        ("expect(received).toBe(expected)", FailureCategory.ASSERTION),
        ("AssertionError: assert 1 == 2", FailureCategory.ASSERTION),
        ("ZeroDivisionError: division by zero", FailureCategory.UNKNOWN),
        ("", FailureCategory.UNKNOWN),
    ],
)
def test_classify_uses_ordered_pattern_table(message: str, expected: FailureCategory) -> None:
    assert classify(message) is expected


def test_first_matching_category_wins() -> None:
    # Mentions a timeout, a selector and an expectation.
    message = "Timed out waiting for selector; expected element to be visible"
    assert classify(message) is FailureCategory.TIMEOUT


def test_classification_is_case_insensitive_and_deterministic() -> None:
    assert classify("NETWORK ERROR") is FailureCategory.NETWORK
    assert {classify("Socket hang up") for _ in range(5)} == {FailureCategory.NETWORK}


def test_none_message_is_unknown() -> None:
    assert classify(None) is FailureCategory.UNKNOWN
