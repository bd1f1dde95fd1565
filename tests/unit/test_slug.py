from __future__ import annotations

from areport.utils.slug import MAX_FILENAME_LENGTH, sanitize_filename


def test_reserved_characters_and_whitespace_are_replaced() -> None:
    assert sanitize_filename('tests/a.py::Test X::test "y"') == "tests_a.py__Test-X__test-_y_"


def test_empty_values_fall_back() -> None:
    assert sanitize_filename("") == "test"
    assert sanitize_filename(None, fallback="unnamed") == "unnamed"


def test_long_names_are_bounded_and_stay_distinct() -> None:
    first = sanitize_filename("x" * 150 + "a")
    second = sanitize_filename("x" * 150 + "b")

    assert len(first) == MAX_FILENAME_LENGTH
    assert first != second
    assert first.startswith("x" * 50)
