"""Filesystem-safe names for per-test artifacts."""

from __future__ import annotations

import hashlib
import re
from typing import Pattern

_RESERVED_CHARACTERS: Pattern[str] = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE: Pattern[str] = re.compile(r"\s+")

MAX_FILENAME_LENGTH = 100


def sanitize_filename(value: str | None, *, fallback: str = "test", max_length: int = MAX_FILENAME_LENGTH) -> str:
    """Replace path-hostile characters in ``value`` and bound its length.

    Reserved characters become ``_`` and whitespace runs become ``-``. Names
    longer than ``max_length`` keep a prefix plus a short digest of the full
    name so distinct tests never share an artifact file.
    """
    source = (value or "").strip() or fallback
    name = _WHITESPACE.sub("-", _RESERVED_CHARACTERS.sub("_", source))
    if len(name) <= max_length:
        return name

    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:8]
    prefix_length = max(max_length - len(digest) - 1, 1)
    return f"{name[:prefix_length]}-{digest}"


__all__ = ["MAX_FILENAME_LENGTH", "sanitize_filename"]
