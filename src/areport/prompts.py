"""Text templates for fix prompts, commits, pull requests and bug reports."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import PurePath
from typing import Optional

from .summary import Failure

STACK_TRACE_MAX_LINES = 15
COMMIT_ERROR_EXCERPT = 100
BUG_STACK_EXCERPT = 500

BUG_TITLE_PREFIX = "[Test Failure]"
PR_LABELS = ("auto-fix", "test-failure", "ai-generated")

_FENCE_LANGUAGES = {
    ".py": "python",
    ".ts": "ts",
    ".tsx": "tsx",
    ".js": "js",
    ".jsx": "jsx",
    ".java": "java",
    ".cs": "csharp",
    ".go": "go",
    ".rb": "ruby",
}

_CODE_BLOCK = re.compile(r"```[^\n`]*\n(.*?)```", re.DOTALL)


def truncate_stack(stack: str, max_lines: int = STACK_TRACE_MAX_LINES) -> str:
    """Keep the first ``max_lines`` lines of ``stack``, marking any cut."""
    if not stack:
        return ""
    lines = stack.split("\n")
    kept = "\n".join(lines[:max_lines])
    if len(lines) > max_lines:
        kept += "\n... (truncated)"
    return kept


def _excerpt(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def fence_language(path: Optional[str]) -> str:
    if not path:
        return ""
    return _FENCE_LANGUAGES.get(PurePath(path).suffix.lower(), "")


def render_fix_prompt(failure: Failure, source: str) -> str:
    """Build the structured prompt sent to the fix-suggestion collaborator."""
    location = failure.location
    line = location.line if location and location.line is not None else "unknown"
    column = location.column if location and location.column is not None else "unknown"
    return "\n".join(
        [
            "# Instructions",
            "",
            "- The following automated test failed.",
            "- Explain why it failed and suggest a fix that follows the test framework's best practices.",
            "- Be concise and provide a code snippet with the fix.",
            "",
            "# Test info",
            "",
            f"- Name: {failure.test_title}",
            f"- Suite: {failure.suite_title}",
            f"- File: {failure.test_file}",
            f"- Line: {line}",
            f"- Column: {column}",
            f"- Category: {failure.category.value}",
            "",
            "# Error details",
            "",
            "```",
            failure.error_message,
            "```",
            "",
            "# Stack trace",
            "",
            "```",
            truncate_stack(failure.error_stack),
            "```",
            "",
            "# Test source",
            "",
            f"```{fence_language(failure.test_file)}",
            source,
            "```",
        ]
    )


def extract_code_block(suggestion: str) -> Optional[str]:
    """Return the longest fenced code block in ``suggestion``, if any."""
    blocks = [match.group(1) for match in _CODE_BLOCK.finditer(suggestion)]
    blocks = [block for block in blocks if block.strip()]
    if not blocks:
        return None
    return max(blocks, key=len)


def render_branch_name(test_title: str, now: datetime) -> str:
    sanitized = re.sub(r"[^a-zA-Z0-9]", "-", test_title).lower()
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"autofix/{sanitized}-{timestamp}"


def render_commit_message(failure: Failure) -> str:
    return (
        f'fix: Auto-fix for failing test "{failure.test_title}"\n'
        "\n"
        f"Test: {failure.test_title}\n"
        f"Suite: {failure.suite_title}\n"
        f"File: {failure.test_file}\n"
        f"Error: {_excerpt(failure.error_message, COMMIT_ERROR_EXCERPT)}\n"
        "\n"
        "This is an AI-generated fix suggestion.\n"
    )


def render_pr_title(failure: Failure) -> str:
    return f"Auto-fix: {failure.test_title}"


def render_pr_description(failure: Failure, suggestion: str, commit_id: Optional[str]) -> str:
    short_commit = commit_id[:7] if commit_id else "unknown"
    return "\n".join(
        [
            "## AI-Generated Fix Suggestion",
            "",
            f"**Test**: {failure.test_title}",
            f"**Suite**: {failure.suite_title}",
            f"**File**: `{failure.test_file}`",
            "",
            "### Error",
            "```",
            failure.error_message,
            "```",
            "",
            "### Error Category",
            failure.category.value,
            "",
            "### Duration",
            f"{failure.duration_seconds:.2f}s",
            "",
            "### AI Fix Analysis",
            suggestion.strip(),
            "",
            f"**Fix Details**: See commit {short_commit}",
            "",
            "---",
            "_Review carefully before merging. This pull request was generated automatically by areport._",
        ]
    )


def render_bug_title(failure: Failure) -> str:
    return f"{BUG_TITLE_PREFIX} {failure.test_title}"


def bug_labels(failure: Failure) -> list[str]:
    return ["test-failure", "automated", failure.category.value.lower()]


def render_bug_description(failure: Failure) -> str:
    return "\n".join(
        [
            "## Test Failure Report",
            "",
            f"**Test**: {failure.test_title}",
            f"**Suite**: {failure.suite_title}",
            f"**File**: `{failure.test_file or 'unknown'}`",
            f"**Owner**: {failure.owning_team}",
            "",
            "### Error",
            "```",
            failure.error_message,
            "```",
            "",
            "### Error Category",
            failure.category.value,
            "",
            "### Stack Trace",
            "```",
            _excerpt(failure.error_stack, BUG_STACK_EXCERPT),
            "```",
            "",
            "### Additional Information",
            f"- **Duration**: {failure.duration_seconds:.2f}s",
            f"- **Timeout**: {'Yes' if failure.is_timeout else 'No'}",
            f"- **Test ID**: {failure.test_id or 'N/A'}",
            "",
            "---",
            "_This bug was created automatically by areport._",
        ]
    )


__all__ = [
    "BUG_TITLE_PREFIX",
    "PR_LABELS",
    "STACK_TRACE_MAX_LINES",
    "bug_labels",
    "extract_code_block",
    "fence_language",
    "render_branch_name",
    "render_bug_description",
    "render_bug_title",
    "render_commit_message",
    "render_fix_prompt",
    "render_pr_description",
    "render_pr_title",
    "truncate_stack",
]
