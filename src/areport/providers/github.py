"""GitHub REST collaborators for bug filing and pull-request automation."""

from __future__ import annotations

import base64
import json
import logging
import os
from typing import Any, Callable, Dict, Optional, Sequence
from urllib.parse import quote, urlencode

from ..errors import ErrorKind, ProviderError
from .base import (
    BugDetails,
    BugInfo,
    BugPriority,
    BugStatus,
    FileChange,
    PullRequestInfo,
    PullRequestOptions,
)

LOGGER = logging.getLogger(__name__)

Transport = Callable[[str, str, Optional[Dict[str, Any]]], Any]

BASE_ISSUE_LABELS = ("bug", "automated-test")

_PRIORITY_LABELS = {
    BugPriority.CRITICAL: "priority: critical",
    BugPriority.HIGH: "priority: high",
    BugPriority.MEDIUM: "priority: medium",
    BugPriority.LOW: "priority: low",
}


class GitHubClient:
    """Minimal JSON client for ``api.github.com`` scoped to one repository."""

    def __init__(
        self,
        repository: str,
        *,
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[Transport] = None,
    ) -> None:
        if repository.count("/") != 1 or not all(repository.split("/")):
            raise ProviderError(
                f"GitHub repository must look like 'owner/name', got {repository!r}.",
                kind=ErrorKind.CONFIGURATION,
            )
        self.repository = repository
        self._token = token or os.getenv("GITHUB_TOKEN")
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._token:
            raise ProviderError(
                "A GitHub token is required (set GITHUB_TOKEN or providers.*.token).",
                kind=ErrorKind.CONFIGURATION,
            )

    def request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Send ``payload`` to ``/repos/<repository>/<path>`` and return the decoded body."""
        url = f"{self._api_url}/repos/{self.repository}/{path.lstrip('/')}"
        return self._transport(method, url, payload)

    def _http_transport(self, method: str, url: str, payload: Optional[Dict[str, Any]]) -> Any:
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        request = urllib.request.Request(
            url,
            data=data,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            method=method,
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise ProviderError(f"GitHub {method} {url} timed out.", kind=ErrorKind.TRANSPORT) from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            kind = ErrorKind.TRANSPORT if error.code >= 500 or error.code == 429 else ErrorKind.REJECTED
            raise ProviderError(f"GitHub {method} {url} failed with HTTP {error.code}: {message}", kind=kind) from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise ProviderError(f"Failed to reach GitHub: {error.reason}", kind=ErrorKind.TRANSPORT) from error
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))


def _require(body: Any, *keys: str) -> Any:
    """Walk ``keys`` into a response body, rejecting unexpected shapes."""
    value = body
    for key in keys:
        if not isinstance(value, dict) or key not in value:
            raise ProviderError(f"Unexpected GitHub response: missing {'.'.join(keys)}.", kind=ErrorKind.REJECTED)
        value = value[key]
    return value


class GitHubBugTracker:
    """Files failing tests as GitHub issues, re-using an open issue with the same title."""

    def __init__(self, client: GitHubClient, *, extra_labels: Sequence[str] = ()) -> None:
        self._client = client
        self._extra_labels = list(extra_labels)

    def create_bug(self, details: BugDetails) -> Optional[BugInfo]:
        existing = self.find_open_issue(details.title)
        if existing is not None:
            LOGGER.info("Commenting on existing issue #%s for %s", existing.id, details.title)
            self.add_comment(existing.id, f"Test failed again:\n\n{details.description}")
            return existing

        labels = [*BASE_ISSUE_LABELS, *self._extra_labels, *details.labels, _PRIORITY_LABELS[details.priority]]
        payload: Dict[str, Any] = {
            "title": details.title,
            "body": details.description,
            "labels": list(dict.fromkeys(labels)),
        }
        if details.assignee and details.assignee != "Unknown":
            payload["assignees"] = [details.assignee]

        body = self._client.request("POST", "issues", payload)
        number = _require(body, "number")
        LOGGER.info("Created GitHub issue #%s", number)
        return BugInfo(
            id=str(number),
            url=str(_require(body, "html_url")),
            status=BugStatus.OPEN,
            title=str(body.get("title", details.title)),
        )

    def find_open_issue(self, title: str) -> Optional[BugInfo]:
        query = urlencode({"state": "open", "labels": ",".join(BASE_ISSUE_LABELS), "per_page": 100})
        issues = self._client.request("GET", f"issues?{query}") or []
        for issue in issues:
            if isinstance(issue, dict) and issue.get("title") == title and "pull_request" not in issue:
                return BugInfo(
                    id=str(issue.get("number")),
                    url=str(issue.get("html_url", "")),
                    status=BugStatus.OPEN,
                    title=title,
                )
        return None

    def add_comment(self, issue_id: str, comment: str) -> None:
        self._client.request("POST", f"issues/{issue_id}/comments", {"body": comment})


class GitHubPRProvider:
    """Branch, commit and pull-request operations over the Git data API."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    def create_branch(self, name: str, base: str) -> bool:
        base_ref = self._client.request("GET", f"git/ref/heads/{quote(base, safe='/')}")
        sha = _require(base_ref, "object", "sha")
        self._client.request("POST", "git/refs", {"ref": f"refs/heads/{name}", "sha": sha})
        LOGGER.info("Created branch %s from %s", name, base)
        return True

    def commit_changes(self, branch: str, files: Sequence[FileChange], message: str) -> Optional[str]:
        branch_path = quote(branch, safe="/")
        head_sha = _require(self._client.request("GET", f"git/ref/heads/{branch_path}"), "object", "sha")
        commit = self._client.request("GET", f"git/commits/{head_sha}")
        base_tree = _require(commit, "tree", "sha")

        tree: list[Dict[str, Any]] = []
        for change in files:
            entry: Dict[str, Any] = {"path": change.path, "mode": "100644", "type": "blob"}
            if change.action == "delete":
                entry["sha"] = None
            else:
                blob = self._client.request(
                    "POST",
                    "git/blobs",
                    {
                        "content": base64.b64encode(change.content.encode("utf-8")).decode("ascii"),
                        "encoding": "base64",
                    },
                )
                entry["sha"] = _require(blob, "sha")
            tree.append(entry)

        new_tree = self._client.request("POST", "git/trees", {"base_tree": base_tree, "tree": tree})
        new_commit = self._client.request(
            "POST",
            "git/commits",
            {"message": message, "tree": _require(new_tree, "sha"), "parents": [head_sha]},
        )
        commit_sha = str(_require(new_commit, "sha"))
        self._client.request("PATCH", f"git/refs/heads/{branch_path}", {"sha": commit_sha})
        LOGGER.info("Committed %d file(s) to %s: %s", len(tree), branch, commit_sha)
        return commit_sha

    def create_pull_request(self, options: PullRequestOptions) -> Optional[PullRequestInfo]:
        body = self._client.request(
            "POST",
            "pulls",
            {
                "title": options.title,
                "body": options.description,
                "head": options.source_branch,
                "base": options.target_branch,
                "draft": options.draft,
            },
        )
        number = int(_require(body, "number"))
        if options.reviewers:
            self._client.request(
                "POST",
                f"pulls/{number}/requested_reviewers",
                {"reviewers": list(options.reviewers)},
            )
        if options.labels:
            self._client.request("POST", f"issues/{number}/labels", {"labels": list(options.labels)})
        return PullRequestInfo(
            id=str(body.get("id", number)),
            number=number,
            url=str(body.get("html_url", "")),
            status="open",
            source_branch=options.source_branch,
            target_branch=options.target_branch,
        )


__all__ = ["BASE_ISSUE_LABELS", "GitHubBugTracker", "GitHubClient", "GitHubPRProvider"]
