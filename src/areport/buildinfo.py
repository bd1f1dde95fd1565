"""CI metadata attached to run summaries."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from .summary import BuildInfo


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


def _github_build_url(env: Mapping[str, str]) -> Optional[str]:
    server = env.get("GITHUB_SERVER_URL")
    repository = env.get("GITHUB_REPOSITORY")
    run_id = env.get("GITHUB_RUN_ID")
    if server and repository and run_id:
        return f"{server}/{repository}/actions/runs/{run_id}"
    return None


def _azure_build_url(env: Mapping[str, str]) -> Optional[str]:
    collection = env.get("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI")
    project = env.get("SYSTEM_TEAMPROJECT")
    build_id = env.get("BUILD_BUILDID")
    if collection and project and build_id:
        return f"{collection.rstrip('/')}/{project}/_build/results?buildId={build_id}"
    return None


def collect_build_info(environ: Mapping[str, str] | None = None) -> BuildInfo:
    """Read branch, commit and build identifiers from GitHub Actions, Azure Pipelines or plain env vars."""
    env = os.environ if environ is None else environ

    if env.get("GITHUB_ACTIONS") == "true":
        return BuildInfo(
            build_id=env.get("GITHUB_RUN_ID"),
            build_url=_github_build_url(env),
            branch=_first(env, "GITHUB_HEAD_REF", "GITHUB_REF_NAME"),
            commit_id=env.get("GITHUB_SHA"),
            environment=_first(env, "TEST_ENV", "NODE_ENV") or "ci",
            metadata={"provider": "github-actions"},
        )

    if env.get("TF_BUILD") == "True":
        return BuildInfo(
            build_id=env.get("BUILD_BUILDID"),
            build_url=_azure_build_url(env),
            branch=env.get("BUILD_SOURCEBRANCHNAME"),
            commit_id=env.get("BUILD_SOURCEVERSION"),
            environment=_first(env, "TEST_ENV", "NODE_ENV") or "ci",
            metadata={"provider": "azure-pipelines"},
        )

    return BuildInfo(
        build_id=env.get("BUILD_ID"),
        build_url=env.get("BUILD_URL"),
        branch=_first(env, "BUILD_BRANCH", "GIT_BRANCH"),
        commit_id=_first(env, "COMMIT_ID", "GIT_COMMIT"),
        environment=_first(env, "TEST_ENV", "NODE_ENV") or "local",
    )


__all__ = ["collect_build_info"]
