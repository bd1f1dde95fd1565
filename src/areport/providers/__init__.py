"""Collaborator interfaces and the concrete providers built from configuration."""

from __future__ import annotations

from ..config import (
    EmailNotificationConfig,
    GitHubBugTrackerConfig,
    GitHubPRConfig,
    OfflineAIProviderConfig,
    OpenAIProviderConfig,
    SQLiteDatabaseConfig,
)
from ..errors import ConfigurationError
from .base import (
    AIFixProvider,
    BugDetails,
    BugInfo,
    BugPriority,
    BugStatus,
    BugTrackerProvider,
    DatabaseProvider,
    FileChange,
    NotificationOptions,
    NotificationProvider,
    NotificationResult,
    NotificationSeverity,
    PRProvider,
    PullRequestInfo,
    PullRequestOptions,
    TestResultRow,
    TestRunRow,
)


def build_ai_provider(config: object) -> AIFixProvider:
    if isinstance(config, OpenAIProviderConfig):
        from .llm import OpenAIFixProvider

        return OpenAIFixProvider(
            api_key=config.api_key,
            base_url=config.base_url,
            model=config.model,
            timeout=config.timeout,
            max_attempts=config.max_attempts,
            retry_delay=config.retry_delay,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
        )
    if isinstance(config, OfflineAIProviderConfig):
        from .llm import OfflineFixProvider

        return OfflineFixProvider()
    raise ConfigurationError(f"Unsupported AI provider configuration: {config!r}")


def build_bug_tracker(config: object) -> BugTrackerProvider:
    if isinstance(config, GitHubBugTrackerConfig):
        from .github import GitHubBugTracker, GitHubClient

        client = GitHubClient(config.repository, token=config.token, api_url=config.api_url, timeout=config.timeout)
        return GitHubBugTracker(client, extra_labels=config.labels)
    raise ConfigurationError(f"Unsupported bug tracker configuration: {config!r}")


def build_pr_provider(config: object) -> PRProvider:
    if isinstance(config, GitHubPRConfig):
        from .github import GitHubClient, GitHubPRProvider

        client = GitHubClient(config.repository, token=config.token, api_url=config.api_url, timeout=config.timeout)
        return GitHubPRProvider(client)
    raise ConfigurationError(f"Unsupported PR provider configuration: {config!r}")


def build_database(config: object) -> DatabaseProvider:
    if isinstance(config, SQLiteDatabaseConfig):
        from .sqlite import SQLiteDatabaseProvider

        return SQLiteDatabaseProvider(config.path)
    raise ConfigurationError(f"Unsupported database configuration: {config!r}")


def build_notification(config: object) -> NotificationProvider:
    if isinstance(config, EmailNotificationConfig):
        from .email import EmailNotificationProvider

        return EmailNotificationProvider(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            username=config.username,
            password=config.password,
            sender=config.sender,
            use_tls=config.use_tls,
            use_ssl=config.use_ssl,
            timeout=config.timeout,
        )
    raise ConfigurationError(f"Unsupported notification configuration: {config!r}")


__all__ = [
    "AIFixProvider",
    "BugDetails",
    "BugInfo",
    "BugPriority",
    "BugStatus",
    "BugTrackerProvider",
    "DatabaseProvider",
    "FileChange",
    "NotificationOptions",
    "NotificationProvider",
    "NotificationResult",
    "NotificationSeverity",
    "PRProvider",
    "PullRequestInfo",
    "PullRequestOptions",
    "TestResultRow",
    "TestRunRow",
    "build_ai_provider",
    "build_bug_tracker",
    "build_database",
    "build_notification",
    "build_pr_provider",
]
