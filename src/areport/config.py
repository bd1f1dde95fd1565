"""Reporter configuration: YAML on disk, validated with pydantic."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError

DEFAULT_CONFIG_NAME = "areport.yaml"


class ConfigModel(BaseModel):
    """Strict base: unknown keys are rejected, camelCase aliases are accepted."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class OpenAIProviderConfig(ConfigModel):
    kind: Literal["openai"]
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1/responses"
    timeout: float = Field(default=60.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=0.5, ge=0)
    temperature: float = 0.7
    max_output_tokens: int = Field(default=1000, gt=0)


class OfflineAIProviderConfig(ConfigModel):
    kind: Literal["offline"]


class GitHubBugTrackerConfig(ConfigModel):
    kind: Literal["github"]
    repository: str
    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    labels: List[str] = Field(default_factory=list)
    timeout: float = Field(default=30.0, gt=0)


class GitHubPRConfig(ConfigModel):
    kind: Literal["github"]
    repository: str
    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    timeout: float = Field(default=30.0, gt=0)


class SQLiteDatabaseConfig(ConfigModel):
    kind: Literal["sqlite"]
    path: str = "data/test-results.sqlite"


class EmailNotificationConfig(ConfigModel):
    kind: Literal["email"]
    smtp_host: str
    smtp_port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str = "areport@localhost"
    use_tls: bool = True
    use_ssl: bool = False
    timeout: float = Field(default=30.0, gt=0)


AIProviderConfig = Annotated[
    Union[OpenAIProviderConfig, OfflineAIProviderConfig],
    Field(discriminator="kind"),
]
# Single-kind slots: the Literal "kind" field already rejects unknown providers.
BugTrackerConfig = GitHubBugTrackerConfig
PRConfig = GitHubPRConfig
DatabaseConfig = SQLiteDatabaseConfig
NotificationConfig = EmailNotificationConfig


class ProvidersConfig(ConfigModel):
    """One optional, kind-tagged entry per collaborator slot."""

    ai: Optional[AIProviderConfig] = None
    bug_tracker: Optional[BugTrackerConfig] = None
    pr: Optional[PRConfig] = None
    database: Optional[DatabaseConfig] = None
    notification: Optional[NotificationConfig] = None


class ReporterConfig(ConfigModel):
    """Every knob the reporter and its pipeline channels understand."""

    slow_test_threshold: float = Field(default=5.0, ge=0)
    max_slow_tests_to_show: int = Field(default=3, ge=0)
    timeout_warning_threshold: float = Field(default=30.0, ge=0)
    show_stack_trace: bool = True
    output_dir: Path = Path("test-results")
    generate_fix: bool = False
    create_bug: bool = False
    generate_pr: bool = False
    publish_to_db: bool = False
    send_email: bool = False
    base_branch: Optional[str] = None
    pr_draft: bool = True
    recipients: List[str] = Field(default_factory=list)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)

    def resolved_base_branch(self, environ: Mapping[str, str] | None = None) -> str:
        env = os.environ if environ is None else environ
        return self.base_branch or env.get("BASE_BRANCH") or env.get("GITHUB_BASE_REF") or "main"

    def resolved_recipients(self, environ: Mapping[str, str] | None = None) -> list[str]:
        if self.recipients:
            return [entry.strip() for entry in self.recipients if entry.strip()]
        env = os.environ if environ is None else environ
        raw = env.get("EMAIL_RECIPIENTS") or ""
        return [entry.strip() for entry in raw.split(",") if entry.strip()]


def config_from_mapping(data: Mapping[str, Any]) -> ReporterConfig:
    """Validate a raw mapping, converting schema errors into ``ConfigurationError``."""
    try:
        return ReporterConfig.model_validate(dict(data))
    except ValidationError as error:
        raise ConfigurationError(f"Invalid reporter configuration: {error}") from error


def load_config(config_path: Path | str) -> ReporterConfig:
    """Load YAML configuration from disk and validate it."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigurationError(f"Failed to parse config: {error}") from error

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping at the top level.")

    # Relative output directories are anchored next to the config file.
    config = config_from_mapping(data)
    if not config.output_dir.is_absolute():
        config = config.model_copy(update={"output_dir": (path.parent / config.output_dir).resolve()})
    return config


@dataclass(slots=True)
class ChannelIssue:
    """Configuration problem that will make an enabled channel skip its work."""

    channel: str
    message: str
    hint: str


def validate_channels(config: ReporterConfig, environ: Mapping[str, str] | None = None) -> list[ChannelIssue]:
    """List enabled channels whose collaborator configuration is incomplete."""
    providers = config.providers
    issues: list[ChannelIssue] = []
    if config.generate_fix and providers.ai is None:
        issues.append(
            ChannelIssue(
                "fix_suggestion",
                "AI provider is not configured.",
                "Add providers.ai (kind: openai or offline).",
            )
        )
    if config.generate_pr:
        if not config.generate_fix:
            issues.append(
                ChannelIssue(
                    "pr_automation",
                    "Pull requests are only created from generated fixes.",
                    "Enable generate_fix alongside generate_pr.",
                )
            )
        if providers.pr is None:
            issues.append(
                ChannelIssue("pr_automation", "PR provider is not configured.", "Add providers.pr (kind: github).")
            )
    if config.create_bug and providers.bug_tracker is None:
        issues.append(
            ChannelIssue(
                "bug_filing",
                "Bug tracker provider is not configured.",
                "Add providers.bug_tracker (kind: github).",
            )
        )
    if config.publish_to_db and providers.database is None:
        issues.append(
            ChannelIssue(
                "db_publish",
                "Database provider is not configured.",
                "Add providers.database (kind: sqlite).",
            )
        )
    if config.send_email:
        if providers.notification is None:
            issues.append(
                ChannelIssue(
                    "notification",
                    "Notification provider is not configured.",
                    "Add providers.notification (kind: email).",
                )
            )
        if not config.resolved_recipients(environ):
            issues.append(
                ChannelIssue(
                    "notification",
                    "No notification recipients configured.",
                    "Set recipients in the config or EMAIL_RECIPIENTS=dev@example.com,qa@example.com.",
                )
            )
    return issues


def describe_config(config: ReporterConfig) -> Dict[str, Any]:
    """Return a flat view of toggles and configured provider kinds for display."""
    providers = config.providers
    return {
        "generate_fix": config.generate_fix,
        "create_bug": config.create_bug,
        "generate_pr": config.generate_pr,
        "publish_to_db": config.publish_to_db,
        "send_email": config.send_email,
        "output_dir": config.output_dir.as_posix(),
        "providers": {
            "ai": providers.ai.kind if providers.ai else None,
            "bug_tracker": providers.bug_tracker.kind if providers.bug_tracker else None,
            "pr": providers.pr.kind if providers.pr else None,
            "database": providers.database.kind if providers.database else None,
            "notification": providers.notification.kind if providers.notification else None,
        },
    }


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "ChannelIssue",
    "EmailNotificationConfig",
    "GitHubBugTrackerConfig",
    "GitHubPRConfig",
    "OfflineAIProviderConfig",
    "OpenAIProviderConfig",
    "ProvidersConfig",
    "ReporterConfig",
    "SQLiteDatabaseConfig",
    "config_from_mapping",
    "describe_config",
    "load_config",
    "validate_channels",
]
