from __future__ import annotations

from pathlib import Path

import pytest

from areport.config import (
    OfflineAIProviderConfig,
    ReporterConfig,
    SQLiteDatabaseConfig,
    config_from_mapping,
    describe_config,
    load_config,
    validate_channels,
)
from areport.errors import ConfigurationError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "areport.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults() -> None:
    config = ReporterConfig()

    assert config.slow_test_threshold == 5.0
    assert config.max_slow_tests_to_show == 3
    assert not any([config.generate_fix, config.create_bug, config.generate_pr, config.publish_to_db, config.send_email])
    assert config.pr_draft is True


def test_load_accepts_camel_case_and_validates_provider_kinds(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
slowTestThreshold: 2
maxSlowTestsToShow: 5
outputDir: out
generateFix: true
publishToDb: true
providers:
  ai:
    kind: offline
  database:
    kind: sqlite
    path: results.sqlite
""",
    )

    config = load_config(path)

    assert config.slow_test_threshold == 2.0
    assert config.max_slow_tests_to_show == 5
    assert config.output_dir == (tmp_path / "out").resolve()
    assert isinstance(config.providers.ai, OfflineAIProviderConfig)
    assert isinstance(config.providers.database, SQLiteDatabaseConfig)
    assert config.providers.database.path == "results.sqlite"


def test_unknown_provider_kind_is_rejected_at_load_time(tmp_path: Path) -> None:
    path = _write(tmp_path, "providers:\n  ai:\n    kind: mystery-llm\n")

    with pytest.raises(ConfigurationError):
        load_config(path)


def test_unknown_top_level_key_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        config_from_mapping({"generate_fixes": True})


@pytest.mark.parametrize("text", ["- just\n- a list\n", "key: [unclosed\n"])
def test_malformed_documents_raise_configuration_error(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, text))


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_base_branch_and_recipient_fallbacks() -> None:
    config = ReporterConfig()

    assert config.resolved_base_branch({}) == "main"
    assert config.resolved_base_branch({"GITHUB_BASE_REF": "develop"}) == "develop"
    assert config.resolved_base_branch({"BASE_BRANCH": "release", "GITHUB_BASE_REF": "develop"}) == "release"
    assert ReporterConfig(base_branch="trunk").resolved_base_branch({"BASE_BRANCH": "x"}) == "trunk"

    assert config.resolved_recipients({"EMAIL_RECIPIENTS": "dev@example.com, qa@example.com,"}) == [
        "dev@example.com",
        "qa@example.com",
    ]
    assert ReporterConfig(recipients=["lead@example.com"]).resolved_recipients({"EMAIL_RECIPIENTS": "x@y"}) == [
        "lead@example.com"
    ]


def test_validate_channels_lists_missing_collaborators() -> None:
    config = config_from_mapping(
        {"generate_fix": False, "generate_pr": True, "create_bug": True, "send_email": True}
    )

    issues = validate_channels(config, environ={})
    channels = [issue.channel for issue in issues]

    assert channels == ["pr_automation", "pr_automation", "bug_filing", "notification", "notification"]
    assert all(issue.hint for issue in issues)


def test_validate_channels_is_quiet_for_a_complete_config() -> None:
    config = config_from_mapping(
        {
            "generate_fix": True,
            "publish_to_db": True,
            "providers": {"ai": {"kind": "offline"}, "database": {"kind": "sqlite"}},
        }
    )

    assert validate_channels(config, environ={}) == []
    assert describe_config(config)["providers"] == {
        "ai": "offline",
        "bug_tracker": None,
        "pr": None,
        "database": "sqlite",
        "notification": None,
    }
