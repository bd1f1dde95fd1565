from __future__ import annotations

import pytest

from areport.config import config_from_mapping
from areport.context import ProviderContext
from areport.errors import ConfigurationError
from areport.providers.llm import OfflineFixProvider
from areport.providers.sqlite import SQLiteDatabaseProvider


def test_explicit_instances_win_over_configuration(fakes) -> None:
    config = config_from_mapping({"providers": {"ai": {"kind": "offline"}}})

    context = ProviderContext.from_config(config, ai=fakes.ai)

    assert context.ai() is fakes.ai


def test_configured_providers_are_built_once_and_closed(tmp_path) -> None:
    config = config_from_mapping(
        {
            "providers": {
                "ai": {"kind": "offline"},
                "database": {"kind": "sqlite", "path": str(tmp_path / "results.sqlite")},
            }
        }
    )
    context = ProviderContext.from_config(config)

    database = context.database()

    assert isinstance(context.ai(), OfflineFixProvider)
    assert isinstance(database, SQLiteDatabaseProvider)
    assert context.database() is database
    context.close()
    assert database._conn is None


def test_missing_slot_raises_configuration_error() -> None:
    context = ProviderContext()

    assert context.is_available("bug_tracker") is False
    with pytest.raises(ConfigurationError, match="Bug tracker provider configuration not found"):
        context.bug_tracker()


def test_close_leaves_injected_collaborators_alone(fakes) -> None:
    closed = []
    fakes.database.close = lambda: closed.append(True)
    context = ProviderContext(database=fakes.database)

    context.database()
    context.close()

    assert closed == []
