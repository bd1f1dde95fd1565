"""Explicit collaborator container injected into the post-run pipeline."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .config import ProvidersConfig, ReporterConfig
from .errors import ConfigurationError
from .providers import (
    AIFixProvider,
    BugTrackerProvider,
    DatabaseProvider,
    NotificationProvider,
    PRProvider,
    build_ai_provider,
    build_bug_tracker,
    build_database,
    build_notification,
    build_pr_provider,
)

LOGGER = logging.getLogger(__name__)

_SLOT_LABELS = {
    "ai": "AI provider",
    "bug_tracker": "Bug tracker provider",
    "pr": "PR provider",
    "database": "Database provider",
    "notification": "Notification provider",
}

_BUILDERS: Dict[str, Callable[[Any], Any]] = {
    "ai": build_ai_provider,
    "bug_tracker": build_bug_tracker,
    "pr": build_pr_provider,
    "database": build_database,
    "notification": build_notification,
}


class ProviderContext:
    """Holds collaborator instances, building configured ones on first use.

    Explicit instances win over configuration. A slot that has neither raises
    ``ConfigurationError`` when a channel asks for it, so disabled channels
    never touch their collaborators.
    """

    def __init__(
        self,
        *,
        ai: Optional[AIFixProvider] = None,
        bug_tracker: Optional[BugTrackerProvider] = None,
        pr: Optional[PRProvider] = None,
        database: Optional[DatabaseProvider] = None,
        notification: Optional[NotificationProvider] = None,
        providers_config: Optional[ProvidersConfig] = None,
    ) -> None:
        self._instances: Dict[str, Any] = {
            slot: instance
            for slot, instance in (
                ("ai", ai),
                ("bug_tracker", bug_tracker),
                ("pr", pr),
                ("database", database),
                ("notification", notification),
            )
            if instance is not None
        }
        self._config = providers_config or ProvidersConfig()
        self._built: list[str] = []

    @classmethod
    def from_config(cls, config: ReporterConfig, **instances: Any) -> "ProviderContext":
        return cls(providers_config=config.providers, **instances)

    def ai(self) -> AIFixProvider:
        return self._resolve("ai")

    def bug_tracker(self) -> BugTrackerProvider:
        return self._resolve("bug_tracker")

    def pr(self) -> PRProvider:
        return self._resolve("pr")

    def database(self) -> DatabaseProvider:
        return self._resolve("database")

    def notification(self) -> NotificationProvider:
        return self._resolve("notification")

    def is_available(self, slot: str) -> bool:
        return slot in self._instances or getattr(self._config, slot) is not None

    def close(self) -> None:
        """Close collaborators this context built itself."""
        for slot in self._built:
            closer = getattr(self._instances.get(slot), "close", None)
            if callable(closer):
                closer()
        self._built.clear()

    def _resolve(self, slot: str) -> Any:
        instance = self._instances.get(slot)
        if instance is not None:
            return instance
        slot_config = getattr(self._config, slot)
        if slot_config is None:
            raise ConfigurationError(f"{_SLOT_LABELS[slot]} configuration not found.")
        LOGGER.debug("Building %s (%s)", slot, slot_config.kind)
        instance = _BUILDERS[slot](slot_config)
        self._instances[slot] = instance
        self._built.append(slot)
        return instance


__all__ = ["ProviderContext"]
