"""Fix providers, one per category."""

from __future__ import annotations

from pathlib import Path

from safefix.core.config import SafeFixConfig
from safefix.fix.providers.base import FixProvider
from safefix.fix.providers.console_logs import ConsoleLogProvider
from safefix.fix.providers.debugger import DebuggerStatementProvider
from safefix.fix.providers.print_calls import PrintCallProvider

ALL_PROVIDERS: list[type[FixProvider]] = [
    ConsoleLogProvider,
    DebuggerStatementProvider,
    PrintCallProvider,
]


def enabled_providers(config: SafeFixConfig, project_root: Path | None = None) -> list[FixProvider]:
    """Instantiate every provider whose category is enabled in ``config``."""
    providers = []
    for provider_cls in ALL_PROVIDERS:
        settings = config.fixes.get(provider_cls.config_key)
        if settings is None or not settings.enabled:
            continue
        providers.append(provider_cls(config.whitelist, settings, project_root))
    return providers


__all__ = [
    "ALL_PROVIDERS",
    "FixProvider",
    "ConsoleLogProvider",
    "DebuggerStatementProvider",
    "PrintCallProvider",
    "enabled_providers",
]
