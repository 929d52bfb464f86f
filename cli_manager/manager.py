"""
ToolManager: the entry point for the presentation layer.

Bundles the host platform, tool registry, configuration and shared HTTP
client, and exposes status and install/update/uninstall/repair operations
keyed by tool key.
"""

from __future__ import annotations

from typing import Iterable

from .bulk import BulkResult, ProgressTracker, install_all, repair_all, uninstall_all, update_all
from .catalog import load_tool_registry
from .collectors import HttpClient
from .config import Config, load_config
from .environment import Platform, detect_platform
from .installer import InstallResult, RepairResult, UninstallResult, install_tool, repair_tool, uninstall_tool
from .package_managers import detect_available_managers
from .prerequisites import EnvironmentReport, build_environment_report
from .status import ToolStatus, aggregate_all, get_tool_status
from .tools import ToolDefinition, ToolRegistry
from .upgrade import UpdateResult, update_tool


class ToolManager:
    """
    Facade over the resolution and orchestration functions.

    Args:
        registry: Tool registry (loaded from the catalog if None)
        platform: Host platform (detected if None)
        config: Configuration (loaded from config files if None)
        client: Shared HTTP client (built from config if None)
        verbose: Enable verbose logging
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        platform: Platform | None = None,
        config: Config | None = None,
        client: HttpClient | None = None,
        verbose: bool = False,
    ):
        self.verbose = verbose
        self.config = config if config is not None else load_config(verbose=verbose)
        self.registry = registry if registry is not None else load_tool_registry()
        self.platform = platform if platform is not None else detect_platform(verbose=verbose)
        prefs = self.config.preferences
        self.client = client if client is not None else HttpClient(
            timeout=prefs.http_timeout,
            user_agent=prefs.user_agent,
        )

    def _tools(self, keys: Iterable[str] | None) -> list[ToolDefinition]:
        if keys is None:
            return self.registry.all()
        return [self.registry.require(key) for key in keys]

    def _tool_preferences(self) -> dict[str, str | None]:
        return {key: cfg.method for key, cfg in self.config.tools.items() if cfg.method}

    def aggregate_all(
        self,
        keys: Iterable[str] | None = None,
        always_resolve_latest: bool = False,
    ) -> list[ToolStatus]:
        """Status of every tool (or the given keys), computed concurrently."""
        prefs = self.config.preferences
        return aggregate_all(
            self._tools(keys),
            self.platform,
            self.client,
            max_workers=prefs.max_workers,
            probe_timeout=prefs.probe_timeout_seconds,
            always_resolve_latest=always_resolve_latest,
            verbose=self.verbose,
        )

    def status(self, key: str, always_resolve_latest: bool = False) -> ToolStatus:
        """
        Status of one tool.

        Raises:
            KeyError: If no tool has this key
        """
        tool = self.registry.require(key)
        return get_tool_status(
            tool,
            self.platform,
            self.client,
            detect_available_managers(self.platform, self.verbose),
            probe_timeout=self.config.preferences.probe_timeout_seconds,
            always_resolve_latest=always_resolve_latest,
            verbose=self.verbose,
        )

    def install(self, key: str, preferred: str | None = None, force: bool = False) -> InstallResult:
        """
        Install one tool.

        Raises:
            KeyError: If no tool has this key
        """
        tool = self.registry.require(key)
        prefs = self.config.preferences
        return install_tool(
            tool,
            self.platform,
            preferred=preferred or self.config.preferred_method_for(tool.key),
            force=force,
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            verbose=self.verbose,
        )

    def update(self, key: str, preferred: str | None = None) -> UpdateResult:
        """
        Update one tool.

        Raises:
            KeyError: If no tool has this key
        """
        tool = self.registry.require(key)
        prefs = self.config.preferences
        return update_tool(
            tool,
            self.platform,
            self.client,
            preferred=preferred or self.config.preferred_method_for(tool.key),
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            verbose=self.verbose,
        )

    def uninstall(self, key: str, force: bool = False) -> UninstallResult:
        """
        Uninstall one tool.

        Raises:
            KeyError: If no tool has this key
        """
        tool = self.registry.require(key)
        prefs = self.config.preferences
        return uninstall_tool(
            tool,
            self.platform,
            force=force,
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            verbose=self.verbose,
        )

    def repair(self, key: str, preferred: str | None = None) -> RepairResult:
        """
        Repair one tool.

        Raises:
            KeyError: If no tool has this key
        """
        tool = self.registry.require(key)
        prefs = self.config.preferences
        return repair_tool(
            tool,
            self.platform,
            preferred=preferred or self.config.preferred_method_for(tool.key),
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            verbose=self.verbose,
        )

    def install_all(
        self,
        keys: Iterable[str] | None = None,
        preferred: str | None = None,
        force: bool = False,
        progress: ProgressTracker | None = None,
    ) -> BulkResult:
        """Install every tool (or the given keys) sequentially."""
        prefs = self.config.preferences
        return install_all(
            self._tools(keys),
            self.platform,
            preferred=preferred or prefs.preferred_method,
            tool_preferences=None if preferred else self._tool_preferences(),
            force=force,
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            progress=progress,
            verbose=self.verbose,
        )

    def update_all(
        self,
        keys: Iterable[str] | None = None,
        preferred: str | None = None,
        progress: ProgressTracker | None = None,
    ) -> BulkResult:
        """Update every tool (or the given keys) sequentially."""
        prefs = self.config.preferences
        return update_all(
            self._tools(keys),
            self.platform,
            self.client,
            preferred=preferred or prefs.preferred_method,
            tool_preferences=None if preferred else self._tool_preferences(),
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            progress=progress,
            verbose=self.verbose,
        )

    def uninstall_all(
        self,
        keys: Iterable[str] | None = None,
        force: bool = False,
        progress: ProgressTracker | None = None,
    ) -> BulkResult:
        """Uninstall every tool (or the given keys) sequentially."""
        prefs = self.config.preferences
        return uninstall_all(
            self._tools(keys),
            self.platform,
            force=force,
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            progress=progress,
            verbose=self.verbose,
        )

    def repair_all(
        self,
        keys: Iterable[str] | None = None,
        preferred: str | None = None,
        progress: ProgressTracker | None = None,
    ) -> BulkResult:
        """Repair every tool (or the given keys) sequentially."""
        prefs = self.config.preferences
        return repair_all(
            self._tools(keys),
            self.platform,
            preferred=preferred or prefs.preferred_method,
            tool_preferences=None if preferred else self._tool_preferences(),
            command_timeout=prefs.command_timeout_seconds,
            probe_timeout=prefs.probe_timeout_seconds,
            progress=progress,
            verbose=self.verbose,
        )

    def environment_report(self) -> EnvironmentReport:
        """Platform, package managers, prerequisites and API-key variables."""
        return build_environment_report(self.registry, self.platform, verbose=self.verbose)
