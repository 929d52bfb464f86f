"""
Status aggregation: installed version, latest version and usable install
methods for every tool, computed concurrently.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Collection, Sequence

from .collectors import HttpClient, get_latest_version
from .detection import DEFAULT_PROBE_TIMEOUT, find_executable, probe_installed_version
from .environment import Platform
from .package_managers import (
    ManagerId,
    detect_available_managers,
    get_available_install_methods,
)
from .tools import ToolDefinition
from .upgrade import UpdateState, check_update

logger = logging.getLogger(__name__)


DEFAULT_MAX_WORKERS = 16


@dataclass(frozen=True)
class ToolStatus:
    """
    Point-in-time status of one tool.

    Attributes:
        tool: Tool definition
        installed: Whether an installed version was resolved
        installed_version: Installed version ("" if not installed)
        latest_version: Latest available version ("" if unresolvable or not looked up)
        has_update: True only when both versions resolved and latest is newer
        update_state: Explicit update verdict (UNKNOWN when versions don't compare)
        install_methods: Managers that could install the tool on this host, in priority order
        probe_error: Why no installed version was resolved
        latest_error: Why no latest version was resolved
        path: Resolved path of the base executable
    """
    tool: ToolDefinition
    installed: bool
    installed_version: str = ""
    latest_version: str = ""
    has_update: bool = False
    update_state: UpdateState = UpdateState.NOT_INSTALLED
    install_methods: tuple[ManagerId, ...] = ()
    probe_error: str | None = None
    latest_error: str | None = None
    path: str | None = None

    @property
    def key(self) -> str:
        return self.tool.key

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "key": self.tool.key,
            "name": self.tool.name,
            "installed": self.installed,
            "installed_version": self.installed_version,
            "latest_version": self.latest_version,
            "has_update": self.has_update,
            "update_state": self.update_state.value,
            "install_methods": [m.value for m in self.install_methods],
            "probe_error": self.probe_error,
            "latest_error": self.latest_error,
            "path": self.path,
        }


def get_tool_status(
    tool: ToolDefinition,
    platform: Platform,
    client: HttpClient,
    available: Collection[ManagerId],
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    always_resolve_latest: bool = False,
    verbose: bool = False,
) -> ToolStatus:
    """
    Compute the status of a single tool.

    Probe, then (when installed) resolve latest and compare. A remote
    failure only blanks the latest version; the probe result is kept.

    Args:
        tool: Tool definition
        platform: Host platform
        client: Shared HTTP client
        available: Usable managers
        probe_timeout: Wall-clock limit for the version probe
        always_resolve_latest: Resolve latest even for tools that are not installed
        verbose: Enable verbose logging

    Returns:
        ToolStatus for the tool
    """
    installed = probe_installed_version(tool, platform, probe_timeout, verbose)

    latest_version = ""
    latest_error = None
    if installed.ok or always_resolve_latest:
        latest = get_latest_version(tool, client, platform)
        latest_version = latest.version
        latest_error = latest.error or None

    state, compare_error = check_update(installed.version, latest_version)
    if state is UpdateState.UNKNOWN and latest_version and compare_error:
        logger.debug(f"{tool.key}: {compare_error}")
        latest_error = latest_error or compare_error

    methods = get_available_install_methods(tool.install_spec_for(platform), platform, available)

    return ToolStatus(
        tool=tool,
        installed=installed.ok,
        installed_version=installed.version,
        latest_version=latest_version,
        has_update=state is UpdateState.UPDATE_AVAILABLE,
        update_state=state,
        install_methods=tuple(methods),
        probe_error=installed.error or None,
        latest_error=latest_error,
        path=find_executable(tool) if installed.ok else None,
    )


def aggregate_all(
    tools: Sequence[ToolDefinition],
    platform: Platform,
    client: HttpClient,
    available: Collection[ManagerId] | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    always_resolve_latest: bool = False,
    verbose: bool = False,
) -> list[ToolStatus]:
    """
    Compute status for every tool concurrently.

    One task per tool writes only to its own pre-allocated slot; the result
    list is returned after all tasks complete, in input order.

    Args:
        tools: Tools to inspect
        platform: Host platform
        client: Shared HTTP client
        available: Usable managers (detected once for the whole call if None)
        max_workers: Upper bound on concurrent tasks
        probe_timeout: Wall-clock limit for each version probe
        always_resolve_latest: Resolve latest even for tools that are not installed
        verbose: Enable verbose logging

    Returns:
        One ToolStatus per input tool, in input order
    """
    tools = list(tools)
    if not tools:
        return []

    if available is None:
        available = detect_available_managers(platform, verbose)

    slots: list[ToolStatus | None] = [None] * len(tools)

    def task(index: int, tool: ToolDefinition) -> None:
        try:
            slots[index] = get_tool_status(
                tool, platform, client, available,
                probe_timeout=probe_timeout,
                always_resolve_latest=always_resolve_latest,
                verbose=verbose,
            )
        except Exception as e:
            logger.error(f"{tool.key}: status check failed: {e}")
            slots[index] = ToolStatus(tool=tool, installed=False, probe_error=f"status check failed: {e}")

    workers = max(1, min(len(tools), max_workers))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(task, index, tool) for index, tool in enumerate(tools)]
        wait(futures)

    return [
        status if status is not None else ToolStatus(tool=tool, installed=False, probe_error="status check did not complete")
        for tool, status in zip(tools, slots)
    ]
