"""
Batch install, update, uninstall and repair.

Tools are processed one at a time in the given order, since installers
contend for package-manager locks and caches. Every tool gets exactly one
result; an unexpected exception becomes a failed result for that tool only.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from .collectors import HttpClient
from .common import ErrorKind, Outcome
from .detection import DEFAULT_PROBE_TIMEOUT
from .environment import Platform
from .executor import DEFAULT_COMMAND_TIMEOUT
from .installer import (
    InstallResult,
    RepairResult,
    UninstallResult,
    install_tool,
    repair_tool,
    uninstall_tool,
)
from .tools import ToolDefinition
from .upgrade import UpdateResult, update_tool

logger = logging.getLogger(__name__)

_IN_PROGRESS_MESSAGES = {
    "install": "Installing...",
    "update": "Updating...",
    "uninstall": "Uninstalling...",
    "repair": "Repairing...",
}


@dataclass
class ProgressTracker:
    """
    Thread-safe progress tracking for batch operations.

    Attributes:
        _lock: Threading lock for thread-safe updates
        _progress: Progress state for each tool
        _callbacks: Callbacks to invoke on progress updates
    """
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _progress: dict[str, dict] = field(default_factory=dict)
    _callbacks: list[Callable[[str, str, str], None]] = field(default_factory=list)

    def register_callback(self, callback: Callable[[str, str, str], None]) -> None:
        """Register a callback for progress updates."""
        with self._lock:
            self._callbacks.append(callback)

    def update(self, tool_key: str, status: str, message: str = "") -> None:
        """
        Update progress for a tool.

        Args:
            tool_key: Key of the tool
            status: "pending", "in_progress", or a terminal Outcome value
            message: Optional status message
        """
        with self._lock:
            self._progress[tool_key] = {
                "status": status,
                "message": message,
                "timestamp": time.time(),
            }
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(tool_key, status, message)

    def get_progress(self, tool_key: str) -> dict | None:
        """Get progress for a specific tool."""
        with self._lock:
            return self._progress.get(tool_key)

    def get_all_progress(self) -> dict[str, dict]:
        """Get progress for all tools."""
        with self._lock:
            return self._progress.copy()

    def get_summary(self) -> dict[str, int]:
        """Get summary counts by status."""
        with self._lock:
            summary = {"pending": 0, "in_progress": 0}
            summary.update({outcome.value: 0 for outcome in Outcome})
            for progress in self._progress.values():
                status = progress.get("status", "pending")
                summary[status] = summary.get(status, 0) + 1
            return summary


@dataclass(frozen=True)
class BulkResult:
    """
    Result of a batch operation.

    Attributes:
        operation: "install", "update", "uninstall" or "repair"
        results: One result per tool key, in processing order
        duration_seconds: Total execution time
    """
    operation: str
    results: dict[str, Any]
    duration_seconds: float = 0.0

    def summary(self) -> dict[str, int]:
        """Count results per outcome."""
        counts = {outcome.value: 0 for outcome in Outcome}
        for result in self.results.values():
            counts[result.outcome.value] += 1
        return counts

    @property
    def failures(self) -> list[str]:
        return [key for key, result in self.results.items() if result.outcome is Outcome.FAILED]

    @property
    def success(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "operation": self.operation,
            "results": {key: result.to_dict() for key, result in self.results.items()},
            "summary": self.summary(),
            "duration_seconds": self.duration_seconds,
        }


def _run_sequential(
    operation: str,
    tools: Sequence[ToolDefinition],
    run: Callable[[ToolDefinition], Any],
    on_error: Callable[[ToolDefinition, Exception], Any],
    progress: ProgressTracker | None,
) -> BulkResult:
    start_time = time.time()

    if progress is not None:
        for tool in tools:
            progress.update(tool.key, "pending")

    results: dict[str, Any] = {}
    for tool in tools:
        if progress is not None:
            progress.update(tool.key, "in_progress", _IN_PROGRESS_MESSAGES.get(operation, ""))
        try:
            result = run(tool)
        except Exception as e:
            logger.error(f"Unexpected error during {operation} of {tool.key}: {e}")
            result = on_error(tool, e)

        results[tool.key] = result
        if progress is not None:
            progress.update(tool.key, result.outcome.value, result.error_message or "")

    return BulkResult(operation=operation, results=results, duration_seconds=time.time() - start_time)


def _preferred_for(
    tool: ToolDefinition,
    preferred: str | None,
    tool_preferences: Mapping[str, str | None] | None,
) -> str | None:
    if tool_preferences and tool_preferences.get(tool.key):
        return tool_preferences[tool.key]
    return preferred


def install_all(
    tools: Sequence[ToolDefinition],
    platform: Platform,
    preferred: str | None = None,
    tool_preferences: Mapping[str, str | None] | None = None,
    force: bool = False,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    progress: ProgressTracker | None = None,
    verbose: bool = False,
) -> BulkResult:
    """
    Install every tool, one after another.

    Available managers are detected afresh for each tool, so a manager
    installed earlier in the batch (e.g. npm) is usable for later tools.

    Args:
        tools: Tools to install
        platform: Host platform
        preferred: Preferred package manager for all tools
        tool_preferences: Per-tool preferred manager, overriding ``preferred``
        force: Reinstall tools that are already installed
        command_timeout: Wall-clock limit for each install command
        probe_timeout: Wall-clock limit for each version probe
        progress: Optional progress tracker
        verbose: Enable verbose logging

    Returns:
        BulkResult with one InstallResult per tool
    """
    return _run_sequential(
        "install",
        tools,
        lambda tool: install_tool(
            tool, platform,
            preferred=_preferred_for(tool, preferred, tool_preferences),
            force=force,
            command_timeout=command_timeout,
            probe_timeout=probe_timeout,
            verbose=verbose,
        ),
        lambda tool, e: InstallResult(
            tool_key=tool.key,
            outcome=Outcome.FAILED,
            error_message=f"Installation error: {e}",
            error_kind=ErrorKind.COMMAND_FAILED,
        ),
        progress,
    )


def update_all(
    tools: Sequence[ToolDefinition],
    platform: Platform,
    client: HttpClient,
    preferred: str | None = None,
    tool_preferences: Mapping[str, str | None] | None = None,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    progress: ProgressTracker | None = None,
    verbose: bool = False,
) -> BulkResult:
    """
    Update every tool, one after another.

    Tools that are not installed come back as failed (not_installed);
    tools already at the latest version as already_satisfied.

    Returns:
        BulkResult with one UpdateResult per tool
    """
    return _run_sequential(
        "update",
        tools,
        lambda tool: update_tool(
            tool, platform, client,
            preferred=_preferred_for(tool, preferred, tool_preferences),
            command_timeout=command_timeout,
            probe_timeout=probe_timeout,
            verbose=verbose,
        ),
        lambda tool, e: UpdateResult(
            tool_key=tool.key,
            outcome=Outcome.FAILED,
            error_message=f"Update error: {e}",
            error_kind=ErrorKind.COMMAND_FAILED,
        ),
        progress,
    )


def uninstall_all(
    tools: Sequence[ToolDefinition],
    platform: Platform,
    force: bool = False,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    progress: ProgressTracker | None = None,
    verbose: bool = False,
) -> BulkResult:
    """
    Uninstall every tool, one after another.

    Returns:
        BulkResult with one UninstallResult per tool
    """
    return _run_sequential(
        "uninstall",
        tools,
        lambda tool: uninstall_tool(
            tool, platform,
            force=force,
            command_timeout=command_timeout,
            probe_timeout=probe_timeout,
            verbose=verbose,
        ),
        lambda tool, e: UninstallResult(
            tool_key=tool.key,
            outcome=Outcome.FAILED,
            error_message=f"Uninstall error: {e}",
            error_kind=ErrorKind.COMMAND_FAILED,
        ),
        progress,
    )


def repair_all(
    tools: Sequence[ToolDefinition],
    platform: Platform,
    preferred: str | None = None,
    tool_preferences: Mapping[str, str | None] | None = None,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    progress: ProgressTracker | None = None,
    verbose: bool = False,
) -> BulkResult:
    """
    Repair every tool, one after another.

    Returns:
        BulkResult with one RepairResult per tool
    """
    return _run_sequential(
        "repair",
        tools,
        lambda tool: repair_tool(
            tool, platform,
            preferred=_preferred_for(tool, preferred, tool_preferences),
            command_timeout=command_timeout,
            probe_timeout=probe_timeout,
            verbose=verbose,
        ),
        lambda tool, e: RepairResult(
            tool_key=tool.key,
            outcome=Outcome.FAILED,
            error_message=f"Repair error: {e}",
            error_kind=ErrorKind.COMMAND_FAILED,
        ),
        progress,
    )
