"""
Install, uninstall and repair orchestration for a single tool.

Each orchestrator runs under the tool's lock and returns a result record;
per-tool failures never raise.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Collection

from .common import ErrorKind, Outcome, truncate, vlog
from .detection import DEFAULT_PROBE_TIMEOUT, probe_installed_version, verify_installed
from .environment import Platform
from .executor import DEFAULT_COMMAND_TIMEOUT, CommandResult, run_shell_command
from .locks import tool_lock
from .package_managers import (
    ManagerId,
    detect_available_managers,
    get_available_install_methods,
    select_install_method,
)
from .tools import ToolDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallResult:
    """
    Complete result of tool installation.

    Attributes:
        tool_key: Key of the tool
        outcome: success, already_satisfied or failed
        method: Package manager that performed installation
        version: Version resolvable after installation
        output: Captured output of the install command
        error_message: Human-readable error message if failed
        error_kind: Error classification if failed
        command_result: Underlying command execution result
        recovered_path: Directory added to PATH to make the tool resolvable
        duration_seconds: Total installation time
    """
    tool_key: str
    outcome: Outcome
    method: ManagerId | None = None
    version: str = ""
    output: str = ""
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    command_result: CommandResult | None = None
    recovered_path: str | None = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome is not Outcome.FAILED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tool_key": self.tool_key,
            "outcome": self.outcome.value,
            "method": self.method.value if self.method else None,
            "version": self.version,
            "output": self.output,
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "command_result": self.command_result.to_dict() if self.command_result else None,
            "recovered_path": self.recovered_path,
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class UninstallAttempt:
    """One uninstall command tried for a tool."""
    method: ManagerId
    command_result: CommandResult

    def to_dict(self) -> dict:
        return {"method": self.method.value, "command_result": self.command_result.to_dict()}


@dataclass(frozen=True)
class UninstallResult:
    """
    Result of uninstalling a single tool.

    Attributes:
        tool_key: Key of the tool
        outcome: success, already_satisfied or failed
        attempts: Every uninstall command tried, in order
        error_message: Human-readable error message if failed
        error_kind: Error classification if failed
        still_installed: Whether a version was still resolvable afterwards
        duration_seconds: Total uninstall time
    """
    tool_key: str
    outcome: Outcome
    attempts: tuple[UninstallAttempt, ...] = ()
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    still_installed: bool = False
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome is not Outcome.FAILED

    @property
    def methods_succeeded(self) -> list[ManagerId]:
        return [a.method for a in self.attempts if a.command_result.success]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tool_key": self.tool_key,
            "outcome": self.outcome.value,
            "attempts": [a.to_dict() for a in self.attempts],
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "still_installed": self.still_installed,
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class RepairResult:
    """
    Result of repairing (uninstall then reinstall) a single tool.

    Attributes:
        tool_key: Key of the tool
        outcome: success or failed
        uninstall: Result of the best-effort uninstall
        install: Result of the forced install
        version: Version resolvable after repair
        error_message: Human-readable error message if failed
        error_kind: Error classification if failed
        duration_seconds: Total repair time
    """
    tool_key: str
    outcome: Outcome
    uninstall: UninstallResult | None = None
    install: InstallResult | None = None
    version: str = ""
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome is not Outcome.FAILED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tool_key": self.tool_key,
            "outcome": self.outcome.value,
            "uninstall": self.uninstall.to_dict() if self.uninstall else None,
            "install": self.install.to_dict() if self.install else None,
            "version": self.version,
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "duration_seconds": self.duration_seconds,
        }


def install_tool(
    tool: ToolDefinition,
    platform: Platform,
    available: Collection[ManagerId] | None = None,
    preferred: ManagerId | str | None = None,
    force: bool = False,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    verbose: bool = False,
) -> InstallResult:
    """
    Install a single tool.

    A tool whose command exits zero but still does not resolve gets one
    PATH recovery attempt; if it still cannot be found the result is a
    verification failure, never a success.

    Args:
        tool: Tool definition
        platform: Host platform
        available: Usable managers (detected if None)
        preferred: Preferred package manager
        force: Install even if a version is already resolvable
        command_timeout: Wall-clock limit for the install command
        probe_timeout: Wall-clock limit for each version probe
        verbose: Enable verbose logging

    Returns:
        InstallResult with installation outcome
    """
    with tool_lock(tool.key):
        start_time = time.time()

        if not force:
            current = probe_installed_version(tool, platform, probe_timeout, verbose)
            if current.ok:
                vlog(f"{tool.key}: already installed ({current.version})", verbose)
                return InstallResult(
                    tool_key=tool.key,
                    outcome=Outcome.ALREADY_SATISFIED,
                    version=current.version,
                    duration_seconds=time.time() - start_time,
                )

        if available is None:
            available = detect_available_managers(platform, verbose)
        selection = select_install_method(tool.install_spec_for(platform), platform, available, preferred, verbose)
        if selection is None:
            declared = ", ".join(m.value for m in tool.install_spec_for(platform)) or "none"
            return InstallResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                error_message=f"No install method available for '{tool.key}' on {platform} "
                              f"(declared: {declared})",
                error_kind=ErrorKind.NO_INSTALL_METHOD,
                duration_seconds=time.time() - start_time,
            )

        logger.info(f"Installing {tool.name} via {selection.manager.value}")
        result = run_shell_command(selection.command, timeout=command_timeout, platform=platform, verbose=verbose)
        if not result.success:
            return InstallResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                method=selection.manager,
                output=result.output,
                error_message=f"Installation of '{tool.key}' via {selection.manager.value} failed: "
                              f"{result.error_message or truncate(result.stderr)}",
                error_kind=ErrorKind.COMMAND_FAILED,
                command_result=result,
                duration_seconds=time.time() - start_time,
            )

        after, recovered = verify_installed(tool, platform, probe_timeout, verbose)
        if not after.ok:
            return InstallResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                method=selection.manager,
                output=result.output,
                error_message=f"Install command for '{tool.key}' succeeded but the tool is still "
                              f"not resolvable: {after.error}",
                error_kind=ErrorKind.VERIFICATION_FAILED,
                command_result=result,
                duration_seconds=time.time() - start_time,
            )

        logger.info(f"{tool.name} {after.version} installed")
        return InstallResult(
            tool_key=tool.key,
            outcome=Outcome.SUCCESS,
            method=selection.manager,
            version=after.version,
            output=result.output,
            command_result=result,
            recovered_path=recovered,
            duration_seconds=time.time() - start_time,
        )


def uninstall_tool(
    tool: ToolDefinition,
    platform: Platform,
    available: Collection[ManagerId] | None = None,
    force: bool = False,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    verbose: bool = False,
) -> UninstallResult:
    """
    Uninstall a single tool.

    Every declared uninstall command whose manager is usable is tried in
    priority order, since the tool may have been installed by any of them.
    A failing command is logged and the next one is still attempted.

    Args:
        tool: Tool definition
        platform: Host platform
        available: Usable managers (detected if None)
        force: Run uninstall commands even if the tool does not resolve
        command_timeout: Wall-clock limit for each uninstall command
        probe_timeout: Wall-clock limit for each version probe
        verbose: Enable verbose logging

    Returns:
        UninstallResult with uninstall outcome
    """
    with tool_lock(tool.key):
        start_time = time.time()

        spec = tool.uninstall_spec_for(platform)
        if not spec:
            return UninstallResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                error_message=f"No uninstall method defined for '{tool.key}' on {platform}",
                error_kind=ErrorKind.NO_INSTALL_METHOD,
                duration_seconds=time.time() - start_time,
            )

        if not force:
            current = probe_installed_version(tool, platform, probe_timeout, verbose)
            if not current.ok:
                vlog(f"{tool.key}: not installed, nothing to uninstall", verbose)
                return UninstallResult(
                    tool_key=tool.key,
                    outcome=Outcome.ALREADY_SATISFIED,
                    duration_seconds=time.time() - start_time,
                )

        if available is None:
            available = detect_available_managers(platform, verbose)
        methods = get_available_install_methods(spec, platform, available)
        if not methods:
            declared = ", ".join(m.value for m in spec)
            return UninstallResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                error_message=f"No usable uninstall method for '{tool.key}' on {platform} "
                              f"(declared: {declared})",
                error_kind=ErrorKind.NO_INSTALL_METHOD,
                duration_seconds=time.time() - start_time,
            )

        attempts: list[UninstallAttempt] = []
        for method in methods:
            logger.info(f"Uninstalling {tool.name} via {method.value}")
            result = run_shell_command(spec[method], timeout=command_timeout, platform=platform, verbose=verbose)
            attempts.append(UninstallAttempt(method, result))
            if not result.success:
                logger.warning(f"{tool.key}: uninstall via {method.value} failed: {result.error_message}")

        after = probe_installed_version(tool, platform, probe_timeout, verbose)
        if any(a.command_result.success for a in attempts):
            if after.ok:
                logger.warning(f"{tool.key}: still resolvable after uninstall ({after.version})")
                return UninstallResult(
                    tool_key=tool.key,
                    outcome=Outcome.FAILED,
                    attempts=tuple(attempts),
                    error_message=f"'{tool.key}' is still installed ({after.version}) after uninstall",
                    error_kind=ErrorKind.VERIFICATION_FAILED,
                    still_installed=True,
                    duration_seconds=time.time() - start_time,
                )
            return UninstallResult(
                tool_key=tool.key,
                outcome=Outcome.SUCCESS,
                attempts=tuple(attempts),
                duration_seconds=time.time() - start_time,
            )

        errors = "; ".join(
            f"{a.method.value}: {a.command_result.error_message}" for a in attempts
        )
        return UninstallResult(
            tool_key=tool.key,
            outcome=Outcome.FAILED,
            attempts=tuple(attempts),
            error_message=f"All uninstall methods failed for '{tool.key}': {errors}",
            error_kind=ErrorKind.COMMAND_FAILED,
            still_installed=after.ok,
            duration_seconds=time.time() - start_time,
        )


def repair_tool(
    tool: ToolDefinition,
    platform: Platform,
    available: Collection[ManagerId] | None = None,
    preferred: ManagerId | str | None = None,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    verbose: bool = False,
) -> RepairResult:
    """
    Repair a tool by uninstalling (best effort) and reinstalling it.

    Args:
        tool: Tool definition
        platform: Host platform
        available: Usable managers (detected if None)
        preferred: Preferred package manager for the reinstall
        command_timeout: Wall-clock limit for each command
        probe_timeout: Wall-clock limit for each version probe
        verbose: Enable verbose logging

    Returns:
        RepairResult; success only if the final probe resolves a version
    """
    with tool_lock(tool.key):
        start_time = time.time()
        if available is None:
            available = detect_available_managers(platform, verbose)

        uninstall = uninstall_tool(
            tool, platform, available,
            force=True,
            command_timeout=command_timeout,
            probe_timeout=probe_timeout,
            verbose=verbose,
        )
        if not uninstall.success:
            vlog(f"{tool.key}: uninstall step failed, reinstalling anyway: {uninstall.error_message}", verbose)

        install = install_tool(
            tool, platform, available,
            preferred=preferred,
            force=True,
            command_timeout=command_timeout,
            probe_timeout=probe_timeout,
            verbose=verbose,
        )

        final = probe_installed_version(tool, platform, probe_timeout, verbose)
        duration = time.time() - start_time

        if not install.success:
            return RepairResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                uninstall=uninstall,
                install=install,
                version=final.version,
                error_message=f"Repair of '{tool.key}' failed: {install.error_message}",
                error_kind=install.error_kind,
                duration_seconds=duration,
            )

        if not final.ok:
            return RepairResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                uninstall=uninstall,
                install=install,
                error_message=f"'{tool.key}' is not resolvable after repair: {final.error}",
                error_kind=ErrorKind.VERIFICATION_FAILED,
                duration_seconds=duration,
            )

        return RepairResult(
            tool_key=tool.key,
            outcome=Outcome.SUCCESS,
            uninstall=uninstall,
            install=install,
            version=final.version,
            duration_seconds=duration,
        )
