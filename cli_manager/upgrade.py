"""
Version comparison and the update orchestrator.

An update only runs a command when the tool is installed and not already at
the latest version; afterwards the tool is re-probed and the old and new
versions are compared to report the outcome.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Collection

from packaging.version import InvalidVersion, Version

from .collectors import HttpClient, get_latest_version
from .common import ErrorKind, Outcome, truncate, vlog
from .detection import DEFAULT_PROBE_TIMEOUT, probe_installed_version, verify_installed
from .environment import Platform
from .executor import DEFAULT_COMMAND_TIMEOUT, CommandResult, run_shell_command
from .locks import tool_lock
from .package_managers import (
    ManagerId,
    detect_available_managers,
    select_install_method,
    to_update_command,
)
from .tools import ToolDefinition

logger = logging.getLogger(__name__)


class InvalidVersionError(ValueError):
    """Raised when a version string cannot be parsed."""
    pass


class UpdateState(str, Enum):
    """Update availability derived from installed and latest versions."""
    NOT_INSTALLED = "not_installed"
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    UNKNOWN = "unknown"


def parse_version(value: str) -> Version:
    """
    Parse a version string, ignoring a leading "v".

    Raises:
        InvalidVersionError: If the string is not a valid version
    """
    text = (value or "").strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        return Version(text)
    except InvalidVersion:
        raise InvalidVersionError(f"Invalid version: {value!r}") from None


def compare_versions(installed: str, latest: str) -> bool:
    """
    Check whether ``latest`` orders strictly after ``installed``.

    Missing trailing fields count as zero ("1.2" == "1.2.0").

    Args:
        installed: Installed version
        latest: Latest available version

    Returns:
        True if an update is available

    Raises:
        InvalidVersionError: If either version cannot be parsed
    """
    return parse_version(latest) > parse_version(installed)


def check_update(installed: str, latest: str) -> tuple[UpdateState, str | None]:
    """
    Derive the update state for a pair of versions without raising.

    Args:
        installed: Installed version ("" if not installed)
        latest: Latest version ("" if unresolvable)

    Returns:
        Tuple of (state, error); error explains an UNKNOWN state
    """
    if not installed:
        return UpdateState.NOT_INSTALLED, None
    if not latest:
        return UpdateState.UNKNOWN, "latest version unavailable"
    try:
        if compare_versions(installed, latest):
            return UpdateState.UPDATE_AVAILABLE, None
        return UpdateState.UP_TO_DATE, None
    except InvalidVersionError as e:
        return UpdateState.UNKNOWN, str(e)


@dataclass(frozen=True)
class UpdateResult:
    """
    Result of updating a single tool.

    Attributes:
        tool_key: Key of the tool
        outcome: success, already_satisfied or failed
        method: Package manager used (None if no command ran)
        old_version: Version before the update
        new_version: Version after the update
        latest_version: Latest version known before the update ("" if unresolved)
        was_up_to_date: Whether the tool was already at the latest version
        output: Captured output of the update command
        error_message: Human-readable error message if failed
        error_kind: Error classification if failed
        command_result: Underlying command execution result
        duration_seconds: Total update time
    """
    tool_key: str
    outcome: Outcome
    method: ManagerId | None = None
    old_version: str = ""
    new_version: str = ""
    latest_version: str = ""
    was_up_to_date: bool = False
    output: str = ""
    error_message: str | None = None
    error_kind: ErrorKind | None = None
    command_result: CommandResult | None = None
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
            "old_version": self.old_version,
            "new_version": self.new_version,
            "latest_version": self.latest_version,
            "was_up_to_date": self.was_up_to_date,
            "output": self.output,
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "command_result": self.command_result.to_dict() if self.command_result else None,
            "duration_seconds": self.duration_seconds,
        }


def update_tool(
    tool: ToolDefinition,
    platform: Platform,
    client: HttpClient,
    available: Collection[ManagerId] | None = None,
    preferred: ManagerId | str | None = None,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    verbose: bool = False,
) -> UpdateResult:
    """
    Update a single installed tool to its latest version.

    Args:
        tool: Tool definition
        platform: Host platform
        client: Shared HTTP client for the latest-version lookup
        available: Usable managers (detected if None)
        preferred: Preferred package manager
        command_timeout: Wall-clock limit for the update command
        probe_timeout: Wall-clock limit for each version probe
        verbose: Enable verbose logging

    Returns:
        UpdateResult with update outcome
    """
    with tool_lock(tool.key):
        start_time = time.time()

        # 1. Validate tool is installed
        installed = probe_installed_version(tool, platform, probe_timeout, verbose)
        if not installed.ok:
            return UpdateResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                error_message=f"Tool '{tool.key}' is not currently installed",
                error_kind=ErrorKind.NOT_INSTALLED,
                duration_seconds=time.time() - start_time,
            )
        old_version = installed.version
        vlog(f"{tool.key}: current version {old_version}", verbose)

        # 2. Compare against latest
        latest = get_latest_version(tool, client, platform)
        state, compare_error = check_update(old_version, latest.version)
        if state is UpdateState.UP_TO_DATE:
            vlog(f"{tool.key}: already at latest version {latest.version}", verbose)
            return UpdateResult(
                tool_key=tool.key,
                outcome=Outcome.ALREADY_SATISFIED,
                old_version=old_version,
                new_version=old_version,
                latest_version=latest.version,
                was_up_to_date=True,
                duration_seconds=time.time() - start_time,
            )
        if state is UpdateState.UNKNOWN:
            reason = latest.error or compare_error
            logger.warning(f"{tool.key}: could not determine whether an update is available ({reason}); updating anyway")

        # 3. Select package manager
        if available is None:
            available = detect_available_managers(platform, verbose)
        selection = select_install_method(tool.install_spec_for(platform), platform, available, preferred, verbose)
        if selection is None:
            return UpdateResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                old_version=old_version,
                latest_version=latest.version,
                error_message=f"No install method available for '{tool.key}' on {platform}",
                error_kind=ErrorKind.NO_INSTALL_METHOD,
                duration_seconds=time.time() - start_time,
            )

        # 4. Execute
        command = to_update_command(selection.manager, selection.command)
        logger.info(f"Updating {tool.name} via {selection.manager.value}")
        result = run_shell_command(command, timeout=command_timeout, platform=platform, verbose=verbose)
        if not result.success:
            return UpdateResult(
                tool_key=tool.key,
                outcome=Outcome.FAILED,
                method=selection.manager,
                old_version=old_version,
                latest_version=latest.version,
                output=result.output,
                error_message=f"Update of '{tool.key}' via {selection.manager.value} failed: "
                              f"{result.error_message or truncate(result.stderr)}",
                error_kind=ErrorKind.COMMAND_FAILED,
                command_result=result,
                duration_seconds=time.time() - start_time,
            )

        # 5. Verify
        after, _ = verify_installed(tool, platform, probe_timeout, verbose)
        new_version = after.version

        if not after.ok:
            outcome, kind = Outcome.FAILED, ErrorKind.VERIFICATION_FAILED
            message = f"'{tool.key}' is no longer resolvable after update"
        elif new_version == old_version and state is UpdateState.UPDATE_AVAILABLE:
            outcome, kind = Outcome.FAILED, ErrorKind.VERIFICATION_FAILED
            message = f"'{tool.key}' still at {old_version} after update (expected {latest.version})"
        elif new_version == old_version:
            outcome, kind, message = Outcome.ALREADY_SATISFIED, None, None
        else:
            outcome, kind, message = Outcome.SUCCESS, None, None
        was_up_to_date = outcome is Outcome.ALREADY_SATISFIED

        if outcome is Outcome.SUCCESS:
            logger.info(f"{tool.name} updated {old_version} → {new_version}")

        return UpdateResult(
            tool_key=tool.key,
            outcome=outcome,
            method=selection.manager,
            old_version=old_version,
            new_version=new_version,
            latest_version=latest.version,
            was_up_to_date=was_up_to_date,
            output=result.output,
            error_message=message,
            error_kind=kind,
            command_result=result,
            duration_seconds=time.time() - start_time,
        )
