"""
Installed-version detection and search-path recovery.

A probe first checks that the tool's base executable resolves on PATH, then
runs its version command and extracts the version with the tool's pattern.
Recovery looks for an executable that was installed into a directory the
current process does not have on PATH yet.
"""

from __future__ import annotations

import os
import re
import shutil
import threading
from typing import Mapping, MutableMapping

from .collectors import VersionLookup
from .common import ErrorKind, vlog
from .environment import Platform
from .executor import run_shell_command
from .tools import DEFAULT_VERSION_PATTERN, ToolDefinition


DEFAULT_PROBE_TIMEOUT = 15

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

_path_lock = threading.Lock()


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def extract_version(output: str, pattern: str = DEFAULT_VERSION_PATTERN) -> str:
    """
    Extract a version token from command output.

    Args:
        output: Text printed by the version command
        pattern: Regex; the first group is used when it has one

    Returns:
        Version string, or "" when nothing matches

    Raises:
        re.error: If the pattern is not a valid regex
    """
    compiled = re.compile(pattern or DEFAULT_VERSION_PATTERN, re.MULTILINE)
    match = compiled.search(strip_ansi(output))
    if not match:
        return ""
    if compiled.groups:
        return (match.group(1) or "").strip()
    return match.group(0).strip()


def find_executable(tool: ToolDefinition) -> str | None:
    """Resolve the tool's base executable on PATH (compound commands check the first word)."""
    if not tool.base_executable:
        return None
    return shutil.which(tool.base_executable)


def _probe_env() -> dict[str, str]:
    # Keep colored banners out of version output
    return {**os.environ, "TERM": "dumb", "NO_COLOR": "1"}


def probe_installed_version(
    tool: ToolDefinition,
    platform: Platform | None = None,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    verbose: bool = False,
) -> VersionLookup:
    """
    Determine the installed version of a tool.

    Never raises: a missing executable, a failing version command and
    unparsable output all come back as a NOT_INSTALLED lookup.

    Args:
        tool: Tool definition
        platform: Host platform (selects the shell)
        timeout: Wall-clock limit for the version command
        verbose: Enable verbose logging

    Returns:
        VersionLookup with the installed version, or the reason there is none
    """
    if not tool.version_cmd:
        return VersionLookup.missing(f"{tool.key}: no version command defined", ErrorKind.NOT_INSTALLED)

    if tool.command and find_executable(tool) is None:
        vlog(f"{tool.key}: '{tool.base_executable}' not found on PATH", verbose)
        return VersionLookup.missing(
            f"{tool.base_executable} not found on PATH",
            ErrorKind.NOT_INSTALLED,
        )

    result = run_shell_command(tool.version_cmd, timeout=timeout, platform=platform, env=_probe_env())
    if not result.success:
        reason = result.error_message or "version command failed"
        vlog(f"{tool.key}: {reason}", verbose)
        return VersionLookup.missing(f"{tool.key}: {reason}", ErrorKind.NOT_INSTALLED)

    output = result.output
    if not output.strip():
        reason = "version command printed nothing"
        vlog(f"{tool.key}: {reason}", verbose)
        return VersionLookup.missing(f"{tool.key}: {reason}", ErrorKind.NOT_INSTALLED)

    try:
        version = extract_version(output, tool.version_pattern)
    except re.error as e:
        vlog(f"{tool.key}: invalid version pattern {tool.version_pattern!r}: {e}", verbose)
        return VersionLookup.missing(f"{tool.key}: invalid version pattern: {e}", ErrorKind.NOT_INSTALLED)

    if not version:
        first_line = strip_ansi(output).strip().splitlines()[0] if output.strip() else ""
        vlog(f"{tool.key}: no version in output: {first_line!r}", verbose)
        return VersionLookup.missing(
            f"{tool.key}: could not parse version from output {first_line!r}",
            ErrorKind.NOT_INSTALLED,
        )

    vlog(f"{tool.key}: installed version {version}", verbose)
    return VersionLookup.found(version)


def candidate_directories(
    platform: Platform,
    environ: Mapping[str, str] | None = None,
    home: str | None = None,
) -> list[str]:
    """
    Common directories installers drop executables into.

    Args:
        platform: Host platform
        environ: Environment mapping (defaults to os.environ)
        home: Home directory override (testing)

    Returns:
        Directories in search order (existence not checked)
    """
    environ = os.environ if environ is None else environ
    home = home or os.path.expanduser("~")

    if platform.is_windows:
        dirs: list[str] = []
        appdata = environ.get("APPDATA")
        if appdata:
            dirs.append(os.path.join(appdata, "npm"))
        local = environ.get("LOCALAPPDATA")
        if local:
            dirs.extend([
                os.path.join(local, "Programs", "Microsoft VS Code", "bin"),
                os.path.join(local, "Programs", "cursor", "resources", "app", "bin"),
                os.path.join(local, "Microsoft", "WinGet", "Links"),
                os.path.join(local, "Programs", "Python", "Scripts"),
            ])
        dirs.extend([
            os.path.join(home, ".local", "bin"),
            os.path.join(home, ".cargo", "bin"),
        ])
        return dirs

    return [
        os.path.join(home, ".local", "bin"),
        os.path.join(home, ".npm-global", "bin"),
        os.path.join(home, ".cargo", "bin"),
        "/usr/local/bin",
        "/opt/homebrew/bin",
        "/home/linuxbrew/.linuxbrew/bin",
    ]


def extend_search_path(directory: str, environ: MutableMapping[str, str] | None = None) -> bool:
    """
    Prepend a directory to PATH unless it is already present.

    Args:
        directory: Directory to add
        environ: Environment to modify (defaults to os.environ)

    Returns:
        True if PATH was changed
    """
    environ = os.environ if environ is None else environ
    with _path_lock:
        current = environ.get("PATH", "")
        entries = [os.path.normcase(os.path.normpath(p)) for p in current.split(os.pathsep) if p]
        if os.path.normcase(os.path.normpath(directory)) in entries:
            return False
        environ["PATH"] = directory + (os.pathsep + current if current else "")
        return True


def recover_search_path(
    tool: ToolDefinition,
    platform: Platform,
    search_dirs: list[str] | None = None,
    verbose: bool = False,
) -> str | None:
    """
    Look for a tool's executable outside PATH and make it reachable.

    Used after an install command exited zero but the tool still does not
    resolve, typically because the installer wrote to a directory this
    process's PATH predates.

    Args:
        tool: Tool definition
        platform: Host platform
        search_dirs: Directories to inspect (defaults to candidate_directories)
        verbose: Enable verbose logging

    Returns:
        Directory that was found (and added to PATH), or None
    """
    name = tool.base_executable
    if not name:
        return None

    for directory in search_dirs if search_dirs is not None else candidate_directories(platform):
        if not os.path.isdir(directory):
            continue
        if shutil.which(name, path=directory):
            if extend_search_path(directory):
                vlog(f"{tool.key}: added {directory} to PATH", verbose)
            return directory

    vlog(f"{tool.key}: '{name}' not found in common install directories", verbose)
    return None


def verify_installed(
    tool: ToolDefinition,
    platform: Platform,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    verbose: bool = False,
) -> tuple[VersionLookup, str | None]:
    """
    Re-probe a tool after a command ran, recovering PATH if needed.

    Args:
        tool: Tool definition
        platform: Host platform
        timeout: Wall-clock limit for each probe
        verbose: Enable verbose logging

    Returns:
        Tuple of (lookup, recovered_dir); recovered_dir is set only when the
        version became resolvable after PATH recovery
    """
    lookup = probe_installed_version(tool, platform, timeout, verbose)
    if lookup.ok:
        return lookup, None

    recovered = recover_search_path(tool, platform, verbose=verbose)
    if recovered is None:
        return lookup, None

    retry = probe_installed_version(tool, platform, timeout, verbose)
    if retry.ok:
        return retry, recovered
    return retry, None
