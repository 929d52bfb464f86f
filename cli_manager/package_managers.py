"""
Package manager registry and install-method selection.

Implements the per-OS manager hierarchy:
1. Native OS manager (winget on Windows, brew on macOS, apt/brew/pacman on Linux)
2. Language-ecosystem managers (npm, pip) - cross-platform fallbacks
3. Vendor install scripts - last resort

Every manager runs its command through the host shell; the manager identity
only decides which commands are valid on the current host.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from enum import Enum
from typing import Collection, Iterable, Mapping

from .common import vlog
from .environment import OSFamily, Platform


class ManagerId(str, Enum):
    """Closed set of installation backends."""
    WINGET = "winget"
    BREW = "brew"
    APT = "apt"
    PACMAN = "pacman"
    NPM = "npm"
    PIP = "pip"
    SCRIPT = "script"

    @classmethod
    def parse(cls, value: "str | ManagerId") -> "ManagerId":
        """
        Parse a manager identifier, accepting a few common aliases.

        Raises:
            ValueError: If the identifier is not a known manager
        """
        if isinstance(value, ManagerId):
            return value
        normalized = str(value).strip().lower()
        normalized = _MANAGER_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown package manager: {value!r}. Must be one of: {valid}") from None


_MANAGER_ALIASES = {
    "homebrew": "brew",
    "apt-get": "apt",
    "pip3": "pip",
}


@dataclass(frozen=True)
class PackageManager:
    """
    Package manager definition.

    Attributes:
        id: Manager identifier
        display_name: Human-readable name
        executables: Executables whose presence on PATH makes the manager usable
            (any one suffices; empty means always usable)
        supported_os: OS families the manager applies to (empty means all)
    """
    id: ManagerId
    display_name: str
    executables: tuple[str, ...] = ()
    supported_os: frozenset[OSFamily] = frozenset()

    def applies_to(self, platform: Platform) -> bool:
        """Check whether this manager is meaningful on the given OS."""
        return not self.supported_os or platform.os in self.supported_os

    def is_available(self, platform: Platform) -> bool:
        """
        Check if this package manager is usable on the host right now.

        Not cached: the host can change between calls (e.g. npm was just
        installed).

        Args:
            platform: Host platform

        Returns:
            True if the manager applies to this OS and its executable resolves
        """
        if not self.applies_to(platform):
            return False
        if not self.executables:
            return True
        return any(shutil.which(exe) for exe in self.executables)


# Package Manager Registry
PACKAGE_MANAGERS: tuple[PackageManager, ...] = (
    PackageManager(
        id=ManagerId.WINGET,
        display_name="WinGet",
        executables=("winget",),
        supported_os=frozenset({OSFamily.WINDOWS}),
    ),
    PackageManager(
        id=ManagerId.BREW,
        display_name="Homebrew",
        executables=("brew",),
        supported_os=frozenset({OSFamily.DARWIN, OSFamily.LINUX}),
    ),
    PackageManager(
        id=ManagerId.APT,
        display_name="apt",
        executables=("apt",),
        supported_os=frozenset({OSFamily.LINUX}),
    ),
    PackageManager(
        id=ManagerId.PACMAN,
        display_name="pacman",
        executables=("pacman",),
        supported_os=frozenset({OSFamily.LINUX}),
    ),
    PackageManager(
        id=ManagerId.NPM,
        display_name="npm",
        executables=("npm",),
    ),
    PackageManager(
        id=ManagerId.PIP,
        display_name="pip",
        executables=("pip", "pip3"),
    ),
    PackageManager(
        # The script command carries its own interpreter (curl | sh, irm | iex)
        id=ManagerId.SCRIPT,
        display_name="Install script",
    ),
)

_PM_BY_ID = {pm.id: pm for pm in PACKAGE_MANAGERS}

# Native managers per OS, tried before the cross-platform fallbacks
_NATIVE_PRIORITY: dict[OSFamily, tuple[ManagerId, ...]] = {
    OSFamily.WINDOWS: (ManagerId.WINGET,),
    OSFamily.DARWIN: (ManagerId.BREW,),
    OSFamily.LINUX: (ManagerId.APT, ManagerId.BREW, ManagerId.PACMAN),
}

_CROSS_PLATFORM_PRIORITY: tuple[ManagerId, ...] = (
    ManagerId.NPM,
    ManagerId.PIP,
    ManagerId.SCRIPT,
)

# Managers whose upgrade verb differs from their install verb
_UPGRADE_VERBS: dict[ManagerId, tuple[str, str]] = {
    ManagerId.WINGET: ("winget install", "winget upgrade"),
    ManagerId.BREW: ("brew install", "brew upgrade"),
}


@dataclass(frozen=True)
class MethodSelection:
    """Chosen install method and the literal command to run for it."""
    manager: ManagerId
    command: str

    def to_dict(self) -> dict:
        return {"manager": self.manager.value, "command": self.command}


def get_package_manager(manager_id: ManagerId | str) -> PackageManager | None:
    """
    Get package manager by identifier.

    Args:
        manager_id: Manager identifier

    Returns:
        PackageManager object, or None if not found
    """
    try:
        return _PM_BY_ID.get(ManagerId.parse(manager_id))
    except ValueError:
        return None


def detect_available_managers(platform: Platform, verbose: bool = False) -> frozenset[ManagerId]:
    """
    Compute the set of managers usable on this host.

    Computed fresh on every call.

    Args:
        platform: Host platform
        verbose: Enable verbose logging

    Returns:
        Identifiers of available managers
    """
    available = frozenset(pm.id for pm in PACKAGE_MANAGERS if pm.is_available(platform))
    vlog(f"Available package managers: {sorted(m.value for m in available)}", verbose)
    return available


def get_priority_order(platform: Platform) -> list[ManagerId]:
    """
    Get manager priority order for an OS.

    Args:
        platform: Host platform

    Returns:
        Manager identifiers, most preferred first
    """
    return list(_NATIVE_PRIORITY.get(platform.os, ())) + list(_CROSS_PLATFORM_PRIORITY)


def _ordered_candidates(spec: Mapping[ManagerId, str], platform: Platform) -> Iterable[ManagerId]:
    for manager in get_priority_order(platform):
        if spec.get(manager):
            yield manager


def select_install_method(
    spec: Mapping[ManagerId, str],
    platform: Platform,
    available: Collection[ManagerId],
    preferred: ManagerId | str | None = None,
    verbose: bool = False,
) -> MethodSelection | None:
    """
    Select the install method for a tool on this host.

    Selection priority:
    1. ``preferred`` if the tool declares a command for it and it is currently available
    2. First manager in the OS priority order that is defined and available

    Args:
        spec: Manager -> command map for the current OS
        platform: Host platform
        available: Managers currently usable
        preferred: Optional caller preference
        verbose: Enable verbose logging

    Returns:
        MethodSelection, or None when no declared manager is usable
    """
    if preferred:
        try:
            preferred_id = ManagerId.parse(preferred)
        except ValueError as e:
            vlog(str(e), verbose)
            preferred_id = None
        if preferred_id is not None:
            command = spec.get(preferred_id)
            if command and preferred_id in available:
                vlog(f"Using preferred method: {preferred_id.value}", verbose)
                return MethodSelection(preferred_id, command)
            vlog(f"Preferred method {preferred_id.value} not usable, falling back to priority order", verbose)

    for manager in _ordered_candidates(spec, platform):
        if manager in available:
            vlog(f"Selected {manager.value} by {platform.os_key} priority", verbose)
            return MethodSelection(manager, spec[manager])

    return None


def get_available_install_methods(
    spec: Mapping[ManagerId, str],
    platform: Platform,
    available: Collection[ManagerId],
) -> list[ManagerId]:
    """
    List every usable install method for a tool, in priority order.

    Args:
        spec: Manager -> command map for the current OS
        platform: Host platform
        available: Managers currently usable

    Returns:
        Usable manager identifiers
    """
    return [m for m in _ordered_candidates(spec, platform) if m in available]


def to_update_command(manager: ManagerId, command: str) -> str:
    """
    Turn an install command into its upgrade flavor.

    Managers that reinstall to latest with the same command are returned
    unchanged.

    Args:
        manager: Manager the command belongs to
        command: Install command from the tool definition

    Returns:
        Command to run for an update
    """
    verbs = _UPGRADE_VERBS.get(manager)
    if not verbs:
        return command
    install_verb, upgrade_verb = verbs
    stripped = command.lstrip()
    if stripped.startswith(install_verb + " ") or stripped == install_verb:
        return upgrade_verb + stripped[len(install_verb):]
    return command
