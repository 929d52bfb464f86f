"""
Platform detection for OS-aware installation strategies.

Detects:
- Operating system family (windows, darwin, linux)
- CPU architecture
- Whether a Linux host is actually WSL running under Windows
"""

from __future__ import annotations

import os
import platform as _platform
from dataclasses import dataclass
from enum import Enum

from .common import vlog


PROC_VERSION_PATH = "/proc/version"


class OSFamily(str, Enum):
    """Operating system family. The value is the OS key used in tool definitions."""
    WINDOWS = "windows"
    DARWIN = "darwin"
    LINUX = "linux"
    UNKNOWN = "unknown"


class Arch(str, Enum):
    """CPU architecture."""
    AMD64 = "amd64"
    ARM64 = "arm64"
    I386 = "386"
    UNKNOWN = "unknown"


_OS_ALIASES = {
    "windows": OSFamily.WINDOWS,
    "win32": OSFamily.WINDOWS,
    "cygwin": OSFamily.WINDOWS,
    "darwin": OSFamily.DARWIN,
    "macos": OSFamily.DARWIN,
    "linux": OSFamily.LINUX,
}

_ARCH_ALIASES = {
    "x86_64": Arch.AMD64,
    "amd64": Arch.AMD64,
    "x64": Arch.AMD64,
    "aarch64": Arch.ARM64,
    "arm64": Arch.ARM64,
    "armv8l": Arch.ARM64,
    "i386": Arch.I386,
    "i686": Arch.I386,
    "x86": Arch.I386,
    "386": Arch.I386,
}


@dataclass(frozen=True)
class Platform:
    """
    Detected host platform.

    Attributes:
        os: Operating system family
        arch: CPU architecture
        is_wsl: True when running inside Windows Subsystem for Linux
        raw_system: Unmapped value reported by the interpreter
        raw_machine: Unmapped machine value reported by the interpreter
    """
    os: OSFamily
    arch: Arch
    is_wsl: bool = False
    raw_system: str = ""
    raw_machine: str = ""

    @property
    def os_key(self) -> str:
        """Key used in per-OS install/uninstall maps."""
        return self.os.value

    @property
    def is_windows(self) -> bool:
        return self.os is OSFamily.WINDOWS

    @property
    def is_darwin(self) -> bool:
        return self.os is OSFamily.DARWIN

    @property
    def is_linux(self) -> bool:
        return self.os is OSFamily.LINUX

    def __str__(self) -> str:
        if self.os is OSFamily.WINDOWS:
            name = "Windows"
        elif self.os is OSFamily.DARWIN:
            name = "macOS"
        elif self.os is OSFamily.LINUX:
            name = "Linux (WSL)" if self.is_wsl else "Linux"
        else:
            name = self.raw_system or self.os.value
        return f"{name}/{self.arch.value}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "os": self.os.value,
            "arch": self.arch.value,
            "is_wsl": self.is_wsl,
            "string": str(self),
        }


def _detect_wsl(proc_version_path: str) -> bool:
    if os.environ.get("WSL_DISTRO_NAME") or os.environ.get("WSL_INTEROP"):
        return True
    try:
        with open(proc_version_path, "r", encoding="utf-8", errors="ignore") as f:
            return "microsoft" in f.read().lower()
    except OSError:
        return False


def detect_platform(
    system: str | None = None,
    machine: str | None = None,
    proc_version_path: str = PROC_VERSION_PATH,
    verbose: bool = False,
) -> Platform:
    """
    Detect the host platform.

    Unknown OS or architecture values map to the ``unknown`` variants; this
    function never raises.

    Args:
        system: Override for ``platform.system()`` (testing)
        machine: Override for ``platform.machine()`` (testing)
        proc_version_path: File inspected for the WSL kernel signature
        verbose: Enable verbose logging

    Returns:
        Platform describing the host
    """
    raw_system = system if system is not None else _platform.system()
    raw_machine = machine if machine is not None else _platform.machine()

    os_family = _OS_ALIASES.get((raw_system or "").strip().lower(), OSFamily.UNKNOWN)
    arch = _ARCH_ALIASES.get((raw_machine or "").strip().lower(), Arch.UNKNOWN)

    is_wsl = os_family is OSFamily.LINUX and _detect_wsl(proc_version_path)

    detected = Platform(
        os=os_family,
        arch=arch,
        is_wsl=is_wsl,
        raw_system=raw_system or "",
        raw_machine=raw_machine or "",
    )
    vlog(f"Platform detected: {detected}", verbose)
    return detected
