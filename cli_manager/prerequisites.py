"""
Environment report: host platform, package managers, runtime prerequisites
and the API-key variables tools read.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from typing import Iterable, Mapping

from .common import vlog
from .environment import Platform
from .package_managers import PACKAGE_MANAGERS, ManagerId
from .tools import ToolDefinition


# Runtimes the install methods depend on: display name -> binaries (any one suffices)
PREREQUISITES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Node.js", ("node",)),
    ("npm", ("npm",)),
    ("Python", ("python3", "python")),
    ("pip", ("pip3", "pip")),
    ("Git", ("git",)),
)


@dataclass(frozen=True)
class ManagerStatus:
    """Availability of one package manager on this host."""
    id: ManagerId
    display_name: str
    applicable: bool
    available: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id.value,
            "display_name": self.display_name,
            "applicable": self.applicable,
            "available": self.available,
        }


@dataclass(frozen=True)
class PrerequisiteStatus:
    """Whether a runtime prerequisite resolves on PATH."""
    name: str
    binary: str | None
    path: str | None

    @property
    def available(self) -> bool:
        return self.path is not None

    def to_dict(self) -> dict:
        return {"name": self.name, "binary": self.binary, "path": self.path, "available": self.available}


@dataclass(frozen=True)
class EnvVarStatus:
    """An environment variable a tool reads, and whether it is set."""
    name: str
    tool_key: str
    is_set: bool

    def to_dict(self) -> dict:
        return {"name": self.name, "tool_key": self.tool_key, "is_set": self.is_set}


@dataclass(frozen=True)
class EnvironmentReport:
    """
    Snapshot of the host as seen by the installer.

    Attributes:
        platform: Detected host platform
        managers: Every known package manager with its availability
        prerequisites: Runtime prerequisites with their resolved paths
        env_vars: Declared tool environment variables (first declaring tool wins)
    """
    platform: Platform
    managers: tuple[ManagerStatus, ...]
    prerequisites: tuple[PrerequisiteStatus, ...]
    env_vars: tuple[EnvVarStatus, ...]

    @property
    def available_managers(self) -> list[ManagerId]:
        return [m.id for m in self.managers if m.available]

    @property
    def missing_prerequisites(self) -> list[str]:
        return [p.name for p in self.prerequisites if not p.available]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "platform": self.platform.to_dict(),
            "managers": [m.to_dict() for m in self.managers],
            "prerequisites": [p.to_dict() for p in self.prerequisites],
            "env_vars": [v.to_dict() for v in self.env_vars],
        }


def check_prerequisite(name: str, binaries: Iterable[str]) -> PrerequisiteStatus:
    """Resolve the first of ``binaries`` found on PATH."""
    for binary in binaries:
        path = shutil.which(binary)
        if path:
            return PrerequisiteStatus(name=name, binary=binary, path=path)
    return PrerequisiteStatus(name=name, binary=None, path=None)


def collect_env_vars(
    tools: Iterable[ToolDefinition],
    environ: Mapping[str, str] | None = None,
) -> list[EnvVarStatus]:
    """
    List declared environment variables, deduplicated by name.

    Args:
        tools: Tool definitions in catalog order
        environ: Environment mapping (defaults to os.environ)

    Returns:
        One entry per variable, attributed to the first tool declaring it
    """
    environ = os.environ if environ is None else environ
    seen: set[str] = set()
    statuses: list[EnvVarStatus] = []
    for tool in tools:
        for name in tool.env_vars:
            if name in seen:
                continue
            seen.add(name)
            statuses.append(EnvVarStatus(name=name, tool_key=tool.key, is_set=bool(environ.get(name))))
    return statuses


def build_environment_report(
    tools: Iterable[ToolDefinition],
    platform: Platform,
    environ: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> EnvironmentReport:
    """
    Build the environment report for this host.

    Args:
        tools: Tool definitions whose env_vars are reported
        platform: Host platform
        environ: Environment mapping (defaults to os.environ)
        verbose: Enable verbose logging

    Returns:
        EnvironmentReport
    """
    managers = tuple(
        ManagerStatus(
            id=pm.id,
            display_name=pm.display_name,
            applicable=pm.applies_to(platform),
            available=pm.is_available(platform),
        )
        for pm in PACKAGE_MANAGERS
    )
    prerequisites = tuple(check_prerequisite(name, binaries) for name, binaries in PREREQUISITES)

    missing = [p.name for p in prerequisites if not p.available]
    if missing:
        vlog(f"Missing prerequisites: {', '.join(missing)}", verbose)

    return EnvironmentReport(
        platform=platform,
        managers=managers,
        prerequisites=prerequisites,
        env_vars=tuple(collect_env_vars(tools, environ)),
    )
