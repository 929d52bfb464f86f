"""
Tool definitions and the immutable tool registry.

A ToolDefinition is created once at startup from the catalog and shared
read-only by every concurrent operation. The registry is passed explicitly
to the components that need it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Union

from .environment import OSFamily, Platform
from .package_managers import ManagerId


DEFAULT_VERSION_PATTERN = r"(\d+\.\d+\.\d+)"

DEFAULT_CURSOR_MANIFEST_URL = "https://download.todesktop.com/230313mzl4w4u92/latest.yml"


# Version sources: one frozen dataclass per kind
@dataclass(frozen=True)
class RegistryPackageSource:
    """npm registry package."""
    package: str
    type_name = "npm"


@dataclass(frozen=True)
class ReleaseApiSource:
    """GitHub "latest release" of owner/repo."""
    owner: str
    repo: str
    type_name = "github"


@dataclass(frozen=True)
class SourceIndexSource:
    """PyPI package."""
    package: str
    type_name = "pypi"


@dataclass(frozen=True)
class VendorUpdateSource:
    """VS Code update service for a release channel (stable, insider)."""
    channel: str = "stable"
    type_name = "vscode-update"


@dataclass(frozen=True)
class VendorManifestSource:
    """Line-oriented ``key: value`` manifest (Cursor latest.yml)."""
    url: str = DEFAULT_CURSOR_MANIFEST_URL
    type_name = "cursor-todesktop"


@dataclass(frozen=True)
class UnknownSource:
    """A source type the resolver does not implement."""
    type_name: str = "unknown"


VersionSource = Union[
    RegistryPackageSource,
    ReleaseApiSource,
    SourceIndexSource,
    VendorUpdateSource,
    VendorManifestSource,
    UnknownSource,
]

VERSION_SOURCE_TYPES: tuple[type, ...] = (
    RegistryPackageSource,
    ReleaseApiSource,
    SourceIndexSource,
    VendorUpdateSource,
    VendorManifestSource,
    UnknownSource,
)


def _require(data: Mapping[str, Any], key: str, source_type: str) -> str:
    value = str(data.get(key) or "").strip()
    if not value:
        raise ValueError(f"version_source type '{source_type}' requires '{key}'")
    return value


def parse_version_source(data: Mapping[str, Any] | None) -> VersionSource:
    """
    Build a VersionSource from its configuration mapping.

    Args:
        data: Mapping with a ``type`` key and type-specific fields

    Returns:
        VersionSource variant; unrecognized types yield UnknownSource

    Raises:
        ValueError: If a recognized type lacks a required field
    """
    if not data:
        return UnknownSource()

    source_type = str(data.get("type") or "").strip().lower()

    if source_type == "npm":
        return RegistryPackageSource(package=_require(data, "package", source_type))
    if source_type == "github":
        return ReleaseApiSource(
            owner=_require(data, "owner", source_type),
            repo=_require(data, "repo", source_type),
        )
    if source_type == "pypi":
        return SourceIndexSource(package=_require(data, "package", source_type))
    if source_type == "vscode-update":
        return VendorUpdateSource(channel=str(data.get("channel") or "stable"))
    if source_type == "cursor-todesktop":
        return VendorManifestSource(url=str(data.get("url") or DEFAULT_CURSOR_MANIFEST_URL))

    return UnknownSource(type_name=source_type or "unknown")


def version_source_to_dict(source: VersionSource) -> dict[str, str]:
    """Convert a VersionSource back to its configuration mapping."""
    if isinstance(source, RegistryPackageSource):
        return {"type": source.type_name, "package": source.package}
    if isinstance(source, ReleaseApiSource):
        return {"type": source.type_name, "owner": source.owner, "repo": source.repo}
    if isinstance(source, SourceIndexSource):
        return {"type": source.type_name, "package": source.package}
    if isinstance(source, VendorUpdateSource):
        return {"type": source.type_name, "channel": source.channel}
    if isinstance(source, VendorManifestSource):
        return {"type": source.type_name, "url": source.url}
    return {"type": source.type_name}


InstallSpec = Mapping[ManagerId, str]

_EMPTY_SPEC: InstallSpec = MappingProxyType({})


def _parse_method_map(data: Mapping[str, Any] | None, field_name: str) -> Mapping[str, InstallSpec]:
    """Parse ``{os_key: {manager: command}}`` into read-only typed mappings."""
    if not data:
        return MappingProxyType({})
    if not isinstance(data, Mapping):
        raise ValueError(f"'{field_name}' must be a mapping of OS keys to commands")

    valid_os = {os_family.value for os_family in OSFamily if os_family is not OSFamily.UNKNOWN}
    parsed: dict[str, InstallSpec] = {}
    for os_key, commands in data.items():
        os_key = str(os_key).strip().lower()
        if os_key not in valid_os:
            raise ValueError(
                f"Unknown OS key in '{field_name}': {os_key!r}. "
                f"Must be one of: {', '.join(sorted(valid_os))}"
            )
        if not isinstance(commands, Mapping):
            raise ValueError(f"'{field_name}.{os_key}' must map package managers to commands")

        spec: dict[ManagerId, str] = {}
        for manager, command in commands.items():
            manager_id = ManagerId.parse(manager)
            command = str(command or "").strip()
            if command:
                spec[manager_id] = command
        parsed[os_key] = MappingProxyType(spec)

    return MappingProxyType(parsed)


@dataclass(frozen=True)
class ToolDefinition:
    """
    Declarative description of an external tool.

    Attributes:
        key: Unique identifier (e.g. "claude-code")
        name: Display name
        command: Primary executable invoked by users
        subcommand: Fixed leading subcommand for plugin-style CLIs (e.g. "copilot" for "gh copilot")
        version_cmd: Shell command printing the installed version
        version_pattern: Regex extracting the version token from that output
        version_source: Where the latest version is published
        install: OS key -> (manager -> install command)
        uninstall: OS key -> (manager -> uninstall command)
        env_vars: Environment variables the tool reads (informational)
        description: Short description
    """
    key: str
    name: str
    command: str = ""
    subcommand: str = ""
    version_cmd: str = ""
    version_pattern: str = DEFAULT_VERSION_PATTERN
    version_source: VersionSource = field(default_factory=UnknownSource)
    install: Mapping[str, InstallSpec] = field(default_factory=lambda: MappingProxyType({}))
    uninstall: Mapping[str, InstallSpec] = field(default_factory=lambda: MappingProxyType({}))
    env_vars: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self):
        """Validate definition after initialization."""
        if not self.key or not self.key.strip():
            raise ValueError("Tool definition requires a non-empty 'key'")
        if not self.name:
            raise ValueError(f"Tool '{self.key}' requires a non-empty 'name'")

    @property
    def base_executable(self) -> str:
        """Executable checked on PATH; compound commands check their first word only."""
        parts = self.command.split()
        return parts[0] if parts else ""

    @property
    def full_command(self) -> str:
        """Command line a user types to launch the tool."""
        return " ".join(part for part in (self.command, self.subcommand) if part)

    def install_spec_for(self, platform: Platform) -> InstallSpec:
        """Install commands declared for the host OS (empty if none)."""
        return self.install.get(platform.os_key, _EMPTY_SPEC)

    def uninstall_spec_for(self, platform: Platform) -> InstallSpec:
        """Uninstall commands declared for the host OS (empty if none)."""
        return self.uninstall.get(platform.os_key, _EMPTY_SPEC)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ToolDefinition:
        """
        Create ToolDefinition from a catalog mapping.

        Raises:
            ValueError: On missing required fields or unknown OS/manager keys
        """
        key = str(data.get("key") or "").strip().lower()
        return ToolDefinition(
            key=key,
            name=str(data.get("name") or key),
            command=str(data.get("command") or "").strip(),
            subcommand=str(data.get("subcommand") or "").strip(),
            version_cmd=str(data.get("version_cmd") or "").strip(),
            version_pattern=str(data.get("version_pattern") or DEFAULT_VERSION_PATTERN),
            version_source=parse_version_source(data.get("version_source")),
            install=_parse_method_map(data.get("install"), "install"),
            uninstall=_parse_method_map(data.get("uninstall"), "uninstall"),
            env_vars=tuple(str(v) for v in (data.get("env_vars") or ())),
            description=str(data.get("description") or ""),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        def _methods(methods: Mapping[str, InstallSpec]) -> dict:
            return {
                os_key: {manager.value: command for manager, command in spec.items()}
                for os_key, spec in methods.items()
            }

        return {
            "key": self.key,
            "name": self.name,
            "command": self.command,
            "subcommand": self.subcommand,
            "version_cmd": self.version_cmd,
            "version_pattern": self.version_pattern,
            "version_source": version_source_to_dict(self.version_source),
            "install": _methods(self.install),
            "uninstall": _methods(self.uninstall),
            "env_vars": list(self.env_vars),
            "description": self.description,
        }


class ToolRegistry:
    """Immutable, ordered collection of tool definitions keyed by tool key."""

    __slots__ = ("_tools", "_by_key")

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        ordered = tuple(tools)
        by_key: dict[str, ToolDefinition] = {}
        for tool in ordered:
            if tool.key in by_key:
                raise ValueError(f"Duplicate tool key: {tool.key}")
            by_key[tool.key] = tool
        object.__setattr__(self, "_tools", ordered)
        object.__setattr__(self, "_by_key", MappingProxyType(by_key))

    def __setattr__(self, name, value):
        raise AttributeError("ToolRegistry is immutable")

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._by_key

    def __repr__(self) -> str:
        return f"ToolRegistry({list(self._by_key)})"

    def get(self, key: str) -> ToolDefinition | None:
        """
        Get tool definition by key (case-insensitive).

        Args:
            key: Tool key

        Returns:
            ToolDefinition or None if not found
        """
        return self._by_key.get(key.strip().lower())

    def require(self, key: str) -> ToolDefinition:
        """
        Get tool definition by key, raising if it is unknown.

        Raises:
            KeyError: If no tool has this key
        """
        tool = self.get(key)
        if tool is None:
            raise KeyError(f"Unknown tool: {key}. Available tools: {', '.join(self.keys())}")
        return tool

    def all(self) -> list[ToolDefinition]:
        """All tool definitions in catalog order."""
        return list(self._tools)

    def keys(self) -> list[str]:
        """All tool keys in catalog order."""
        return [tool.key for tool in self._tools]

    def filter(self, keys: Iterable[str]) -> list[ToolDefinition]:
        """
        Filter tools by key list.

        Args:
            keys: Tool keys (case-insensitive)

        Returns:
            Matching tools in catalog order
        """
        wanted = {k.strip().lower() for k in keys}
        return [tool for tool in self._tools if tool.key in wanted]
