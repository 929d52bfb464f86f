"""
Configuration file parsing and management.

Merges configurations from multiple YAML sources (project → user → system →
defaults), then applies environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

import yaml

from .common import vlog
from .package_managers import ManagerId


# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".cli-manager.yml",                            # Project root (highest priority)
    ".cli-manager.yaml",                           # Alternative extension
    os.path.expanduser("~/.config/cli-manager/config.yml"),  # User global
    os.path.expanduser("~/.config/cli-manager/config.yaml"),
    "/etc/cli-manager/config.yml",                 # System global
    "/etc/cli-manager/config.yaml",
]

DEFAULT_USER_AGENT = "cli-manager/1.0"

# Environment variable -> Preferences field
ENV_OVERRIDES = {
    "CLI_MANAGER_HTTP_TIMEOUT": "http_timeout",
    "CLI_MANAGER_COMMAND_TIMEOUT": "command_timeout_seconds",
    "CLI_MANAGER_PROBE_TIMEOUT": "probe_timeout_seconds",
    "CLI_MANAGER_MAX_WORKERS": "max_workers",
    "CLI_MANAGER_PREFERRED_METHOD": "preferred_method",
}


def _normalize_method(value: str | None) -> str | None:
    if value is None or str(value).strip() == "":
        return None
    return ManagerId.parse(value).value


@dataclass(frozen=True)
class ToolConfig:
    """
    Configuration for a specific tool.

    Attributes:
        method: Preferred installation method for this tool (e.g. "npm", "brew")
    """
    method: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "method", _normalize_method(self.method))

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> ToolConfig:
        """Create ToolConfig from dictionary."""
        data = data or {}
        return ToolConfig(method=data.get("method"))


@dataclass(frozen=True)
class Preferences:
    """
    Global preferences for resolution and installation behavior.

    Attributes:
        http_timeout: Timeout for each version lookup request, in seconds
        command_timeout_seconds: Wall-clock limit for install/update/uninstall commands
        probe_timeout_seconds: Wall-clock limit for installed-version probes
        max_workers: Maximum number of concurrent status tasks
        preferred_method: Preferred package manager when a tool declares several
        user_agent: User-Agent header sent with version lookups
    """
    http_timeout: int = 10
    command_timeout_seconds: int = 600
    probe_timeout_seconds: int = 15
    max_workers: int = 16
    preferred_method: str | None = None
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        """Validate preferences after initialization."""
        if self.http_timeout < 1 or self.http_timeout > 120:
            raise ValueError(
                f"Invalid http_timeout: {self.http_timeout}. "
                "Must be between 1 and 120"
            )

        if self.command_timeout_seconds < 1 or self.command_timeout_seconds > 7200:
            raise ValueError(
                f"Invalid command_timeout_seconds: {self.command_timeout_seconds}. "
                "Must be between 1 and 7200"
            )

        if self.probe_timeout_seconds < 1 or self.probe_timeout_seconds > 300:
            raise ValueError(
                f"Invalid probe_timeout_seconds: {self.probe_timeout_seconds}. "
                "Must be between 1 and 300"
            )

        if self.max_workers < 1 or self.max_workers > 64:
            raise ValueError(
                f"Invalid max_workers: {self.max_workers}. "
                "Must be between 1 and 64"
            )

        if not self.user_agent:
            raise ValueError("user_agent must not be empty")

        # Unknown manager ids raise ValueError here
        object.__setattr__(self, "preferred_method", _normalize_method(self.preferred_method))

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> Preferences:
        """Create Preferences from dictionary."""
        data = data or {}
        return Preferences(
            http_timeout=int(data.get("http_timeout", 10)),
            command_timeout_seconds=int(data.get("command_timeout_seconds", 600)),
            probe_timeout_seconds=int(data.get("probe_timeout_seconds", 15)),
            max_workers=int(data.get("max_workers", 16)),
            preferred_method=data.get("preferred_method"),
            user_agent=str(data.get("user_agent") or DEFAULT_USER_AGENT),
        )


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for cli_manager.

    Attributes:
        version: Config schema version
        tools: Per-tool configuration overrides
        preferences: Global preferences
        source: Path to the configuration file that was loaded
    """
    version: int = 1
    tools: dict[str, ToolConfig] = field(default_factory=dict)
    preferences: Preferences = field(default_factory=Preferences)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

    @staticmethod
    def from_dict(data: Mapping[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        tools_data = data.get("tools") or {}
        if not isinstance(tools_data, Mapping):
            raise ValueError("'tools' must be a mapping of tool keys to settings")
        tools = {
            str(tool_key).lower(): ToolConfig.from_dict(tool_config)
            for tool_key, tool_config in tools_data.items()
        }

        return Config(
            version=data.get("version", 1),
            tools=tools,
            preferences=Preferences.from_dict(data.get("preferences")),
            source=source,
        )

    def get_tool_config(self, tool_key: str) -> ToolConfig:
        """
        Get configuration for a specific tool.

        Args:
            tool_key: Key of the tool

        Returns:
            ToolConfig for the tool, or default ToolConfig if not configured
        """
        return self.tools.get(tool_key.lower(), ToolConfig())

    def preferred_method_for(self, tool_key: str) -> str | None:
        """Per-tool method if configured, else the global preferred method."""
        return self.get_tool_config(tool_key).method or self.preferences.preferred_method

    def merge_with(self, other: Config) -> Config:
        """
        Merge this config with another, preferring values from this config.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged Config object
        """
        merged_tools = dict(other.tools)
        merged_tools.update(self.tools)

        defaults = Preferences()
        mine, theirs = self.preferences, other.preferences

        def pick(name: str):
            value = getattr(mine, name)
            return value if value != getattr(defaults, name) else getattr(theirs, name)

        merged_preferences = Preferences(
            http_timeout=pick("http_timeout"),
            command_timeout_seconds=pick("command_timeout_seconds"),
            probe_timeout_seconds=pick("probe_timeout_seconds"),
            max_workers=pick("max_workers"),
            preferred_method=pick("preferred_method"),
            user_agent=pick("user_agent"),
        )

        return Config(
            version=self.version,
            tools=merged_tools,
            preferences=merged_preferences,
            source=self.source or other.source,
        )


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Args:
        file_path: Path to YAML file

    Returns:
        Parsed configuration dictionary, or None if the file is unreadable or invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def load_config_file(file_path: str, verbose: bool = False) -> Config | None:
    """
    Load configuration from a single file.

    Args:
        file_path: Path to configuration file
        verbose: Enable verbose logging

    Returns:
        Config object, or None if file cannot be loaded
    """
    if not os.path.exists(file_path):
        return None

    vlog(f"Loading config from: {file_path}", verbose)

    data = _load_yaml(file_path)
    if data is None:
        vlog(f"Invalid config file: {file_path}", verbose)
        return None

    try:
        config = Config.from_dict(data, source=file_path)
        vlog(f"Loaded config successfully: {file_path}", verbose)
        return config
    except (ValueError, TypeError) as e:
        vlog(f"Config validation failed for {file_path}: {e}", verbose)
        return None


def apply_env_overrides(
    config: Config,
    environ: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> Config:
    """
    Apply CLI_MANAGER_* environment variables on top of a loaded config.

    Args:
        config: Config to override
        environ: Environment mapping (defaults to os.environ)
        verbose: Enable verbose logging

    Returns:
        New Config with overridden preferences

    Raises:
        ValueError: If an override value is not valid for its field
    """
    environ = os.environ if environ is None else environ
    changes: dict[str, Any] = {}

    for var, field_name in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw.strip() == "":
            continue
        if field_name == "preferred_method":
            changes[field_name] = raw.strip()
        else:
            try:
                changes[field_name] = int(raw)
            except ValueError:
                raise ValueError(f"{var} must be an integer, got {raw!r}") from None
        vlog(f"Config override from {var}: {field_name}={raw}", verbose)

    if not changes:
        return config
    return replace(config, preferences=replace(config.preferences, **changes))


def load_config(
    custom_path: str | None = None,
    verbose: bool = False,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Environment variables (CLI_MANAGER_*)
    2. Custom path (if provided)
    3. Project .cli-manager.yml
    4. User ~/.config/cli-manager/config.yml
    5. System /etc/cli-manager/config.yml
    6. Default configuration

    Args:
        custom_path: Optional path to custom configuration file
        verbose: Enable verbose logging
        environ: Environment mapping for overrides (defaults to os.environ)

    Returns:
        Merged Config object (never None, returns defaults if no config found)

    Raises:
        ValueError: If custom_path is provided but file cannot be loaded, or an
            environment override is invalid
    """
    configs: list[Config] = []

    if custom_path:
        config = load_config_file(custom_path, verbose)
        if config is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        configs.append(config)
        vlog(f"Using custom config: {custom_path}", verbose)

    for location in CONFIG_LOCATIONS:
        config = load_config_file(location, verbose)
        if config is not None:
            configs.append(config)
            vlog(f"Found config at: {location}", verbose)

    if not configs:
        vlog("No config files found, using defaults", verbose)
        merged = Config()
    else:
        # First config has highest priority
        merged = configs[0]
        for config in configs[1:]:
            merged = merged.merge_with(config)
        vlog(f"Merged {len(configs)} config files", verbose)

    return apply_env_overrides(merged, environ, verbose)
