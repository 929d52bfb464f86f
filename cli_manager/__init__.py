"""
CLI Manager - detect, install, update and remove AI coding CLIs.

Core Modules:
- Foundation: Platform detection, package managers, tool definitions, catalog, config
- Resolution: Latest-version collectors, installed-version probe, version comparison
- Orchestration: Install, update, uninstall and repair, single and batch
- Status: Concurrent status aggregation and the environment report
"""

__version__ = "1.0.0"
__author__ = "CLI Manager Contributors"

# Version info for backward compatibility
VERSION = __version__

# Foundation
from .common import ErrorKind, Outcome
from .environment import Arch, OSFamily, Platform, detect_platform
from .package_managers import (
    ManagerId,
    MethodSelection,
    PackageManager,
    PACKAGE_MANAGERS,
    detect_available_managers,
    get_available_install_methods,
    get_priority_order,
    select_install_method,
    to_update_command,
)
from .tools import (
    ReleaseApiSource,
    RegistryPackageSource,
    SourceIndexSource,
    ToolDefinition,
    ToolRegistry,
    UnknownSource,
    VendorManifestSource,
    VendorUpdateSource,
    parse_version_source,
)
from .catalog import CatalogError, load_catalog_file, load_tool_registry
from .config import Config, Preferences, ToolConfig, load_config

# Resolution
from .collectors import (
    CollectionError,
    HttpClient,
    NetworkError,
    ParseError,
    UnknownVersionSourceError,
    VersionLookup,
    fetch_latest_version,
    get_latest_version,
)
from .executor import CommandResult, run_shell_command
from .detection import extract_version, probe_installed_version, recover_search_path
from .upgrade import InvalidVersionError, UpdateResult, UpdateState, check_update, compare_versions, update_tool

# Orchestration
from .installer import (
    InstallResult,
    RepairResult,
    UninstallAttempt,
    UninstallResult,
    install_tool,
    repair_tool,
    uninstall_tool,
)
from .bulk import BulkResult, ProgressTracker, install_all, repair_all, uninstall_all, update_all

# Status
from .status import ToolStatus, aggregate_all, get_tool_status
from .prerequisites import EnvironmentReport, build_environment_report
from .manager import ToolManager

# Logging
from .logging_config import setup_logging, get_logger

__all__ = [
    # Version
    "__version__",
    "VERSION",
    # Foundation
    "ErrorKind",
    "Outcome",
    "Arch",
    "OSFamily",
    "Platform",
    "detect_platform",
    "ManagerId",
    "MethodSelection",
    "PackageManager",
    "PACKAGE_MANAGERS",
    "detect_available_managers",
    "get_available_install_methods",
    "get_priority_order",
    "select_install_method",
    "to_update_command",
    "ReleaseApiSource",
    "RegistryPackageSource",
    "SourceIndexSource",
    "ToolDefinition",
    "ToolRegistry",
    "UnknownSource",
    "VendorManifestSource",
    "VendorUpdateSource",
    "parse_version_source",
    "CatalogError",
    "load_catalog_file",
    "load_tool_registry",
    "Config",
    "Preferences",
    "ToolConfig",
    "load_config",
    # Resolution
    "CollectionError",
    "HttpClient",
    "NetworkError",
    "ParseError",
    "UnknownVersionSourceError",
    "VersionLookup",
    "fetch_latest_version",
    "get_latest_version",
    "CommandResult",
    "run_shell_command",
    "extract_version",
    "probe_installed_version",
    "recover_search_path",
    "InvalidVersionError",
    "UpdateResult",
    "UpdateState",
    "check_update",
    "compare_versions",
    "update_tool",
    # Orchestration
    "InstallResult",
    "RepairResult",
    "UninstallAttempt",
    "UninstallResult",
    "install_tool",
    "repair_tool",
    "uninstall_tool",
    "BulkResult",
    "ProgressTracker",
    "install_all",
    "repair_all",
    "uninstall_all",
    "update_all",
    # Status
    "ToolStatus",
    "aggregate_all",
    "get_tool_status",
    "EnvironmentReport",
    "build_environment_report",
    "ToolManager",
    # Logging
    "setup_logging",
    "get_logger",
]
