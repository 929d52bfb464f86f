"""
Shared fixtures for cli_manager tests.
"""

import pytest

from cli_manager.environment import Arch, OSFamily, Platform
from cli_manager.tools import ToolDefinition


LINUX = Platform(os=OSFamily.LINUX, arch=Arch.AMD64, raw_system="Linux", raw_machine="x86_64")
DARWIN = Platform(os=OSFamily.DARWIN, arch=Arch.ARM64, raw_system="Darwin", raw_machine="arm64")
WINDOWS = Platform(os=OSFamily.WINDOWS, arch=Arch.AMD64, raw_system="Windows", raw_machine="AMD64")


def build_tool(**overrides) -> ToolDefinition:
    """Build a ToolDefinition from catalog-style data with sensible defaults."""
    data = {
        "key": "myagent",
        "name": "My Agent",
        "command": "myagent",
        "version_cmd": "myagent --version",
        "version_source": {"type": "npm", "package": "myagent"},
        "install": {
            "linux": {"npm": "npm install -g myagent", "pip": "pip install myagent"},
            "darwin": {"brew": "brew install myagent", "npm": "npm install -g myagent"},
            "windows": {"winget": "winget install --id My.Agent", "npm": "npm install -g myagent"},
        },
        "uninstall": {
            "linux": {"npm": "npm uninstall -g myagent", "pip": "pip uninstall -y myagent"},
            "darwin": {"brew": "brew uninstall myagent"},
        },
        "env_vars": ["MYAGENT_API_KEY"],
    }
    data.update(overrides)
    return ToolDefinition.from_dict(data)


@pytest.fixture
def linux():
    return LINUX


@pytest.fixture
def darwin():
    return DARWIN


@pytest.fixture
def windows():
    return WINDOWS


@pytest.fixture
def make_tool():
    return build_tool
